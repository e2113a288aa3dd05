"""VS Code snippet export."""

from typing import Dict

from .snippet_map import SnippetMap

SNIPPET_SCOPE = "rust"


def escape_body(text: str) -> str:
    """Escape `$`, which VS Code treats as a placeholder marker."""
    return text.replace("$", "\\$")


def to_vscode(snippet_map: SnippetMap, ignore_include: bool = False) -> Dict[str, Dict[str, str]]:
    """Build a VS Code snippet table for every non-hidden snippet.

    Args:
        snippet_map: Source snippets
        ignore_include: Use each snippet's own contents instead of its bundle

    Returns:
        `{name: {"prefix": name, "body": ..., "scope": "rust"}}` sorted by name
    """
    table = {}
    for name in snippet_map.keys(hide=True):
        if ignore_include:
            body = snippet_map[name].contents
        else:
            body = snippet_map.bundle(name)
        table[name] = {"prefix": name, "body": escape_body(body), "scope": SNIPPET_SCOPE}
    return table
