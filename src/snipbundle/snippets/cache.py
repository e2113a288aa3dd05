"""Snippet map cache files.

A cache is a gzip-compressed JSON document:

    {"version": 1, "snippets": {"<name>": {"contents": "...", "includes": ["..."]}}}

Names and includes are written sorted and the gzip header carries no
timestamp, so equal maps produce identical bytes.
"""

import gzip
import json
import logging
from pathlib import Path

from ..errors import CacheError
from .snippet_map import SnippetMap

logger = logging.getLogger(__name__)

CACHE_VERSION = 1


def dumps(snippet_map: SnippetMap) -> bytes:
    document = {"version": CACHE_VERSION, "snippets": snippet_map.to_dict()}
    payload = json.dumps(document, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return gzip.compress(payload.encode("utf-8"), mtime=0)


def loads(data: bytes, path: Path | None = None) -> SnippetMap:
    """Decode cache bytes.

    Raises:
        CacheError: If the data is not a cache of a known version
    """
    try:
        document = json.loads(gzip.decompress(data).decode("utf-8"))
    except (OSError, EOFError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CacheError(path, f"cannot decode: {e}") from e

    if not isinstance(document, dict) or document.get("version") != CACHE_VERSION:
        raise CacheError(path, f"unsupported cache version (expected {CACHE_VERSION})")
    snippets = document.get("snippets")
    if not isinstance(snippets, dict):
        raise CacheError(path, "missing `snippets` table")
    try:
        return SnippetMap.from_dict(snippets)
    except (KeyError, TypeError, AttributeError) as e:
        raise CacheError(path, f"malformed snippet: {e}") from e


def save_cache(snippet_map: SnippetMap, path: Path) -> None:
    """Write a cache file, creating parent directories as needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(dumps(snippet_map))
    logger.info(f"Saved {len(snippet_map)} snippets to {path}")


def load_cache(path: Path) -> SnippetMap:
    """Read a cache file.

    Raises:
        CacheError: If the file cannot be read or decoded
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise CacheError(path, str(e)) from e
    snippet_map = loads(data, path)
    logger.info(f"Loaded {len(snippet_map)} snippets from {path}")
    return snippet_map
