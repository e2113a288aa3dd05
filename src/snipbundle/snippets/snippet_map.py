"""Snippet map and bundling.

A ``SnippetMap`` maps snippet names to ``LinkedSnippet`` values: the
rendered source of the snippet plus the names it depends on. Includes may
name snippets that are not in the map; bundling skips them and the
verifier reports them.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Set, Tuple

from ..errors import SnippetNotFoundError

logger = logging.getLogger(__name__)

GUARD_PREFIX = "// codesnip-guard: "
HIDDEN_PREFIX = "_"


@dataclass
class LinkedSnippet:
    """Rendered snippet text and the names of the snippets it includes."""

    contents: str = ""
    includes: Set[str] = field(default_factory=set)

    def push_contents(self, contents: str) -> None:
        self.contents += contents

    def push_includes(self, includes: Iterable[str]) -> None:
        self.includes.update(includes)

    def append(self, other: "LinkedSnippet") -> None:
        self.contents += other.contents
        self.includes |= other.includes

    def to_dict(self) -> Dict[str, object]:
        return {"contents": self.contents, "includes": sorted(self.includes)}

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "LinkedSnippet":
        contents = data["contents"]
        includes = data.get("includes", [])
        if not isinstance(contents, str) or not isinstance(includes, list):
            raise TypeError("snippet needs `contents: str` and `includes: list`")
        return cls(contents=contents, includes={str(name) for name in includes})


def _push_guard(parts: List[str], name: str) -> None:
    last = next((part for part in reversed(parts) if part), "")
    if last and not last.endswith("\n"):
        parts.append("\n")
    parts.append(f"{GUARD_PREFIX}{name}\n")


class SnippetMap:
    """Name -> ``LinkedSnippet`` mapping with bundling.

    Iteration yields names in lexicographic order.
    """

    def __init__(self, snippets: Dict[str, LinkedSnippet] | None = None) -> None:
        self._snippets: Dict[str, LinkedSnippet] = dict(snippets) if snippets else {}

    def __len__(self) -> int:
        return len(self._snippets)

    def __contains__(self, name: object) -> bool:
        return name in self._snippets

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._snippets))

    def __getitem__(self, name: str) -> LinkedSnippet:
        try:
            return self._snippets[name]
        except KeyError:
            raise SnippetNotFoundError(name) from None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SnippetMap):
            return NotImplemented
        return self._snippets == other._snippets

    def __repr__(self) -> str:
        return f"SnippetMap({len(self)} snippets)"

    def get(self, name: str) -> LinkedSnippet | None:
        return self._snippets.get(name)

    def items(self) -> List[Tuple[str, LinkedSnippet]]:
        return [(name, self._snippets[name]) for name in sorted(self._snippets)]

    def get_or_create(self, name: str) -> LinkedSnippet:
        """Return the snippet for `name`, inserting an empty one if absent."""
        link = self._snippets.get(name)
        if link is None:
            link = LinkedSnippet()
            self._snippets[name] = link
        return link

    def extend(self, other: Iterable[Tuple[str, LinkedSnippet]]) -> None:
        """Merge snippets into this map, appending to existing names."""
        if isinstance(other, SnippetMap):
            other = other.items()
        for name, link in other:
            self.get_or_create(name).append(link)

    def with_prefix(self, prefix: str) -> "SnippetMap":
        """Copy of the map with every name renamed to `<prefix>_<name>`.

        Includes are left as written.
        """
        return SnippetMap({f"{prefix}_{name}": link for name, link in self._snippets.items()})

    def keys(self, hide: bool = False) -> List[str]:
        """Sorted snippet names, optionally without `_`-prefixed names."""
        names = sorted(self._snippets)
        if hide:
            return [name for name in names if not name.startswith(HIDDEN_PREFIX)]
        return names

    def missing_includes(self, name: str) -> List[str]:
        """Includes of `name` that are not in the map."""
        return sorted(inc for inc in self[name].includes if inc not in self._snippets)

    def resolve_includes(self, used: Set[str], includes: Iterable[str]) -> Set[str]:
        """Transitive closure of `includes`, seeded with the `used` names.

        Expansion stops at names already visited, so cyclic include graphs
        terminate.
        """
        visited = set(used)
        stack = [inc for inc in includes if inc not in visited]
        visited.update(stack)
        while stack:
            include = stack.pop()
            link = self._snippets.get(include)
            if link is None:
                continue
            for nested in link.includes:
                if nested not in visited:
                    visited.add(nested)
                    stack.append(nested)
        return visited

    def bundle(self, name: str, excludes: Iterable[str] = (), guard: bool = False) -> str:
        """Concatenate a snippet with everything it transitively includes.

        The snippet's own contents come first, followed by each included
        snippet exactly once in name order. Names in `excludes` (and their
        own contents) are left out; includes missing from the map are
        skipped.

        Args:
            name: Snippet to bundle
            excludes: Names already present at the destination
            guard: Prefix every unit with a `// codesnip-guard: <name>` line

        Returns:
            Bundle text, or "" if `name` itself is excluded

        Raises:
            SnippetNotFoundError: If `name` is not in the map
        """
        excluded = set(excludes)
        if name in excluded:
            return ""
        link = self[name]
        excluded.add(name)
        visited = self.resolve_includes(excluded, link.includes)

        parts: List[str] = []
        if guard:
            _push_guard(parts, name)
        parts.append(link.contents)
        for include in sorted(visited - excluded):
            nested = self._snippets.get(include)
            if nested is None:
                continue
            if guard:
                _push_guard(parts, include)
            parts.append(nested.contents)
        return "".join(parts)

    def to_dict(self) -> Dict[str, Dict[str, object]]:
        return {name: link.to_dict() for name, link in self.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, object]]) -> "SnippetMap":
        return cls({str(name): LinkedSnippet.from_dict(link) for name, link in data.items()})
