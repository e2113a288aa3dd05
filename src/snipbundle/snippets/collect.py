"""Entry collection: resolved tree -> snippet map.

Walks a resolved tree depth-first and, for every item annotated with
`#[codesnip::entry]`, renders the filtered item into the snippet map.
The walk continues below annotated items, so nested modules and items
declared inside function bodies can declare their own entries.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from ..errors import EntryArgsError
from ..syntax.tree import Attribute, Item, ModuleBody
from .entry import ENTRY_PATH, SKIP_PATH, Entry, EntryArgs
from .snippet_map import LinkedSnippet, SnippetMap

logger = logging.getLogger(__name__)


def _normalize_path(path: str) -> str:
    return "".join(path.split())


@dataclass(frozen=True)
class Filter:
    """Attribute paths removed while rendering snippets.

    Attributes:
        filter_attr: Attributes stripped from kept items (e.g. `doc`, `allow`)
        filter_item: Attributes that remove the whole item (e.g. `test`)
    """

    filter_attr: Tuple[str, ...] = ()
    filter_item: Tuple[str, ...] = ()

    @classmethod
    def create(cls, filter_attr: Iterable[str] = (), filter_item: Iterable[str] = ()) -> "Filter":
        return cls(
            filter_attr=tuple(_normalize_path(p) for p in filter_attr),
            filter_item=tuple(_normalize_path(p) for p in filter_item),
        )

    def is_skip_item(self, attrs: Sequence[Attribute]) -> bool:
        return any(attr.path == SKIP_PATH or attr.path in self.filter_item for attr in attrs)

    def filter_attributes(self, attrs: Sequence[Attribute]) -> List[Attribute]:
        return [attr for attr in attrs if attr.path != ENTRY_PATH and attr.path not in self.filter_attr]

    def modify_item(self, item: Item) -> Optional[Item]:
        """Filtered copy of `item`, or None if the item is skipped."""
        if self.is_skip_item(item.attrs):
            return None
        item = item.with_attrs(self.filter_attributes(item.attrs))
        if item.body is not None:
            children = [child for child in (self.modify_item(c) for c in item.body.items) if child is not None]
            item = item.with_body(ModuleBody(inner_attrs=list(item.body.inner_attrs), items=children))
        return item.map_nested(self.modify_item)

    def render_item(self, item: Item) -> str:
        modified = self.modify_item(item)
        return modified.render() if modified is not None else ""


def entries_of(item: Item) -> List[Entry]:
    """Parse every entry annotation on an item.

    Invalid annotations are logged and skipped.
    """
    entries = []
    for attr in item.attrs:
        if attr.path != ENTRY_PATH:
            continue
        try:
            entries.append(EntryArgs.from_attribute(attr).to_entry(item))
        except EntryArgsError as e:
            logger.warning(f"Ignoring `#[{attr.text}]` on {item.kind}: {e}")
    return entries


class EntryCollector:
    """Collects annotated items into a snippet map.

    Usage:
        collector = EntryCollector(snippet_map, Filter.create(filter_attr=["doc"]))
        collector.collect(resolved.items)
    """

    def __init__(self, snippet_map: SnippetMap, filter: Optional[Filter] = None):
        self.map = snippet_map
        self.filter = filter if filter is not None else Filter()

    def collect(self, items: Iterable[Item]) -> None:
        for item in items:
            self.visit_item(item)

    def visit_item(self, item: Item) -> None:
        for entry in entries_of(item):
            link = self.map.get_or_create(entry.name)
            self._emit(link, entry, item)
            link.push_includes(entry.include)
            logger.debug(f"Collected `{entry.name}` from {item.kind} (includes: {entry.include})")
        for child in item.children:
            self.visit_item(child)

    def _emit(self, link: LinkedSnippet, entry: Entry, item: Item) -> None:
        if entry.inline and item.is_module:
            if item.body is None or self.filter.is_skip_item(item.attrs):
                return
            for child in item.body.items:
                link.push_contents(self.filter.render_item(child))
        else:
            link.push_contents(self.filter.render_item(item))


def collect_entries(items: Iterable[Item], filter: Optional[Filter] = None) -> SnippetMap:
    """Collect entries from a resolved tree into a new snippet map."""
    snippet_map = SnippetMap()
    EntryCollector(snippet_map, filter).collect(items)
    return snippet_map
