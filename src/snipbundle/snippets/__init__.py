"""Snippet collection, storage and bundling."""

from .cache import load_cache, save_cache
from .collect import EntryCollector, Filter, collect_entries
from .entry import ENTRY_PATH, SKIP_PATH, Entry, EntryArgs
from .snippet_map import GUARD_PREFIX, LinkedSnippet, SnippetMap
from .vscode import to_vscode

__all__ = [
    "ENTRY_PATH",
    "GUARD_PREFIX",
    "SKIP_PATH",
    "Entry",
    "EntryArgs",
    "EntryCollector",
    "Filter",
    "LinkedSnippet",
    "SnippetMap",
    "collect_entries",
    "load_cache",
    "save_cache",
    "to_vscode",
]
