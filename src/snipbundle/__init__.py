"""snipbundle - extract, bundle and verify Rust code snippets."""

__version__ = "0.1.0"

from snipbundle.errors import SnipbundleError
from snipbundle.resolve import CfgPolicy, CfgSet, ModuleResolver, resolve_file
from snipbundle.snippets import Filter, LinkedSnippet, SnippetMap, collect_entries

__all__ = [
    "CfgPolicy",
    "CfgSet",
    "Filter",
    "LinkedSnippet",
    "ModuleResolver",
    "SnipbundleError",
    "SnippetMap",
    "__version__",
    "collect_entries",
    "resolve_file",
]
