"""Rust syntax layer: Tree-sitter parsing into an item-level tree."""

from .meta import Lit, Meta, NestedMeta, parse_meta
from .parser import RustParser, create_parser
from .tree import MODULE_KIND, Attribute, Item, ModuleBody, NestedItem, SourceFile

__all__ = [
    "MODULE_KIND",
    "Attribute",
    "Item",
    "Lit",
    "Meta",
    "ModuleBody",
    "NestedItem",
    "NestedMeta",
    "RustParser",
    "SourceFile",
    "create_parser",
    "parse_meta",
]
