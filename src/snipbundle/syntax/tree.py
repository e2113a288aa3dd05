"""Item-level syntax tree for Rust sources.

The tree only models what snippet extraction needs: items, their outer and
inner attributes, the bodies of inline modules and the items declared
inside function bodies and other blocks. Everything else is kept as
verbatim source text, so rendering an item reproduces what the author
wrote minus the attributes and items that were filtered out.

    SourceFile
      inner_attrs: [Attribute]       #![...] and //! at the top of a file
      items: [Item]
        attrs: [Attribute]           #[...] and /// before the item
        kind:  tree-sitter node type ("function_item", "mod_item", ...)
        text:  item source (module header only for modules)
        body:  ModuleBody | None     inline module contents
        nested: [NestedItem]         items inside blocks of a non-module item
"""

import re
from dataclasses import dataclass, field, replace
from functools import cached_property
from typing import Callable, List, Optional

from .meta import Meta, parse_meta

MODULE_KIND = "mod_item"

# Path at the start of attribute contents, e.g. `codesnip :: entry` in `codesnip :: entry("x")`
_PATH_RE = re.compile(r"\s*((?:::\s*)?(?:r#)?[A-Za-z_][A-Za-z0-9_]*(?:\s*::\s*(?:r#)?[A-Za-z_][A-Za-z0-9_]*)*)")


@dataclass(frozen=True)
class Attribute:
    """A single attribute or doc comment attached to an item.

    Attributes:
        text: Contents between `#[` and `]`, or the full comment for doc comments
        inner: True for `#![...]` and `//!` forms
        doc: True when the attribute was written as a doc comment
    """

    text: str
    inner: bool = False
    doc: bool = False

    @cached_property
    def path(self) -> str:
        """Attribute path with whitespace removed (`doc` for doc comments)."""
        if self.doc:
            return "doc"
        match = _PATH_RE.match(self.text)
        if match is None:
            return ""
        return re.sub(r"\s+", "", match.group(1))

    def meta(self) -> Meta:
        """Parse the attribute contents.

        Raises:
            MetaParseError: If the contents are not a meta item
        """
        return parse_meta(self.text)

    def render(self) -> str:
        if self.doc:
            return self.text
        if self.inner:
            return f"#![{self.text}]"
        return f"#[{self.text}]"


@dataclass
class ModuleBody:
    """Contents of an inline module (or of a spliced-in module file)."""

    inner_attrs: List[Attribute] = field(default_factory=list)
    items: List["Item"] = field(default_factory=list)


@dataclass(frozen=True)
class NestedItem:
    """An item declared in a block of another item, e.g. `fn helper` in a fn body.

    Attributes:
        start: Offset in the enclosing item's text where the item (including
            its attributes) begins
        end: Offset where it ends
        item: The parsed item, or None once cfg or filtering removed it
    """

    start: int
    end: int
    item: Optional["Item"]

    def transform(self, func: Callable[["Item"], Optional["Item"]]) -> "NestedItem":
        if self.item is None:
            return self
        return replace(self, item=func(self.item))


@dataclass
class Item:
    """One Rust item with its outer attributes."""

    kind: str
    text: str
    attrs: List[Attribute] = field(default_factory=list)
    name: Optional[str] = None
    body: Optional[ModuleBody] = None
    nested: List[NestedItem] = field(default_factory=list)

    @property
    def is_module(self) -> bool:
        return self.kind == MODULE_KIND

    @property
    def is_module_declaration(self) -> bool:
        """True for `mod name;` items that refer to another file."""
        return self.is_module and self.body is None

    def with_attrs(self, attrs: List[Attribute]) -> "Item":
        return replace(self, attrs=list(attrs))

    def with_body(self, body: Optional[ModuleBody]) -> "Item":
        return replace(self, body=body)

    def map_nested(self, func: Callable[["Item"], Optional["Item"]]) -> "Item":
        """Copy with `func` applied to every nested item still present."""
        if not self.nested:
            return self
        return replace(self, nested=[n.transform(func) for n in self.nested])

    @property
    def children(self) -> List["Item"]:
        """Module contents for modules, surviving nested items otherwise."""
        if self.body is not None:
            return self.body.items
        return [n.item for n in self.nested if n.item is not None]

    def source_text(self) -> str:
        """Item text with nested items re-rendered in place."""
        parts = []
        pos = 0
        for nested in self.nested:
            parts.append(self.text[pos : nested.start])
            if nested.item is not None:
                parts.append(nested.item.render().rstrip("\n"))
            pos = nested.end
        parts.append(self.text[pos:])
        return "".join(parts)

    def find_attr(self, path: str) -> Optional[Attribute]:
        for attr in self.attrs:
            if attr.path == path:
                return attr
        return None

    def render(self) -> str:
        """Serialize the item back to source text, ending with a newline."""
        lines = [attr.render() for attr in self.attrs]
        if self.is_module:
            if self.body is None:
                lines.append(f"{self.text};")
            else:
                lines.append(f"{self.text} {{")
                lines.extend(attr.render() for attr in self.body.inner_attrs)
                lines.extend(child.render().rstrip("\n") for child in self.body.items)
                lines.append("}")
        else:
            lines.append(self.source_text())
        return "\n".join(lines) + "\n"


@dataclass
class SourceFile:
    """A parsed Rust file."""

    inner_attrs: List[Attribute] = field(default_factory=list)
    items: List[Item] = field(default_factory=list)

    def render(self) -> str:
        parts = [attr.render() + "\n" for attr in self.inner_attrs]
        parts.extend(item.render() for item in self.items)
        return "".join(parts)
