"""
Rust source parser built on Tree-sitter.

Converts a Tree-sitter concrete syntax tree into the item-level tree of
``snipbundle.syntax.tree``. In the Tree-sitter Rust grammar outer
attributes are siblings of the item they decorate, so attributes and doc
comments are buffered until the next item node and then attached to it.
Items declared inside blocks (function bodies, closures, ...) are recorded
as ``NestedItem`` spans of the enclosing item.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

try:
    from tree_sitter import Node as TSNode
    from tree_sitter import Parser, Tree
    from tree_sitter_language_pack import get_language
except ImportError as e:
    raise ImportError(
        "tree-sitter-language-pack is required. " "Install with: pip install tree-sitter tree-sitter-language-pack"
    ) from e

from ..errors import ParseFileError, RustSyntaxError, SourceFileNotFoundError, SourceIOError
from .tree import MODULE_KIND, Attribute, Item, ModuleBody, NestedItem, SourceFile

logger = logging.getLogger(__name__)

# Node types that never become items
_TRIVIA = frozenset({"empty_statement", "shebang"})
_COMMENTS = frozenset({"line_comment", "block_comment"})

# Statements inside a block that declare items
_BLOCK_ITEMS = frozenset(
    {
        "const_item",
        "enum_item",
        "extern_crate_declaration",
        "foreign_mod_item",
        "function_item",
        "impl_item",
        "macro_definition",
        "mod_item",
        "static_item",
        "struct_item",
        "trait_item",
        "type_item",
        "union_item",
        "use_declaration",
    }
)


def create_parser() -> Parser:
    """Create a Tree-sitter parser for Rust.

    Parsers are not thread-safe; create one per thread.
    """
    return Parser(get_language("rust"))


def _find_error(node: TSNode) -> Optional[TSNode]:
    """Return the first ERROR or MISSING node in pre-order, if any."""
    if node.type == "ERROR" or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = _find_error(child)
        if found is not None:
            return found
    return None


def classify_comment(text: str) -> Optional[Tuple[bool, bool]]:
    """Classify a comment as (is_doc, is_inner).

    `///x` and `/**x*/` are outer docs, `//!` and `/*!` are inner docs.
    `////` and `/***` are ordinary comments.
    """
    if text.startswith("///") and not text.startswith("////"):
        return True, False
    if text.startswith("//!"):
        return True, True
    if text.startswith("/**") and not text.startswith("/***") and text != "/**/":
        return True, False
    if text.startswith("/*!"):
        return True, True
    return None


def _attribute_text(text: str) -> str:
    """Strip `#[`/`#![` and the closing `]` from an attribute node."""
    text = text.strip()
    start = text.index("[") + 1
    end = text.rindex("]")
    return text[start:end].strip()


class RustParser:
    """Parses Rust files into ``SourceFile`` trees.

    Usage:
        parser = RustParser()
        source = parser.parse_file(Path("src/lib.rs"))
        for item in source.items:
            print(item.kind, item.name)
    """

    def __init__(self, parser: Optional[Parser] = None):
        self._parser = parser if parser is not None else create_parser()

    def parse_file(self, path: Path) -> SourceFile:
        """Read and parse a file.

        Raises:
            SourceFileNotFoundError: If the file cannot be opened
            SourceIOError: If the file cannot be read or decoded
            ParseFileError: If the file contains syntax errors
        """
        try:
            with open(path, "rb") as f:
                data = f.read()
        except (FileNotFoundError, IsADirectoryError, PermissionError) as e:
            raise SourceFileNotFoundError(path) from e
        except OSError as e:
            raise SourceIOError(path, str(e)) from e

        try:
            data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SourceIOError(path, f"not valid UTF-8: {e}") from e

        logger.debug(f"Parsing {path} ({len(data)} bytes)")
        try:
            return self.parse_bytes(data)
        except RustSyntaxError as e:
            raise ParseFileError(path, e) from e

    def parse_text(self, text: str) -> SourceFile:
        """Parse source text.

        Raises:
            RustSyntaxError: If the text contains syntax errors
        """
        return self.parse_bytes(text.encode("utf-8"))

    def parse_tree(self, data: bytes) -> Tree:
        """Parse bytes into a raw Tree-sitter tree.

        Raises:
            RustSyntaxError: If the tree contains an ERROR or MISSING node
        """
        tree = self._parser.parse(data)
        error = _find_error(tree.root_node)
        if error is not None:
            row, column = error.start_point
            snippet = data[error.start_byte : error.end_byte].decode("utf-8", "replace")
            snippet = snippet.splitlines()[0][:40] if snippet.strip() else ""
            raise RustSyntaxError(row + 1, column + 1, snippet, missing=error.is_missing)
        return tree

    def parse_bytes(self, data: bytes) -> SourceFile:
        root = self.parse_tree(data).root_node
        inner_attrs, items = _Converter(data).convert_children(root)
        return SourceFile(inner_attrs=inner_attrs, items=items)


class _Converter:
    """Turns the children of a `source_file` or `declaration_list` into items."""

    def __init__(self, data: bytes):
        self.data = data

    def text(self, node: TSNode) -> str:
        return self.data[node.start_byte : node.end_byte].decode("utf-8")

    def convert_children(self, parent: TSNode) -> Tuple[List[Attribute], List[Item]]:
        inner_attrs: List[Attribute] = []
        items: List[Item] = []
        pending: List[Attribute] = []

        for child in parent.named_children:
            kind = child.type
            if kind == "attribute_item":
                pending.append(Attribute(_attribute_text(self.text(child))))
            elif kind == "inner_attribute_item":
                inner_attrs.append(Attribute(_attribute_text(self.text(child)), inner=True))
            elif kind in _COMMENTS:
                text = self.text(child).rstrip("\n")
                doc = classify_comment(text)
                if doc is None:
                    continue
                if doc[1]:
                    inner_attrs.append(Attribute(text, inner=True, doc=True))
                else:
                    pending.append(Attribute(text, doc=True))
            elif kind in _TRIVIA:
                continue
            else:
                items.append(self.convert_item(child, pending))
                pending = []

        if pending:
            # Attributes with nothing after them (e.g. trailing doc comments) are dropped
            logger.debug(f"Dropping {len(pending)} dangling attribute(s)")
        return inner_attrs, items

    def convert_item(self, node: TSNode, attrs: List[Attribute]) -> Item:
        name_node = node.child_by_field_name("name")
        name = self.text(name_node) if name_node is not None else None

        if node.type != MODULE_KIND:
            nested: List[NestedItem] = []
            self._scan(node, node.start_byte, nested)
            return Item(kind=node.type, text=self.text(node), attrs=attrs, name=name, nested=nested)

        body_node = node.child_by_field_name("body")
        if body_node is None:
            header = self.text(node).rstrip().rstrip(";").rstrip()
            return Item(kind=MODULE_KIND, text=header, attrs=attrs, name=name)

        header = self.data[node.start_byte : body_node.start_byte].decode("utf-8").rstrip()
        inner_attrs, items = self.convert_children(body_node)
        return Item(
            kind=MODULE_KIND,
            text=header,
            attrs=attrs,
            name=name,
            body=ModuleBody(inner_attrs=inner_attrs, items=items),
        )

    def _offset(self, origin: int, byte: int) -> int:
        """Character offset of `byte` in the text that starts at `origin`."""
        return len(self.data[origin:byte].decode("utf-8"))

    def _scan(self, node: TSNode, origin: int, nested: List[NestedItem]) -> None:
        """Find item statements in every block at or below `node`."""
        if node.type == "block":
            self._scan_block(node, origin, nested)
            return
        for child in node.named_children:
            self._scan(child, origin, nested)

    def _scan_block(self, block: TSNode, origin: int, nested: List[NestedItem]) -> None:
        # Attributes on `let` and expression statements stay verbatim
        pending: List[Attribute] = []
        start: Optional[int] = None
        for child in block.named_children:
            kind = child.type
            if kind == "attribute_item":
                pending.append(Attribute(_attribute_text(self.text(child))))
            elif kind in _COMMENTS:
                text = self.text(child).rstrip("\n")
                doc = classify_comment(text)
                if doc is None or doc[1]:
                    continue
                pending.append(Attribute(text, doc=True))
            elif kind in _BLOCK_ITEMS:
                begin = child.start_byte if start is None else start
                item = self.convert_item(child, pending)
                nested.append(NestedItem(self._offset(origin, begin), self._offset(origin, child.end_byte), item))
                pending, start = [], None
                continue
            else:
                self._scan(child, origin, nested)
                pending, start = [], None
                continue
            if start is None:
                start = child.start_byte
