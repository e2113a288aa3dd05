"""
Token-level Rust minifier.

Re-emits the leaf tokens of a Tree-sitter tree with the least whitespace
that keeps them apart:

- ordinary comments are dropped; doc comments are kept, each followed by a
  newline so that the next token cannot end up inside a line comment
- string, char and raw string literals are copied verbatim
- a single space is kept only where the source had a gap and both
  neighbours are word-like (`fn main`, `'a str`) or both are punctuation
  (`- -x`, `& &x`)
- every top-level item starts on its own line

Optionally existing `#[rustfmt::skip]` attributes are removed and every
top-level item is marked `#[rustfmt::skip]` so a later rustfmt run keeps the
minified layout.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from tree_sitter import Node as TSNode

from ..syntax.parser import RustParser, classify_comment

logger = logging.getLogger(__name__)

RUSTFMT_SKIP = "#[rustfmt::skip]"

# Nodes emitted as a single token
_ATOMIC = frozenset(
    {
        "string_literal",
        "raw_string_literal",
        "char_literal",
        "line_comment",
        "block_comment",
    }
)
_COMMENTS = frozenset({"line_comment", "block_comment"})
# Top-level nodes that are not items
_NON_ITEMS = frozenset({"attribute_item", "inner_attribute_item", "line_comment", "block_comment", "empty_statement", "shebang"})


@dataclass(frozen=True)
class MinifyOptions:
    """
    Attributes:
        remove_skip: Drop existing `#[rustfmt::skip]` attributes
        add_rustfmt_skip: Mark every top-level item `#[rustfmt::skip]`
    """

    remove_skip: bool = True
    add_rustfmt_skip: bool = True


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_'\""


def _needs_space(prev: str, token: str) -> bool:
    left, right = prev[-1], token[0]
    left_word, right_word = _is_word_char(left), _is_word_char(right)
    if left_word and right_word:
        return True
    return not left_word and not right_word


def _is_rustfmt_skip(text: str) -> bool:
    return "".join(text.split()) == RUSTFMT_SKIP


class _Minifier:
    def __init__(self, data: bytes, options: MinifyOptions):
        self.data = data
        self.options = options
        self.out: List[str] = []
        self.prev: Optional[str] = None
        self.prev_end = 0
        self.line_start = True

    def text(self, node: TSNode) -> str:
        return self.data[node.start_byte : node.end_byte].decode("utf-8")

    def newline(self) -> None:
        if not self.line_start:
            self.out.append("\n")
            self.line_start = True

    def emit(self, token: str, start: int, end: int) -> None:
        if not token:
            return
        if self.prev is not None and not self.line_start and start > self.prev_end and _needs_space(self.prev, token):
            self.out.append(" ")
        self.out.append(token)
        self.prev = token
        self.prev_end = end
        self.line_start = False

    def visit(self, node: TSNode) -> None:
        kind = node.type
        if kind == "attribute_item" and self.options.remove_skip and _is_rustfmt_skip(self.text(node)):
            return
        if kind in _COMMENTS:
            text = self.text(node).rstrip("\r\n")
            if classify_comment(text) is None:
                return
            self.emit(text, node.start_byte, node.end_byte)
            if kind == "line_comment":
                self.newline()
            return
        if kind in _ATOMIC or node.child_count == 0:
            self.emit(self.text(node), node.start_byte, node.end_byte)
            return
        for child in node.children:
            self.visit(child)

    def visit_top_level(self, root: TSNode) -> None:
        for child in root.children:
            if self.options.add_rustfmt_skip and child.type not in _NON_ITEMS:
                self.emit(RUSTFMT_SKIP, child.start_byte, child.start_byte)
            self.visit(child)
            if child.type not in ("attribute_item", "line_comment", "block_comment"):
                self.newline()

    def result(self) -> str:
        self.newline()
        return "".join(self.out)


def minify(source: str, options: Optional[MinifyOptions] = None, parser: Optional[RustParser] = None) -> str:
    """
    Minify Rust source text.

    Args:
        source: Rust source (a sequence of items)
        options: Skip-attribute handling (defaults to remove and re-add)
        parser: Parser to use (a new one is created if None)

    Returns:
        Minified source, one top-level item per line

    Raises:
        RustSyntaxError: If the source does not parse
    """
    options = options if options is not None else MinifyOptions()
    parser = parser if parser is not None else RustParser()
    data = source.encode("utf-8")
    tree = parser.parse_tree(data)
    minifier = _Minifier(data, options)
    minifier.visit_top_level(tree.root_node)
    return minifier.result()
