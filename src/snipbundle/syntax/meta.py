"""Parser for attribute contents ("meta items").

Attribute contents follow a small grammar:

    meta   := path | path "(" [nested ("," nested)* [","]] ")" | path "=" value
    nested := literal | meta

This is enough for `cfg`, `cfg_attr`, `path` and `codesnip::entry`.
Attributes with arbitrary token trees are never parsed through here.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from ..errors import MetaParseError

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<raw>b?r(?P<hashes>\#*)"(?:.|\n)*?"(?P=hashes))
  | (?P<str>b?"(?:\\.|[^"\\])*")
  | (?P<char>b?'(?:\\.|[^'\\])')
  | (?P<num>[0-9][0-9A-Za-z_]*(?:\.[0-9][0-9A-Za-z_]*)?)
  | (?P<ident>(?:r\#)?[A-Za-z_][A-Za-z0-9_]*)
  | (?P<sep>::)
  | (?P<punct>\S)
    """,
    re.VERBOSE,
)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", "\\": "\\", '"': '"', "'": "'"}
_OPEN = {"(": ")", "[": "]", "{": "}"}


@dataclass(frozen=True)
class _Token:
    kind: str
    text: str
    start: int
    end: int


@dataclass(frozen=True)
class Lit:
    """A literal (or, for `name = value`, the raw value text)."""

    token: str

    @property
    def is_str(self) -> bool:
        return bool(re.match(r'^b?r?#*"', self.token))

    @property
    def value(self) -> str:
        """String value with quotes removed and escapes decoded."""
        token = self.token
        if token.startswith("b"):
            token = token[1:]
        if token.startswith("r"):
            hashes = len(token) - len(token.lstrip("r#")) - 1
            return token[2 + hashes : len(token) - 1 - hashes]
        if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"'":
            return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), token[1:-1])
        return token

    @property
    def text(self) -> str:
        return self.token


@dataclass(frozen=True)
class Meta:
    """A parsed meta item.

    Equality compares structure (path, args, value) and ignores spacing.

    Attributes:
        path: Path with whitespace removed, e.g. `codesnip::entry`
        args: Nested items for the list form `path(...)`
        value: Value for the name-value form `path = value`
        text: Original source text of this item
    """

    path: str
    args: Optional[Tuple["NestedMeta", ...]] = None
    value: Optional[Lit] = None
    text: str = field(default="", compare=False)

    @property
    def is_word(self) -> bool:
        return self.args is None and self.value is None

    @property
    def is_list(self) -> bool:
        return self.args is not None

    @property
    def is_name_value(self) -> bool:
        return self.value is not None


NestedMeta = Union[Meta, Lit]


def _tokenize(text: str) -> List[_Token]:
    tokens = []
    for match in _TOKEN_RE.finditer(text):
        kind = match.lastgroup
        if kind == "hashes":
            kind = "raw"
        if kind == "ws":
            continue
        tokens.append(_Token(kind or "punct", match.group(0), match.start(), match.end()))
    return tokens


class _MetaParser:
    """Recursive-descent parser over the token list of one attribute."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0

    def error(self, reason: str) -> MetaParseError:
        return MetaParseError(self.text, reason)

    def peek(self) -> Optional[_Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def advance(self) -> _Token:
        token = self.peek()
        if token is None:
            raise self.error("unexpected end of input")
        self.pos += 1
        return token

    def at(self, text: str) -> bool:
        token = self.peek()
        return token is not None and token.text == text

    def parse_path(self) -> Tuple[str, int]:
        token = self.peek()
        if token is None:
            raise self.error("expected path")
        start = token.start
        segments = []
        if token.kind == "sep":
            self.advance()
            segments.append("")
        while True:
            token = self.advance()
            if token.kind != "ident":
                raise self.error(f"expected identifier, found `{token.text}`")
            segments.append(token.text)
            if not self.at("::"):
                break
            self.advance()
        return "::".join(segments), start

    def parse_meta(self) -> Meta:
        path, start = self.parse_path()
        if self.at("("):
            self.advance()
            args = self.parse_nested_list(")")
            end = self.advance().end
            return Meta(path, args=tuple(args), text=self.text[start:end])
        if self.at("="):
            self.advance()
            value_start, value_end = self.skip_value()
            if value_start == value_end:
                raise self.error(f"expected value after `{path} =`")
            raw = self.text[value_start:value_end].strip()
            return Meta(path, value=Lit(raw), text=self.text[start:value_end].strip())
        end = self.tokens[self.pos - 1].end
        return Meta(path, text=self.text[start:end])

    def skip_value(self) -> Tuple[int, int]:
        """Consume tokens up to a top-level comma or closing bracket."""
        depth = 0
        token = self.peek()
        start = end = token.start if token is not None else len(self.text)
        while token is not None:
            if token.text in _OPEN:
                depth += 1
            elif token.text in _OPEN.values():
                if depth == 0:
                    break
                depth -= 1
            elif token.text == "," and depth == 0:
                break
            end = token.end
            self.advance()
            token = self.peek()
        return start, end

    def parse_nested_list(self, close: str) -> List[NestedMeta]:
        items: List[NestedMeta] = []
        while not self.at(close):
            if self.peek() is None:
                raise self.error(f"unclosed `(`, expected `{close}`")
            items.append(self.parse_nested())
            if self.at(","):
                self.advance()
            elif not self.at(close):
                token = self.peek()
                found = token.text if token is not None else "end of input"
                raise self.error(f"expected `,` or `{close}`, found `{found}`")
        return items

    def parse_nested(self) -> NestedMeta:
        token = self.peek()
        if token is not None and token.kind in ("str", "raw", "char", "num"):
            self.advance()
            return Lit(token.text)
        if token is not None and token.kind == "ident" and token.text in ("true", "false"):
            self.advance()
            return Lit(token.text)
        return self.parse_meta()


def parse_meta(text: str) -> Meta:
    """Parse attribute contents such as `cfg(all(unix, feature = "std"))`.

    Args:
        text: Attribute contents without the surrounding `#[` and `]`

    Returns:
        Parsed meta item

    Raises:
        MetaParseError: If the text is not exactly one meta item
    """
    parser = _MetaParser(text)
    meta = parser.parse_meta()
    if parser.peek() is not None:
        raise parser.error(f"unexpected `{parser.peek().text}` after meta item")  # type: ignore[union-attr]
    return meta
