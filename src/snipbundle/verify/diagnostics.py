"""
rustc JSON diagnostics.

With ``--error-format=json`` rustc writes one JSON object per line to
stderr. Lines that are not diagnostics (or not JSON at all) are ignored.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rich.text import Text

logger = logging.getLogger(__name__)

_LEVEL_STYLES = {"error": "red", "warning": "yellow"}
_GUTTER_STYLE = "bold cyan"


@dataclass
class SpanLine:
    """One source line covered by a span, with 1-based highlight columns."""

    text: str
    highlight_start: int
    highlight_end: int

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpanLine":
        return cls(
            text=data.get("text", ""),
            highlight_start=int(data.get("highlight_start", 1)),
            highlight_end=int(data.get("highlight_end", 1)),
        )


@dataclass
class DiagnosticSpan:
    line_start: int
    line_end: int
    column_start: int
    column_end: int
    label: Optional[str] = None
    is_primary: bool = False
    text: List[SpanLine] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiagnosticSpan":
        return cls(
            line_start=int(data.get("line_start", 0)),
            line_end=int(data.get("line_end", 0)),
            column_start=int(data.get("column_start", 0)),
            column_end=int(data.get("column_end", 0)),
            label=data.get("label"),
            is_primary=bool(data.get("is_primary", False)),
            text=[SpanLine.from_dict(t) for t in data.get("text") or []],
        )


@dataclass
class Diagnostic:
    """A single compiler message.

    Attributes:
        message: Primary message text
        level: "error", "warning", "note", "help", ...
        code: Error code such as "E0425", if any
        spans: Source locations
        rendered: rustc's own human-readable rendering, if any
    """

    message: str
    level: str
    code: Optional[str] = None
    spans: List[DiagnosticSpan] = field(default_factory=list)
    rendered: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Diagnostic":
        code = data.get("code")
        return cls(
            message=data["message"],
            level=data["level"],
            code=code.get("code") if isinstance(code, dict) else None,
            spans=[DiagnosticSpan.from_dict(s) for s in data.get("spans") or []],
            rendered=data.get("rendered"),
        )

    @property
    def is_error(self) -> bool:
        return self.level.startswith("error")


def parse_diagnostics(stderr: str) -> List[Diagnostic]:
    """Parse every JSON diagnostic line in rustc's stderr."""
    diagnostics = []
    for line in stderr.splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            data = json.loads(line)
            diagnostics.append(Diagnostic.from_dict(data))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.debug(f"Ignoring non-diagnostic line: {e}")
    return diagnostics


def format_error_message(name: str, diagnostic: Diagnostic) -> Optional[Text]:
    """
    Render an error or warning in rustc's style, with `name` as the file.

    Example:
        error[E0425]: cannot find value `x` in this scope
          --> algo_gcd:3:5
           |
         3 |     x
           |     ^ not found in this scope

    Returns:
        Styled text, or None for notes and other non-error levels
    """
    color = _LEVEL_STYLES.get(diagnostic.level)
    if color is None:
        return None

    out = Text()
    code = f"[{diagnostic.code}]" if diagnostic.code else ""
    out.append(f"{diagnostic.level}{code}", style=color)
    out.append(f": {diagnostic.message}\n")

    for span in diagnostic.spans:
        k = len(str(span.line_end))
        out.append(f"{'-->':>{k + 3}}", style=_GUTTER_STYLE)
        out.append(f" {name}:{span.line_start}:{span.column_start}\n")
        out.append(f"{' | ':>{k + 3}}", style=_GUTTER_STYLE)
        for line, span_line in zip(range(span.line_start, span.line_end + 1), span.text):
            out.append("\n")
            out.append(f"{line:>{k}} | ", style=_GUTTER_STYLE)
            out.append(f"{span_line.text}\n")
            out.append(f"{' | ':>{k + 3}}", style=_GUTTER_STYLE)
            out.append(" " * max(span_line.highlight_start - 1, 0))
            out.append("^" * max(span_line.highlight_end - span_line.highlight_start, 0), style=color)
        out.append(f" {span.label or ''}\n", style=color)
    return out
