"""Snippet verification with rustc."""

from .diagnostics import Diagnostic, DiagnosticSpan, SpanLine, format_error_message, parse_diagnostics
from .verifier import (
    CompileResult,
    EntryVerification,
    Verifier,
    VerifyOptions,
    VerifyReport,
    compile_snippet,
    rustc_command,
)

__all__ = [
    "CompileResult",
    "Diagnostic",
    "DiagnosticSpan",
    "EntryVerification",
    "SpanLine",
    "Verifier",
    "VerifyOptions",
    "VerifyReport",
    "compile_snippet",
    "format_error_message",
    "parse_diagnostics",
    "rustc_command",
]
