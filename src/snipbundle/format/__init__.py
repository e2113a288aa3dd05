"""Snippet formatting: rustfmt and minification."""

from .formatter import (
    FormatOption,
    FormatterConfig,
    format_all,
    format_contents,
    format_with_rustfmt,
    rustfmt_exists,
)
from .minify import MinifyOptions, minify

__all__ = [
    "FormatOption",
    "FormatterConfig",
    "MinifyOptions",
    "format_all",
    "format_contents",
    "format_with_rustfmt",
    "minify",
    "rustfmt_exists",
]
