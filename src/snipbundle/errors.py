"""Exception hierarchy for snipbundle.

Resolution errors are fatal to a whole run: no partial snippet map is ever
produced from a tree that failed to resolve. Everything that can go wrong
per snippet during formatting or verification is reported as a
``snipbundle.report.Problem`` instead of an exception.
"""

from pathlib import Path
from typing import Optional


class SnipbundleError(Exception):
    """Base class for all snipbundle errors."""

    pass


class ResolveError(SnipbundleError):
    """Raised when a source tree cannot be resolved into a single tree."""

    pass


class SourceIOError(ResolveError):
    """Raised when a source file exists but cannot be read."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"io error: {path}: {reason}")


class SourceFileNotFoundError(ResolveError):
    """Raised when a source file cannot be opened."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"File `{path}` not found.")


class ModuleFileNotFoundError(ResolveError):
    """Raised when a `mod name;` declaration has no file under any convention."""

    def __init__(self, name: str, attempted_path: Path):
        self.name = name
        self.attempted_path = attempted_path
        super().__init__(f"Module `{name}` not found where `{attempted_path}`.")


class RustSyntaxError(SnipbundleError):
    """A syntax error reported by the Rust parser.

    Attributes:
        line: 1-based line of the first erroneous node
        column: 1-based column of the first erroneous node
        snippet: Source text of the erroneous node (truncated)
    """

    def __init__(self, line: int, column: int, snippet: str = "", missing: bool = False):
        self.line = line
        self.column = column
        self.snippet = snippet
        self.missing = missing
        kind = "missing token" if missing else "unexpected input"
        detail = f" near `{snippet}`" if snippet else ""
        super().__init__(f"{kind} at {line}:{column}{detail}")


class ParseFileError(ResolveError):
    """Raised when a source file is not valid Rust."""

    def __init__(self, path: Path, syntax_error: RustSyntaxError):
        self.path = path
        self.syntax_error = syntax_error
        super().__init__(f"Failed to parse `{path}`: {syntax_error}")


class MetaParseError(SnipbundleError):
    """Raised when attribute contents are not a well-formed meta item."""

    def __init__(self, text: str, reason: str):
        self.text = text
        self.reason = reason
        super().__init__(f"invalid attribute `{text}`: {reason}")


class EntryArgsError(SnipbundleError):
    """Raised when `codesnip::entry` arguments are invalid for an item."""

    pass


class SnippetNotFoundError(SnipbundleError, KeyError):
    """Raised when a requested snippet name is not in the map."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"snippet `{name}` not found")

    def __str__(self) -> str:
        return f"snippet `{self.name}` not found"


class CacheError(SnipbundleError):
    """Raised when a cache file cannot be read or has an unknown layout."""

    def __init__(self, path: Optional[Path], reason: str):
        self.path = path
        self.reason = reason
        where = f" `{path}`" if path is not None else ""
        super().__init__(f"invalid cache{where}: {reason}")


class SourceConfigError(SnipbundleError):
    """Raised when a source config file is malformed."""

    pass


class SourceFetchError(SnipbundleError):
    """Raised when a remote source cannot be downloaded or checked out."""

    pass
