"""
Timestamped progress output for the snipbundle command line.

Library modules log through ``logging``; the CLI reports what it is doing
through this module. Each line carries the time since startup as MM:SS.cc
so slow sources and slow rustc runs stand out in a long log.

Lines go to stderr. Stdout is reserved for snippet text and JSON.

Example output:
    00:00.01 Loading sources from snippets.toml...
    00:00.34 [1/2] Resolving crates/algo/src/lib.rs...
    00:00.52       42 snippets
    00:01.10       Done (0.76s)
"""

import sys
import time
from dataclasses import dataclass
from typing import Optional, TextIO, Tuple

DETAIL_INDENT = 6


@dataclass
class _Console:
    started: Optional[float] = None
    stream: Optional[TextIO] = None
    mirror: Optional[TextIO] = None
    verbose: bool = False

    def sink(self) -> TextIO:
        return self.stream if self.stream is not None else sys.stderr


_console = _Console()


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """Restart the clock and pick the stream lines are written to.

    The first log line starts the clock if this is never called.

    Args:
        output_stream: Target stream, sys.stderr when None
    """
    _console.started = time.time()
    _console.stream = output_stream


def set_verbose(verbose: bool) -> None:
    _console.verbose = verbose


def set_output_file(output_file: Optional[TextIO]) -> None:
    """Copy every line to `output_file` as well (None stops copying)."""
    _console.mirror = output_file


def get_elapsed() -> float:
    if _console.started is None:
        _console.started = time.time()
    return time.time() - _console.started


def format_timestamp() -> str:
    minutes, seconds = divmod(get_elapsed(), 60)
    return "%02d:%05.2f" % (minutes, seconds)


def _emit(text: str, verbose_only: bool = False) -> None:
    if verbose_only and not _console.verbose:
        return
    line = f"{format_timestamp()} {text}\n"
    for target in (_console.sink(), _console.mirror):
        if target is None:
            continue
        target.write(line)
        target.flush()


def log(message: str, verbose_only: bool = False) -> None:
    _emit(message, verbose_only)


def log_step(step: int, total: int, message: str, verbose_only: bool = False) -> None:
    """Write a numbered step such as ``[2/3] Resolving lib.rs...``."""
    _emit(f"[{step}/{total}] {message}", verbose_only)


def log_detail(message: str, indent: int = DETAIL_INDENT, verbose_only: bool = False) -> None:
    _emit(" " * indent + message, verbose_only)


def log_error(message: str) -> None:
    _emit("ERROR: " + message)


def log_warning(message: str) -> None:
    _emit("WARNING: " + message)


class TimedLogger:
    """Announce an operation, then report its duration when it finishes.

    Nothing is reported when the block raises; the caller logs the error.

    Usage:
        with TimedLogger("Formatting snippets", step=(2, 3)) as timer:
            timer.detail("rustfmt 1.7.0")
    """

    def __init__(self, operation: str, step: Optional[Tuple[int, int]] = None, verbose_only: bool = False):
        self.operation = operation
        self.step = step
        self.verbose_only = verbose_only
        self._t0 = 0.0

    @property
    def elapsed(self) -> float:
        return time.time() - self._t0

    def detail(self, message: str) -> None:
        log_detail(message, verbose_only=self.verbose_only)

    def __enter__(self) -> "TimedLogger":
        self._t0 = time.time()
        title = self.operation + "..."
        if self.step is None:
            log(title, self.verbose_only)
        else:
            log_step(*self.step, title, verbose_only=self.verbose_only)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.detail("Done (%.2fs)" % self.elapsed)
        return False
