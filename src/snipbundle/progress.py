"""Live progress display for snippet formatting and verification.

Worker threads report per-snippet results through the ``ProgressCallback``
protocol. ``SnippetProgressDisplay`` renders them with Rich as a single
progress line plus a permanent line per failed snippet:

    [=========>          ] 48%  20/42 verify  3 active
    ✗ algo_segtree  failed to compile

``LogCallback`` reports through ``snipbundle.output`` when stderr is not
a terminal; ``NullCallback`` discards everything and is used in tests.
"""

import threading
import time
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from rich.console import Console, Group
from rich.live import Live
from rich.text import Text

from . import output


class SnippetStatus(Enum):
    """State of one snippet within a pass."""

    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


@runtime_checkable
class ProgressCallback(Protocol):
    """Receives progress updates from format and verify worker pools."""

    def on_start(self, task: str, total: int) -> None:
        """Called once before any snippet is processed.

        Args:
            task: Pass name (e.g. "verify").
            total: Number of snippets in the pass.
        """
        ...

    def on_progress(self, name: str, status: SnippetStatus, detail: str) -> None:
        """Called when a snippet starts, finishes or fails.

        Args:
            name: Snippet name.
            status: New snippet status.
            detail: Human-readable status detail (e.g. "failed to compile").
        """
        ...

    def println(self, message: "str | Text") -> None:
        """Print a line above the progress display."""
        ...


class NullCallback:
    """No-op callback for tests and non-interactive use."""

    def on_start(self, task: str, total: int) -> None:
        pass

    def on_progress(self, name: str, status: SnippetStatus, detail: str) -> None:
        pass

    def println(self, message: "str | Text") -> None:
        pass


class LogCallback:
    """Reports failures as timestamped log lines, for non-terminal stderr."""

    def on_start(self, task: str, total: int) -> None:
        output.log(f"Running {task} on {total} snippets...", verbose_only=True)

    def on_progress(self, name: str, status: SnippetStatus, detail: str) -> None:
        if status == SnippetStatus.FAILED:
            output.log_warning(f"{name}: {detail}")

    def println(self, message: "str | Text") -> None:
        output.log(message.plain if isinstance(message, Text) else message)


class SnippetProgressDisplay:
    """Rich progress bar for a format or verify pass.

    Thread-safe: pool workers may call ``on_progress`` concurrently while
    the display refreshes in the background.

    Args:
        console: Rich Console for rendering. If None, renders to stderr.
        refresh_per_second: Display refresh rate.
    """

    def __init__(self, console: Console | None = None, refresh_per_second: int = 10) -> None:
        self._console = console if console is not None else Console(stderr=True)
        self._refresh_per_second = refresh_per_second
        self._lock = threading.Lock()
        self._live: Live | None = None
        self._task = ""
        self._total = 0
        self._active: set[str] = set()
        self._done = 0
        self._failed: list[tuple[str, str]] = []
        self._start_time = time.monotonic()

    def on_start(self, task: str, total: int) -> None:
        with self._lock:
            self._task = task
            self._total = total
            self._active.clear()
            self._done = 0
            self._failed.clear()
            self._start_time = time.monotonic()
        self.update()

    def on_progress(self, name: str, status: SnippetStatus, detail: str) -> None:
        with self._lock:
            if status == SnippetStatus.RUNNING:
                self._active.add(name)
            else:
                self._active.discard(name)
                self._done += 1
                if status == SnippetStatus.FAILED:
                    self._failed.append((name, detail))
        if status == SnippetStatus.FAILED:
            self.println(f"✗ {name}  {detail}")
        self.update()

    def println(self, message: "str | Text") -> None:
        if isinstance(message, str):
            message = Text(message, style="red" if message.startswith("✗") else "")
        self._console.print(message)

    def start(self) -> None:
        self._live = Live(
            self._render_display(),
            console=self._console,
            refresh_per_second=self._refresh_per_second,
            transient=True,
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is not None:
            self._live.update(self._render_display())
            self._live.stop()
            self._live = None

    def update(self) -> None:
        if self._live is not None:
            self._live.update(self._render_display())

    def _render_display(self) -> Group:
        return Group(self._render_bar(), self._render_footer())

    def _render_bar(self) -> Text:
        bar_width = 20
        with self._lock:
            done, total, task = self._done, self._total, self._task

        pct = min(done / total, 1.0) if total > 0 else 0.0
        filled = int(bar_width * pct)
        if 0 < filled < bar_width:
            bar = "=" * (filled - 1) + ">" + " " * (bar_width - filled)
        elif filled == bar_width:
            bar = "=" * bar_width
        else:
            bar = " " * bar_width

        pct_str = f"{pct * 100:.0f}%"
        return Text(f"[{bar}] {pct_str:>4}  {done}/{total} {task}", style="blue")

    def _render_footer(self) -> Text:
        with self._lock:
            active = len(self._active)
            failed = len(self._failed)
            elapsed = time.monotonic() - self._start_time

        parts = [f"{elapsed:.1f}s"]
        if active > 0:
            parts.append(f"{active} active")
        if failed > 0:
            parts.append(f"{failed} failed")
        return Text(f"  {', '.join(parts)}", style="dim")

    def get_snapshot(self) -> dict[str, Any]:
        """Current counters, for tests."""
        with self._lock:
            return {
                "task": self._task,
                "total": self._total,
                "done": self._done,
                "active": sorted(self._active),
                "failed": list(self._failed),
            }

    def __enter__(self) -> "SnippetProgressDisplay":
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()
