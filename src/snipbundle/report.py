"""
Problem collection for the formatting and verification passes.

Format and verify runs fan out over a worker pool. A failure in one snippet
must not stop the others, so failures are recorded as ``Problem`` values
and reported together once the pass finishes.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class Severity(Enum):
    """Severity level of a problem."""

    WARNING = "warning"
    ERROR = "error"


class ProblemKind(Enum):
    """What went wrong."""

    MISSING_DEPENDENCY = "missing-dependency"
    FORMAT_FAILURE = "format-failure"
    COMPILE_FAILURE = "compile-failure"
    COMPILER_ERROR = "compiler-error"


@dataclass
class Problem:
    """A single non-fatal problem attached to a snippet."""

    kind: ProblemKind
    severity: Severity
    snippet: str
    message: str
    detail: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def format(self) -> str:
        """Human-readable one or two line description."""
        lines = [f"[{self.severity.value.upper()}] {self.snippet}: {self.message}"]
        if self.detail:
            preview = self.detail[:500]
            if len(self.detail) > 500:
                preview += "... (truncated)"
            lines.append(f"  {preview}")
        return "\n".join(lines)


def missing_dependency_warning(snippet: str, include: str) -> Problem:
    return Problem(
        kind=ProblemKind.MISSING_DEPENDENCY,
        severity=Severity.WARNING,
        snippet=snippet,
        message=f"include `{include}` not found",
    )


def format_failure(snippet: str, detail: Optional[str] = None) -> Problem:
    return Problem(
        kind=ProblemKind.FORMAT_FAILURE,
        severity=Severity.WARNING,
        snippet=snippet,
        message="failed to format",
        detail=detail,
    )


def compile_failure(snippet: str, detail: Optional[str] = None) -> Problem:
    return Problem(
        kind=ProblemKind.COMPILE_FAILURE,
        severity=Severity.ERROR,
        snippet=snippet,
        message="failed to compile",
        detail=detail,
    )


def compiler_error(snippet: str, detail: str) -> Problem:
    return Problem(
        kind=ProblemKind.COMPILER_ERROR,
        severity=Severity.ERROR,
        snippet=snippet,
        message="failed to run the compiler",
        detail=detail,
    )


class ProblemCollector:
    """Thread-safe list of problems."""

    def __init__(self) -> None:
        self.problems: list[Problem] = []
        self.lock = threading.Lock()

    def add(self, problem: Problem) -> None:
        with self.lock:
            self.problems.append(problem)
        logger.debug(f"Added {problem.kind.value} for {problem.snippet}: {problem.message}")

    def get_problems(self, severity: Optional[Severity] = None) -> list[Problem]:
        """All problems, optionally filtered by severity.

        Args:
            severity: Filter by severity (None = all problems)

        Returns:
            Problems in the order they were added
        """
        with self.lock:
            if severity:
                return [p for p in self.problems if p.severity == severity]
            return self.problems.copy()

    def get_problems_by_kind(self, kind: ProblemKind) -> list[Problem]:
        with self.lock:
            return [p for p in self.problems if p.kind == kind]

    def __len__(self) -> int:
        with self.lock:
            return len(self.problems)

    def get_counts(self) -> dict[str, int]:
        with self.lock:
            return {
                "warnings": sum(1 for p in self.problems if p.severity == Severity.WARNING),
                "errors": sum(1 for p in self.problems if p.severity == Severity.ERROR),
                "total": len(self.problems),
            }

    def format_problems(self, max_problems: Optional[int] = None) -> str:
        """Full report, sorted by snippet name.

        Args:
            max_problems: Maximum number of problems to include (None = all)
        """
        with self.lock:
            problems = sorted(self.problems, key=lambda p: (p.snippet, p.kind.value, p.message))
        if not problems:
            return "No problems"

        shown = problems if max_problems is None else problems[:max_problems]
        lines = [p.format() for p in shown]
        if max_problems is not None and len(problems) > max_problems:
            lines.append(f"... and {len(problems) - max_problems} more problems")
        lines.append(f"Summary: {self.format_summary()}")
        return "\n".join(lines)

    def format_summary(self) -> str:
        counts = self.get_counts()
        if counts["total"] == 0:
            return "No problems"

        parts = []
        if counts["errors"] > 0:
            parts.append(f"{counts['errors']} errors")
        if counts["warnings"] > 0:
            parts.append(f"{counts['warnings']} warnings")
        return ", ".join(parts)
