"""
Snippet verification with rustc.

Every snippet is bundled with all of its includes and compiled as an
isolated library crate in a fresh temporary directory. Compilations run on
a thread pool; results are reduced in the calling thread, so the outcome
does not depend on the order in which workers finish.
"""

import logging
import os
import subprocess
import tempfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..progress import NullCallback, ProgressCallback, SnippetStatus
from ..report import ProblemCollector, compile_failure, compiler_error, missing_dependency_warning
from ..snippets.snippet_map import SnippetMap
from ..subprocess_utils import safe_run
from .diagnostics import Diagnostic, format_error_message, parse_diagnostics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifyOptions:
    """
    Attributes:
        rustc: rustc executable
        toolchain: rustup toolchain passed as `+<toolchain>`, or None
        edition: Rust edition
        verbose: Print diagnostics and successful snippets
        jobs: Worker threads (None = CPU count)
        timeout: Seconds to wait for one rustc call (None = no limit)
    """

    rustc: str = "rustc"
    toolchain: Optional[str] = None
    edition: str = "2021"
    verbose: bool = False
    jobs: Optional[int] = None
    timeout: Optional[float] = None


@dataclass
class CompileResult:
    success: bool
    diagnostics: List[Diagnostic] = field(default_factory=list)


CompileFn = Callable[[str, str, VerifyOptions], CompileResult]


def rustc_command(source: Path, out_dir: Path, options: VerifyOptions) -> List[str]:
    cmd = [options.rustc]
    if options.toolchain:
        cmd.append(f"+{options.toolchain}")
    cmd.extend(
        [
            str(source),
            f"--edition={options.edition}",
            "--crate-type=lib",
            "--error-format=json",
            f"--out-dir={out_dir}",
        ]
    )
    return cmd


def compile_snippet(name: str, contents: str, options: VerifyOptions) -> CompileResult:
    """
    Compile bundled snippet text as a library crate.

    Raises:
        OSError: If rustc cannot be started
        subprocess.TimeoutExpired: If rustc exceeds the timeout
    """
    with tempfile.TemporaryDirectory(prefix="snipbundle-") as tmp:
        out_dir = Path(tmp)
        source = out_dir / "snippet.rs"
        source.write_text(contents, encoding="utf-8")
        result = safe_run(
            rustc_command(source, out_dir, options),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=options.timeout,
        )
    logger.debug(f"rustc exited with {result.returncode} for {name}")
    return CompileResult(success=result.returncode == 0, diagnostics=parse_diagnostics(result.stderr))


@dataclass
class EntryVerification:
    """Outcome for one snippet."""

    name: str
    compiled: bool
    missing_includes: List[str] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    error: Optional[str] = None
    size: int = 0

    @property
    def ok(self) -> bool:
        return self.compiled and not self.missing_includes


@dataclass
class VerifyReport:
    results: Dict[str, EntryVerification] = field(default_factory=dict)
    problems: ProblemCollector = field(default_factory=ProblemCollector)

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results.values())

    @property
    def failed(self) -> List[str]:
        return sorted(name for name, result in self.results.items() if not result.ok)


class Verifier:
    """
    Compiles every snippet of a map.

    Usage:
        verifier = Verifier(VerifyOptions(edition="2021", jobs=8))
        report = verifier.verify(snippet_map)
        if not report.ok:
            print(report.problems.format_problems())

    Args:
        options: Compiler settings
        compile_fn: Replaces the rustc call (used by tests)
    """

    def __init__(self, options: Optional[VerifyOptions] = None, compile_fn: Optional[CompileFn] = None):
        self.options = options if options is not None else VerifyOptions()
        self.compile_fn = compile_fn if compile_fn is not None else compile_snippet

    def check(self, snippet_map: SnippetMap, name: str) -> EntryVerification:
        """Verify one snippet. Runs on a worker thread."""
        missing = snippet_map.missing_includes(name)
        contents = snippet_map.bundle(name)
        entry = EntryVerification(name=name, compiled=False, missing_includes=missing, size=len(contents))
        try:
            result = self.compile_fn(name, contents, self.options)
        except (OSError, subprocess.SubprocessError) as e:
            entry.error = f"{type(e).__name__}: {e}"
            return entry
        entry.compiled = result.success
        entry.diagnostics = result.diagnostics
        return entry

    def verify(self, snippet_map: SnippetMap, callback: Optional[ProgressCallback] = None) -> VerifyReport:
        """
        Verify every snippet in the map.

        Args:
            snippet_map: Snippets to compile
            callback: Progress receiver

        Returns:
            Per-snippet results and the problems found
        """
        callback = callback if callback is not None else NullCallback()
        report = VerifyReport()
        names = list(snippet_map)
        callback.on_start("verify", len(names))
        max_workers = self.options.jobs or os.cpu_count() or 1

        def work(name: str) -> EntryVerification:
            callback.on_progress(name, SnippetStatus.RUNNING, "")
            return self.check(snippet_map, name)

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="snipbundle-verify") as pool:
            futures = [pool.submit(work, name) for name in names]
            for future in as_completed(futures):
                self._record(report, future.result(), callback)

        logger.info(f"Verified {len(names)} snippets, {len(report.failed)} failed")
        return report

    def _record(self, report: VerifyReport, entry: EntryVerification, callback: ProgressCallback) -> None:
        report.results[entry.name] = entry
        for include in entry.missing_includes:
            report.problems.add(missing_dependency_warning(entry.name, include))
            callback.println(f"warning: Invalid include `{include}` in {entry.name}.")

        if entry.error is not None:
            report.problems.add(compiler_error(entry.name, entry.error))
            callback.on_progress(entry.name, SnippetStatus.FAILED, entry.error)
            return

        if not entry.compiled:
            errors = [d.message for d in entry.diagnostics if d.is_error]
            report.problems.add(compile_failure(entry.name, "\n".join(errors) or None))
            callback.on_progress(entry.name, SnippetStatus.FAILED, "failed to compile")
        else:
            callback.on_progress(entry.name, SnippetStatus.DONE, "")
            if self.options.verbose:
                callback.println(f"Verified {entry.name} ({entry.size} bytes)")

        if self.options.verbose:
            for diagnostic in entry.diagnostics:
                message = format_error_message(entry.name, diagnostic)
                if message is not None:
                    callback.println(message)
