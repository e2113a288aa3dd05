"""
Snippet formatting with rustfmt or the built-in minifier.

Every snippet is formatted independently on a thread pool. A snippet that
fails to format keeps its original contents and is reported as a
``format-failure`` problem; the other snippets are unaffected.
"""

import logging
import os
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import RustSyntaxError
from ..progress import NullCallback, ProgressCallback, SnippetStatus
from ..report import ProblemCollector, format_failure
from ..snippets.snippet_map import SnippetMap
from ..subprocess_utils import safe_run
from ..syntax.parser import RustParser
from .minify import MinifyOptions, minify

logger = logging.getLogger(__name__)

RUSTFMT_CONFIG = "unstable_features=true,normalize_doc_attributes=true,newline_style=Unix"


class FormatOption(Enum):
    """Formatting strategy."""

    RUSTFMT = "rustfmt"
    MINIFY = "minify"

    @classmethod
    def from_string(cls, value: str) -> "FormatOption":
        """Parse a format option name.

        Raises:
            ValueError: If the name is not `rustfmt` or `minify`
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"unknown format `{value}`, expected one of [rustfmt|minify]") from None


@dataclass(frozen=True)
class FormatterConfig:
    """
    Attributes:
        option: Strategy to apply
        rustfmt: Path of the rustfmt executable, or None if not installed
        timeout: Seconds to wait for one rustfmt call (None = no limit)
    """

    option: FormatOption = FormatOption.RUSTFMT
    rustfmt: Optional[str] = None
    timeout: Optional[float] = None


def rustfmt_exists(rustfmt: Optional[str]) -> bool:
    """True if `rustfmt --version` runs successfully."""
    if rustfmt is None:
        return False
    try:
        result = safe_run([rustfmt, "--version"], capture_output=True, text=True, timeout=30)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"rustfmt check failed: {e}")
        return False
    return result.returncode == 0


def format_with_rustfmt(content: str, rustfmt: str, timeout: Optional[float] = None) -> Optional[str]:
    """
    Pipe `content` through rustfmt.

    Returns:
        Formatted text, or None if rustfmt could not run or rejected the input
    """
    try:
        result = safe_run(
            [rustfmt, "--quiet", "--config", RUSTFMT_CONFIG],
            input=content,
            capture_output=True,
            text=True,
            encoding="utf-8",
            timeout=timeout,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"rustfmt failed to run: {e}")
        return None
    if result.returncode != 0:
        logger.debug(f"rustfmt exited with {result.returncode}: {result.stderr.strip()}")
        return None
    return result.stdout


_local = threading.local()


def _thread_parser() -> RustParser:
    # Tree-sitter parsers must not be shared between threads
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = RustParser()
        _local.parser = parser
    return parser


def format_contents(content: str, config: FormatterConfig) -> Optional[str]:
    """Format one snippet's contents; None on failure."""
    if config.option == FormatOption.MINIFY:
        try:
            return minify(content, MinifyOptions(remove_skip=True, add_rustfmt_skip=True), _thread_parser())
        except RustSyntaxError as e:
            logger.debug(f"minify failed: {e}")
            return None
    if config.rustfmt is None:
        return None
    return format_with_rustfmt(content, config.rustfmt, config.timeout)


def format_all(
    snippet_map: SnippetMap,
    config: FormatterConfig,
    jobs: Optional[int] = None,
    callback: Optional[ProgressCallback] = None,
) -> ProblemCollector:
    """
    Format every snippet in place.

    Args:
        snippet_map: Snippets to format; contents are replaced on success
        config: Strategy and rustfmt location
        jobs: Worker threads (defaults to the CPU count)
        callback: Progress receiver

    Returns:
        Problems for the snippets that could not be formatted
    """
    callback = callback if callback is not None else NullCallback()
    problems = ProblemCollector()

    if config.option == FormatOption.RUSTFMT and not rustfmt_exists(config.rustfmt):
        logger.warning("rustfmt not found, snippets are left unformatted")
        return problems

    names = list(snippet_map)
    callback.on_start("format", len(names))
    max_workers = jobs or os.cpu_count() or 1

    def work(name: str, content: str) -> tuple[str, Optional[str]]:
        callback.on_progress(name, SnippetStatus.RUNNING, "")
        return name, format_contents(content, config)

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="snipbundle-format") as pool:
        futures = [pool.submit(work, name, snippet_map[name].contents) for name in names]
        for future in as_completed(futures):
            name, formatted = future.result()
            if formatted is None:
                problems.add(format_failure(name))
                callback.on_progress(name, SnippetStatus.FAILED, "failed to format")
            else:
                snippet_map[name].contents = formatted
                callback.on_progress(name, SnippetStatus.DONE, "")

    logger.info(f"Formatted {len(names) - len(problems)}/{len(names)} snippets with {config.option.value}")
    return problems
