"""
Command-line interface for snipbundle.

This module provides the `snipbundle` command for extracting, bundling and
verifying Rust snippets.
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, TextIO, TypeVar

from snipbundle import __version__, output
from snipbundle.config import Sources
from snipbundle.errors import SnipbundleError, SnippetNotFoundError
from snipbundle.progress import LogCallback, NullCallback, ProgressCallback, SnippetProgressDisplay
from snipbundle.report import ProblemKind
from snipbundle.snippets import SnippetMap, load_cache, save_cache, to_vscode
from snipbundle.subprocess_utils import find_executable
from snipbundle.verify import Verifier, VerifyOptions

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

T = TypeVar("T")


@dataclass
class GlobalArgs:
    """Options shared by every command."""

    source_config: Optional[Path] = None
    use_cache: List[Path] = field(default_factory=list)


@dataclass
class CacheArgs:
    output: Path


@dataclass
class ListArgs:
    not_hide: bool = False


@dataclass
class SnippetArgs:
    output: Optional[Path] = None
    ignore_include: bool = False


@dataclass
class BundleArgs:
    name: str
    excludes: List[str] = field(default_factory=list)


@dataclass
class VerifyArgs:
    toolchain: Optional[str] = None
    edition: str = "2021"
    jobs: Optional[int] = None
    timeout: Optional[float] = None
    verbose: bool = False


def setup_logging(verbose: bool) -> None:
    """Send library log records to stderr; DEBUG when verbose, else WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        stream=sys.stderr,
        force=True,
    )


def make_callback() -> ProgressCallback:
    if sys.stderr.isatty():
        return SnippetProgressDisplay()
    return LogCallback()


def _run_with_callback(callback: ProgressCallback, fn: Callable[[ProgressCallback], T]) -> T:
    if isinstance(callback, SnippetProgressDisplay):
        with callback:
            return fn(callback)
    return fn(callback)


def load_snippet_map(args: GlobalArgs, callback: Optional[ProgressCallback] = None) -> SnippetMap:
    """Build the snippet map from the source config and the cache files.

    Raises:
        SnipbundleError: If a source or cache cannot be loaded
    """
    callback = callback if callback is not None else NullCallback()
    snippet_map = SnippetMap()

    if args.source_config is not None:
        output.log(f"Loading sources from {args.source_config}...")
        sources = Sources.load(args.source_config)
        collected, problems = _run_with_callback(
            callback,
            lambda cb: sources.snippet_map(rustfmt=find_executable("rustfmt"), callback=cb),
        )
        for problem in problems.get_problems_by_kind(ProblemKind.FORMAT_FAILURE):
            output.log_warning(f"Failed to format `{problem.snippet}`.")
        snippet_map.extend(collected)
        output.log_detail(f"{len(collected)} snippets")

    for cache in args.use_cache:
        output.log(f"Loading cache {cache}...", verbose_only=True)
        snippet_map.extend(load_cache(cache))

    return snippet_map


def _write_text(text: str, path: Optional[Path], stream: TextIO) -> None:
    if path is None:
        stream.write(text)
        stream.flush()
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def cache_command(snippet_map: SnippetMap, args: CacheArgs) -> int:
    """Save the snippet map.

    Examples:
        snipbundle --source-config snippets.toml cache target/snippets.cache
    """
    save_cache(snippet_map, args.output)
    output.log(f"Saved {len(snippet_map)} snippets to {args.output}")
    return 0


def list_command(snippet_map: SnippetMap, args: ListArgs) -> int:
    """Write snippet names separated by spaces, without a trailing newline."""
    sys.stdout.write(" ".join(snippet_map.keys(hide=not args.not_hide)))
    sys.stdout.flush()
    return 0


def snippet_command(snippet_map: SnippetMap, args: SnippetArgs) -> int:
    """Write VS Code snippets as JSON."""
    text = json.dumps(to_vscode(snippet_map, ignore_include=args.ignore_include), ensure_ascii=False)
    _write_text(text, args.output, sys.stdout)
    return 0


def bundle_command(snippet_map: SnippetMap, args: BundleArgs) -> int:
    """Print a snippet together with everything it includes.

    Examples:
        snipbundle --use-cache s.cache bundle algo_segtree -e algo_monoid
    """
    if args.name not in snippet_map:
        raise SnippetNotFoundError(args.name)
    sys.stdout.write(snippet_map.bundle(args.name, args.excludes, guard=True))
    sys.stdout.flush()
    return 0


def verify_command(snippet_map: SnippetMap, args: VerifyArgs) -> int:
    """Compile every snippet with rustc."""
    rustc = find_executable("rustc")
    if rustc is None:
        output.log_error("rustc not found")
        return 1

    options = VerifyOptions(
        rustc=rustc,
        toolchain=args.toolchain,
        edition=args.edition,
        verbose=args.verbose,
        jobs=args.jobs,
        timeout=args.timeout,
    )
    verifier = Verifier(options)
    with output.TimedLogger(f"Verifying {len(snippet_map)} snippets") as timer:
        report = _run_with_callback(make_callback(), lambda cb: verifier.verify(snippet_map, cb))
        timer.detail(report.problems.format_summary())

    if report.ok:
        output.log(f"Finished {len(report.results)} snippets")
        return 0
    missing = report.problems.get_problems_by_kind(ProblemKind.MISSING_DEPENDENCY)
    if missing:
        output.log_warning(f"unresolved includes in: {', '.join(sorted({p.snippet for p in missing}))}")
    output.log_error(f"verify failed: {', '.join(report.failed)}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snipbundle",
        description="Extract, bundle and verify Rust code snippets",
    )
    parser.add_argument("--version", action="version", version=f"snipbundle {__version__}")
    parser.add_argument(
        "--source-config",
        type=Path,
        default=None,
        metavar="FILE",
        help="Source config file (.toml or .json)",
    )
    parser.add_argument(
        "--use-cache",
        type=Path,
        action="append",
        default=[],
        metavar="FILE",
        help="Load snippets from a cache file (repeatable)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging")
    parser.add_argument("--log-file", type=Path, default=None, metavar="FILE", help="Copy progress output to a file")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    cache_parser = subparsers.add_parser("cache", help="Save analyzed snippets into a file")
    cache_parser.add_argument("output", type=Path, metavar="FILE", help="Output file")

    list_parser = subparsers.add_parser("list", help="List snippet names")
    list_parser.add_argument("--not-hide", action="store_true", help="Also list names starting with `_`")

    snippet_parser = subparsers.add_parser("snippet", help="Output snippets for VS Code")
    snippet_parser.add_argument("output", nargs="?", type=Path, default=None, metavar="FILE", help="Output file (default: stdout)")
    snippet_parser.add_argument("--ignore-include", action="store_true", help="Do not bundle includes")

    bundle_parser = subparsers.add_parser("bundle", help="Print a snippet with its includes")
    bundle_parser.add_argument("name", metavar="NAME", help="Snippet name")
    bundle_parser.add_argument(
        "-e",
        "--excludes",
        action="append",
        default=[],
        metavar="NAME",
        help="Snippet already present at the destination (repeatable)",
    )

    verify_parser = subparsers.add_parser("verify", help="Compile every snippet with rustc")
    verify_parser.add_argument("--toolchain", default=None, help="rustup toolchain, passed as +TOOLCHAIN")
    verify_parser.add_argument("--edition", default="2021", help="Rust edition (default: 2021)")
    verify_parser.add_argument("-j", "--jobs", type=int, default=None, help="Parallel rustc runs (default: CPU count)")
    verify_parser.add_argument("--timeout", type=float, default=None, help="Seconds per rustc run (default: no limit)")
    verify_parser.add_argument("--verbose", dest="verify_verbose", action="store_true", help="Show diagnostics")

    return parser


def run(parsed: argparse.Namespace) -> int:
    global_args = GlobalArgs(source_config=parsed.source_config, use_cache=parsed.use_cache)
    callback = make_callback()
    snippet_map = load_snippet_map(global_args, callback)

    if parsed.command == "cache":
        return cache_command(snippet_map, CacheArgs(output=parsed.output))
    if parsed.command == "list":
        return list_command(snippet_map, ListArgs(not_hide=parsed.not_hide))
    if parsed.command == "snippet":
        return snippet_command(snippet_map, SnippetArgs(output=parsed.output, ignore_include=parsed.ignore_include))
    if parsed.command == "bundle":
        return bundle_command(snippet_map, BundleArgs(name=parsed.name, excludes=parsed.excludes))
    return verify_command(
        snippet_map,
        VerifyArgs(
            toolchain=parsed.toolchain,
            edition=parsed.edition,
            jobs=parsed.jobs,
            timeout=parsed.timeout,
            verbose=parsed.verify_verbose or parsed.verbose,
        ),
    )


def main(argv: Optional[List[str]] = None) -> int:
    """snipbundle - Rust snippet extractor and bundler."""
    parser = build_parser()
    parsed = parser.parse_args(argv)

    if not parsed.command:
        parser.print_help()
        return 0

    setup_logging(parsed.verbose)
    output.set_verbose(parsed.verbose)
    log_file = open(parsed.log_file, "a", encoding="utf-8") if parsed.log_file else None
    output.set_output_file(log_file)

    try:
        return run(parsed)
    except KeyboardInterrupt:
        output.log_warning("Interrupted")
        return 130
    except SnipbundleError as e:
        output.log_error(str(e))
        return 1
    except OSError as e:
        output.log_error(f"{type(e).__name__}: {e}")
        return 1
    finally:
        output.set_output_file(None)
        if log_file is not None:
            log_file.close()


if __name__ == "__main__":
    sys.exit(main())
