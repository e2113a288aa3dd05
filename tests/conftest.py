"""Pytest configuration and fixtures for snipbundle tests.

Keeps stdout/stderr usable across tests that drive the CLI (Python 3.13
closes captured streams more eagerly, see
https://github.com/pytest-dev/pytest/issues/11439) and provides helpers for
building small Rust crates on disk.
"""

import shutil
import sys
import textwrap
import warnings
from pathlib import Path
from typing import Callable, Dict

import pytest

from snipbundle import output
from snipbundle.syntax import RustParser

if sys.version_info >= (3, 13):
    warnings.filterwarnings("ignore", category=ResourceWarning)


@pytest.fixture(autouse=True)
def _restore_stdio():  # noqa: PT004
    """Restore stdout/stderr and reset CLI output state after each test."""
    yield

    if sys.stdout.closed:
        sys.stdout = sys.__stdout__
    if sys.stderr.closed:
        sys.stderr = sys.__stderr__
    output.set_verbose(False)
    output.set_output_file(None)
    output.init_timer(None)


@pytest.fixture
def parser() -> RustParser:
    return RustParser()


@pytest.fixture
def write_crate(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
    """Write `{relative path: source}` under tmp_path; returns tmp_path.

    Sources are dedented, so tests can use indented triple-quoted strings.
    """

    def write(files: Dict[str, str]) -> Path:
        for rel, source in files.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(source).lstrip("\n"), encoding="utf-8")
        return tmp_path

    return write


def pytest_collection_modifyitems(config, items):  # noqa: ARG001
    """Skip tests that need rustc or rustfmt when the tool is not installed."""
    missing = {
        "requires_rustc": shutil.which("rustc") is None,
        "requires_rustfmt": shutil.which("rustfmt") is None,
    }
    for item in items:
        for marker, absent in missing.items():
            if absent and item.get_closest_marker(marker):
                tool = marker.split("_", 1)[1]
                item.add_marker(pytest.mark.skip(reason=f"{tool} not installed"))
