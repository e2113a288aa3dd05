"""Subprocess helpers for running rustc, rustfmt and git.

External tools are started through ``safe_run``: stdin is detached unless
the caller feeds input, and no console window opens on Windows.
"""

import logging
import shutil
import subprocess
import sys
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


def no_window_flag() -> int:
    """CREATE_NO_WINDOW on Windows, 0 elsewhere."""
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


def safe_run(cmd: List[str], **kwargs: Any) -> subprocess.CompletedProcess:
    """``subprocess.run`` with a detached stdin and no console window.

    Args:
        cmd: Command and arguments
        **kwargs: Passed to subprocess.run, ``timeout`` included

    Raises:
        FileNotFoundError: If the executable does not exist
        subprocess.TimeoutExpired: If ``timeout`` elapses
    """
    flag = no_window_flag()
    if flag:
        kwargs["creationflags"] = kwargs.get("creationflags", 0) | flag
    if "input" not in kwargs:
        kwargs.setdefault("stdin", subprocess.DEVNULL)
    logger.debug(f"Running: {' '.join(cmd)}")
    return subprocess.run(cmd, **kwargs)


def find_executable(name: str) -> Optional[str]:
    """Absolute path of an executable on PATH, or None."""
    return shutil.which(name)
