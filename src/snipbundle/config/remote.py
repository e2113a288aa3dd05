"""Remote source checkout.

GitHub repositories are fetched as zip archives over HTTPS, which needs
neither git nor credentials. Any other repository URL is cloned with the
``git`` command line.
"""

import logging
import subprocess
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests

from ..errors import SourceFetchError
from ..subprocess_utils import safe_run

logger = logging.getLogger(__name__)

_REF_KEYS = ("branch", "tag", "rev")

# Download retry configuration
_MAX_DOWNLOAD_RETRIES = 3
_RETRY_BACKOFF_BASE = 1.0  # seconds; delays are 1s, 2s


@dataclass(frozen=True)
class GitSource:
    """A repository and at most one of branch, tag or revision.

    Attributes:
        url: Repository URL
        branch: Branch to check out
        tag: Tag to check out
        rev: Commit to check out
    """

    url: str
    branch: Optional[str] = None
    tag: Optional[str] = None
    rev: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GitSource":
        """Build from a `git = {url = ..., tag = ...}` table.

        Raises:
            SourceFetchError: If the url is missing or more than one ref is given
        """
        if not isinstance(data, dict) or not isinstance(data.get("url"), str):
            raise SourceFetchError("git source needs a `url` string")
        unknown = set(data) - {"url", *_REF_KEYS}
        if unknown:
            raise SourceFetchError(f"unknown git source keys: {', '.join(sorted(unknown))}")
        refs = [key for key in _REF_KEYS if data.get(key) is not None]
        if len(refs) > 1:
            raise SourceFetchError(f"git source accepts only one of branch, tag, rev (got {', '.join(refs)})")
        return cls(url=data["url"], **{key: str(data[key]) for key in refs})


def is_github_url(url: str) -> bool:
    return urlparse(url).netloc in ("github.com", "www.github.com")


def github_archive_url(source: GitSource) -> str:
    """Zip archive URL for a GitHub repository at the requested ref.

    Examples:
        >>> github_archive_url(GitSource("https://github.com/owner/repo.git", tag="v1.0"))
        'https://github.com/owner/repo/archive/refs/tags/v1.0.zip'

        >>> github_archive_url(GitSource("https://github.com/owner/repo"))
        'https://github.com/owner/repo/archive/HEAD.zip'

    Raises:
        SourceFetchError: If the URL is not a GitHub repository URL
    """
    url = source.url.rstrip("/")
    if url.endswith(".git"):
        url = url[:-4]

    parsed = urlparse(url)
    if not is_github_url(url):
        raise SourceFetchError(f"Not a GitHub URL: {source.url}")
    path_parts = [p for p in parsed.path.split("/") if p]
    if len(path_parts) != 2:
        raise SourceFetchError(f"Invalid GitHub repository URL: {source.url}")
    owner, repo = path_parts

    base = f"https://github.com/{owner}/{repo}/archive"
    if source.branch is not None:
        return f"{base}/refs/heads/{source.branch}.zip"
    if source.tag is not None:
        return f"{base}/refs/tags/{source.tag}.zip"
    if source.rev is not None:
        return f"{base}/{source.rev}.zip"
    return f"{base}/HEAD.zip"


def _download_once(url: str, temp_file: Path, timeout: float) -> None:
    response = requests.get(url, stream=True, timeout=timeout)
    response.raise_for_status()
    with open(temp_file, "wb") as f:
        for chunk in response.iter_content(chunk_size=65536):
            if chunk:
                f.write(chunk)


def download_archive(url: str, dest: Path, timeout: float = 60) -> Path:
    """Download a file with requests.

    Connection errors and timeouts are retried with exponential backoff;
    HTTP errors (404, 500, ...) are not.

    Raises:
        SourceFetchError: On HTTP errors or when all attempts fail
    """
    temp_file = Path(str(dest) + ".download")
    for attempt in range(_MAX_DOWNLOAD_RETRIES):
        if attempt > 0:
            delay = _RETRY_BACKOFF_BASE * (2 ** (attempt - 1))
            logger.info(f"Retry {attempt}/{_MAX_DOWNLOAD_RETRIES - 1} after {delay:.0f}s")
            time.sleep(delay)
        logger.info(f"Downloading {url}")
        try:
            _download_once(url, temp_file, timeout)
            temp_file.replace(dest)
            return dest
        except requests.HTTPError as e:
            temp_file.unlink(missing_ok=True)
            raise SourceFetchError(f"Failed to download {url}: {e}") from e
        except (requests.ConnectionError, requests.Timeout) as e:
            temp_file.unlink(missing_ok=True)
            logger.warning(f"Download attempt {attempt + 1}/{_MAX_DOWNLOAD_RETRIES} failed for {url}: {e}")
            if attempt == _MAX_DOWNLOAD_RETRIES - 1:
                raise SourceFetchError(f"Failed to download {url}: {e}") from e
        except OSError as e:
            temp_file.unlink(missing_ok=True)
            raise SourceFetchError(f"Failed to write {dest}: {e}") from e
    raise SourceFetchError(f"Failed to download {url}")


def extract_archive(archive: Path, dest: Path) -> Path:
    """Extract a GitHub zip archive and return the repository root.

    GitHub archives contain a single `<repo>-<ref>/` directory; that
    directory is returned when present.

    Raises:
        SourceFetchError: If the archive is corrupt
    """
    try:
        with zipfile.ZipFile(archive, "r") as zf:
            zf.extractall(dest)
    except (zipfile.BadZipFile, OSError) as e:
        raise SourceFetchError(f"Failed to extract {archive}: {e}") from e

    entries = list(dest.iterdir())
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return dest


def _git(args: List[str], timeout: Optional[float]) -> None:
    cmd = ["git", *args]
    try:
        result = safe_run(cmd, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.SubprocessError) as e:
        raise SourceFetchError(f"Failed to run {' '.join(cmd)}: {e}") from e
    if result.returncode != 0:
        raise SourceFetchError(f"{' '.join(cmd)} failed: {result.stderr.strip()}")


def clone_repository(source: GitSource, dest: Path, timeout: Optional[float] = None) -> Path:
    """Clone with the git command line and check out the requested ref.

    Raises:
        SourceFetchError: If git is missing or any git command fails
    """
    logger.info(f"Cloning {source.url}")
    if source.rev is None:
        args = ["clone", "--depth", "1"]
        ref = source.branch or source.tag
        if ref is not None:
            args += ["--branch", ref]
        _git([*args, source.url, str(dest)], timeout)
    else:
        _git(["clone", source.url, str(dest)], timeout)
        _git(["-C", str(dest), "checkout", "--detach", source.rev], timeout)
    return dest


def checkout(source: GitSource, workdir: Path, timeout: Optional[float] = None) -> Path:
    """Fetch a remote source into `workdir`.

    Args:
        source: Repository and ref
        workdir: Empty scratch directory owned by the caller
        timeout: Network/git timeout in seconds

    Returns:
        The repository root inside `workdir`

    Raises:
        SourceFetchError: If the source cannot be fetched
    """
    if is_github_url(source.url):
        archive = download_archive(github_archive_url(source), workdir / "source.zip", timeout=timeout or 60)
        root = extract_archive(archive, workdir / "source")
        archive.unlink()
        return root
    return clone_repository(source, workdir / "source", timeout)
