"""Source configuration and remote checkout."""

from .remote import GitSource, checkout, github_archive_url
from .sources import Source, Sources

__all__ = ["GitSource", "Source", "Sources", "checkout", "github_archive_url"]
