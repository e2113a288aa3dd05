"""
Source config files.

A source config lists the crates to collect snippets from, together with
the cfg, filter and format settings to apply. It is read from JSON or TOML;
the file extension selects the format.

Example (snippets.toml):

    format = "rustfmt"
    cfg = ['feature = "std"']
    filter_attr = ["doc"]
    filter_item = ["test"]

    [[sources]]
    path = "crates/algo/src/lib.rs"
    prefix = "algo"

    [[sources]]
    path = "src/lib.rs"
    git = { url = "https://github.com/owner/repo", tag = "v1.0" }
    cfg = []

Settings given on a source replace the global ones for that source. Local
paths are relative to the directory of the config file; git source paths
are relative to the repository root.
"""

import json
import logging
import tempfile
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..errors import MetaParseError, SourceConfigError, SourceFetchError
from ..format.formatter import FormatOption, FormatterConfig, format_all
from ..progress import ProgressCallback
from ..report import ProblemCollector
from ..resolve.cfg import CfgPolicy, CfgSet
from ..resolve.resolver import ModuleResolver
from ..snippets.collect import EntryCollector, Filter
from ..snippets.snippet_map import SnippetMap
from .remote import GitSource, checkout

logger = logging.getLogger(__name__)

_GLOBAL_KEYS = {"sources", "format", "cfg", "cfg_disable", "cfg_policy", "filter_attr", "filter_item"}
_SOURCE_KEYS = {"path", "prefix", "git", "cfg", "cfg_disable", "filter_attr", "filter_item"}
_LIST_KEYS = ("cfg", "cfg_disable", "filter_attr", "filter_item")


def _string_list(data: Dict[str, Any], key: str, where: str) -> Optional[List[str]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise SourceConfigError(f"{where}: `{key}` must be a list of strings")
    return list(value)


def _check_keys(data: Dict[str, Any], allowed: set, where: str) -> None:
    unknown = set(data) - allowed
    if unknown:
        raise SourceConfigError(f"{where}: unknown keys: {', '.join(sorted(unknown))}")


@dataclass
class Source:
    """One crate root. None means "use the global setting"."""

    path: Path
    prefix: Optional[str] = None
    git: Optional[GitSource] = None
    cfg: Optional[List[str]] = None
    cfg_disable: Optional[List[str]] = None
    filter_attr: Optional[List[str]] = None
    filter_item: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int) -> "Source":
        where = f"sources[{index}]"
        if not isinstance(data, dict):
            raise SourceConfigError(f"{where}: expected a table")
        _check_keys(data, _SOURCE_KEYS, where)
        if not isinstance(data.get("path"), str):
            raise SourceConfigError(f"{where}: `path` is required")
        prefix = data.get("prefix")
        if prefix is not None and not isinstance(prefix, str):
            raise SourceConfigError(f"{where}: `prefix` must be a string")
        git = None
        if data.get("git") is not None:
            try:
                git = GitSource.from_dict(data["git"])
            except SourceFetchError as e:
                raise SourceConfigError(f"{where}: {e}") from e
        lists = {key: _string_list(data, key, where) for key in _LIST_KEYS}
        return cls(path=Path(data["path"]), prefix=prefix, git=git, **lists)


@dataclass
class Sources:
    """A parsed source config.

    Usage:
        sources = Sources.load(Path("snippets.toml"))
        snippet_map, problems = sources.snippet_map(rustfmt=shutil.which("rustfmt"))
    """

    sources: List[Source] = field(default_factory=list)
    format: FormatOption = FormatOption.RUSTFMT
    cfg: List[str] = field(default_factory=list)
    cfg_disable: List[str] = field(default_factory=list)
    cfg_policy: CfgPolicy = CfgPolicy.TERNARY
    filter_attr: List[str] = field(default_factory=list)
    filter_item: List[str] = field(default_factory=list)
    base_dir: Path = field(default_factory=Path)

    @classmethod
    def load(cls, path: Path) -> "Sources":
        """Read a `.json` or `.toml` source config.

        Raises:
            SourceConfigError: If the file is unreadable, has an unknown
                extension or does not describe valid sources
        """
        path = Path(path)
        suffix = path.suffix.lower()
        if suffix not in (".json", ".toml"):
            raise SourceConfigError(f"{path}: invalid file extension (expected .json or .toml)")
        try:
            if suffix == ".json":
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
            else:
                with open(path, "rb") as f:
                    data = tomllib.load(f)
        except OSError as e:
            raise SourceConfigError(f"{path}: {e}") from e
        except (json.JSONDecodeError, tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
            raise SourceConfigError(f"{path}: {e}") from e
        return cls.from_dict(data, base_dir=path.parent)

    @classmethod
    def from_dict(cls, data: Any, base_dir: Path = Path()) -> "Sources":
        if not isinstance(data, dict):
            raise SourceConfigError("source config must be a table")
        _check_keys(data, _GLOBAL_KEYS, "config")
        raw_sources = data.get("sources")
        if not isinstance(raw_sources, list):
            raise SourceConfigError("config: `sources` must be a list")

        try:
            fmt = FormatOption.from_string(data.get("format", FormatOption.RUSTFMT.value))
            policy = CfgPolicy.from_string(data.get("cfg_policy", CfgPolicy.TERNARY.value))
        except (ValueError, AttributeError) as e:
            raise SourceConfigError(f"config: {e}") from e

        lists = {key: _string_list(data, key, "config") or [] for key in _LIST_KEYS}
        sources = cls(
            sources=[Source.from_dict(s, i) for i, s in enumerate(raw_sources)],
            format=fmt,
            cfg_policy=policy,
            base_dir=base_dir,
            **lists,
        )
        # Fail early on predicates that do not parse
        for source in sources.sources:
            sources.cfg_set(source)
        return sources

    def cfg_set(self, source: Source) -> CfgSet:
        enable = source.cfg if source.cfg is not None else self.cfg
        disable = source.cfg_disable if source.cfg_disable is not None else self.cfg_disable
        try:
            return CfgSet.from_strings(enable, disable, self.cfg_policy)
        except MetaParseError as e:
            raise SourceConfigError(f"{source.path}: invalid cfg: {e}") from e

    def filter(self, source: Source) -> Filter:
        return Filter.create(
            source.filter_attr if source.filter_attr is not None else self.filter_attr,
            source.filter_item if source.filter_item is not None else self.filter_item,
        )

    def collect_source(self, source: Source) -> SnippetMap:
        """Resolve and collect one source, applying its prefix.

        Raises:
            ResolveError: If the crate cannot be resolved
            SourceFetchError: If a git source cannot be fetched
        """
        resolver = ModuleResolver(self.cfg_set(source))
        if source.git is not None:
            with tempfile.TemporaryDirectory(prefix="snipbundle-src-") as tmp:
                root = checkout(source.git, Path(tmp))
                resolved = resolver.resolve(root / source.path)
        else:
            resolved = resolver.resolve(self.base_dir / source.path)

        snippet_map = SnippetMap()
        EntryCollector(snippet_map, self.filter(source)).collect(resolved.items)
        logger.info(f"Collected {len(snippet_map)} snippets from {source.path}")
        if source.prefix is not None:
            snippet_map = snippet_map.with_prefix(source.prefix)
        return snippet_map

    def snippet_map(
        self,
        rustfmt: Optional[str] = None,
        jobs: Optional[int] = None,
        callback: Optional[ProgressCallback] = None,
    ) -> Tuple[SnippetMap, ProblemCollector]:
        """Collect every source into one map and format it.

        Args:
            rustfmt: rustfmt executable (only used with the rustfmt format)
            jobs: Formatter worker threads
            callback: Progress receiver for formatting

        Returns:
            The merged map and the formatting problems
        """
        snippet_map = SnippetMap()
        for source in self.sources:
            snippet_map.extend(self.collect_source(source))
        problems = format_all(snippet_map, FormatterConfig(option=self.format, rustfmt=rustfmt), jobs, callback)
        return snippet_map, problems
