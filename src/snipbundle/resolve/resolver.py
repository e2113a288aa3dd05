"""Module resolver.

Expands every `mod name;` declaration reachable from a root file into an
inline module built from the referenced file, evaluating `cfg` and
`cfg_attr` attributes along the way, including on items declared inside
function bodies. The result is one merged tree.

Module files are located the way rustc locates them:

    #[path = "x.rs"] mod name;   -> <cwd>/x.rs
    mod name;                    -> <mod_dir>/name.rs
                                 -> <mod_dir>/name/mod.rs

`mod_dir` is the directory nested modules are searched in, `cwd` is the
base for `#[path]` overrides. Both are carried in an immutable
``ModuleContext`` that each recursive call receives by value.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from ..errors import MetaParseError, ModuleFileNotFoundError
from ..syntax.parser import RustParser
from ..syntax.tree import Item, ModuleBody, SourceFile
from .cfg import CfgSet, apply_cfg

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleContext:
    """Directory state for resolving modules at one level of the tree.

    Attributes:
        mod_dir: Directory searched for `name.rs` / `name/mod.rs`
        cwd: Base directory for `#[path = "..."]` overrides
    """

    mod_dir: Path
    cwd: Path

    @classmethod
    def for_root(cls, root: Path) -> "ModuleContext":
        return cls(mod_dir=root.parent, cwd=root.parent)

    def enter_inline(self, name: str, path_override: Optional[str]) -> "ModuleContext":
        """Context for the children of an inline `mod name { ... }`."""
        if path_override is not None:
            base = self.cwd / path_override
            return ModuleContext(mod_dir=base, cwd=base)
        base = self.mod_dir / name
        return ModuleContext(mod_dir=base, cwd=base)


def find_path_override(item: Item) -> Optional[str]:
    """Value of a `#[path = "..."]` attribute, if the item has one."""
    for attr in item.attrs:
        if attr.path != "path" or attr.doc:
            continue
        try:
            meta = attr.meta()
        except MetaParseError:
            continue
        if meta.value is not None and meta.value.is_str:
            return meta.value.value
    return None


class ModuleResolver:
    """Resolves a root file and all of its module files into one tree.

    Resolution is depth-first, pre-order and single threaded. Any error
    aborts the whole pass.

    Usage:
        resolver = ModuleResolver(CfgSet.from_strings(enable=['feature = "std"']))
        tree = resolver.resolve(Path("src/lib.rs"))
    """

    def __init__(self, cfg: Optional[CfgSet] = None, parser: Optional[RustParser] = None):
        self.cfg = cfg if cfg is not None else CfgSet()
        self._parser = parser if parser is not None else RustParser()

    def resolve(self, root: Path) -> SourceFile:
        """Parse `root` and expand all module declarations below it.

        Raises:
            SourceFileNotFoundError: If a file cannot be opened
            ModuleFileNotFoundError: If a module has no file
            ParseFileError: If a file is not valid Rust
            SourceIOError: If a file cannot be read
        """
        root = Path(root)
        logger.info(f"Resolving module tree from {root}")
        source = self._parser.parse_file(root)
        items = self._resolve_items(source.items, ModuleContext.for_root(root))
        return SourceFile(inner_attrs=source.inner_attrs, items=items)

    def _resolve_items(self, items: List[Item], ctx: ModuleContext) -> List[Item]:
        resolved = []
        for item in items:
            result = self._resolve_item(item, ctx)
            if result is not None:
                resolved.append(result)
        return resolved

    def _resolve_item(self, item: Item, ctx: ModuleContext) -> Optional[Item]:
        attrs = apply_cfg(item.attrs, self.cfg)
        if attrs is None:
            logger.debug(f"cfg removed {item.kind} {item.name or ''}".rstrip())
            return None
        item = item.with_attrs(attrs)
        if not item.is_module:
            return item.map_nested(lambda child: self._resolve_item(child, ctx))

        if item.body is None:
            path, child_ctx = self._find_module_file(item, ctx)
            logger.debug(f"Expanding module `{item.name}` from {path}")
            source = self._parser.parse_file(path)
            body = ModuleBody(inner_attrs=source.inner_attrs, items=source.items)
        else:
            child_ctx = ctx.enter_inline(item.name or "", find_path_override(item))
            body = item.body

        items = self._resolve_items(body.items, child_ctx)
        return item.with_body(ModuleBody(inner_attrs=body.inner_attrs, items=items))

    def _find_module_file(self, item: Item, ctx: ModuleContext) -> Tuple[Path, ModuleContext]:
        name = item.name or ""
        override = find_path_override(item)
        if override is not None:
            path = ctx.cwd / override
            if path.exists():
                return path, ctx
            raise ModuleFileNotFoundError(name, path)

        mod_dir = ctx.mod_dir / name
        sibling = ctx.mod_dir / f"{name}.rs"
        nested = mod_dir / "mod.rs"
        if sibling.exists():
            return sibling, ModuleContext(mod_dir=mod_dir, cwd=ctx.cwd)
        if nested.exists():
            return nested, ModuleContext(mod_dir=mod_dir, cwd=ctx.cwd / name)
        raise ModuleFileNotFoundError(name, sibling)


def resolve_file(root: Path, cfg: Optional[CfgSet] = None) -> SourceFile:
    """Resolve `root` with a fresh resolver."""
    return ModuleResolver(cfg).resolve(root)
