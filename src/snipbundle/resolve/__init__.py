"""Module resolution and conditional-compile evaluation."""

from .cfg import CfgPolicy, CfgSet, apply_cfg, evaluate
from .resolver import ModuleContext, ModuleResolver, find_path_override, resolve_file

__all__ = [
    "CfgPolicy",
    "CfgSet",
    "ModuleContext",
    "ModuleResolver",
    "apply_cfg",
    "evaluate",
    "find_path_override",
    "resolve_file",
]
