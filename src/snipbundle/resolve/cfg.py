"""Conditional-compile evaluation for `#[cfg]` and `#[cfg_attr]`.

Two evaluation policies are supported. A policy is chosen once per
resolution pass through ``CfgSet.policy``; the two are never combined.

TERNARY (default):
    Atoms are True when enabled, False when disabled and unknown (None)
    otherwise. Connectives use three-valued logic, and items whose
    predicate is unknown keep their `cfg` attribute untouched.

DEFAULT_TRUE:
    Atoms are False when disabled and True otherwise. Every predicate
    resolves, so every `cfg` attribute is either removed or drops its item.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from ..errors import MetaParseError
from ..syntax.meta import Lit, Meta, NestedMeta, parse_meta
from ..syntax.tree import Attribute

logger = logging.getLogger(__name__)


class CfgPolicy(Enum):
    """How atoms missing from both the enable and disable sets evaluate."""

    TERNARY = "ternary"
    DEFAULT_TRUE = "default-true"

    @classmethod
    def from_string(cls, value: str) -> "CfgPolicy":
        """Convert a config string to a policy.

        Raises:
            ValueError: If the value names no policy
        """
        try:
            return cls(value)
        except ValueError:
            choices = "|".join(p.value for p in cls)
            raise ValueError(f"expected one of [{choices}], got `{value}`") from None


@dataclass(frozen=True)
class CfgSet:
    """Enabled and disabled predicates for one resolution pass.

    Attributes:
        enable: Atoms that evaluate to true (e.g. `feature = "std"`)
        disable: Atoms that evaluate to false; checked before `enable`
        policy: Evaluation policy for atoms in neither set
    """

    enable: Tuple[Meta, ...] = ()
    disable: Tuple[Meta, ...] = ()
    policy: CfgPolicy = CfgPolicy.TERNARY

    @classmethod
    def from_strings(
        cls,
        enable: Iterable[str] = (),
        disable: Iterable[str] = (),
        policy: CfgPolicy = CfgPolicy.TERNARY,
    ) -> "CfgSet":
        """Build a set from predicate strings such as `nightly` or `feature = "std"`.

        Raises:
            MetaParseError: If a string is not a meta item
        """
        return cls(
            enable=tuple(parse_meta(spec) for spec in enable),
            disable=tuple(parse_meta(spec) for spec in disable),
            policy=policy,
        )

    def atom(self, pred: Meta) -> Optional[bool]:
        if pred in self.disable:
            return False
        if pred in self.enable:
            return True
        if self.policy is CfgPolicy.DEFAULT_TRUE:
            return True
        return None


def _evaluate_all(values: List[Optional[bool]]) -> Optional[bool]:
    if False in values:
        return False
    if None in values:
        return None
    return True


def _evaluate_any(values: List[Optional[bool]]) -> Optional[bool]:
    if True in values:
        return True
    if None in values:
        return None
    return False


def evaluate(pred: NestedMeta, cfg: CfgSet) -> Optional[bool]:
    """Evaluate a cfg predicate.

    Args:
        pred: Predicate, e.g. the argument of `cfg(...)`
        cfg: Enabled/disabled atoms and policy

    Returns:
        True or False when the predicate is decided, None when it is not
        (only possible under the TERNARY policy)
    """
    if isinstance(pred, Lit):
        return None if cfg.policy is CfgPolicy.TERNARY else True

    if pred.is_list and pred.path in ("all", "any", "not"):
        values = [evaluate(arg, cfg) for arg in pred.args or ()]
        if pred.path == "all":
            return _evaluate_all(values)
        if pred.path == "any":
            return _evaluate_any(values)
        if len(values) != 1:
            return None if cfg.policy is CfgPolicy.TERNARY else True
        return None if values[0] is None else not values[0]

    return cfg.atom(pred)


def _single_predicate(attr: Attribute) -> Optional[NestedMeta]:
    try:
        meta = attr.meta()
    except MetaParseError as e:
        logger.debug(f"Leaving malformed cfg untouched: {e}")
        return None
    if meta.args is None or len(meta.args) != 1:
        return None
    return meta.args[0]


def check_cfg(attrs: List[Attribute], cfg: CfgSet) -> Optional[List[Attribute]]:
    """Evaluate `#[cfg(...)]` attributes of an item.

    Returns:
        None when some predicate is false (the item must be dropped),
        otherwise the attributes with decided-true `cfg`s removed
    """
    kept = []
    enabled = True
    for attr in attrs:
        if attr.path != "cfg" or attr.inner:
            kept.append(attr)
            continue
        pred = _single_predicate(attr)
        if pred is None:
            kept.append(attr)
            continue
        result = evaluate(pred, cfg)
        if result is None:
            kept.append(attr)
        elif result is False:
            enabled = False
    return kept if enabled else None


def flatten_cfg_attr(attrs: List[Attribute], cfg: CfgSet) -> List[Attribute]:
    """Expand or drop `#[cfg_attr(pred, attrs...)]` with a decided predicate."""
    result = []
    for attr in attrs:
        if attr.path != "cfg_attr" or attr.doc:
            result.append(attr)
            continue
        try:
            meta = attr.meta()
        except MetaParseError as e:
            logger.debug(f"Leaving malformed cfg_attr untouched: {e}")
            result.append(attr)
            continue
        if not meta.args:
            result.append(attr)
            continue
        decided = evaluate(meta.args[0], cfg)
        if decided is None:
            result.append(attr)
        elif decided:
            result.extend(Attribute(arg.text, inner=attr.inner) for arg in meta.args[1:])
    return result


def apply_cfg(attrs: List[Attribute], cfg: CfgSet) -> Optional[List[Attribute]]:
    """Run `cfg` then `cfg_attr` evaluation; None means the item is removed."""
    kept = check_cfg(attrs, cfg)
    if kept is None:
        return None
    return flatten_cfg_attr(kept, cfg)
