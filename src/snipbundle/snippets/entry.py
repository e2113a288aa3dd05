"""Arguments of the `#[codesnip::entry(...)]` annotation.

Accepted forms:

    #[codesnip::entry]                          name from the item
    #[codesnip::entry("name")]                  explicit name
    #[codesnip::entry(name = "name")]
    #[codesnip::entry(include("a", "b"))]       dependencies
    #[codesnip::entry(include = "a")]
    #[codesnip::entry("name", inline)]          splice module contents
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..errors import EntryArgsError, MetaParseError
from ..syntax.meta import Lit, Meta
from ..syntax.tree import Attribute, Item

ENTRY_PATH = "codesnip::entry"
SKIP_PATH = "codesnip::skip"


@dataclass
class EntryArgs:
    """Parsed annotation arguments, before a name is inferred."""

    name: Optional[str] = None
    include: List[str] = field(default_factory=list)
    inline: bool = False

    @classmethod
    def from_attribute(cls, attr: Attribute) -> "EntryArgs":
        """Parse the arguments of an entry attribute.

        Raises:
            EntryArgsError: If an argument is not recognized
        """
        try:
            meta = attr.meta()
        except MetaParseError as e:
            raise EntryArgsError(str(e)) from e
        return cls.from_meta(meta)

    @classmethod
    def from_meta(cls, meta: Meta) -> "EntryArgs":
        args = cls()
        if meta.is_name_value:
            raise EntryArgsError(f"expected `{ENTRY_PATH}(...)`, found `{meta.text}`")
        for arg in meta.args or ():
            if isinstance(arg, Lit):
                args._set_name(_string(arg, "name"))
            elif arg.path == "name" and arg.value is not None:
                args._set_name(_string(arg.value, "name"))
            elif arg.path == "include" and arg.value is not None:
                args.include.append(_string(arg.value, "include"))
            elif arg.path == "include" and arg.args is not None:
                for inc in arg.args:
                    if not isinstance(inc, Lit):
                        raise EntryArgsError(f"expected string literal in `include`, found `{inc.text}`")
                    args.include.append(_string(inc, "include"))
            elif arg.path == "inline" and arg.is_word:
                args.inline = True
            else:
                raise EntryArgsError(f"unexpected argument `{arg.text}`")
        return args

    def _set_name(self, name: str) -> None:
        if self.name is not None:
            raise EntryArgsError(f"duplicate name `{name}`")
        self.name = name

    def to_entry(self, item: Item) -> "Entry":
        """Resolve the final entry name against the annotated item.

        Raises:
            EntryArgsError: If no name is given and the item has no identifier
        """
        name = self.name if self.name is not None else item.name
        if not name:
            raise EntryArgsError(f"`{ENTRY_PATH}` on `{item.kind}` needs an explicit name")
        return Entry(name=name, include=tuple(self.include), inline=self.inline)


@dataclass(frozen=True)
class Entry:
    """One annotation ready to be merged into a snippet map."""

    name: str
    include: Tuple[str, ...]
    inline: bool


def _string(lit: Lit, what: str) -> str:
    if not lit.is_str:
        raise EntryArgsError(f"expected string literal for {what}, found `{lit.token}`")
    return lit.value
