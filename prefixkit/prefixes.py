"""Closed registry of request prefixes and their access flags."""

import difflib
from dataclasses import dataclass
from enum import Enum

from .errors import UnknownPrefix


class Prefix(str, Enum):
    FIX = "fix"
    IMP = "imp"
    ADD = "add"
    RM = "rm"
    REVIEW = "review"
    SEARCH = "search"
    READ = "read"
    THINK = "think"
    DOIT = "doit"
    CHECK = "check"
    AGAIN = "again"
    GIT = "git"
    LITE = "lite"
    ADD_NOTE = "add-note"
    FILE_ADD = "file-add"
    FILE_RM = "file-rm"
    FILE_RN = "file-rn"
    FILE_MV = "file-mv"
    LIST_CMD = "list-cmd"


@dataclass(frozen=True)
class PrefixSpec:
    """Access profile for a single prefix."""

    prefix: Prefix
    description: str
    modifies_code: bool = False
    read_only: bool = False
    dry_run_composable: bool = True
    session_bound: bool = False

    @property
    def name(self) -> str:
        return self.prefix.value

    @property
    def access(self) -> str:
        if self.read_only:
            return "read-only"
        if self.modifies_code:
            return "modifies code"
        if self.session_bound:
            return "session"
        return "writes notes/vcs"


PREFIX_REGISTRY: dict[Prefix, PrefixSpec] = {}


def register_prefix(spec: PrefixSpec) -> None:
    PREFIX_REGISTRY[spec.prefix] = spec


for _spec in (
    PrefixSpec(Prefix.FIX, "Fix a bug in the scoped code", modifies_code=True),
    PrefixSpec(Prefix.IMP, "Improve or refactor without changing behavior", modifies_code=True),
    PrefixSpec(Prefix.ADD, "Add a feature or code", modifies_code=True),
    PrefixSpec(Prefix.RM, "Remove code", modifies_code=True),
    PrefixSpec(Prefix.REVIEW, "Review code and report findings", read_only=True),
    PrefixSpec(Prefix.SEARCH, "Search the code base", read_only=True),
    PrefixSpec(Prefix.READ, "Analyze and report intended changes without applying them", read_only=True),
    PrefixSpec(Prefix.THINK, "Reason about a problem and propose options", read_only=True),
    PrefixSpec(
        Prefix.DOIT,
        "Carry out the plan from the previous read/think dispatch",
        modifies_code=True,
        dry_run_composable=False,
        session_bound=True,
    ),
    PrefixSpec(
        Prefix.CHECK,
        "Review conflict blocks resolved after a :keep dispatch",
        read_only=True,
        dry_run_composable=False,
        session_bound=True,
    ),
    PrefixSpec(
        Prefix.AGAIN,
        "Resume an interrupted dispatch or repeat the last one",
        dry_run_composable=False,
        session_bound=True,
    ),
    PrefixSpec(Prefix.GIT, "Prepare git operations (commit messages, branches)"),
    PrefixSpec(Prefix.LITE, "Make a minimal, lightweight edit", modifies_code=True),
    PrefixSpec(Prefix.ADD_NOTE, "Record a note in the project context"),
    PrefixSpec(Prefix.FILE_ADD, "Create a new file", modifies_code=True),
    PrefixSpec(Prefix.FILE_RM, "Delete a file", modifies_code=True),
    PrefixSpec(Prefix.FILE_RN, "Rename a file", modifies_code=True),
    PrefixSpec(Prefix.FILE_MV, "Move a file", modifies_code=True),
    PrefixSpec(
        Prefix.LIST_CMD,
        "List the available command prefixes",
        read_only=True,
        dry_run_composable=False,
    ),
):
    register_prefix(_spec)


def get_prefix(name: str | Prefix) -> PrefixSpec:
    """Look up a prefix spec. Raises UnknownPrefix with the nearest known name."""
    if isinstance(name, Prefix):
        return PREFIX_REGISTRY[name]

    key = (name or "").strip().lower()
    try:
        return PREFIX_REGISTRY[Prefix(key)]
    except ValueError:
        pass

    known = [prefix.value for prefix in PREFIX_REGISTRY]
    matches = difflib.get_close_matches(key, known, n=1, cutoff=0.5)
    raise UnknownPrefix(key, matches[0] if matches else None)


def is_prefix(name: str) -> bool:
    return name in {prefix.value for prefix in PREFIX_REGISTRY}


def modifies_code(prefix: str | Prefix) -> bool:
    return get_prefix(prefix).modifies_code


def is_read_only(prefix: str | Prefix) -> bool:
    return get_prefix(prefix).read_only


def list_prefixes() -> list[PrefixSpec]:
    return list(PREFIX_REGISTRY.values())


__all__ = [
    "Prefix",
    "PrefixSpec",
    "PREFIX_REGISTRY",
    "register_prefix",
    "get_prefix",
    "is_prefix",
    "modifies_code",
    "is_read_only",
    "list_prefixes",
]
