"""Modifier flags (``:keep``, ``:log``, ``:read``) and how they annotate a dispatch."""

from dataclasses import asdict, dataclass
from enum import Enum

from .errors import MalformedCommand
from .prefixes import PrefixSpec

CONFLICT_START = "<<<<<<< current"
CONFLICT_SEPARATOR = "======="
CONFLICT_END = ">>>>>>> proposed"


class Modifier(str, Enum):
    KEEP = "keep"
    LOG = "log"
    READ = "read"


MODIFIER_HELP = {
    Modifier.KEEP: "Emit before/after conflict blocks instead of applying edits",
    Modifier.LOG: "Write a change-log entry alongside applied edits",
    Modifier.READ: "Analysis only: report intended changes without applying them",
}


def parse_modifiers(tokens) -> frozenset[Modifier]:
    """Collapse modifier tokens into a set. Unknown tokens are MalformedCommand."""
    modifiers = set()
    for token in tokens:
        try:
            modifiers.add(Modifier(str(token).strip().lower()))
        except ValueError:
            known = ", ".join(m.value for m in Modifier)
            raise MalformedCommand(f"Unknown modifier ':{token}'. Known: {known}.") from None
    return frozenset(modifiers)


@dataclass(frozen=True)
class DispatchFlags:
    """How the backend must treat a dispatch."""

    analysis_only: bool
    write_access: bool
    conflict_blocks: bool = False
    change_log: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class ModifierPipeline:
    """Turns a prefix profile plus modifier set into DispatchFlags.

    Modifiers compose conjunctively and never widen access beyond the prefix.
    """

    def apply(self, spec: PrefixSpec, modifiers: frozenset[Modifier]) -> DispatchFlags:
        if Modifier.READ in modifiers and not spec.dry_run_composable:
            raise MalformedCommand(f"[{spec.name}] does not accept the :read modifier.")

        write_access = spec.modifies_code and Modifier.READ not in modifiers
        return DispatchFlags(
            analysis_only=not write_access,
            write_access=write_access,
            conflict_blocks=write_access and Modifier.KEEP in modifiers,
            change_log=write_access and Modifier.LOG in modifiers,
        )


def render_conflict_block(path: str, start: int, before: str, after: str) -> str:
    """Format a proposed edit as a conflict block for manual resolution."""
    before_lines = before.rstrip("\n").splitlines()
    end = start + max(len(before_lines), 1) - 1
    return "\n".join(
        [
            f"// {path}:{start}-{end}",
            CONFLICT_START,
            before.rstrip("\n"),
            CONFLICT_SEPARATOR,
            after.rstrip("\n"),
            CONFLICT_END,
        ]
    ) + "\n"


def has_conflict_markers(text: str) -> bool:
    """True while any conflict block in ``text`` is still unresolved."""
    lines = text.splitlines()
    return any(line.startswith(CONFLICT_START) for line in lines) or any(
        line.startswith(CONFLICT_END) for line in lines
    )
