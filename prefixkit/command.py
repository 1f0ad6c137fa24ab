"""The parsed, validated form of a request line."""

from dataclasses import dataclass, field

from .modifiers import Modifier, parse_modifiers
from .prefixes import Prefix, PrefixSpec, get_prefix, is_prefix
from .scope import Scope, parse_scope
from .tokenizer import tokenize


@dataclass
class Command:
    prefix: Prefix
    modifiers: frozenset[Modifier] = field(default_factory=frozenset)
    scope: Scope | None = None
    body: str = ""

    @property
    def spec(self) -> PrefixSpec:
        return get_prefix(self.prefix)

    @property
    def is_dry_run(self) -> bool:
        """True for read/think dispatches and anything carrying ``:read``."""
        return self.prefix in (Prefix.READ, Prefix.THINK) or Modifier.READ in self.modifiers

    def to_line(self) -> str:
        """Re-serialize with modifiers in canonical order."""
        head = ":".join([self.prefix.value] + sorted(m.value for m in self.modifiers))
        line = f"[{head}]"
        if self.scope is not None:
            line += f"<{self.scope.to_text()}>"
        if self.body:
            line += f" {self.body}"
        return line

    def to_dict(self) -> dict:
        return {
            "prefix": self.prefix.value,
            "modifiers": sorted(m.value for m in self.modifiers),
            "scope": None if self.scope is None else self.scope.to_dict(),
            "body": self.body,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Command":
        scope = data.get("scope")
        return cls(
            prefix=Prefix(data["prefix"]),
            modifiers=parse_modifiers(data.get("modifiers") or []),
            scope=None if scope is None else Scope.from_dict(scope),
            body=data.get("body", ""),
        )


def parse_command(line: str) -> Command:
    """Tokenize and validate one request line.

    The prefix is checked before the scope is parsed, so ``[bogus]<...>``
    always fails with UnknownPrefix.
    """
    raw = tokenize(line)
    prefix_name = raw.prefix
    modifier_tokens = list(raw.modifiers)

    # [read:fix] is the dry-run form of [fix].
    if (
        prefix_name == Prefix.READ.value
        and modifier_tokens
        and modifier_tokens[0] != Prefix.READ.value
        and is_prefix(modifier_tokens[0])
    ):
        prefix_name = modifier_tokens.pop(0)
        modifier_tokens.append(Modifier.READ.value)

    spec = get_prefix(prefix_name)
    modifiers = parse_modifiers(modifier_tokens)
    scope = parse_scope(raw.scope_text) if raw.scope_text is not None else None

    return Command(prefix=spec.prefix, modifiers=modifiers, scope=scope, body=raw.body)
