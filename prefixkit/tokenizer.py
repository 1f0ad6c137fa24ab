"""Split a raw request line into prefix, modifiers, scope clause and body."""

from dataclasses import dataclass

from .errors import MalformedCommand


@dataclass(frozen=True)
class RawCommand:
    """Unvalidated pieces of a request line."""

    prefix: str
    modifiers: tuple[str, ...] = ()
    scope_text: str | None = None
    body: str = ""


def tokenize(line: str) -> RawCommand:
    """Tokenize ``[prefix{:modifier}*]{<scope>} body``.

    Raises MalformedCommand on unbalanced brackets or an unterminated scope.
    """
    text = (line or "").strip()
    if not text:
        raise MalformedCommand("Empty command line.")
    if not text.startswith("["):
        raise MalformedCommand("Command must start with a bracketed prefix, e.g. [fix].")

    close = _find_close(text, 0, "[", "]")
    if close is None:
        raise MalformedCommand("Unbalanced brackets in prefix.")

    parts = [part.strip() for part in text[1:close].split(":")]
    if not parts[0]:
        raise MalformedCommand("Empty prefix.")
    if any(not part for part in parts[1:]):
        raise MalformedCommand(f"Empty modifier in '{text[: close + 1]}'.")

    prefix = parts[0].lower()
    modifiers = tuple(part.lower() for part in parts[1:])
    rest = text[close + 1 :]

    scope_text = None
    if rest.startswith("<"):
        scope_close = _find_close(rest, 0, "<", ">")
        if scope_close is None:
            raise MalformedCommand("Unterminated scope clause.")
        scope_text = rest[1:scope_close].strip()
        rest = rest[scope_close + 1 :]

    if rest.startswith("]"):
        raise MalformedCommand("Unbalanced brackets in prefix.")

    return RawCommand(
        prefix=prefix,
        modifiers=modifiers,
        scope_text=scope_text,
        body=rest.strip(),
    )


def _find_close(text: str, start: int, opener: str, closer: str) -> int | None:
    """Index of the closer matching ``text[start]``; None if nested or missing."""
    for index in range(start + 1, len(text)):
        char = text[index]
        if char == closer:
            return index
        if char == opener:
            return None
    return None
