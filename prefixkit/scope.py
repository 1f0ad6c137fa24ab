"""Scope clause grammar and resolution against a source tree.

A scope narrows a request to directories, files (optionally a line range),
classes and functions:

    <dir:Sources/Net file:ConnectionManager.swift:10-40 func:connect>

Clause kinds combine by intersection: a target must lie under any listed
``dir``, AND inside any listed ``file``/range when files are given, AND touch
any listed ``class``/``func`` when symbols are given. An empty scope means
the whole repository.
"""

import re
from dataclasses import dataclass, field

from .errors import InvalidScope

SCOPE_KEYS = ("dir", "file", "class", "func")

_FILE_VALUE_RE = re.compile(r"^(?P<path>[^:]+)(?::(?P<start>\d+)(?:-(?P<end>\d*))?)?$")


@dataclass(frozen=True)
class LineRange:
    """Inclusive 1-based line range. ``end=None`` runs to end of file."""

    start: int
    end: int | None = None

    def bounds(self, line_count: int) -> tuple[int, int]:
        end = line_count if self.end is None else self.end
        return self.start, end

    def overlaps(self, start: int, end: int) -> bool:
        own_end = self.end if self.end is not None else float("inf")
        return self.start <= end and start <= own_end

    def to_text(self) -> str:
        if self.end is None:
            return str(self.start)
        return f"{self.start}-{self.end}"


@dataclass
class Scope:
    dirs: set[str] = field(default_factory=set)
    files: dict[str, LineRange | None] = field(default_factory=dict)
    classes: set[str] = field(default_factory=set)
    funcs: set[str] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not (self.dirs or self.files or self.classes or self.funcs)

    @property
    def symbols(self) -> set[str]:
        return self.classes | self.funcs

    def matches(
        self,
        path: str,
        span: tuple[int, int] | None = None,
        symbols: tuple[str, ...] | list[str] | set[str] = (),
    ) -> bool:
        """Return True when ``path`` (and optional line span / symbols) is in scope."""
        path = normalize_path(path)

        if self.dirs and not any(_under_dir(path, d) for d in self.dirs):
            return False

        if self.files:
            in_files = False
            for key, line_range in self.files.items():
                if not file_matches(path, key):
                    continue
                if line_range is None or span is None or line_range.overlaps(*span):
                    in_files = True
                    break
            if not in_files:
                return False

        if self.symbols and not (self.symbols & set(symbols)):
            return False

        return True

    def to_text(self) -> str:
        """Serialize back to the clause grammar in canonical order."""
        clauses = []
        if self.dirs:
            clauses.append("dir:" + ",".join(sorted(self.dirs)))
        if self.files:
            values = []
            for path in sorted(self.files):
                line_range = self.files[path]
                values.append(path if line_range is None else f"{path}:{line_range.to_text()}")
            clauses.append("file:" + ",".join(values))
        if self.classes:
            clauses.append("class:" + ",".join(sorted(self.classes)))
        if self.funcs:
            clauses.append("func:" + ",".join(sorted(self.funcs)))
        return " ".join(clauses)

    def to_dict(self) -> dict:
        return {
            "dirs": sorted(self.dirs),
            "files": {
                path: (None if rng is None else [rng.start, rng.end])
                for path, rng in sorted(self.files.items())
            },
            "classes": sorted(self.classes),
            "funcs": sorted(self.funcs),
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "Scope":
        data = data or {}
        files = {}
        for path, rng in (data.get("files") or {}).items():
            files[path] = None if rng is None else LineRange(rng[0], rng[1])
        return cls(
            dirs=set(data.get("dirs") or []),
            files=files,
            classes=set(data.get("classes") or []),
            funcs=set(data.get("funcs") or []),
        )


def parse_scope(text: str) -> Scope:
    """Parse the text between ``<`` and ``>``. Raises InvalidScope."""
    scope = Scope()
    key = None

    for chunk in (text or "").split():
        for item in chunk.split(","):
            item = item.strip()
            if not item:
                raise InvalidScope(f"Empty scope value in '{chunk}'.")

            head, sep, tail = item.partition(":")
            if sep and head.lower() in SCOPE_KEYS:
                key = head.lower()
                value = tail.strip()
            elif sep and not tail[:1].isdigit():
                raise InvalidScope(
                    f"Unknown scope key '{head}'. Expected one of: {', '.join(SCOPE_KEYS)}."
                )
            elif key is None:
                raise InvalidScope(f"Scope value '{item}' has no key (dir:, file:, class:, func:).")
            else:
                value = item

            if not value:
                raise InvalidScope(f"Empty value for '{key}:'.")
            _add_value(scope, key, value)

    return scope


def _add_value(scope: Scope, key: str, value: str) -> None:
    if key == "dir":
        scope.dirs.add(normalize_path(value))
    elif key == "class":
        scope.classes.add(value)
    elif key == "func":
        scope.funcs.add(value)
    else:
        path, line_range = _parse_file_value(value)
        scope.files[path] = line_range


def _parse_file_value(value: str) -> tuple[str, LineRange | None]:
    match = _FILE_VALUE_RE.match(value)
    if not match:
        raise InvalidScope(f"Invalid file value '{value}'. Use Name, Name:start or Name:start-end.")

    path = normalize_path(match.group("path"))
    if match.group("start") is None:
        return path, None

    start = int(match.group("start"))
    end_text = match.group("end")
    end = int(end_text) if end_text else None
    if start < 1:
        raise InvalidScope(f"Line numbers start at 1 in '{value}'.")
    if end is not None and end < start:
        raise InvalidScope(f"Range end is before start in '{value}'.")
    return path, LineRange(start, end)


def normalize_path(path: str) -> str:
    path = path.strip().replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path.rstrip("/") or "."


def file_matches(path: str, key: str) -> bool:
    """A file key matches an exact relative path or a trailing path suffix."""
    path = normalize_path(path)
    return path == key or path.endswith("/" + key)


def _under_dir(path: str, directory: str) -> bool:
    if directory == ".":
        return True
    return path == directory or path.startswith(directory + "/")


@dataclass(frozen=True)
class Target:
    """One concrete region selected by a resolved scope."""

    path: str
    start: int
    end: int
    symbol: str | None = None

    @property
    def line_span(self) -> int:
        return max(self.end - self.start + 1, 0)

    def to_dict(self) -> dict:
        return {"path": self.path, "start": self.start, "end": self.end, "symbol": self.symbol}


@dataclass
class ResolvedScope:
    scope: Scope
    targets: list[Target] = field(default_factory=list)
    whole_repository: bool = False

    @property
    def paths(self) -> list[str]:
        return sorted({target.path for target in self.targets})


class ScopeResolver:
    """Validates a Scope against a source tree and lists the regions it selects.

    The tree is only queried; nothing here touches files.
    """

    def __init__(self, tree):
        self.tree = tree

    def resolve(self, scope: Scope | None) -> ResolvedScope:
        if scope is None or scope.is_empty:
            return ResolvedScope(scope=scope or Scope(), whole_repository=True)

        for directory in sorted(scope.dirs):
            if not self.tree.is_dir(directory):
                raise InvalidScope(f"Directory not found: {directory}")

        file_targets = self._file_targets(scope)
        symbol_targets = self._symbol_targets(scope)

        if scope.symbols:
            targets = [
                target
                for target in symbol_targets
                if scope.matches(target.path, (target.start, target.end), (target.symbol,))
            ]
        elif scope.files:
            targets = [target for target in file_targets if scope.matches(target.path)]
        else:
            targets = []
            for path in self.tree.files():
                if scope.matches(path):
                    targets.append(Target(path, 1, self.tree.line_count(path)))

        if not targets:
            raise InvalidScope(f"Scope <{scope.to_text()}> selects nothing in the source tree.")

        return ResolvedScope(scope=scope, targets=targets)

    def _file_targets(self, scope: Scope) -> list[Target]:
        targets = []
        for key, line_range in sorted(scope.files.items()):
            paths = self.tree.match_files(key)
            if not paths:
                raise InvalidScope(f"File not found: {key}")

            for path in paths:
                line_count = self.tree.line_count(path)
                if line_range is None:
                    targets.append(Target(path, 1, line_count))
                    continue
                if line_range.start > line_count:
                    raise InvalidScope(
                        f"{path} has {line_count} lines; range starts at {line_range.start}."
                    )
                if line_range.end is not None and line_range.end > line_count:
                    raise InvalidScope(
                        f"{path} has {line_count} lines; range ends at {line_range.end}."
                    )
                start, end = line_range.bounds(line_count)
                targets.append(Target(path, start, end))
        return targets

    def _symbol_targets(self, scope: Scope) -> list[Target]:
        targets = []
        for kind, names in (("class", scope.classes), ("func", scope.funcs)):
            for name in sorted(names):
                locations = self.tree.find_symbols(name, kind)
                if not locations:
                    raise InvalidScope(f"{kind} '{name}' not found in the source tree.")
                for loc in locations:
                    targets.append(Target(loc.path, loc.start, loc.end, symbol=loc.name))
        return targets
