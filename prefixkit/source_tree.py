"""Read-only view of the project source tree used by scope resolution."""

from dataclasses import dataclass
import hashlib
import os
from pathlib import Path
import re

from .scope import file_matches, normalize_path

DEFAULT_EXTENSIONS = [
    ".swift", ".m", ".mm", ".h", ".c", ".cpp",
    ".kt", ".java", ".py", ".js", ".ts", ".tsx", ".jsx",
    ".go", ".rs", ".rb", ".cs",
    ".json", ".yaml", ".yml", ".plist", ".strings", ".md",
]

SKIP_DIRS = {
    ".git", ".prefixkit", "__pycache__", ".venv", "venv", "node_modules",
    ".build", "build", "DerivedData", "Pods", "Carthage", "xcuserdata",
    ".swiftpm", "dist", ".pytest_cache", ".mypy_cache",
}

CLASS_KEYWORDS = ("class", "struct", "enum", "protocol", "actor", "extension", "interface", "object")
FUNC_KEYWORDS = ("func", "fun", "function", "def")

_COMMENT_PREFIXES = ("//", "#", "*", "/*")


@dataclass(frozen=True)
class SymbolLocation:
    name: str
    kind: str
    path: str
    start: int
    end: int


class LocalSourceTree:
    """Filesystem-backed source tree rooted at a project directory."""

    def __init__(
        self,
        root: str,
        extensions: list[str] | None = None,
        ignore_paths: list[str] | None = None,
    ):
        self.root = Path(root).resolve()
        self.extensions = {ext.lower() for ext in (extensions or DEFAULT_EXTENSIONS)}
        self.ignore_paths = [normalize_path(p) for p in (ignore_paths or [])]

    def files(self) -> list[str]:
        """Relative POSIX paths of all tracked source files, sorted."""
        found: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = [d for d in dirnames if d not in SKIP_DIRS]
            base = Path(dirpath)
            for filename in filenames:
                file_path = base / filename
                if file_path.suffix.lower() not in self.extensions:
                    continue
                relative = file_path.relative_to(self.root).as_posix()
                if self._is_ignored(relative):
                    continue
                found.append(relative)
        return sorted(found)

    def exists(self, path: str) -> bool:
        return (self.root / normalize_path(path)).is_file()

    def is_dir(self, path: str) -> bool:
        return (self.root / normalize_path(path)).is_dir()

    def read_lines(self, path: str) -> list[str]:
        text = (self.root / normalize_path(path)).read_text(encoding="utf-8", errors="replace")
        return text.splitlines()

    def line_count(self, path: str) -> int:
        return len(self.read_lines(path))

    def match_files(self, key: str) -> list[str]:
        """Files whose relative path equals ``key`` or ends with ``/key``."""
        key = normalize_path(key)
        if self.exists(key):
            return [key]
        return [path for path in self.files() if file_matches(path, key)]

    def find_symbols(self, name: str, kind: str) -> list[SymbolLocation]:
        """Locate ``class``-like or ``func``-like declarations named ``name``."""
        keywords = CLASS_KEYWORDS if kind == "class" else FUNC_KEYWORDS
        pattern = re.compile(
            rf"\b(?:{'|'.join(keywords)})\s+{re.escape(name)}\b"
        )

        locations = []
        for path in self.files():
            try:
                lines = self.read_lines(path)
            except OSError:
                continue
            for index, line in enumerate(lines):
                if line.lstrip().startswith(_COMMENT_PREFIXES):
                    continue
                if not pattern.search(line):
                    continue
                end = _block_end(lines, index, python=path.endswith(".py"))
                locations.append(SymbolLocation(name, kind, path, index + 1, end + 1))
        return locations

    def snapshot(self) -> dict[str, str]:
        """SHA-256 per tracked file, used to detect manual edits between dispatches."""
        hashes: dict[str, str] = {}
        for path in self.files():
            try:
                digest = hashlib.sha256((self.root / path).read_bytes()).hexdigest()
            except OSError:
                continue
            hashes[path] = digest
        return hashes

    def _is_ignored(self, relative: str) -> bool:
        return any(
            relative == ignored or relative.startswith(ignored + "/")
            for ignored in self.ignore_paths
        )


def diff_snapshots(old: dict[str, str], new: dict[str, str]) -> dict[str, list[str]]:
    """Compare two snapshots into modified/added/deleted path lists."""
    old = old or {}
    modified: list[str] = []
    added: list[str] = []
    deleted: list[str] = []

    for path, digest in new.items():
        if path not in old:
            added.append(path)
        elif old[path] != digest:
            modified.append(path)

    for path in old:
        if path not in new:
            deleted.append(path)

    return {
        "modified": sorted(modified),
        "added": sorted(added),
        "deleted": sorted(deleted),
    }


def _block_end(lines: list[str], start: int, python: bool = False) -> int:
    """Index of the last line of the block declared at ``lines[start]``."""
    if python:
        indent = len(lines[start]) - len(lines[start].lstrip())
        end = start
        for index in range(start + 1, len(lines)):
            line = lines[index]
            if not line.strip():
                continue
            if len(line) - len(line.lstrip()) <= indent:
                break
            end = index
        return end

    depth = 0
    opened = False
    for index in range(start, len(lines)):
        for char in lines[index]:
            if char == "{":
                depth += 1
                opened = True
            elif char == "}":
                depth -= 1
        if opened and depth <= 0:
            return index
    return start if not opened else len(lines) - 1
