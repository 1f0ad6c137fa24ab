"""Append-only change log written when a dispatch carries ``:log``."""

from dataclasses import dataclass, field
from datetime import datetime
import logging
from pathlib import Path
import re

from .results import FileChange

logger = logging.getLogger(__name__)

_ENTRY_RE = re.compile(
    r"^##\s+(?P<title>.+?)\s*\n\n- \*\*Date:\*\*\s+(?P<date>[^\n]+)\n(?P<body>.*?)(?=^---\s*$|\Z)",
    re.MULTILINE | re.DOTALL,
)


@dataclass
class ChangeLogEntry:
    title: str
    date: str = ""
    files_modified: list[FileChange] = field(default_factory=list)
    reasoning: str = ""
    changes: list[str] = field(default_factory=list)
    notes: str = ""

    def render(self) -> str:
        lines = [f"## {self.title}", "", f"- **Date:** {self.date}"]
        if self.files_modified:
            lines.append("- **Files modified:**")
            for change in self.files_modified:
                lines.append(f"  - `{change.path}` ({change.range_text})")
        lines.append("")

        if self.reasoning:
            lines.extend(["### Reasoning", "", self.reasoning.strip(), ""])
        if self.changes:
            lines.extend(["### Changes", ""])
            lines.extend(f"- {change}" for change in self.changes)
            lines.append("")
        if self.notes:
            lines.extend(["### Notes", "", self.notes.strip(), ""])

        lines.extend(["---", ""])
        return "\n".join(lines)


class ChangeLogStore:
    """One markdown file per date and task slug; entries are only ever appended."""

    def __init__(self, changelog_dir: str | Path):
        self.changelog_dir = Path(changelog_dir)

    def append(self, entry: ChangeLogEntry, slug: str) -> Path:
        if not entry.date:
            entry.date = datetime.now().strftime("%Y-%m-%d %H:%M")
        day = entry.date[:10]

        path = self.changelog_dir / f"{day}_{slug}.md"
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as handle:
            handle.write("\n" + entry.render())
        logger.info("Appended change-log entry '%s' to %s", entry.title, path)
        return path

    def entries(self, count: int = 5) -> list[dict]:
        """Most recent entries as ``{"title", "date", "file"}`` dicts, oldest first."""
        if not self.changelog_dir.is_dir():
            return []

        found: list[dict] = []
        for path in sorted(self.changelog_dir.glob("*.md")):
            text = path.read_text(encoding="utf-8")
            for match in _ENTRY_RE.finditer(text):
                found.append(
                    {
                        "title": match.group("title").strip(),
                        "date": match.group("date").strip(),
                        "file": path.name,
                    }
                )

        found.sort(key=lambda entry: entry["date"])
        count = max(int(count), 0)
        if count == 0:
            return []
        return found[-count:]
