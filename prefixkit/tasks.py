"""Task files with a status, a progress percentage and a subtask checklist."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from pathlib import Path
import re

import yaml

logger = logging.getLogger(__name__)

TASK_STATUSES = ("pending", "paused", "completed")

_CHECKLIST_RE = re.compile(r"^\s*-\s+\[(?P<mark>[ xX])\]\s+(?P<title>.+?)\s*$")


@dataclass
class SubTask:
    title: str
    done: bool = False

    def to_dict(self) -> dict:
        return {"title": self.title, "done": self.done}


@dataclass
class Task:
    """An ordered multi-step plan tracked across dispatches."""

    slug: str
    title: str
    status: str = "pending"
    subtasks: list[SubTask] = field(default_factory=list)
    created: str = ""
    updated: str = ""

    @property
    def progress(self) -> int:
        if not self.subtasks:
            return 100 if self.status == "completed" else 0
        done = sum(1 for sub in self.subtasks if sub.done)
        return int(round(done * 100 / len(self.subtasks)))

    @property
    def is_complete(self) -> bool:
        return bool(self.subtasks) and all(sub.done for sub in self.subtasks)

    @property
    def step_titles(self) -> list[str]:
        return [sub.title for sub in self.subtasks]

    @property
    def done_titles(self) -> list[str]:
        return [sub.title for sub in self.subtasks if sub.done]

    @property
    def remaining(self) -> list[str]:
        return [sub.title for sub in self.subtasks if not sub.done]

    def next_step(self) -> str | None:
        remaining = self.remaining
        return remaining[0] if remaining else None

    def mark_done(self, title: str) -> None:
        """Tick a subtask; the task pauses for review until the last one is done."""
        for sub in self.subtasks:
            if sub.title == title:
                sub.done = True
                break
        else:
            raise KeyError(f"No subtask '{title}' in task '{self.slug}'")
        self.status = "completed" if self.is_complete else "paused"

    def to_dict(self) -> dict:
        return {
            "slug": self.slug,
            "title": self.title,
            "status": self.status,
            "subtasks": [sub.to_dict() for sub in self.subtasks],
            "created": self.created,
            "updated": self.updated,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        return cls(
            slug=data["slug"],
            title=data.get("title", data["slug"]),
            status=data.get("status", "pending"),
            subtasks=[SubTask(**sub) for sub in data.get("subtasks") or []],
            created=data.get("created", ""),
            updated=data.get("updated", ""),
        )


class TaskStore:
    """Reads and writes ``<slug>.md`` task files under one directory."""

    def __init__(self, tasks_dir: str | Path):
        self.tasks_dir = Path(tasks_dir)

    def path_for(self, slug: str) -> Path:
        return self.tasks_dir / f"{slug}.md"

    def save(self, task: Task) -> Path:
        if task.status not in TASK_STATUSES:
            raise ValueError(f"Invalid task status '{task.status}'. Expected one of: {', '.join(TASK_STATUSES)}")

        now = datetime.now(timezone.utc).isoformat()
        if not task.created:
            task.created = now
        task.updated = now

        front_matter = {
            "title": task.title,
            "status": task.status,
            "progress": task.progress,
            "created": task.created,
            "updated": task.updated,
        }
        checklist = "\n".join(
            f"- [{'x' if sub.done else ' '}] {sub.title}" for sub in task.subtasks
        )
        text = (
            "---\n"
            + yaml.safe_dump(front_matter, sort_keys=False)
            + "---\n\n"
            + f"# {task.title}\n\n"
            + (checklist + "\n" if checklist else "")
        )

        path = self.path_for(task.slug)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        logger.debug("Saved task %s (%s, %d%%)", task.slug, task.status, task.progress)
        return path

    def load(self, slug: str) -> Task:
        path = self.path_for(slug)
        if not path.is_file():
            raise FileNotFoundError(f"No task file at {path}")
        return self._parse(slug, path.read_text(encoding="utf-8"))

    def list(self) -> list[Task]:
        if not self.tasks_dir.is_dir():
            return []
        tasks = []
        for path in sorted(self.tasks_dir.glob("*.md")):
            try:
                tasks.append(self._parse(path.stem, path.read_text(encoding="utf-8")))
            except (OSError, ValueError, yaml.YAMLError) as exc:
                logger.warning("Skipping unreadable task file %s: %s", path, exc)
        return tasks

    def set_status(self, slug: str, status: str) -> Task:
        task = self.load(slug)
        task.status = status
        self.save(task)
        return task

    def _parse(self, slug: str, text: str) -> Task:
        meta: dict = {}
        body = text
        if text.startswith("---\n"):
            end = text.find("\n---", 4)
            if end == -1:
                raise ValueError(f"Unterminated front matter in task '{slug}'")
            meta = yaml.safe_load(text[4:end]) or {}
            body = text[end + 4 :]

        subtasks = []
        for line in body.splitlines():
            match = _CHECKLIST_RE.match(line)
            if match:
                subtasks.append(
                    SubTask(title=match.group("title"), done=match.group("mark").lower() == "x")
                )

        return Task(
            slug=slug,
            title=str(meta.get("title", slug)),
            status=str(meta.get("status", "pending")),
            subtasks=subtasks,
            created=str(meta.get("created", "")),
            updated=str(meta.get("updated", "")),
        )
