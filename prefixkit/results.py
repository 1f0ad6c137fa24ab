"""Dispatch outcomes reported back by a backend."""

from dataclasses import dataclass, field
from enum import Enum


class Outcome(str, Enum):
    APPLIED = "applied"
    DRY_RUN_REPORT = "dry_run_report"
    REJECTED = "rejected"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class Option:
    """One alternative enumerated by a dry-run result, e.g. ``A) Use a weak ref``."""

    key: str
    description: str

    def to_dict(self) -> dict:
        return {"key": self.key, "description": self.description}


@dataclass(frozen=True)
class FileChange:
    path: str
    start: int | None = None
    end: int | None = None

    @property
    def range_text(self) -> str:
        if self.start is None:
            return "whole file"
        if self.end is None:
            return f"lines {self.start}-EOF"
        return f"lines {self.start}-{self.end}"

    def to_dict(self) -> dict:
        return {"path": self.path, "start": self.start, "end": self.end}


@dataclass
class DispatchResult:
    outcome: Outcome
    summary: str = ""
    code: str | None = None
    title: str = ""
    options: list[Option] = field(default_factory=list)
    steps: list[str] = field(default_factory=list)
    completed_steps: list[str] = field(default_factory=list)
    files_modified: list[FileChange] = field(default_factory=list)
    lines_changed: int = 0
    reasoning: str = ""
    changes: list[str] = field(default_factory=list)
    notes: str = ""
    data: dict = field(default_factory=dict)

    @classmethod
    def rejected(cls, error) -> "DispatchResult":
        """Wrap a CommandError; Rejected always carries its taxonomy code."""
        return cls(
            outcome=Outcome.REJECTED,
            summary=str(error),
            code=getattr(error, "code", "COMMAND_ERROR"),
            data=error.to_dict() if hasattr(error, "to_dict") else {},
        )

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "summary": self.summary,
            "code": self.code,
            "title": self.title,
            "options": [opt.to_dict() for opt in self.options],
            "steps": list(self.steps),
            "completed_steps": list(self.completed_steps),
            "files_modified": [fc.to_dict() for fc in self.files_modified],
            "lines_changed": self.lines_changed,
            "reasoning": self.reasoning,
            "changes": list(self.changes),
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DispatchResult":
        return cls(
            outcome=Outcome(data["outcome"]),
            summary=data.get("summary", ""),
            code=data.get("code"),
            title=data.get("title", ""),
            options=[Option(**opt) for opt in data.get("options") or []],
            steps=list(data.get("steps") or []),
            completed_steps=list(data.get("completed_steps") or []),
            files_modified=[FileChange(**fc) for fc in data.get("files_modified") or []],
            lines_changed=data.get("lines_changed", 0),
            reasoning=data.get("reasoning", ""),
            changes=list(data.get("changes") or []),
            notes=data.get("notes", ""),
        )


class DispatchInterrupted(Exception):
    """Raised by a backend that stopped part-way through its steps."""

    def __init__(
        self,
        message: str = "Dispatch interrupted",
        steps: list[str] | None = None,
        completed_steps: list[str] | None = None,
    ):
        super().__init__(message)
        self.steps = list(steps or [])
        self.completed_steps = list(completed_steps or [])
