"""Session state: the last dispatched command and how it ended."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import logging

from .command import Command
from .errors import InvalidSessionState
from .results import DispatchResult, Option
from .tasks import Task

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    IDLE = "idle"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"


@dataclass
class SessionState:
    """Idle -> Dispatched -> {Completed, Interrupted}.

    ``snapshot`` holds the source-tree hashes captured when the last command
    was dispatched, so resuming after an interruption can detect manual edits.
    """

    status: SessionStatus = SessionStatus.IDLE
    last_command: Command | None = None
    last_result: DispatchResult | None = None
    pending_options: list[Option] = field(default_factory=list)
    snapshot: dict[str, str] = field(default_factory=dict)
    plan: Task | None = None
    steps: list[str] = field(default_factory=list)
    completed_steps: list[str] = field(default_factory=list)
    plan_source: Command | None = None
    selected_option: Option | None = None
    instructions: str = ""
    dispatched_at: str = ""
    interrupt_reason: str = ""

    @property
    def remaining_steps(self) -> list[str]:
        done = set(self.completed_steps)
        return [step for step in self.steps if step not in done]

    def begin(
        self,
        command: Command,
        snapshot: dict[str, str],
        plan: Task | None = None,
        steps: list[str] | None = None,
        completed_steps: list[str] | None = None,
        plan_source: Command | None = None,
        selected_option: Option | None = None,
        instructions: str = "",
    ) -> None:
        """Record a new dispatch. The [doit] context travels with it so [again] can resume it."""
        if self.status == SessionStatus.DISPATCHED:
            raise InvalidSessionState(
                "A dispatch is already in flight; it must complete or be interrupted first."
            )
        self.status = SessionStatus.DISPATCHED
        self.last_command = command
        self.last_result = None
        self.pending_options = []
        self.snapshot = dict(snapshot)
        self.plan = plan
        self.steps = list(steps or [])
        self.completed_steps = list(completed_steps or [])
        self.plan_source = plan_source
        self.selected_option = selected_option
        self.instructions = instructions
        self.dispatched_at = datetime.now(timezone.utc).isoformat()
        self.interrupt_reason = ""
        logger.debug("Session dispatched %s", command.to_line())

    def complete(self, result: DispatchResult) -> None:
        self._require_dispatched("complete")
        self.status = SessionStatus.COMPLETED
        self.last_result = result
        self.pending_options = list(result.options)
        if result.steps:
            self.steps = _merge(self.steps, result.steps)
        if result.completed_steps:
            self.completed_steps = _merge(self.completed_steps, result.completed_steps)
        else:
            # No step report: a completed dispatch finished everything it was given.
            self.completed_steps = list(self.steps)

    def interrupt(
        self,
        reason: str,
        steps: list[str] | None = None,
        completed_steps: list[str] | None = None,
    ) -> None:
        self._require_dispatched("interrupt")
        self.status = SessionStatus.INTERRUPTED
        self.interrupt_reason = reason
        if steps:
            self.steps = _merge(self.steps, steps)
        if completed_steps:
            self.completed_steps = _merge(self.completed_steps, completed_steps)
        logger.info("Session interrupted: %s", reason)

    def recover(self) -> None:
        """A session persisted mid-dispatch resumes as Interrupted, never discarded."""
        if self.status == SessionStatus.DISPATCHED:
            self.status = SessionStatus.INTERRUPTED
            self.interrupt_reason = self.interrupt_reason or "Session ended before the dispatch finished"

    def reset(self) -> None:
        self.status = SessionStatus.IDLE
        self.last_command = None
        self.last_result = None
        self.pending_options = []
        self.snapshot = {}
        self.plan = None
        self.steps = []
        self.completed_steps = []
        self.plan_source = None
        self.selected_option = None
        self.instructions = ""
        self.dispatched_at = ""
        self.interrupt_reason = ""

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "last_command": None if self.last_command is None else self.last_command.to_dict(),
            "last_result": None if self.last_result is None else self.last_result.to_dict(),
            "pending_options": [opt.to_dict() for opt in self.pending_options],
            "snapshot": dict(self.snapshot),
            "plan": None if self.plan is None else self.plan.to_dict(),
            "steps": list(self.steps),
            "completed_steps": list(self.completed_steps),
            "plan_source": None if self.plan_source is None else self.plan_source.to_dict(),
            "selected_option": None if self.selected_option is None else self.selected_option.to_dict(),
            "instructions": self.instructions,
            "dispatched_at": self.dispatched_at,
            "interrupt_reason": self.interrupt_reason,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionState":
        command = data.get("last_command")
        result = data.get("last_result")
        plan = data.get("plan")
        plan_source = data.get("plan_source")
        selected = data.get("selected_option")
        state = cls(
            status=SessionStatus(data.get("status", SessionStatus.IDLE.value)),
            last_command=None if command is None else Command.from_dict(command),
            last_result=None if result is None else DispatchResult.from_dict(result),
            pending_options=[Option(**opt) for opt in data.get("pending_options") or []],
            snapshot=dict(data.get("snapshot") or {}),
            plan=None if plan is None else Task.from_dict(plan),
            steps=list(data.get("steps") or []),
            completed_steps=list(data.get("completed_steps") or []),
            plan_source=None if plan_source is None else Command.from_dict(plan_source),
            selected_option=None if selected is None else Option(**selected),
            instructions=data.get("instructions", ""),
            dispatched_at=data.get("dispatched_at", ""),
            interrupt_reason=data.get("interrupt_reason", ""),
        )
        state.recover()
        return state

    def _require_dispatched(self, action: str) -> None:
        if self.status != SessionStatus.DISPATCHED:
            raise InvalidSessionState(
                f"Cannot {action}: session is {self.status.value}, not dispatched."
            )


def _merge(existing: list[str], extra: list[str]) -> list[str]:
    merged = list(existing)
    for item in extra:
        if item not in merged:
            merged.append(item)
    return merged
