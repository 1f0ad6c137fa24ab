"""Turn request lines into dispatch records and drive them through a backend.

raw line -> tokenize -> prefix registry -> scope resolver -> modifier
pipeline -> DispatchRecord -> backend -> session updated with the outcome.
"""

from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Callable

from .changelog import ChangeLogEntry, ChangeLogStore
from .command import Command, parse_command
from .config_manager import ConfigManager, ProjectConfig
from .errors import AmbiguousChoice, CommandError, InvalidSessionState, MalformedCommand
from .modifiers import DispatchFlags, Modifier, ModifierPipeline, has_conflict_markers
from .plan import build_skeleton_plan, estimate_lines, slugify
from .prefixes import Prefix, PrefixSpec, list_prefixes
from .results import DispatchInterrupted, DispatchResult, Option, Outcome
from .scope import ResolvedScope, Scope, ScopeResolver
from .session import SessionState, SessionStatus
from .source_tree import diff_snapshots
from .tasks import Task, TaskStore

logger = logging.getLogger(__name__)

AGAIN_MODES = ("continue", "retry")


@dataclass
class ResumeInfo:
    """What `[again]` found when picking an earlier dispatch back up."""

    mode: str
    delta: dict[str, list[str]] = field(default_factory=dict)
    remaining_steps: list[str] = field(default_factory=list)
    completed_steps: list[str] = field(default_factory=list)

    @property
    def has_manual_changes(self) -> bool:
        return any(self.delta.get(key) for key in ("modified", "added", "deleted"))

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "delta": self.delta,
            "remaining_steps": list(self.remaining_steps),
            "completed_steps": list(self.completed_steps),
        }


@dataclass
class DispatchRecord:
    """Everything the backend needs to carry out one command."""

    command: Command
    spec: PrefixSpec
    flags: DispatchFlags
    resolved: ResolvedScope
    estimated_lines: int = 0
    plan: Task | None = None
    current_step: str | None = None
    steps: list[str] = field(default_factory=list)
    completed_steps: list[str] = field(default_factory=list)
    plan_source: Command | None = None
    selected_option: Option | None = None
    instructions: str = ""
    resume: ResumeInfo | None = None
    review_paths: list[str] = field(default_factory=list)
    unresolved_paths: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "command": self.command.to_dict(),
            "line": self.command.to_line(),
            "flags": self.flags.to_dict(),
            "whole_repository": self.resolved.whole_repository,
            "targets": [target.to_dict() for target in self.resolved.targets],
            "estimated_lines": self.estimated_lines,
            "plan": None if self.plan is None else self.plan.to_dict(),
            "current_step": self.current_step,
            "plan_source": None if self.plan_source is None else self.plan_source.to_line(),
            "selected_option": None if self.selected_option is None else self.selected_option.to_dict(),
            "instructions": self.instructions,
            "resume": None if self.resume is None else self.resume.to_dict(),
            "review_paths": list(self.review_paths),
            "unresolved_paths": list(self.unresolved_paths),
        }


def select_option(options: list[Option], selector: str) -> Option | None:
    """Pick one option by letter or by a description fragment."""
    if not options:
        return None

    selector = (selector or "").strip()
    if not selector:
        if len(options) == 1:
            return options[0]
        keys = ", ".join(opt.key for opt in options)
        raise AmbiguousChoice(
            f"The previous result offered {len(options)} options ({keys}). "
            f"Pick one, e.g. [doit] {options[0].key}",
            options,
        )

    key = selector.rstrip(").:").strip().lower()
    by_key = [opt for opt in options if opt.key.lower() == key]
    if len(by_key) == 1:
        return by_key[0]

    by_description = [opt for opt in options if selector.lower() in opt.description.lower()]
    if len(by_description) == 1:
        return by_description[0]

    raise AmbiguousChoice(f"'{selector}' does not select exactly one option.", options)


class Interpreter:
    """Deterministic front end between request lines and an LLM backend.

    Parse-level errors come back as Rejected results and never touch the
    session. Backend failures leave the session Interrupted so `[again]` is
    always well defined afterwards.
    """

    def __init__(
        self,
        tree,
        backend=None,
        session: SessionState | None = None,
        config: ProjectConfig | None = None,
        config_manager: ConfigManager | None = None,
        changelog: ChangeLogStore | None = None,
        tasks: TaskStore | None = None,
        notify: Callable[[ResumeInfo], None] | None = None,
    ):
        self.tree = tree
        self.backend = backend
        self.session = session or SessionState()
        self.config = config or ProjectConfig()
        self.config_manager = config_manager
        self.changelog = changelog
        self.tasks = tasks
        self.notify = notify or _log_resume
        self.resolver = ScopeResolver(tree)
        self.pipeline = ModifierPipeline()

    @classmethod
    def for_project(cls, project_path: str, backend=None, notify=None) -> "Interpreter":
        """Wire an interpreter to a project's .prefixkit/ directory."""
        from .source_tree import LocalSourceTree

        cm = ConfigManager(project_path)
        config = cm.load_config()
        tree = LocalSourceTree(
            str(cm.project_path),
            extensions=config.source_extensions,
            ignore_paths=config.ignore_paths,
        )
        return cls(
            tree,
            backend=backend,
            session=cm.load_session(),
            config=config,
            config_manager=cm,
            changelog=ChangeLogStore(cm.changelog_dir),
            tasks=TaskStore(cm.tasks_dir),
            notify=notify,
        )

    def prepare(self, line: str) -> DispatchRecord:
        """Parse and validate a line into a DispatchRecord without mutating state."""
        command = parse_command(line)
        self.pipeline.apply(command.spec, command.modifiers)

        if command.prefix is Prefix.AGAIN:
            return self._prepare_again(command)
        if command.prefix is Prefix.DOIT:
            return self._prepare_doit(command)
        if command.prefix is Prefix.CHECK:
            return self._prepare_check(command)
        return self._build_record(command, allow_plan=True)

    def handle(self, line: str) -> DispatchResult:
        try:
            record = self.prepare(line)
        except CommandError as exc:
            logger.info("Rejected %r: %s", line, exc)
            return DispatchResult.rejected(exc)

        if record.command.prefix is Prefix.LIST_CMD:
            return self._list_commands()
        return self.dispatch(record)

    def dispatch(self, record: DispatchRecord) -> DispatchResult:
        if self.backend is None:
            raise RuntimeError("No backend configured for dispatch")

        if record.resume is not None:
            self.notify(record.resume)

        if record.plan is not None and self.tasks is not None:
            self.tasks.save(record.plan)

        self.session.begin(
            record.command,
            snapshot=self.tree.snapshot(),
            plan=record.plan,
            steps=record.steps,
            completed_steps=record.completed_steps,
            plan_source=record.plan_source,
            selected_option=record.selected_option,
            instructions=record.instructions,
        )
        self._persist()

        try:
            result = self.backend.execute(record)
        except DispatchInterrupted as exc:
            return self._interrupted(str(exc), exc.steps, exc.completed_steps)
        except KeyboardInterrupt:
            return self._interrupted("Interrupted by user")
        except Exception as exc:
            logger.warning("Backend failed on %s: %s", record.command.to_line(), exc)
            return self._interrupted(str(exc), code="BACKEND_ERROR")

        if result.outcome == Outcome.INTERRUPTED:
            return self._interrupted(
                result.summary or "Backend reported an interruption",
                result.steps,
                result.completed_steps,
            )

        try:
            result = self._finalize(record, result)
        except OSError as exc:
            logger.warning("Could not record outcome of %s: %s", record.command.to_line(), exc)
            return self._interrupted(f"Could not record dispatch outcome: {exc}", code="BACKEND_ERROR")

        self.session.complete(result)
        self._persist()
        return result

    def reset(self) -> None:
        self.session.reset()
        if self.config_manager is not None:
            self.config_manager.clear_session()

    def _build_record(
        self,
        command: Command,
        allow_plan: bool = False,
        plan: Task | None = None,
    ) -> DispatchRecord:
        spec = command.spec
        flags = self.pipeline.apply(spec, command.modifiers)
        resolved = self.resolver.resolve(command.scope)
        estimated = estimate_lines(resolved.targets)

        if (
            plan is None
            and allow_plan
            and flags.write_access
            and spec.name in self.config.skeleton_prefixes
            and estimated > self.config.line_budget
        ):
            plan = build_skeleton_plan(command, resolved.targets, self.config.line_budget)
            logger.info(
                "%s spans %d lines (budget %d); planning %d passes",
                command.to_line(),
                estimated,
                self.config.line_budget,
                len(plan.subtasks),
            )

        record = DispatchRecord(
            command=command,
            spec=spec,
            flags=flags,
            resolved=resolved,
            estimated_lines=estimated,
            plan=plan,
        )
        if plan is not None:
            record.current_step = plan.next_step()
            record.steps = plan.step_titles
            record.completed_steps = plan.done_titles
        return record

    def _prepare_again(self, command: Command) -> DispatchRecord:
        session = self.session
        last = session.last_command
        if last is None or session.status == SessionStatus.IDLE:
            raise InvalidSessionState("[again] needs an earlier dispatch in this session.")
        if session.status == SessionStatus.DISPATCHED:
            raise InvalidSessionState("[again] cannot run while a dispatch is in flight.")
        if command.scope is not None or command.modifiers:
            raise MalformedCommand(
                "[again] takes no scope or modifiers; it reuses those of the command it resumes."
            )

        mode = command.body.strip().lower() or self.config.again_default
        if mode not in AGAIN_MODES:
            raise MalformedCommand("[again] accepts 'continue' or 'retry'.")

        plan = _copy_task(session.plan)

        if session.status == SessionStatus.INTERRUPTED:
            delta = diff_snapshots(session.snapshot, self.tree.snapshot())
            if mode == "retry" and plan is not None:
                for sub in plan.subtasks:
                    sub.done = False
                plan.status = "pending"
            record = self._build_record(last, plan=plan)
            if mode == "continue":
                record.steps = list(session.steps)
                record.completed_steps = list(session.completed_steps)
                remaining = session.remaining_steps
            else:
                record.steps = list(session.steps)
                record.completed_steps = []
                remaining = list(session.steps)
            record.resume = ResumeInfo(mode, delta, remaining, list(record.completed_steps))
        elif plan is not None and not plan.is_complete and mode == "continue":
            record = self._build_record(last, plan=plan)
            record.resume = ResumeInfo(
                "continue",
                diff_snapshots(session.snapshot, self.tree.snapshot()),
                plan.remaining,
                plan.done_titles,
            )
        else:
            record = self._build_record(last, allow_plan=True)

        record.plan_source = session.plan_source
        record.selected_option = session.selected_option
        record.instructions = session.instructions
        return record

    def _prepare_doit(self, command: Command) -> DispatchRecord:
        session = self.session
        last = session.last_command
        if session.status != SessionStatus.COMPLETED or last is None:
            raise InvalidSessionState("[doit] needs a completed [read] or [think] dispatch first.")
        if not last.is_dry_run:
            raise InvalidSessionState(
                f"[doit] follows a dry run; the last command was {last.to_line()}."
            )

        selected = select_option(session.pending_options, command.body)
        effective = Command(
            prefix=Prefix.DOIT,
            modifiers=(last.modifiers - {Modifier.READ}) | command.modifiers,
            scope=command.scope if command.scope is not None else last.scope,
            body=last.body,
        )
        record = self._build_record(effective)
        record.plan_source = last
        record.selected_option = selected
        if selected is None:
            record.instructions = command.body.strip()
        return record

    def _prepare_check(self, command: Command) -> DispatchRecord:
        session = self.session
        last = session.last_command
        if session.status != SessionStatus.COMPLETED or last is None:
            raise InvalidSessionState("[check] needs a completed :keep dispatch first.")
        if Modifier.KEEP not in last.modifiers:
            raise InvalidSessionState("[check] is only valid when the last command used :keep.")

        paths = []
        if session.last_result is not None:
            paths = sorted({change.path for change in session.last_result.files_modified})

        scope = command.scope
        if scope is None:
            scope = Scope(files={path: None for path in paths}) if paths else last.scope

        effective = Command(
            prefix=Prefix.CHECK,
            modifiers=command.modifiers,
            scope=scope,
            body=command.body or "Review the resolved conflict blocks",
        )
        record = self._build_record(effective)
        record.plan_source = last
        record.review_paths = paths or record.resolved.paths
        record.unresolved_paths = [
            path
            for path in record.review_paths
            if self.tree.exists(path) and has_conflict_markers("\n".join(self.tree.read_lines(path)))
        ]
        return record

    def _finalize(self, record: DispatchRecord, result: DispatchResult) -> DispatchResult:
        if record.flags.analysis_only and result.outcome == Outcome.APPLIED:
            logger.warning("Backend reported edits for an analysis-only dispatch; treating as report")
            result.outcome = Outcome.DRY_RUN_REPORT

        if record.plan is not None and record.current_step is not None:
            record.plan.mark_done(record.current_step)
            result.completed_steps = record.plan.done_titles
            result.steps = record.plan.step_titles
            if self.tasks is not None:
                self.tasks.save(record.plan)
            self.session.plan = record.plan
            result.data["task"] = {
                "slug": record.plan.slug,
                "status": record.plan.status,
                "progress": record.plan.progress,
                "next_step": record.plan.next_step(),
            }

        if result.lines_changed > self.config.line_budget:
            logger.warning(
                "%s changed %d lines, over the %d-line budget",
                record.command.to_line(),
                result.lines_changed,
                self.config.line_budget,
            )
            result.data["over_budget"] = True

        if (
            record.flags.change_log
            and result.outcome == Outcome.APPLIED
            and not result.data.get("handed_off")
            and self.changelog is not None
        ):
            entry = ChangeLogEntry(
                title=result.title or record.command.body or record.command.to_line(),
                date=datetime.now().strftime("%Y-%m-%d %H:%M"),
                files_modified=list(result.files_modified),
                reasoning=result.reasoning,
                changes=list(result.changes),
                notes=result.notes,
            )
            slug = record.plan.slug if record.plan is not None else slugify(entry.title, "change")
            result.data["changelog"] = str(self.changelog.append(entry, slug))

        if record.resume is not None:
            result.data["resume"] = record.resume.to_dict()
        return result

    def _interrupted(
        self,
        reason: str,
        steps: list[str] | None = None,
        completed_steps: list[str] | None = None,
        code: str | None = None,
    ) -> DispatchResult:
        self.session.interrupt(reason, steps=steps, completed_steps=completed_steps)
        self._persist()
        return DispatchResult(
            outcome=Outcome.INTERRUPTED,
            summary=reason,
            code=code,
            steps=list(self.session.steps),
            completed_steps=list(self.session.completed_steps),
        )

    def _list_commands(self) -> DispatchResult:
        lines = [f"[{spec.name}] {spec.description} ({spec.access})" for spec in list_prefixes()]
        return DispatchResult(
            outcome=Outcome.DRY_RUN_REPORT,
            summary="\n".join(lines),
            data={"prefixes": [spec.name for spec in list_prefixes()]},
        )

    def _persist(self) -> None:
        if self.config_manager is not None:
            self.config_manager.save_session(self.session)


def _copy_task(task: Task | None) -> Task | None:
    return None if task is None else Task.from_dict(task.to_dict())


def _log_resume(resume: ResumeInfo) -> None:
    if resume.has_manual_changes:
        logger.info("Manual changes since dispatch: %s", resume.delta)
    logger.info(
        "Resuming (%s): %d step(s) remaining", resume.mode, len(resume.remaining_steps)
    )
