"""Command handlers for the prefixkit CLI and TUI."""

import shutil
import sys
from pathlib import Path

from . import terminal_ui as ui


def _not_initialized(project_path: str, quiet: bool) -> dict:
    if not quiet:
        ui.print_error("No .prefixkit/ directory found.")
        ui.print_msg(f"Run 'prefixkit init {project_path}' first.")
        sys.exit(1)
    return {
        "status": "error",
        "message": "No .prefixkit/ directory found",
        "data": {"initialized": False},
    }


def _project_path(args) -> str:
    project_path = getattr(args, "path", ".") or "."
    return str(Path(project_path).resolve())


def cmd_init(args, *, quiet=None):
    """Create .prefixkit/ with config.yaml, changelog/ and tasks/."""
    from .config_manager import BACKENDS, ConfigManager, ProjectConfig

    project_path = _project_path(args)
    quiet = quiet if quiet is not None else getattr(args, "quiet", False)
    force = getattr(args, "force", False)

    cm = ConfigManager(project_path)
    if cm.is_initialized():
        if not force:
            if not quiet:
                ui.print_error(f".prefixkit/ already exists at {cm.prefixkit_dir}")
                ui.print_msg("Use --force to overwrite.")
                sys.exit(1)
            return {
                "status": "error",
                "message": f".prefixkit/ already exists at {cm.prefixkit_dir}",
                "data": {},
            }
        shutil.rmtree(cm.prefixkit_dir, ignore_errors=True)

    config = ProjectConfig()
    backend = getattr(args, "backend", None)
    if backend:
        if backend not in BACKENDS:
            raise ValueError(f"Unknown backend '{backend}'. Available: {', '.join(BACKENDS)}")
        config.backend = backend
    cm.initialize(config)
    config = cm.load_config()

    if not quiet:
        ui.print_msg(f"Initialized .prefixkit/ for {config.project_name} (backend: {config.backend})")
        ui.print_msg()
        ui.print_msg("Next steps:")
        ui.print_msg('  prefixkit run "[review]<file:Sources/App.swift> look for leaks"')
        ui.print_msg("  prefixkit prefixes        # List command prefixes")
        ui.print_msg("  prefixkit                 # Interactive shell")

    return {
        "status": "success",
        "message": f"Initialized .prefixkit/ for {config.project_name}",
        "data": {
            "project_name": config.project_name,
            "project_path": project_path,
            "backend": config.backend,
        },
    }


def cmd_run(args, *, quiet=False, notify=None):
    """Interpret one request line and dispatch it to the configured backend."""
    from .config_manager import ConfigManager
    from .dispatch import Interpreter
    from .llm_clients import make_backend
    from .results import Outcome

    project_path = _project_path(args)
    cm = ConfigManager(project_path)
    if not cm.is_initialized():
        return _not_initialized(project_path, quiet)

    line = (getattr(args, "line", "") or "").strip()
    if notify is None and not quiet:

        def notify(resume):
            ui.print_resume(resume.to_dict())

    interpreter = Interpreter.for_project(project_path, notify=notify)
    interpreter.backend = make_backend(interpreter.config, interpreter.tree)
    result = interpreter.handle(line)

    status = "success"
    if result.outcome in (Outcome.REJECTED, Outcome.INTERRUPTED):
        status = "error"

    data = dict(result.data)
    data.update(
        {
            "line": line,
            "outcome": result.outcome.value,
            "code": result.code,
            "options": [opt.to_dict() for opt in result.options],
            "steps": list(result.steps),
            "completed_steps": list(result.completed_steps),
            "files_modified": [change.to_dict() for change in result.files_modified],
            "session": interpreter.session.status.value,
        }
    )
    response = {"status": status, "message": result.summary, "data": data}

    if not quiet:
        ui.print_dispatch_result(response)
        if status == "error":
            sys.exit(1)
    return response


def cmd_parse(args, *, quiet=False):
    """Show how a request line parses, without dispatching it."""
    from .command import parse_command
    from .config_manager import ConfigManager
    from .dispatch import Interpreter
    from .errors import CommandError
    from .modifiers import ModifierPipeline

    project_path = _project_path(args)
    line = (getattr(args, "line", "") or "").strip()
    cm = ConfigManager(project_path)

    try:
        if cm.is_initialized():
            record = Interpreter.for_project(project_path).prepare(line)
            parsed = record.to_dict()
        else:
            command = parse_command(line)
            flags = ModifierPipeline().apply(command.spec, command.modifiers)
            parsed = {"command": command.to_dict(), "line": command.to_line(), "flags": flags.to_dict()}
    except CommandError as exc:
        if not quiet:
            ui.print_error(str(exc))
            sys.exit(1)
        return {"status": "error", "message": str(exc), "data": exc.to_dict()}

    if not quiet:
        ui.print_msg(f"Canonical: {parsed['line']}")
        for name, value in parsed["flags"].items():
            ui.print_msg(f"  {name + ':':<16} {value}")
        for target in parsed.get("targets", []):
            symbol = f" ({target['symbol']})" if target.get("symbol") else ""
            ui.print_msg(f"  target: {target['path']}:{target['start']}-{target['end']}{symbol}")
        if parsed.get("whole_repository"):
            ui.print_msg("  target: whole repository")
    return {"status": "success", "message": parsed["line"], "data": parsed}


def cmd_prefixes(args, *, quiet=False):
    """List the registered command prefixes."""
    from .prefixes import list_prefixes

    specs = list_prefixes()
    if not quiet:
        ui.print_prefix_table(specs)
    return {
        "status": "success",
        "message": f"{len(specs)} prefixes available",
        "data": {
            "prefixes": [spec.name for spec in specs],
            "help_text": "\n".join(f"  [{spec.name}]  {spec.description}" for spec in specs),
        },
    }


def cmd_status(args, *, quiet=False):
    """Show the session state, pending options and open tasks."""
    from .config_manager import ConfigManager
    from .tasks import TaskStore

    project_path = _project_path(args)
    cm = ConfigManager(project_path)
    if not cm.is_initialized():
        return _not_initialized(project_path, quiet)

    config = cm.load_config()
    session = cm.load_session()
    open_tasks = [task for task in TaskStore(cm.tasks_dir).list() if task.status != "completed"]
    last_line = session.last_command.to_line() if session.last_command else None

    if not quiet:
        ui.print_msg(f"{config.project_name}  (backend: {config.backend})")
        ui.print_msg()
        markers = {"idle": "[~]", "completed": "[OK]", "interrupted": "[!!]", "dispatched": "[!!]"}
        ui.print_status_line("Session ", markers[session.status.value], session.status.value)
        if last_line:
            ui.print_status_line("Last    ", "[~]", last_line)
        if session.interrupt_reason:
            ui.print_status_line("Reason  ", "[!!]", session.interrupt_reason)
        if session.remaining_steps:
            ui.print_status_line("Steps   ", "[!!]", f"{len(session.remaining_steps)} remaining")
        for option in session.pending_options:
            ui.print_msg(f"    {option.key}) {option.description}")
        if open_tasks:
            ui.print_status_line("Tasks   ", "[!!]", f"{len(open_tasks)} open")
        else:
            ui.print_status_line("Tasks   ", "[OK]", "none open")

    return {
        "status": "success",
        "message": f"Session {session.status.value}",
        "data": {
            "initialized": True,
            "project_name": config.project_name,
            "backend": config.backend,
            "session": session.status.value,
            "last_command": last_line,
            "interrupt_reason": session.interrupt_reason,
            "pending_options": [opt.to_dict() for opt in session.pending_options],
            "remaining_steps": session.remaining_steps,
            "open_tasks": [task.slug for task in open_tasks],
        },
    }


def cmd_reset(args, *, quiet=False):
    """Drop the saved session so the next command starts from Idle."""
    from .config_manager import ConfigManager

    project_path = _project_path(args)
    cm = ConfigManager(project_path)
    if not cm.is_initialized():
        return _not_initialized(project_path, quiet)

    cm.clear_session()
    if not quiet:
        ui.print_msg("Session reset.")
    return {"status": "success", "message": "Session reset", "data": {"session": "idle"}}


def cmd_log(args, *, quiet=False):
    """Show recent change-log entries."""
    from .changelog import ChangeLogStore
    from .config_manager import ConfigManager

    project_path = _project_path(args)
    cm = ConfigManager(project_path)
    if not cm.is_initialized():
        return _not_initialized(project_path, quiet)

    count = getattr(args, "count", 5)
    entries = ChangeLogStore(cm.changelog_dir).entries(count)
    if not entries:
        if not quiet:
            ui.print_msg("No change-log entries yet.")
            ui.print_msg("Add :log to a command, e.g. [fix:log] ...")
        return {
            "status": "info",
            "message": "No change-log entries yet",
            "data": {"entries": []},
        }

    if not quiet:
        for entry in entries:
            ui.print_msg(f"  {entry['date']}  {entry['title']}  ({entry['file']})")
    return {
        "status": "success",
        "message": f"{len(entries)} change-log entries",
        "data": {"entries": entries},
    }


def cmd_tasks(args, *, quiet=False):
    """List multi-step task files and their progress."""
    from .config_manager import ConfigManager
    from .tasks import TaskStore

    project_path = _project_path(args)
    cm = ConfigManager(project_path)
    if not cm.is_initialized():
        return _not_initialized(project_path, quiet)

    tasks = TaskStore(cm.tasks_dir).list()
    if not tasks:
        if not quiet:
            ui.print_msg("No tasks yet.")
        return {"status": "info", "message": "No tasks yet", "data": {"tasks": []}}

    if not quiet:
        for task in tasks:
            ui.print_msg(f"  {task.slug}  {task.status:<9} {task.progress:>3}%  {task.title}")
    return {
        "status": "success",
        "message": f"{len(tasks)} tasks",
        "data": {
            "tasks": [
                {
                    "slug": task.slug,
                    "title": task.title,
                    "status": task.status,
                    "progress": task.progress,
                    "next_step": task.next_step(),
                }
                for task in tasks
            ]
        },
    }
