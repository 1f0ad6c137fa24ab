"""Tests for CLI command handlers."""

import argparse
from pathlib import Path

import pytest

from prefixkit.config_manager import ConfigManager
from prefixkit.tasks import SubTask, Task, TaskStore


def _init_args(path: Path, **overrides) -> argparse.Namespace:
    values = {"path": str(path), "force": False, "backend": None, "quiet": True}
    values.update(overrides)
    return argparse.Namespace(**values)


@pytest.fixture
def use_backend(monkeypatch, backend):
    """Route cmd_run through the fake backend."""
    monkeypatch.setattr("prefixkit.llm_clients.make_backend", lambda config, tree=None: backend)
    return backend


def _run(path: Path, line: str, **kwargs) -> dict:
    from prefixkit.cli_commands import cmd_run

    return cmd_run(argparse.Namespace(path=str(path), line=line), quiet=True, **kwargs)


def test_cmd_init_creates_prefixkit_dir(sample_project: Path) -> None:
    from prefixkit.cli_commands import cmd_init

    result = cmd_init(_init_args(sample_project))

    assert result["status"] == "success"
    assert result["data"]["project_name"] == "SampleApp"
    assert result["data"]["backend"] == "clipboard"
    assert (sample_project / ".prefixkit" / "config.yaml").is_file()


def test_cmd_init_fails_if_already_initialized(initialized_project: Path) -> None:
    from prefixkit.cli_commands import cmd_init

    result = cmd_init(_init_args(initialized_project))
    assert result["status"] == "error"
    assert "already exists" in result["message"]

    with pytest.raises(SystemExit):
        cmd_init(_init_args(initialized_project, quiet=False))


def test_cmd_init_force_overwrites_with_backend(initialized_project: Path) -> None:
    from prefixkit.cli_commands import cmd_init

    cm = ConfigManager(str(initialized_project))
    (cm.changelog_dir / "old.md").write_text("## Old\n", encoding="utf-8")

    result = cmd_init(_init_args(initialized_project, force=True, backend="anthropic"))

    assert result["status"] == "success"
    assert cm.load_config().backend == "anthropic"
    assert not (cm.changelog_dir / "old.md").exists()


def test_cmd_init_rejects_unknown_backend(sample_project: Path) -> None:
    from prefixkit.cli_commands import cmd_init

    with pytest.raises(ValueError, match="Unknown backend"):
        cmd_init(_init_args(sample_project, backend="gemini"))


def test_cmd_run_requires_init(sample_project: Path) -> None:
    result = _run(sample_project, "[review] leaks")
    assert result["status"] == "error"
    assert result["data"]["initialized"] is False


def test_cmd_run_dispatches(initialized_project: Path, use_backend) -> None:
    result = _run(initialized_project, "[fix]<file:ConnectionManager.swift:6-11> retry loop")

    assert result["status"] == "success"
    assert result["data"]["outcome"] == "applied"
    assert result["data"]["session"] == "completed"
    assert use_backend.records[0].resolved.targets[0].path == "Sources/Net/ConnectionManager.swift"
    assert ConfigManager(str(initialized_project)).load_session().status.value == "completed"


def test_cmd_run_rejection_is_error(initialized_project: Path, use_backend) -> None:
    result = _run(initialized_project, "[frobnicate] everything")

    assert result["status"] == "error"
    assert result["data"]["outcome"] == "rejected"
    assert result["data"]["code"] == "UNKNOWN_PREFIX"
    assert result["data"]["session"] == "idle"
    assert use_backend.records == []


def test_cmd_run_backend_failure_interrupts(initialized_project: Path, use_backend) -> None:
    use_backend.error = RuntimeError("connection reset")

    result = _run(initialized_project, "[review] leaks")

    assert result["status"] == "error"
    assert result["data"]["code"] == "BACKEND_ERROR"
    assert result["message"] == "connection reset"
    assert result["data"]["session"] == "interrupted"


def test_cmd_run_error_exits_when_not_quiet(initialized_project: Path, use_backend) -> None:
    from prefixkit.cli_commands import cmd_run

    args = argparse.Namespace(path=str(initialized_project), line="[doit]")
    with pytest.raises(SystemExit) as exc_info:
        cmd_run(args)
    assert exc_info.value.code == 1


def test_cmd_run_notifies_resume(initialized_project: Path, use_backend) -> None:
    use_backend.error = RuntimeError("timeout")
    _run(initialized_project, "[fix]<class:NetworkClient> flaky")

    seen = []
    result = _run(initialized_project, "[again]", notify=seen.append)

    assert result["data"]["outcome"] == "applied"
    assert seen[0].mode == "continue"


def test_cmd_run_with_clipboard_backend(initialized_project: Path, monkeypatch) -> None:
    copied = []
    monkeypatch.setattr("pyperclip.copy", copied.append)

    result = _run(initialized_project, "[review]<class:AppDelegate>")

    assert result["status"] == "success"
    assert result["data"]["outcome"] == "dry_run_report"
    assert result["data"]["copied"] is True
    assert copied == [result["data"]["prompt"]]


def test_cmd_parse_without_project(sample_project: Path) -> None:
    from prefixkit.cli_commands import cmd_parse

    args = argparse.Namespace(path=str(sample_project), line="[read:fix]<file:Missing.swift> x")
    result = cmd_parse(args, quiet=True)

    assert result["status"] == "success"
    assert result["data"]["line"] == "[fix:read]<file:Missing.swift> x"
    assert result["data"]["flags"]["analysis_only"] is True


def test_cmd_parse_resolves_scope(initialized_project: Path) -> None:
    from prefixkit.cli_commands import cmd_parse

    args = argparse.Namespace(path=str(initialized_project), line="[imp]<func:retry> tidy")
    result = cmd_parse(args, quiet=True)

    assert result["data"]["targets"] == [
        {"path": "Sources/Net/ConnectionManager.swift", "start": 13, "end": 15, "symbol": "retry"}
    ]


def test_cmd_parse_reports_error_code(sample_project: Path) -> None:
    from prefixkit.cli_commands import cmd_parse

    args = argparse.Namespace(path=str(sample_project), line="[fix<file:a>")
    result = cmd_parse(args, quiet=True)

    assert result["status"] == "error"
    assert result["data"]["code"] == "MALFORMED_COMMAND"


def test_cmd_prefixes() -> None:
    from prefixkit.cli_commands import cmd_prefixes

    result = cmd_prefixes(argparse.Namespace(), quiet=True)

    assert "list-cmd" in result["data"]["prefixes"]
    assert "[again]" in result["data"]["help_text"]


def test_cmd_status_after_run(initialized_project: Path, use_backend) -> None:
    from prefixkit.cli_commands import cmd_status

    _run(initialized_project, "[fix]<class:NetworkClient> flaky")
    result = cmd_status(argparse.Namespace(path=str(initialized_project)), quiet=True)

    assert result["data"]["session"] == "completed"
    assert result["data"]["last_command"] == "[fix]<class:NetworkClient> flaky"
    assert result["data"]["project_name"] == "SampleApp"
    assert result["data"]["open_tasks"] == []


def test_cmd_reset_clears_session(initialized_project: Path, use_backend) -> None:
    from prefixkit.cli_commands import cmd_reset

    use_backend.error = RuntimeError("timeout")
    _run(initialized_project, "[review] leaks")

    result = cmd_reset(argparse.Namespace(path=str(initialized_project)), quiet=True)

    assert result["data"]["session"] == "idle"
    assert ConfigManager(str(initialized_project)).load_session().status.value == "idle"


def test_cmd_log_empty_then_recorded(initialized_project: Path, use_backend) -> None:
    from prefixkit.cli_commands import cmd_log

    args = argparse.Namespace(path=str(initialized_project), action="show", count=5)
    assert cmd_log(args, quiet=True)["status"] == "info"

    _run(initialized_project, "[fix:log]<class:NetworkClient> flaky requests")
    result = cmd_log(args, quiet=True)

    assert result["status"] == "success"
    assert [entry["title"] for entry in result["data"]["entries"]] == ["flaky requests"]


def test_cmd_log_count_zero_shows_nothing(initialized_project: Path, use_backend) -> None:
    from prefixkit.cli_commands import cmd_log

    _run(initialized_project, "[fix:log]<class:NetworkClient> flaky requests")
    args = argparse.Namespace(path=str(initialized_project), action="show", count=0)

    result = cmd_log(args, quiet=True)

    assert result["status"] == "info"
    assert result["data"]["entries"] == []


def test_cmd_tasks_lists_progress(initialized_project: Path) -> None:
    from prefixkit.cli_commands import cmd_tasks

    args = argparse.Namespace(path=str(initialized_project))
    assert cmd_tasks(args, quiet=True)["status"] == "info"

    store = TaskStore(ConfigManager(str(initialized_project)).tasks_dir)
    store.save(
        Task(
            slug="settings-screen",
            title="Settings screen",
            subtasks=[SubTask("Skeleton", done=True), SubTask("Fill view")],
        )
    )

    result = cmd_tasks(args, quiet=True)

    assert result["data"]["tasks"] == [
        {
            "slug": "settings-screen",
            "title": "Settings screen",
            "status": "pending",
            "progress": 50,
            "next_step": "Fill view",
        }
    ]


def test_handlers_require_init(sample_project: Path) -> None:
    from prefixkit.cli_commands import cmd_log, cmd_reset, cmd_status, cmd_tasks

    args = argparse.Namespace(path=str(sample_project), action="show", count=5)
    for handler in (cmd_status, cmd_reset, cmd_log, cmd_tasks):
        assert handler(args, quiet=True)["data"]["initialized"] is False
