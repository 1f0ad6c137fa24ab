"""Tests for TUI command router."""

import prefixkit.cli_commands as cli_commands
from prefixkit.tui.command_router import CommandRouter


def test_router_creation():
    """CommandRouter can be instantiated."""
    router = CommandRouter(".")
    assert router.project_path == "."
    assert "help" in router._commands


def test_route_help_returns_command_list():
    """`/help` returns a success result with commands and help text."""
    router = CommandRouter(".")
    result = router.route("/help")

    assert result["status"] == "success"
    assert "status" in result["data"]["commands"]
    assert "[fix]<file:" in result["data"]["help_text"]


def test_route_empty_returns_error():
    """`/` returns a structured error result."""
    router = CommandRouter(".")
    result = router.route("/")
    assert result["status"] == "error"
    assert "Empty command" in result["message"]


def test_route_unknown_command_returns_error():
    """Unknown slash command returns available command list."""
    router = CommandRouter(".")
    result = router.route("/nonexistent")
    assert result["status"] == "error"
    assert "Unknown command" in result["message"]
    assert "/help" in result["message"]


def test_route_parse_error_returns_error():
    """Invalid quoting returns parse error instead of crashing."""
    router = CommandRouter(".")
    result = router.route('/log "unterminated')
    assert result["status"] == "error"
    assert "Parse error:" in result["message"]


def test_route_status_dispatches_to_cmd_status(monkeypatch, tmp_path):
    """`/status` calls cmd_status with path and quiet=True."""
    captured = {}

    def fake_cmd_status(args, *, quiet=False):
        captured["path"] = args.path
        captured["quiet"] = quiet
        return {"status": "success", "message": "status ok", "data": {}}

    monkeypatch.setattr(cli_commands, "cmd_status", fake_cmd_status)
    router = CommandRouter(str(tmp_path))
    result = router.route("/status")

    assert result["status"] == "success"
    assert captured["path"] == str(tmp_path)
    assert captured["quiet"] is True


def test_route_init_passes_force_and_backend(monkeypatch, tmp_path):
    """`/init --force --backend anthropic` is parsed correctly."""
    captured = {}

    def fake_cmd_init(args, *, quiet=None):
        captured["force"] = args.force
        captured["backend"] = args.backend
        captured["quiet"] = quiet
        return {"status": "success", "message": "init ok", "data": {}}

    monkeypatch.setattr(cli_commands, "cmd_init", fake_cmd_init)
    result = CommandRouter(str(tmp_path)).route("/init --force --backend anthropic")

    assert result["status"] == "success"
    assert captured == {"force": True, "backend": "anthropic", "quiet": True}


def test_route_log_defaults_to_five(monkeypatch, tmp_path):
    """`/log` defaults to show mode with count=5."""
    captured = {}

    def fake_cmd_log(args, *, quiet=False):
        captured["action"] = args.action
        captured["count"] = args.count
        return {"status": "success", "message": "log ok", "data": {}}

    monkeypatch.setattr(cli_commands, "cmd_log", fake_cmd_log)
    router = CommandRouter(str(tmp_path))

    router.route("/log")
    assert captured == {"action": "show", "count": 5}

    router.route("/log show 12")
    assert captured["count"] == 12


def test_route_reset_and_tasks(monkeypatch, tmp_path):
    """`/reset` and `/tasks` reach their handlers."""
    calls = []
    monkeypatch.setattr(
        cli_commands,
        "cmd_reset",
        lambda args, *, quiet=False: calls.append("reset") or {"status": "success", "message": "", "data": {}},
    )
    monkeypatch.setattr(
        cli_commands,
        "cmd_tasks",
        lambda args, *, quiet=False: calls.append("tasks") or {"status": "info", "message": "", "data": {}},
    )
    router = CommandRouter(str(tmp_path))

    router.route("/reset")
    router.route("/TASKS")

    assert calls == ["reset", "tasks"]


def test_route_prefixes_lists_registry():
    """`/prefixes` returns the real prefix list."""
    result = CommandRouter(".").route("/prefixes")
    assert result["status"] == "success"
    assert "fix" in result["data"]["prefixes"]
    assert "doit" in result["data"]["prefixes"]


def test_route_handler_exception_is_reported(monkeypatch, tmp_path):
    """Handler exceptions become error results."""

    def boom(args, *, quiet=False):
        raise RuntimeError("disk full")

    monkeypatch.setattr(cli_commands, "cmd_status", boom)
    result = CommandRouter(str(tmp_path)).route("/status")
    assert result["status"] == "error"
    assert "disk full" in result["message"]


def test_route_quit_and_exit():
    router = CommandRouter(".")
    assert router.route("/quit")["status"] == "exit"
    assert router.route("/exit")["status"] == "exit"


def test_route_status_uninitialized_project(tmp_path):
    """Real cmd_status reports the missing .prefixkit/ directory."""
    result = CommandRouter(str(tmp_path)).route("/status")
    assert result["status"] == "error"
    assert result["data"]["initialized"] is False
