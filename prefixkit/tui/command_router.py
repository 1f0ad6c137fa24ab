"""Slash command routing for the TUI shell."""

import argparse
import shlex


class CommandRouter:
    """Parses slash commands and dispatches to the cmd_* handlers."""

    def __init__(self, project_path: str):
        self.project_path = project_path
        self._commands = self._build_command_registry()

    def route(self, raw_input: str) -> dict:
        """Parse and execute a slash command. Returns result dict."""
        text = raw_input.lstrip("/").strip()
        if not text:
            return {
                "status": "error",
                "message": "Empty command. Type /help for available commands.",
                "data": {},
            }

        try:
            tokens = shlex.split(text)
        except ValueError as exc:
            return {"status": "error", "message": f"Parse error: {exc}", "data": {}}

        cmd_name = tokens[0].lower()
        cmd_args = tokens[1:]

        if cmd_name not in self._commands:
            available = ", ".join(f"/{cmd}" for cmd in self._commands)
            return {
                "status": "error",
                "message": f"Unknown command: /{cmd_name}. Available: {available}",
                "data": {},
            }

        try:
            return self._commands[cmd_name]["handler"](cmd_args)
        except Exception as exc:
            return {"status": "error", "message": f"Command failed: {exc}", "data": {}}

    def _build_command_registry(self) -> dict:
        return {
            "init": {"handler": self._do_init, "help": "Create .prefixkit/ for this project"},
            "status": {"handler": self._do_status, "help": "Show session state"},
            "prefixes": {"handler": self._do_prefixes, "help": "List command prefixes"},
            "log": {"handler": self._do_log, "help": "Show recent change-log entries"},
            "tasks": {"handler": self._do_tasks, "help": "List multi-step tasks"},
            "reset": {"handler": self._do_reset, "help": "Reset the session to idle"},
            "help": {"handler": self._do_help, "help": "Show available commands"},
            "quit": {"handler": self._do_quit, "help": "Exit prefixkit"},
            "exit": {"handler": self._do_exit, "help": "Exit prefixkit"},
        }

    def _do_help(self, tokens: list[str]) -> dict:
        """List available commands."""
        del tokens
        lines = []
        for name, entry in self._commands.items():
            lines.append(f"  /{name:<12} {entry['help']}")
        lines.append("")
        lines.append("  Requests start with a prefix, e.g. [fix]<file:App.swift:10-40> crash on launch")
        return {
            "status": "success",
            "message": "Available commands",
            "data": {
                "commands": list(self._commands.keys()),
                "help_text": "\n".join(lines),
            },
        }

    def _do_init(self, tokens: list[str]) -> dict:
        from prefixkit.cli_commands import cmd_init

        backend = None
        for i, tok in enumerate(tokens):
            if tok == "--backend" and i + 1 < len(tokens):
                backend = tokens[i + 1]
        args = argparse.Namespace(
            path=self.project_path,
            force="--force" in tokens,
            backend=backend,
            quiet=True,
        )
        return cmd_init(args, quiet=True)

    def _do_status(self, tokens: list[str]) -> dict:
        from prefixkit.cli_commands import cmd_status

        del tokens
        return cmd_status(argparse.Namespace(path=self.project_path), quiet=True)

    def _do_prefixes(self, tokens: list[str]) -> dict:
        from prefixkit.cli_commands import cmd_prefixes

        del tokens
        return cmd_prefixes(argparse.Namespace(), quiet=True)

    def _do_log(self, tokens: list[str]) -> dict:
        from prefixkit.cli_commands import cmd_log

        count = 5
        rest = tokens[1:] if tokens and tokens[0].lower() == "show" else tokens
        if rest:
            try:
                count = int(rest[0])
            except ValueError:
                pass
        args = argparse.Namespace(path=self.project_path, action="show", count=count)
        return cmd_log(args, quiet=True)

    def _do_tasks(self, tokens: list[str]) -> dict:
        from prefixkit.cli_commands import cmd_tasks

        del tokens
        return cmd_tasks(argparse.Namespace(path=self.project_path), quiet=True)

    def _do_reset(self, tokens: list[str]) -> dict:
        from prefixkit.cli_commands import cmd_reset

        del tokens
        return cmd_reset(argparse.Namespace(path=self.project_path), quiet=True)

    def _do_quit(self, tokens: list[str]) -> dict:
        del tokens
        return {"status": "exit", "message": "Goodbye.", "data": {}}

    def _do_exit(self, tokens: list[str]) -> dict:
        del tokens
        return {"status": "exit", "message": "Goodbye.", "data": {}}
