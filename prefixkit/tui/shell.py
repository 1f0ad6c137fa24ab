"""Interactive TUI shell for prefixkit."""

import argparse
import os
import re
from pathlib import Path

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from prefixkit import __version__
from prefixkit import terminal_ui as ui
from prefixkit.config_manager import ConfigManager
from prefixkit.tui.command_router import CommandRouter
from prefixkit.tui.completions import build_completer

_console = Console()


def _rewrite_env_error(exc: EnvironmentError) -> dict:
    """Translate EnvironmentError messages for TUI users."""
    msg = str(exc)
    if "ANTHROPIC_API_KEY" in msg:
        return {
            "status": "error",
            "message": "Anthropic API key not set. Run: export ANTHROPIC_API_KEY=sk-ant-...",
            "data": {},
        }
    if "OPENROUTER_API_KEY" in msg:
        return {
            "status": "error",
            "message": "OpenRouter API key not set. Run: export OPENROUTER_API_KEY=sk-or-...",
            "data": {},
        }
    return {"status": "error", "message": f"Command failed: {exc}", "data": {}}


class PrefixShell:
    """Persistent interactive session for prefixkit.

    Lines starting with ``/`` go to the command router; lines starting with
    ``[`` are request lines for the interpreter.
    """

    def __init__(self, project_path: str = "."):
        self.project_path = os.path.abspath(project_path)
        self.completer = build_completer()
        self.session = PromptSession(history=InMemoryHistory(), completer=self.completer)
        self.router = CommandRouter(self.project_path)
        self.config_manager = ConfigManager(self.project_path)
        self.key_bindings = self._build_key_bindings()
        self.session_status = self._load_session_status()
        self._should_exit = False

    def run(self):
        """Main loop. Blocks until exit."""
        self._print_welcome()
        while True:
            try:
                user_input = self.session.prompt(
                    "prefixkit> ",
                    bottom_toolbar=self._get_toolbar,
                    key_bindings=self.key_bindings,
                ).strip()
                if not user_input:
                    continue
                if user_input.lower() in ("exit", "quit"):
                    break
                self._handle_input(user_input)
                if self._should_exit:
                    break
            except (EOFError, KeyboardInterrupt):
                break
        self._print_goodbye()

    def _handle_input(self, text: str):
        """Route input to the slash command router or the interpreter."""
        if text.startswith("/"):
            self._handle_slash_command(text)
        elif text.startswith("["):
            self._handle_request(text)
        else:
            self._display_result(
                {
                    "status": "info",
                    "message": "Requests start with a prefix, e.g. [review]<file:App.swift> ... (see /prefixes)",
                    "data": {},
                }
            )

    def _handle_slash_command(self, text: str):
        """Route slash command through CommandRouter and display result."""
        result = self.router.route(text)
        if result.get("status") == "exit":
            self._should_exit = True
            return
        self._display_result(result)
        self.session_status = self._load_session_status()

    def _handle_request(self, text: str):
        """Interpret a request line and show the dispatch outcome."""
        from prefixkit.cli_commands import cmd_run

        args = argparse.Namespace(path=self.project_path, line=text)
        try:
            result = cmd_run(args, quiet=True, notify=self._show_resume)
        except EnvironmentError as exc:
            self._display_result(_rewrite_env_error(exc))
            return
        except (ValueError, RuntimeError) as exc:
            self._display_result({"status": "error", "message": str(exc), "data": {}})
            return

        if result.get("data", {}).get("initialized") is False:
            self._display_result(
                {"status": "error", "message": "Project not initialized. Run /init first.", "data": {}}
            )
            return
        ui.print_dispatch_result(result)
        self.session_status = result["data"].get("session", self.session_status)

    def _show_resume(self, resume):
        ui.print_resume(resume.to_dict())

    def _display_result(self, result: dict):
        """Display a command result dict with Rich styling."""
        status = result.get("status", "info")
        message = escape(result.get("message", ""))
        data = result.get("data", {})

        if status == "error":
            _console.print(
                Panel(f"[bold red]Error:[/bold red] {message}", border_style="red", expand=False)
            )
        elif status == "success":
            _console.print(
                Panel(f"[bold green]OK:[/bold green] {message}", border_style="green", expand=False)
            )
        else:
            _console.print(f"[cyan]{message}[/cyan]")

        if "help_text" in data:
            help_text = re.sub(r"(/\w+)", r"[bold cyan]\1[/bold cyan]", escape(data["help_text"]))
            _console.print(help_text)
        for entry in data.get("entries", []):
            _console.print(f"  {entry['date']}  {escape(entry['title'])}", highlight=False)
        for task in data.get("tasks", []):
            _console.print(
                f"  {task['slug']}  {task['status']:<9} {task['progress']:>3}%  {escape(task['title'])}",
                highlight=False,
            )
        if data.get("last_command"):
            _console.print(f"  Last: {escape(data['last_command'])}", highlight=False)
        for option in data.get("pending_options", []):
            _console.print(f"    {option['key']}) {escape(option['description'])}", highlight=False)

    def _load_session_status(self) -> str:
        if not self.config_manager.is_initialized():
            return "not initialized"
        return self.config_manager.load_session().status.value

    def _get_toolbar(self) -> str:
        """Build status toolbar text."""
        project_name = Path(self.project_path).name
        return f"prefixkit | Project: {project_name} | Session: {self.session_status} | Ctrl-L clear"

    def _build_key_bindings(self):
        """Create key bindings for shell usability helpers."""
        kb = KeyBindings()

        @kb.add("c-l")
        def _clear_screen(event):
            event.app.renderer.clear()

        return kb

    def _print_welcome(self):
        """Print welcome banner with project info."""
        _console.print()
        _console.print(f"[bold cyan]prefixkit[/bold cyan] [dim]v{__version__}[/dim]")
        _console.print(f"[cyan]Project:[/cyan] {escape(Path(self.project_path).name)}")
        if self.session_status == "not initialized":
            _console.print("[dim]Not initialized (run /init)[/dim]")
        else:
            _console.print(f"[dim]Session: {self.session_status}[/dim]")
        _console.print("[dim]Type /help for commands, /quit to exit.[/dim]")
        _console.print()

    def _print_goodbye(self):
        """Print exit message."""
        _console.print("\n[dim cyan]Goodbye.[/dim cyan]")
