"""
CLI for prefixkit.

Usage:
    prefixkit                                   # interactive shell
    prefixkit init /path/to/project
    prefixkit run "[fix]<file:Sources/Net/ConnectionManager.swift> retry loop never ends"
    prefixkit parse "[read:imp]<class:NetworkClient> simplify"
    prefixkit status
"""

import argparse
import logging
import os
import sys

from . import __version__
from . import cli_commands


def _configure_logging(debug: bool) -> None:
    if debug or os.environ.get("PREFIXKIT_DEBUG") == "1":
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )


def cmd_tui(args):
    """Launch the interactive shell."""
    from .tui import shell

    shell.PrefixShell(getattr(args, "path", ".") or ".").run()


def main():
    parser = argparse.ArgumentParser(
        description="prefixkit: bracketed command prefixes for LLM coding sessions"
    )
    parser.add_argument(
        "--version", action="version", version=f"prefixkit {__version__}"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--no-tui", action="store_true", help="Print help instead of launching the shell"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # tui command
    p_tui = subparsers.add_parser("tui", help="Launch the interactive shell")
    p_tui.add_argument("path", nargs="?", default=".", help="Project path (default: current directory)")
    p_tui.set_defaults(func=cmd_tui)

    # init command
    p_init = subparsers.add_parser("init", help="Initialize .prefixkit/ for a project")
    p_init.add_argument("path", nargs="?", default=".", help="Project path (default: current directory)")
    p_init.add_argument("--force", action="store_true", help="Overwrite existing .prefixkit/")
    p_init.add_argument(
        "--backend", default=None, help="Backend: clipboard (default), anthropic or openrouter"
    )
    p_init.add_argument("-q", "--quiet", action="store_true", help="Suppress output")
    p_init.set_defaults(func=cli_commands.cmd_init)

    # run command
    p_run = subparsers.add_parser("run", help="Interpret and dispatch one request line")
    p_run.add_argument("line", help='Request line, e.g. "[fix]<file:App.swift> crash on launch"')
    p_run.add_argument("--path", default=".", help="Project path")
    p_run.set_defaults(func=cli_commands.cmd_run)

    # parse command
    p_parse = subparsers.add_parser("parse", help="Show how a request line parses")
    p_parse.add_argument("line", help="Request line")
    p_parse.add_argument("--path", default=".", help="Project path")
    p_parse.set_defaults(func=cli_commands.cmd_parse)

    # prefixes command
    p_prefixes = subparsers.add_parser("prefixes", help="List command prefixes")
    p_prefixes.set_defaults(func=cli_commands.cmd_prefixes)

    # status command
    p_status = subparsers.add_parser("status", help="Show session state")
    p_status.add_argument("--path", default=".", help="Project path")
    p_status.set_defaults(func=cli_commands.cmd_status)

    # reset command
    p_reset = subparsers.add_parser("reset", help="Reset the session to idle")
    p_reset.add_argument("--path", default=".", help="Project path")
    p_reset.set_defaults(func=cli_commands.cmd_reset)

    # log command
    p_log = subparsers.add_parser("log", help="Show recent change-log entries")
    p_log.add_argument("action", nargs="?", default="show", choices=["show"], help="'show' (default)")
    p_log.add_argument("--count", type=int, default=5, help="Number of entries to show")
    p_log.add_argument("--path", default=".", help="Project path")
    p_log.set_defaults(func=cli_commands.cmd_log)

    # tasks command
    p_tasks = subparsers.add_parser("tasks", help="List multi-step tasks")
    p_tasks.add_argument("--path", default=".", help="Project path")
    p_tasks.set_defaults(func=cli_commands.cmd_tasks)

    args = parser.parse_args()
    _configure_logging(args.debug)

    if not args.command:
        if args.no_tui:
            parser.print_help()
            sys.exit(1)
        args.path = "."
        args.func = cmd_tui

    try:
        args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(130)
    except EnvironmentError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
