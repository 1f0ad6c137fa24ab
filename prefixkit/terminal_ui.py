"""Terminal output formatting with rich."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

# force_terminal=False lets rich auto-detect TTY (important for tests).
_console = Console()

OUTCOME_STYLES = {
    "applied": ("green", "Applied"),
    "dry_run_report": ("cyan", "Report"),
    "rejected": ("red", "Rejected"),
    "interrupted": ("yellow", "Interrupted"),
}


def print_msg(text: str = "", **kwargs) -> None:
    _console.print(escape(text), highlight=False, **kwargs)


def print_error(text: str) -> None:
    _console.print(f"[bold red]Error:[/bold red] {escape(text)}", highlight=False)


def print_status_line(label: str, marker: str, detail: str) -> None:
    """Print a single status line with marker."""
    color_map = {
        "[OK]": "[green][OK][/green]",
        "[!!]": "[yellow][!!][/yellow]",
        "[X]": "[red][X][/red]",
        "[~]": "[dim][~][/dim]",
    }
    styled_marker = color_map.get(marker, marker)
    _console.print(f"  {label} {styled_marker} {escape(detail)}", highlight=False)


def print_prefix_table(specs: list) -> None:
    """Print the prefix registry."""
    if _console.is_terminal:
        table = Table(title="Command Prefixes", show_header=True, header_style="bold")
        table.add_column("Prefix")
        table.add_column("Access")
        table.add_column(":read")
        table.add_column("Description")
        for spec in specs:
            table.add_row(
                escape(f"[{spec.name}]"),
                spec.access,
                "yes" if spec.dry_run_composable else "-",
                spec.description,
            )
        _console.print(table)
    else:
        print("Command prefixes:\n")
        for spec in specs:
            print(f"  [{spec.name}]  {spec.access}")
            print(f"    {spec.description}")


def print_dispatch_result(result: dict) -> None:
    """Print a cmd_run result dict."""
    data = result.get("data", {})
    outcome = data.get("outcome", "rejected" if result.get("status") == "error" else "")
    color, label = OUTCOME_STYLES.get(outcome, ("white", outcome or "Result"))

    body = result.get("message", "")
    if data.get("code"):
        body = f"{data['code']}: {body}"
    _console.print(
        Panel(escape(body), title=f"[bold {color}]{label}[/bold {color}]", border_style=color, expand=False),
        highlight=False,
    )

    for option in data.get("options", []):
        _console.print(f"  [bold]{option['key']})[/bold] {escape(option['description'])}", highlight=False)
    if data.get("options"):
        _console.print("  Choose with: [bold]" + escape("[doit] <letter>") + "[/bold]", highlight=False)

    task = data.get("task")
    if task:
        next_step = task.get("next_step") or "none"
        print_msg(f"  Task {task['slug']}: {task['status']} ({task['progress']}%), next: {next_step}")
    if data.get("changelog"):
        print_msg(f"  Change log: {data['changelog']}")


def print_resume(resume: dict) -> None:
    """Report manual edits found since the interrupted dispatch."""
    delta = resume.get("delta", {})
    changed = False
    for key in ("modified", "added", "deleted"):
        for path in delta.get(key, []):
            if not changed:
                print_msg("Changed since the interrupted dispatch:")
                changed = True
            print_msg(f"  {key + ':':<10} {path}")
    if not changed:
        print_msg("No manual changes since the interrupted dispatch.")
    remaining = resume.get("remaining_steps", [])
    print_msg(f"Resuming ({resume.get('mode')}), {len(remaining)} step(s) remaining.")

