"""Autocomplete definitions for the prefixkit TUI shell."""

from prompt_toolkit.completion import WordCompleter

from prefixkit.modifiers import Modifier
from prefixkit.prefixes import list_prefixes


COMMAND_LIST = [
    "/init",
    "/init --force",
    "/status",
    "/prefixes",
    "/log",
    "/log show",
    "/tasks",
    "/reset",
    "/help",
    "/quit",
    "/exit",
]


def prefix_words() -> list[str]:
    """Every ``[prefix]`` plus the ``[prefix:modifier]`` forms the registry allows."""
    words = []
    for spec in list_prefixes():
        words.append(f"[{spec.name}]")
        if not spec.dry_run_composable:
            continue
        for modifier in Modifier:
            if modifier is not Modifier.READ and not spec.modifies_code:
                continue
            words.append(f"[{spec.name}:{modifier.value}]")
    words.extend(["<file:", "<dir:", "<class:", "<func:"])
    return words


def build_completer() -> WordCompleter:
    """Create completer for slash commands and bracketed prefixes."""
    return WordCompleter(COMMAND_LIST + prefix_words(), sentence=True, ignore_case=True)
