"""
Prompts for prefixkit backends.

SYSTEM_PROMPT fixes the reply format the backends parse (lettered options,
FILE lines, CHANGE lines). render_prompt() turns one DispatchRecord into the
user message.
"""

from .modifiers import CONFLICT_END, CONFLICT_SEPARATOR, CONFLICT_START

SYSTEM_PROMPT = f"""You are a coding assistant driven by bracketed command prefixes such as [fix], [review] or [think].
Every request you receive has already been parsed. Follow the MODE and SCOPE sections exactly.

## Rules
1. **Stay in scope**: only touch the files, line ranges, classes and functions listed under SCOPE. An empty scope means the whole repository.
2. **Respect the mode**: in ANALYSIS ONLY mode, describe what you would change but do not produce edits.
3. **Conflict blocks**: when asked for conflict blocks, never apply edits directly. Emit each edit as:
{CONFLICT_START}
<current code>
{CONFLICT_SEPARATOR}
<proposed code>
{CONFLICT_END}
4. **Options**: when there is more than one reasonable approach, list them one per line as `A) description`, `B) description`, and stop so the user can choose.
5. **Report touched files**: for every file you change, add a line `FILE: path:start-end`.
6. **Summarize changes**: list each change on its own line as `CHANGE: description`, and give a one-paragraph `REASONING:` section.
7. **Skeleton first**: when a PLAN STEP is given, do only that step. Skeleton steps declare types and signatures with empty bodies; fill steps implement the listed lines only.
8. **Never redo completed steps** listed under RESUME."""


def render_prompt(record, tree=None, max_excerpt_chars: int = 24000) -> str:
    """Build the user message for one dispatch record."""
    command = record.command
    flags = record.flags
    parts = ["# Request", command.to_line(), ""]

    parts.append("# Mode")
    if flags.analysis_only:
        parts.append("ANALYSIS ONLY: report intended changes without applying them.")
    else:
        parts.append("WRITE: apply the requested edits.")
    if flags.conflict_blocks:
        parts.append("Emit every edit as a conflict block (before/after); do not apply directly.")
    if flags.change_log:
        parts.append("Include REASONING and CHANGE lines; they are recorded in the change log.")
    parts.append("")

    parts.append("# Scope")
    if record.resolved.whole_repository:
        parts.append("Whole repository.")
    else:
        for target in record.resolved.targets:
            label = f"- {target.path}:{target.start}-{target.end}"
            if target.symbol:
                label += f" ({target.symbol})"
            parts.append(label)
    parts.append("")

    if record.plan_source is not None and command.prefix.value == "doit":
        parts.extend(["# Plan To Carry Out", f"Previously analyzed: {record.plan_source.to_line()}"])
        if record.selected_option is not None:
            parts.append(
                f"Chosen option: {record.selected_option.key}) {record.selected_option.description}"
            )
        if record.instructions:
            parts.append(f"Additional instructions: {record.instructions}")
        parts.append("")

    if record.review_paths:
        parts.append("# Conflict Blocks To Review")
        parts.extend(f"- {path}" for path in record.review_paths)
        if record.unresolved_paths:
            parts.append("Still unresolved: " + ", ".join(record.unresolved_paths))
        parts.append("")

    if record.current_step:
        parts.extend(["# Plan Step", record.current_step, ""])

    if record.resume is not None:
        parts.append(f"# Resume ({record.resume.mode})")
        delta = record.resume.delta
        for key in ("modified", "added", "deleted"):
            for path in delta.get(key, []):
                parts.append(f"- manually {key}: {path}")
        if record.resume.completed_steps:
            parts.append("Completed steps (do not redo):")
            parts.extend(f"- {step}" for step in record.resume.completed_steps)
        if record.resume.remaining_steps:
            parts.append("Remaining steps:")
            parts.extend(f"- {step}" for step in record.resume.remaining_steps)
        parts.append("")

    if tree is not None and record.resolved.targets:
        excerpts = _excerpts(record, tree, max_excerpt_chars)
        if excerpts:
            parts.append("# Code")
            parts.extend(excerpts)

    return "\n".join(parts).rstrip() + "\n"


def _excerpts(record, tree, max_chars: int) -> list[str]:
    parts: list[str] = []
    used = 0
    for target in record.resolved.targets:
        try:
            lines = tree.read_lines(target.path)
        except OSError:
            continue
        numbered = [
            f"{number:>5}  {lines[number - 1]}"
            for number in range(target.start, min(target.end, len(lines)) + 1)
        ]
        block = "\n".join(numbered)
        if used + len(block) > max_chars:
            parts.append(f"## {target.path} (omitted: context budget reached)")
            continue
        parts.extend([f"## {target.path}:{target.start}-{target.end}", "```", block, "```", ""])
        used += len(block)
    return parts
