"""Skeleton-first planning for dispatches that exceed the line budget."""

from datetime import datetime
import re

from .scope import Target
from .tasks import SubTask, Task

DEFAULT_LINE_BUDGET = 200


def slugify(text: str, fallback: str = "task") -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")[:40].strip("-")
    return slug or fallback


def estimate_lines(targets: list[Target]) -> int:
    return sum(target.line_span for target in targets)


def build_skeleton_plan(command, targets: list[Target], line_budget: int = DEFAULT_LINE_BUDGET) -> Task:
    """One structure pass, then fill passes of at most ``line_budget`` lines each."""
    if line_budget < 1:
        raise ValueError("line_budget must be positive")

    paths = sorted({target.path for target in targets})
    steps = [SubTask(f"Skeleton: declare structure for {', '.join(paths) or 'the request'}")]
    for target in targets:
        start = target.start
        while start <= target.end:
            end = min(start + line_budget - 1, target.end)
            label = f"Fill: {target.path}:{start}-{end}"
            if target.symbol:
                label += f" ({target.symbol})"
            steps.append(SubTask(label))
            start = end + 1

    title = f"[{command.prefix.value}] {command.body}".strip()
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    return Task(
        slug=f"{stamp}-{slugify(command.body or command.prefix.value)}",
        title=title,
        status="pending",
        subtasks=steps,
    )
