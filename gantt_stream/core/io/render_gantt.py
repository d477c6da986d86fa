from __future__ import annotations

from typing import Optional

from gantt_stream.core.dates import format_date
from gantt_stream.core.model import Plan, Task, TaskDictionary, build_task_dictionary
from gantt_stream.core.parse.parse_line import milestone_id
from gantt_stream.core.resolve.dependency_dates import EndDateIndex, resolve_start


DEFAULT_TITLE = "Project Timeline"
INDENT = "    "


def render_gantt(plan: Plan, title: Optional[str] = None, *, fenced: bool = True) -> str:
    """Write a plan back out as mermaid gantt text that parse_line accepts.

    Single-dependency items whose date still matches their dependency are
    written in the `after <id>` form; everything else gets an explicit date.
    """
    by_id = build_task_dictionary(plan.sections)
    lines: list[str] = []
    if fenced:
        lines.append("```mermaid")
    lines.append("gantt")
    lines.append(f"{INDENT}title {title or DEFAULT_TITLE}")
    lines.append(f"{INDENT}dateFormat YYYY-MM-DD")
    if plan.timeline is not None:
        lines.append(
            f"{INDENT}%% Timeline: {format_date(plan.timeline.start_date)} to {format_date(plan.timeline.end_date)}"
        )
    for section in plan.sections:
        lines.append(f"{INDENT}section {section.name}")
        for task in section.tasks:
            line = _render_task(task, by_id)
            if line:
                lines.append(INDENT * 2 + line)
    if fenced:
        lines.append("```")
    return "\n".join(lines) + "\n"


def _render_task(task: Task, by_id: TaskDictionary) -> Optional[str]:
    when = _when(task, by_id)
    if when is None:
        return None
    if task.is_milestone:
        if milestone_id(task.label) == task.id:
            return f"{task.label}: milestone, {when}"
        return f"{task.label}: {task.id}, milestone, {when}"
    return f"{task.label}:{task.id}, {when}, {task.duration or 0}d"


def _when(task: Task, by_id: TaskDictionary) -> Optional[str]:
    if len(task.dependencies) == 1:
        dep = task.dependencies[0]
        if task.start_date is None or resolve_start([dep], EndDateIndex(by_id)) == task.start_date:
            return f"after {dep}"
    return format_date(task.start_date)
