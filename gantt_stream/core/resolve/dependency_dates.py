from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import replace
from datetime import date
from typing import Optional

from gantt_stream.core.dates import add_days
from gantt_stream.core.model import Task


# A dependent starts on the same day its dependency ends (end + 0, not end + 1).
DEPENDENCY_GAP_DAYS = 0


def dependency_end_date(task: Task) -> Optional[date]:
    """The date a dependent of this task may start, or None if unknown."""
    if task.is_milestone:
        return task.start_date
    if task.end_date is not None:
        return task.end_date
    if task.start_date is not None and task.duration:
        return add_days(task.start_date, task.duration)
    return task.start_date


class EndDateIndex(Mapping[str, date]):
    """Read-only id -> resolved end date view over a task dictionary.

    Ids whose end date is still unknown are reported as missing.
    """

    def __init__(self, tasks: Mapping[str, Task]) -> None:
        self._tasks = tasks

    def __getitem__(self, task_id: str) -> date:
        task = self._tasks[task_id]
        end = dependency_end_date(task)
        if end is None:
            raise KeyError(task_id)
        return end

    def __iter__(self) -> Iterator[str]:
        return (tid for tid, t in self._tasks.items() if dependency_end_date(t) is not None)

    def __len__(self) -> int:
        return sum(1 for _ in self)


def resolve_start(dependencies: list[str], known_end_dates: Mapping[str, date]) -> Optional[date]:
    """Latest end date across all dependencies; None if any is unresolved."""
    ends: list[date] = []
    for dep in dependencies:
        end = known_end_dates.get(dep)
        if end is None:
            return None
        ends.append(end)
    if not ends:
        return None
    return add_days(max(ends), DEPENDENCY_GAP_DAYS)


def with_start_date(task: Task, start: date) -> Task:
    """Place a task at start, recomputing its end from its duration."""
    if task.is_milestone:
        return replace(task, start_date=start, duration=None, end_date=None)
    end = add_days(start, task.duration) if task.duration is not None else None
    return replace(task, start_date=start, end_date=end)


def resolve_task_dates(task: Task, known_end_dates: Mapping[str, date]) -> Task:
    """Derive a pending task's dates from its dependencies.

    Tasks that already have a start date, or whose dependencies are not all
    resolved yet, come back unchanged.
    """
    if not task.dependencies or task.start_date is not None:
        return task
    start = resolve_start(task.dependencies, known_end_dates)
    if start is None:
        return task
    return with_start_date(task, start)
