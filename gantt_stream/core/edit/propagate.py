from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from gantt_stream.core.dates import add_days, days_between
from gantt_stream.core.graph import dependents_map
from gantt_stream.core.model import Section, Task, build_task_dictionary
from gantt_stream.core.resolve.dependency_dates import dependency_end_date, with_start_date
from gantt_stream.core.stream.actions import BufferedAction, UpdateTaskDuration, UpdateTaskStartDate


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DateUpdate:
    id: str
    new_start_date: date
    new_duration: Optional[int] = None


class Cascade:
    """Working view of a plan while an edit propagates.

    Edits are recorded against a private copy of the tasks; the input
    sections are never touched. Each id appears once in `updates`, holding
    the latest value, in the order it was first changed.
    """

    def __init__(self, sections: Iterable[Section]) -> None:
        sections = list(sections)
        self.tasks = build_task_dictionary(sections)
        self.dependents = dependents_map(sections)
        self._updates: dict[str, DateUpdate] = {}

    @property
    def updates(self) -> list[DateUpdate]:
        return list(self._updates.values())

    def place(self, task: Task, start: date, duration: Optional[int] = None) -> Task:
        if duration is not None and not task.is_milestone:
            task = replace(task, duration=duration)
        moved = with_start_date(task, start)
        self.tasks[task.id] = moved
        previous = self._updates.get(task.id)
        if duration is None and previous is not None:
            duration = previous.new_duration
        self._updates[task.id] = DateUpdate(id=task.id, new_start_date=start, new_duration=duration)
        return moved

    def push_downstream(self, parent_id: str, parent_end: date, exclude: frozenset[str] = frozenset()) -> None:
        """Move every dependent that starts before parent_end to exactly parent_end, recursively."""
        self._push(parent_id, parent_end, exclude | {parent_id})

    def pull_upstream(self, child_id: str, child_start: date, exclude: frozenset[str] = frozenset()) -> None:
        """End every dependency of child_id no later than child_start, recursively."""
        self._pull(child_id, child_start, exclude | {child_id})

    def _push(self, parent_id: str, parent_end: date, path: frozenset[str]) -> None:
        for child_id in self.dependents.get(parent_id, []):
            if child_id in path:
                continue
            child = self.tasks.get(child_id)
            if child is None:
                continue
            if child.start_date is not None and child.start_date >= parent_end:
                continue
            moved = self.place(child, parent_end)
            end = dependency_end_date(moved) or parent_end
            self._push(child_id, end, path | {child_id})

    def _pull(self, child_id: str, child_start: date, path: frozenset[str]) -> None:
        child = self.tasks.get(child_id)
        if child is None:
            return
        for dep_id in child.dependencies:
            if dep_id in path:
                continue
            parent = self.tasks.get(dep_id)
            if parent is None:
                continue
            parent_end = dependency_end_date(parent)
            if parent_end is None or parent_end <= child_start:
                continue
            new_start = child_start if parent.is_milestone else add_days(child_start, -(parent.duration or 0))
            self.place(parent, new_start)
            self._pull(dep_id, new_start, path | {dep_id})


def on_task_moved(sections: list[Section], task_id: str, new_start_date: date) -> list[DateUpdate]:
    """Move one task and restore dependency order around it.

    Moving later pushes dependents forward; moving earlier pulls the task's
    own dependencies back. Tasks that already satisfy child.start >=
    parent.end are left alone. The moved task is the first update returned.
    """
    cascade = Cascade(sections)
    task = cascade.tasks.get(task_id)
    if task is None:
        logger.warning("move ignored, no such task: %s", task_id)
        return []

    old_start = task.start_date
    moved = cascade.place(task, new_start_date)

    if old_start is None or new_start_date > old_start:
        cascade.push_downstream(task_id, dependency_end_date(moved) or new_start_date)
    elif new_start_date < old_start:
        cascade.pull_upstream(task_id, new_start_date)
    return cascade.updates


def on_task_resized(sections: list[Section], task_id: str, new_duration: int) -> list[DateUpdate]:
    """Change a task's duration (at least one day) and push dependents past its new end."""
    cascade = Cascade(sections)
    task = cascade.tasks.get(task_id)
    if task is None:
        logger.warning("resize ignored, no such task: %s", task_id)
        return []
    if task.is_milestone or task.start_date is None:
        return []

    resized = cascade.place(task, task.start_date, duration=max(1, new_duration))
    cascade.push_downstream(task_id, dependency_end_date(resized) or task.start_date)
    return cascade.updates


def on_section_moved(sections: list[Section], section_name: str, new_start_date: date) -> list[DateUpdate]:
    """Shift a whole section so its earliest task starts at new_start_date.

    Every dated task in the section moves by the same number of days. Tasks
    outside the section are then cascaded (forward or backward); the
    section's own tasks are not pushed by each other.
    """
    section = next((s for s in sections if s.name == section_name), None)
    if section is None:
        logger.warning("move ignored, no such section: %s", section_name)
        return []
    dated = [t for t in section.tasks if t.start_date is not None]
    if not dated:
        return []

    delta = days_between(min(t.start_date for t in dated), new_start_date)
    if delta == 0:
        return []

    cascade = Cascade(sections)
    own = frozenset(t.id for t in section.tasks)
    moved = [cascade.place(cascade.tasks[t.id], add_days(t.start_date, delta)) for t in dated]
    for task in moved:
        if delta > 0:
            cascade.push_downstream(task.id, dependency_end_date(task) or task.start_date, exclude=own)
        else:
            cascade.pull_upstream(task.id, task.start_date, exclude=own)
    return cascade.updates


def edit_actions(updates: Iterable[DateUpdate]) -> list[BufferedAction]:
    """Queue actions that apply propagator output to a plan."""
    out: list[BufferedAction] = []
    for u in updates:
        if u.new_duration is not None:
            out.append(UpdateTaskDuration(task_id=u.id, duration=u.new_duration))
        out.append(UpdateTaskStartDate(task_id=u.id, start_date=u.new_start_date))
    return out
