from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from gantt_stream.core.model import Section, Task, Timeline
from gantt_stream.core.resolve.dependency_dates import dependency_end_date


def task_span(task: Task) -> Optional[tuple[date, date]]:
    if task.start_date is None:
        return None
    end = dependency_end_date(task) or task.start_date
    return task.start_date, max(end, task.start_date)


def widen(timeline: Optional[Timeline], task: Task) -> Optional[Timeline]:
    """Timeline grown to cover task. Returns the same object when nothing widens."""
    span = task_span(task)
    if span is None:
        return timeline
    start, end = span
    if timeline is None:
        return Timeline(start_date=start, end_date=end)
    if start >= timeline.start_date and end <= timeline.end_date:
        return timeline
    return Timeline(
        start_date=min(start, timeline.start_date),
        end_date=max(end, timeline.end_date),
    )


def widen_all(timeline: Optional[Timeline], sections: Iterable[Section]) -> Optional[Timeline]:
    for section in sections:
        for task in section.tasks:
            timeline = widen(timeline, task)
    return timeline
