from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from gantt_stream.core.dates import add_days, days_between, round_half_up
from gantt_stream.core.edit.propagate import Cascade, DateUpdate
from gantt_stream.core.model import Section, Task
from gantt_stream.core.resolve.dependency_dates import dependency_end_date


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SectionResize:
    updates: list[DateUpdate] = field(default_factory=list)
    downstream_updates: list[DateUpdate] = field(default_factory=list)

    @property
    def all_updates(self) -> list[DateUpdate]:
        return self.updates + self.downstream_updates


def calculate_section_resize(
    tasks: list[Task],
    ratio: float,
    anchor_date: date,
    *,
    sections: Optional[list[Section]] = None,
) -> SectionResize:
    """Proportionally rescale a group of tasks.

    The group spans [min start, max end]. The new span is ratio times the old
    one, but never fewer days than there are tasks. Each task's offset from
    the group start, and each non-milestone duration, is scaled by the
    effective ratio and rounded to whole days (durations at least 1).

    Tasks without a start date are treated as starting at anchor_date. A task that
    rounding puts before the end of one of its dependencies is pushed to that
    end. When `sections` is given, dependents outside the group are pushed
    the same way and returned in downstream_updates. A ratio of 0 or less
    shrinks the group to the one-day-per-task floor.
    """
    if not tasks:
        return SectionResize()

    starts = [t.start_date or anchor_date for t in tasks]
    ends = [
        max(dependency_end_date(t) or start, start) if t.start_date is not None else start
        for t, start in zip(tasks, starts)
    ]
    group_start = min(starts)
    old_days = days_between(group_start, max(ends))
    if old_days <= 0:
        new_ratio = 1.0
    else:
        new_days = max(ratio * old_days, len(tasks))
        new_ratio = new_days / old_days

    updates: list[DateUpdate] = []
    for task, start in zip(tasks, starts):
        offset = days_between(group_start, start)
        new_start = add_days(group_start, round_half_up(offset * new_ratio))
        if task.is_milestone:
            updates.append(DateUpdate(id=task.id, new_start_date=new_start))
        else:
            duration = max(1, round_half_up((task.duration or 0) * new_ratio))
            updates.append(DateUpdate(id=task.id, new_start_date=new_start, new_duration=duration))

    logger.debug("rescaled %d task(s) by %.3f (requested %.3f)", len(tasks), new_ratio, ratio)

    own = frozenset(t.id for t in tasks)
    cascade = Cascade(sections if sections is not None else [Section(name="", tasks=list(tasks))])
    for u in updates:
        current = cascade.tasks.get(u.id)
        if current is not None:
            cascade.place(current, u.new_start_date, duration=u.new_duration)
    # rounding can pull a task in front of its parent's new end, in or out of the group
    for u in sorted(updates, key=lambda u: u.new_start_date):
        placed = cascade.tasks.get(u.id)
        if placed is None or placed.start_date is None:
            continue
        cascade.push_downstream(u.id, dependency_end_date(placed) or placed.start_date)

    moved = {u.id: u for u in cascade.updates}
    updates = [moved.get(u.id, u) for u in updates]
    if sections is None:
        return SectionResize(updates=updates)
    downstream = [u for u in cascade.updates if u.id not in own]
    return SectionResize(updates=updates, downstream_updates=downstream)


def resize_section(sections: list[Section], section_name: str, ratio: float, anchor_date: Optional[date] = None) -> SectionResize:
    section = next((s for s in sections if s.name == section_name), None)
    if section is None:
        logger.warning("resize ignored, no such section: %s", section_name)
        return SectionResize()
    if not section.tasks:
        return SectionResize()
    if anchor_date is None:
        dated = [t.start_date for t in section.tasks if t.start_date is not None]
        if not dated:
            return SectionResize()
        anchor_date = min(dated)
    return calculate_section_resize(section.tasks, ratio, anchor_date, sections=sections)
