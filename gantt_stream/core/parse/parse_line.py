from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date
from typing import Literal, Optional, Union

from gantt_stream.core.dates import parse_date
from gantt_stream.core.model import Task
from gantt_stream.core.resolve.dependency_dates import resolve_start, with_start_date


# Line grammar, checked in this order:
#   <label>: milestone, <YYYY-MM-DD>
#   <label>: milestone, after <id>
#   <label>:<id>, <YYYY-MM-DD>, <N>d
#   <label>:<id>, after <id>, <N>d
#   <label>:<id>, <start-or-after>, <duration>      (looser fallback)
MILESTONE_DATE_RE = re.compile(r"^([^:]+):\s*milestone\s*,\s*(\d{4}-\d{2}-\d{2})")
MILESTONE_AFTER_RE = re.compile(r"^([^:]+):\s*milestone\s*,\s*after\s+([^,\s]+)")
TASK_DATE_RE = re.compile(r"^([^:]+):([^,]+),\s*(\d{4}-\d{2}-\d{2}),\s*(\d+)d")
TASK_AFTER_RE = re.compile(r"^([^:]+):([^,]+),\s*after\s+([^,]+),\s*(\d+)d")
GENERIC_RE = re.compile(r"^([^:]+):([^,]+),\s*([^,]+),\s*([^,]+)")

DATE_IN_TEXT_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
DURATION_RE = re.compile(r"^(\d+)\s*d$")

SKIP_EXACT = {"gantt", "```"}
SKIP_PREFIXES = ("```", "%%", "title ", "dateFormat ")

LAST_MILESTONE_ALIAS = "milestone"


@dataclass(frozen=True)
class Skip:
    kind: Literal["skip"] = "skip"


@dataclass(frozen=True)
class SectionLine:
    name: str
    kind: Literal["section"] = "section"


@dataclass(frozen=True)
class TaskLine:
    section_name: str
    task: Task
    kind: Literal["task"] = "task"


@dataclass(frozen=True)
class MilestoneLine:
    section_name: str
    milestone: Task
    kind: Literal["milestone"] = "milestone"


ParsedLine = Union[Skip, SectionLine, TaskLine, MilestoneLine]

SKIP = Skip()


def milestone_id(label: str) -> str:
    """Slug a milestone label into its id ('Project Kickoff!' -> 'project_kickoff')."""
    slug = re.sub(r"[^\w\s-]", "", label.lower())
    return re.sub(r"\s+", "_", slug).strip()


def parse_line(
    line: str,
    current_section: Optional[str],
    known_end_dates: Mapping[str, date],
    *,
    last_milestone_id: Optional[str] = None,
) -> ParsedLine:
    """Parse one gantt line into a typed record.

    Dependencies that are not in known_end_dates yet produce a record with
    dependencies set and no date (deferred). Anything unrecognised is Skip;
    this function never raises for malformed input.
    """
    line = line.strip()

    if not line or line in SKIP_EXACT or line.startswith(SKIP_PREFIXES):
        return SKIP

    if line.startswith("section "):
        name = line[len("section "):].strip()
        return SectionLine(name=name) if name else SKIP

    if not current_section:
        return SKIP

    m = MILESTONE_DATE_RE.match(line)
    if m:
        at = parse_date(m.group(2))
        if at is None:
            return SKIP
        label = m.group(1).strip()
        return MilestoneLine(
            section_name=current_section,
            milestone=Task(id=milestone_id(label), type="milestone", label=label, start_date=at),
        )

    m = MILESTONE_AFTER_RE.match(line)
    if m:
        label = m.group(1).strip()
        dep = _alias(m.group(2).strip(), last_milestone_id)
        return MilestoneLine(
            section_name=current_section,
            milestone=_deferred(
                Task(id=milestone_id(label), type="milestone", label=label, dependencies=[dep]),
                known_end_dates,
            ),
        )

    m = TASK_DATE_RE.match(line)
    if m:
        start = parse_date(m.group(3))
        if start is None:
            return SKIP
        task = Task(id=m.group(2).strip(), type="task", label=m.group(1).strip(), duration=int(m.group(4)))
        return TaskLine(section_name=current_section, task=with_start_date(task, start))

    m = TASK_AFTER_RE.match(line)
    if m:
        dep = _alias(m.group(3).strip(), last_milestone_id)
        task = Task(
            id=m.group(2).strip(),
            type="task",
            label=m.group(1).strip(),
            duration=int(m.group(4)),
            dependencies=[dep],
        )
        return TaskLine(section_name=current_section, task=_deferred(task, known_end_dates))

    m = GENERIC_RE.match(line)
    if m:
        return _parse_generic(
            label=m.group(1).strip(),
            task_id=m.group(2).strip(),
            start_info=m.group(3).strip(),
            tail=m.group(4).strip(),
            section_name=current_section,
            known_end_dates=known_end_dates,
            last_milestone_id=last_milestone_id,
        )

    return SKIP


def _parse_generic(
    *,
    label: str,
    task_id: str,
    start_info: str,
    tail: str,
    section_name: str,
    known_end_dates: Mapping[str, date],
    last_milestone_id: Optional[str],
) -> ParsedLine:
    # Explicit-id milestone: "<label>: <id>, milestone, <date|after id>"
    if start_info.lower() == "milestone":
        base = Task(id=task_id, type="milestone", label=label)
        if tail.startswith("after "):
            dep = _alias(tail[len("after "):].strip(), last_milestone_id)
            return MilestoneLine(
                section_name=section_name,
                milestone=_deferred(_with_deps(base, [dep]), known_end_dates),
            )
        at = _date_in(tail)
        if at is None:
            return SKIP
        return MilestoneLine(section_name=section_name, milestone=with_start_date(base, at))

    duration: Optional[int] = None
    dm = DURATION_RE.match(tail)
    if dm:
        duration = int(dm.group(1))

    task = Task(id=task_id, type="task", label=label, duration=duration)

    if start_info.startswith("after"):
        dep = _alias(start_info[len("after"):].strip(), last_milestone_id)
        if not dep:
            return SKIP
        return TaskLine(section_name=section_name, task=_deferred(_with_deps(task, [dep]), known_end_dates))

    start = _date_in(start_info)
    if start is None:
        return SKIP
    return TaskLine(section_name=section_name, task=with_start_date(task, start))


def _deferred(task: Task, known_end_dates: Mapping[str, date]) -> Task:
    start = resolve_start(task.dependencies, known_end_dates)
    if start is None:
        return task
    return with_start_date(task, start)


def _with_deps(task: Task, deps: list[str]) -> Task:
    return replace(task, dependencies=deps)


def _alias(dep: str, last_milestone_id: Optional[str]) -> str:
    if dep == LAST_MILESTONE_ALIAS and last_milestone_id:
        return last_milestone_id
    return dep


def _date_in(text: str) -> Optional[date]:
    m = DATE_IN_TEXT_RE.search(text)
    return parse_date(m.group(0)) if m else None
