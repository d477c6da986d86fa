from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date
from typing import Literal, Union

from gantt_stream.core.model import Task, Timeline


ActionKind = Literal[
    "ADD_SECTION",
    "ADD_TASK",
    "UPDATE_TASK",
    "ADD_MILESTONE",
    "UPDATE_MILESTONE",
    "UPDATE_TIMELINE",
    "RESOLVE_DEPENDENCY",
    "PROCESS_DEPENDENCIES",
    "UPDATE_TASK_STARTDATE",
    "UPDATE_TASK_DURATION",
]


def _now() -> float:
    return time.time()


# Timestamps are informational only; two actions with the same payload compare equal.


@dataclass(frozen=True)
class AddSection:
    name: str
    type: Literal["ADD_SECTION"] = "ADD_SECTION"
    timestamp: float = field(default_factory=_now, compare=False)


@dataclass(frozen=True)
class UpsertTask:
    section_name: str
    task: Task
    type: Literal["ADD_TASK", "UPDATE_TASK"] = "ADD_TASK"
    timestamp: float = field(default_factory=_now, compare=False)


@dataclass(frozen=True)
class UpsertMilestone:
    section_name: str
    milestone: Task
    type: Literal["ADD_MILESTONE", "UPDATE_MILESTONE"] = "ADD_MILESTONE"
    timestamp: float = field(default_factory=_now, compare=False)


@dataclass(frozen=True)
class UpdateTimeline:
    timeline: Timeline
    type: Literal["UPDATE_TIMELINE"] = "UPDATE_TIMELINE"
    timestamp: float = field(default_factory=_now, compare=False)


@dataclass(frozen=True)
class ResolveDependency:
    """Retry marker for a task whose dependencies were unresolved when parsed."""

    section_name: str
    task: Task
    attempts: int = 0
    type: Literal["RESOLVE_DEPENDENCY"] = "RESOLVE_DEPENDENCY"
    timestamp: float = field(default_factory=_now, compare=False)


@dataclass(frozen=True)
class ProcessDependencies:
    type: Literal["PROCESS_DEPENDENCIES"] = "PROCESS_DEPENDENCIES"
    timestamp: float = field(default_factory=_now, compare=False)


@dataclass(frozen=True)
class UpdateTaskStartDate:
    task_id: str
    start_date: date
    type: Literal["UPDATE_TASK_STARTDATE"] = "UPDATE_TASK_STARTDATE"
    timestamp: float = field(default_factory=_now, compare=False)


@dataclass(frozen=True)
class UpdateTaskDuration:
    task_id: str
    duration: int
    type: Literal["UPDATE_TASK_DURATION"] = "UPDATE_TASK_DURATION"
    timestamp: float = field(default_factory=_now, compare=False)


BufferedAction = Union[
    AddSection,
    UpsertTask,
    UpsertMilestone,
    UpdateTimeline,
    ResolveDependency,
    ProcessDependencies,
    UpdateTaskStartDate,
    UpdateTaskDuration,
]


def add_item(section_name: str, task: Task) -> BufferedAction:
    """ADD_TASK or ADD_MILESTONE for a fully dated item."""
    if task.is_milestone:
        return UpsertMilestone(section_name=section_name, milestone=task)
    return UpsertTask(section_name=section_name, task=task)


def describe(action: BufferedAction) -> str:
    if isinstance(action, AddSection):
        return f"{action.type} {action.name}"
    if isinstance(action, UpsertTask):
        return f"{action.type} {action.section_name}/{action.task.id}"
    if isinstance(action, UpsertMilestone):
        return f"{action.type} {action.section_name}/{action.milestone.id}"
    if isinstance(action, UpdateTimeline):
        return f"{action.type} {action.timeline.start_date}..{action.timeline.end_date}"
    if isinstance(action, ResolveDependency):
        return f"{action.type} {action.task.id} (attempt {action.attempts})"
    if isinstance(action, UpdateTaskStartDate):
        return f"{action.type} {action.task_id} -> {action.start_date}"
    if isinstance(action, UpdateTaskDuration):
        return f"{action.type} {action.task_id} -> {action.duration}d"
    return action.type
