from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal, Optional


TaskType = Literal["task", "milestone"]


@dataclass(frozen=True)
class Task:
    """A task or milestone.

    Milestones carry a single instant in start_date and never have a duration
    or end_date. A task with dependencies and no start_date is pending.
    """

    id: str
    type: TaskType
    label: str
    start_date: Optional[date] = None
    duration: Optional[int] = None
    end_date: Optional[date] = None
    dependencies: list[str] = field(default_factory=list)

    @property
    def is_milestone(self) -> bool:
        return self.type == "milestone"

    @property
    def is_pending(self) -> bool:
        return bool(self.dependencies) and self.start_date is None


@dataclass(frozen=True)
class Section:
    name: str
    tasks: list[Task] = field(default_factory=list)


@dataclass(frozen=True)
class Timeline:
    start_date: date
    end_date: date


@dataclass(frozen=True)
class Plan:
    sections: list[Section] = field(default_factory=list)
    timeline: Optional[Timeline] = None

    def iter_tasks(self):
        for section in self.sections:
            for task in section.tasks:
                yield section, task

    def find_task(self, task_id: str) -> Optional[tuple[Section, Task]]:
        for section, task in self.iter_tasks():
            if task.id == task_id:
                return section, task
        return None

    def section_names(self) -> list[str]:
        return [s.name for s in self.sections]


# Flat id -> Task index mirroring Plan.sections.
TaskDictionary = dict[str, Task]


def build_task_dictionary(sections: list[Section]) -> TaskDictionary:
    return {task.id: task for section in sections for task in section.tasks}
