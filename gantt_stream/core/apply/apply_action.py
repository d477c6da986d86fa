from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Optional

from gantt_stream.core.config import DEFAULT_CONFIG
from gantt_stream.core.errors import PlanWarning
from gantt_stream.core.model import Plan, Section, Task, TaskDictionary, build_task_dictionary
from gantt_stream.core.resolve.dependency_dates import (
    EndDateIndex,
    resolve_task_dates,
    with_start_date,
)
from gantt_stream.core.resolve.resolve_plan import pending_warning, resolve_all_report
from gantt_stream.core.stream.actions import (
    AddSection,
    BufferedAction,
    ProcessDependencies,
    ResolveDependency,
    UpdateTaskDuration,
    UpdateTaskStartDate,
    UpdateTimeline,
    UpsertMilestone,
    UpsertTask,
    describe,
)
from gantt_stream.core.timeline import widen, widen_all


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApplyResult:
    plan: Plan
    task_dictionary: TaskDictionary
    requeue: list[BufferedAction] = field(default_factory=list)
    warnings: list[PlanWarning] = field(default_factory=list)


@dataclass(frozen=True)
class DrainResult:
    plan: Plan
    task_dictionary: TaskDictionary
    applied: int = 0
    dropped: list[ResolveDependency] = field(default_factory=list)
    warnings: list[PlanWarning] = field(default_factory=list)


def apply_action(
    plan: Plan,
    action: BufferedAction,
    task_dictionary: Optional[TaskDictionary] = None,
    *,
    max_iterations: int = DEFAULT_CONFIG.max_iterations,
) -> ApplyResult:
    """Apply one action to a plan.

    Pure: the inputs are never modified. A successful change returns a new
    Plan and a new dictionary; a no-op returns the same objects. A
    RESOLVE_DEPENDENCY whose dependencies are still missing is handed back in
    `requeue` with its attempt counter bumped, and the first time round its
    task is placed in the section undated so declaration order holds;
    capping retries is the caller's job (see admit_retry). max_iterations only bounds the
    PROCESS_DEPENDENCIES sweep.
    """
    if task_dictionary is None:
        task_dictionary = build_task_dictionary(plan.sections)

    if isinstance(action, AddSection):
        if action.name in plan.section_names():
            return ApplyResult(plan, task_dictionary)
        sections = plan.sections + [Section(name=action.name)]
        return ApplyResult(replace(plan, sections=sections), task_dictionary)

    if isinstance(action, UpsertTask):
        return _upsert(plan, task_dictionary, action.section_name, action.task)

    if isinstance(action, UpsertMilestone):
        return _upsert(plan, task_dictionary, action.section_name, action.milestone)

    if isinstance(action, UpdateTimeline):
        return ApplyResult(replace(plan, timeline=action.timeline), task_dictionary)

    if isinstance(action, ResolveDependency):
        task = resolve_task_dates(action.task, EndDateIndex(task_dictionary))
        if task.is_pending:
            retry = replace(action, attempts=action.attempts + 1)
            if plan.find_task(task.id) is not None or action.section_name not in plan.section_names():
                return ApplyResult(plan, task_dictionary, requeue=[retry])
            placed = _upsert(plan, task_dictionary, action.section_name, task)
            return replace(placed, requeue=[retry])
        return _widen_to(_upsert(plan, task_dictionary, action.section_name, task), task)

    if isinstance(action, ProcessDependencies):
        report = resolve_all_report(plan.sections, max_iterations=max_iterations)
        sections = report.sections
        new_plan = Plan(sections=sections, timeline=widen_all(plan.timeline, sections))
        return ApplyResult(new_plan, build_task_dictionary(sections), warnings=report.warnings)

    if isinstance(action, UpdateTaskStartDate):
        current = task_dictionary.get(action.task_id)
        if current is None:
            return _unknown_task(plan, task_dictionary, action)
        updated = with_start_date(current, action.start_date)
        return _widen_to(_replace_task(plan, task_dictionary, updated), updated)

    if isinstance(action, UpdateTaskDuration):
        current = task_dictionary.get(action.task_id)
        if current is None:
            return _unknown_task(plan, task_dictionary, action)
        if current.is_milestone:
            return ApplyResult(plan, task_dictionary)
        updated = replace(current, duration=action.duration)
        if updated.start_date is not None:
            updated = with_start_date(updated, updated.start_date)
        return _widen_to(_replace_task(plan, task_dictionary, updated), updated)

    raise TypeError(f"unsupported action: {action!r}")


def admit_retry(
    action: ResolveDependency,
    max_iterations: int,
    task_dictionary: Optional[TaskDictionary] = None,
    plan: Optional[Plan] = None,
) -> Optional[PlanWarning]:
    """Warning when a requeued action has used up its retries, else None.

    The warning says why the task never resolved (unknown id or cycle) in the
    same terms as the dependency sweep, so the two collapse under
    note_warning.
    """
    if action.attempts < max_iterations:
        return None
    return pending_warning(
        action.task,
        task_dictionary if task_dictionary is not None else {},
        path=_task_path(plan, action.task.id) or f"sections[{action.section_name}]",
        exhausted=f"dropped {action.task.id} after {action.attempts} attempt(s)",
    )


def note_warning(warnings: list[PlanWarning], warning: PlanWarning) -> None:
    if warning not in warnings:
        warnings.append(warning)


def _task_path(plan: Optional[Plan], task_id: str) -> Optional[str]:
    if plan is None:
        return None
    for si, section in enumerate(plan.sections):
        for ti, task in enumerate(section.tasks):
            if task.id == task_id:
                return f"sections[{si}].tasks[{ti}]"
    return None


def apply_all(
    plan: Plan,
    actions: Iterable[BufferedAction],
    task_dictionary: Optional[TaskDictionary] = None,
    *,
    max_iterations: int = DEFAULT_CONFIG.max_iterations,
) -> DrainResult:
    """Drain a queue FIFO, appending requeued actions to the back."""
    if task_dictionary is None:
        task_dictionary = build_task_dictionary(plan.sections)
    queue: deque[BufferedAction] = deque(actions)
    applied = 0
    dropped: list[ResolveDependency] = []
    warnings: list[PlanWarning] = []

    while queue:
        action = queue.popleft()
        result = apply_action(plan, action, task_dictionary, max_iterations=max_iterations)
        plan, task_dictionary = result.plan, result.task_dictionary
        applied += 1
        for w in result.warnings:
            note_warning(warnings, w)
        for retry in result.requeue:
            drop = admit_retry(retry, max_iterations, task_dictionary, plan) if isinstance(retry, ResolveDependency) else None
            if drop is not None:
                logger.warning("%s", drop)
                dropped.append(retry)
                note_warning(warnings, drop)
                continue
            queue.append(retry)

    return DrainResult(plan, task_dictionary, applied=applied, dropped=dropped, warnings=warnings)


def _upsert(plan: Plan, task_dictionary: TaskDictionary, section_name: str, task: Task) -> ApplyResult:
    if section_name not in plan.section_names():
        warning = PlanWarning(
            code="W_UNKNOWN_SECTION",
            message=f"{task.id} targets missing section '{section_name}'",
            path=f"sections[{section_name}]",
        )
        logger.warning("%s", warning)
        return ApplyResult(plan, task_dictionary, warnings=[warning])

    if plan.find_task(task.id) is not None:
        return _replace_task(plan, task_dictionary, task)

    sections = [
        Section(name=s.name, tasks=s.tasks + [task]) if s.name == section_name else s
        for s in plan.sections
    ]
    logger.debug("added %s to %s", task.id, section_name)
    return ApplyResult(replace(plan, sections=sections), {**task_dictionary, task.id: task})


def _replace_task(plan: Plan, task_dictionary: TaskDictionary, task: Task) -> ApplyResult:
    # Replaced where it currently lives so ids stay unique across sections.
    sections = [
        Section(name=s.name, tasks=[task if t.id == task.id else t for t in s.tasks])
        if any(t.id == task.id for t in s.tasks)
        else s
        for s in plan.sections
    ]
    return ApplyResult(replace(plan, sections=sections), {**task_dictionary, task.id: task})


def _widen_to(result: ApplyResult, task: Task) -> ApplyResult:
    if result.plan.find_task(task.id) is None:
        return result
    timeline = widen(result.plan.timeline, task)
    if timeline is result.plan.timeline:
        return result
    return replace(result, plan=replace(result.plan, timeline=timeline))


def _unknown_task(plan: Plan, task_dictionary: TaskDictionary, action: BufferedAction) -> ApplyResult:
    warning = PlanWarning(code="W_UNKNOWN_TASK", message=f"no such task: {describe(action)}")
    logger.warning("%s", warning)
    return ApplyResult(plan, task_dictionary, warnings=[warning])


def replay(actions: Iterable[BufferedAction], plan: Optional[Plan] = None) -> Plan:
    """Plan produced by draining actions against an empty (or given) plan."""
    return apply_all(plan or Plan(), actions).plan
