from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Optional

from gantt_stream.core.config import DEFAULT_CONFIG
from gantt_stream.core.errors import PlanWarning
from gantt_stream.core.graph import describe_cycle, find_cycles
from gantt_stream.core.model import Section, Task, build_task_dictionary
from gantt_stream.core.resolve.dependency_dates import EndDateIndex, resolve_task_dates


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolveReport:
    sections: list[Section]
    iterations: int
    warnings: list[PlanWarning] = field(default_factory=list)

    @property
    def pending_ids(self) -> list[str]:
        return [t.id for s in self.sections for t in s.tasks if t.is_pending]


def resolve_all(sections: list[Section], *, max_iterations: int = DEFAULT_CONFIG.max_iterations) -> list[Section]:
    """Whole-plan fixed-point date resolution; see resolve_all_report."""
    return resolve_all_report(sections, max_iterations=max_iterations).sections


def resolve_all_report(
    sections: list[Section],
    *,
    max_iterations: int = DEFAULT_CONFIG.max_iterations,
    file: Optional[str] = None,
) -> ResolveReport:
    """Resolve every pending task against the other tasks' end dates.

    Each pass sees the dates produced earlier in the same pass, so a chain
    declared in order resolves in one pass and a reversed chain needs at most
    one pass per link. Stops when a pass changes nothing or after
    max_iterations passes. Tasks still pending at that point are reported as
    warnings (cycle or missing dependency); this never raises.

    The input sections are not modified; the report holds new Section objects.
    """
    rows = [list(s.tasks) for s in sections]
    tasks_by_id = build_task_dictionary(sections)
    known = EndDateIndex(tasks_by_id)

    iterations = 0
    while iterations < max_iterations:
        iterations += 1
        changed = False
        for row in rows:
            for i, task in enumerate(row):
                if not task.is_pending:
                    continue
                resolved = resolve_task_dates(task, known)
                if resolved is task:
                    continue
                row[i] = resolved
                tasks_by_id[resolved.id] = resolved
                changed = True
        if not changed:
            break

    current = [Section(name=s.name, tasks=row) for s, row in zip(sections, rows)]
    warnings = _pending_warnings(current, tasks_by_id, iterations, file)
    for w in warnings:
        logger.warning("%s", w)
    logger.debug("resolved plan in %d pass(es)", iterations)
    return ResolveReport(sections=current, iterations=iterations, warnings=warnings)


def pending_warning(
    task: Task,
    tasks_by_id: Mapping[str, Task],
    *,
    path: Optional[str] = None,
    file: Optional[str] = None,
    exhausted: Optional[str] = None,
) -> PlanWarning:
    """Why a task is still undated: an unknown dependency id, a cycle, or a spent cap.

    Cycles are looked for among the tasks of tasks_by_id that are still
    pending, plus task itself.
    """
    missing = [d for d in task.dependencies if d not in tasks_by_id]
    if missing:
        return PlanWarning(
            code="W_UNRESOLVED_DEPENDENCY",
            message=f"{task.id} depends on unknown id(s): {', '.join(missing)}",
            file=file,
            path=path,
        )
    waiting = {tid: list(t.dependencies) for tid, t in tasks_by_id.items() if t.is_pending}
    waiting[task.id] = list(task.dependencies)
    for cycle in find_cycles(waiting):
        if task.id in cycle:
            # closed path told from this task, e.g. b -> a -> b
            i = cycle.index(task.id)
            told = cycle[i:-1] + cycle[:i] + [task.id]
            return PlanWarning(code="W_DEPENDENCY_CYCLE", message=describe_cycle(told), file=file, path=path)
    return PlanWarning(
        code="W_DEPENDENCY_CYCLE",
        message=exhausted or f"{task.id} is still pending",
        file=file,
        path=path,
    )


def _pending_warnings(
    sections: list[Section],
    tasks_by_id: dict[str, Task],
    iterations: int,
    file: Optional[str],
) -> list[PlanWarning]:
    out: list[PlanWarning] = []
    seen: set[str] = set()
    for si, section in enumerate(sections):
        for ti, task in enumerate(section.tasks):
            if not task.is_pending or task.id in seen:
                continue
            seen.add(task.id)
            out.append(
                pending_warning(
                    task,
                    tasks_by_id,
                    path=f"sections[{si}].tasks[{ti}]",
                    file=file,
                    exhausted=f"{task.id} still pending after {iterations} pass(es)",
                )
            )
    return out
