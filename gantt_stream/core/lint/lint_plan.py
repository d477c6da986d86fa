from __future__ import annotations

from collections import Counter
from typing import Optional

from gantt_stream.core.errors import PlanValidationError, sorted_errors
from gantt_stream.core.graph import dependency_map, describe_cycle, find_cycles
from gantt_stream.core.model import Plan
from gantt_stream.core.resolve.dependency_dates import dependency_end_date


# Dependency lint rules over a materialized plan:
# - L_DUPLICATE_ID: the same id appears more than once
# - L_UNKNOWN_DEPENDENCY: dependency id not present in the plan
# - L_PENDING_DATE: task still has no start date
# - L_DEPENDENCY_VIOLATION: child starts before its parent ends
# - L_CYCLE_DETECTED: dependency cycle exists


def lint_plan(plan: Plan, *, file: Optional[str] = None) -> list[PlanValidationError]:
    """Lint a plan.

    Operates on whatever the engine produced, including best-effort plans
    with unresolved tasks. Each finding points at sections[i].tasks[j].
    """
    counts = Counter(t.id for _, t in plan.iter_tasks())
    paths: dict[str, str] = {}
    errors: list[PlanValidationError] = []

    for si, section in enumerate(plan.sections):
        for ti, task in enumerate(section.tasks):
            path = f"sections[{si}].tasks[{ti}]"
            if task.id in paths:
                errors.append(
                    PlanValidationError(
                        code="L_DUPLICATE_ID",
                        message=f"duplicate task id: {task.id} (count={counts[task.id]})",
                        file=file,
                        path=f"{path}.id",
                    )
                )
                continue
            paths[task.id] = path

    tasks = {}
    for _, task in plan.iter_tasks():
        tasks.setdefault(task.id, task)

    # Rule: unknown dependencies / pending dates / ordering
    for tid, task in tasks.items():
        path = paths[tid]
        for dep in task.dependencies:
            if dep not in tasks:
                errors.append(
                    PlanValidationError(
                        code="L_UNKNOWN_DEPENDENCY",
                        message=f"{tid} depends on unknown id: {dep}",
                        file=file,
                        path=f"{path}.dependencies",
                    )
                )
        if task.start_date is None:
            errors.append(
                PlanValidationError(
                    code="L_PENDING_DATE",
                    message=f"{tid} has no start date",
                    file=file,
                    path=f"{path}.startDate",
                )
            )
            continue
        for dep in task.dependencies:
            parent = tasks.get(dep)
            parent_end = dependency_end_date(parent) if parent is not None else None
            if parent_end is not None and task.start_date < parent_end:
                errors.append(
                    PlanValidationError(
                        code="L_DEPENDENCY_VIOLATION",
                        message=(
                            f"{tid} starts {task.start_date.isoformat()} before {dep} ends "
                            f"{parent_end.isoformat()}"
                        ),
                        file=file,
                        path=f"{path}.startDate",
                    )
                )

    # Rule: cycle detection
    for cycle in find_cycles(dependency_map(plan.sections)):
        errors.append(
            PlanValidationError(
                code="L_CYCLE_DETECTED",
                message=describe_cycle(cycle),
                file=file,
                path=f"{paths[cycle[-2]]}.dependencies",
            )
        )

    return sorted_errors(errors)
