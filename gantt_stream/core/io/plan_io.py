from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

import yaml

from gantt_stream.core.dates import format_date, parse_date
from gantt_stream.core.errors import PlanLoadError
from gantt_stream.core.model import Plan, Section, Task, Timeline


def serialize_plan(plan: Plan) -> dict[str, Any]:
    """JSON-safe dict: camelCase keys, dates as YYYY-MM-DD, unset fields omitted."""
    out: dict[str, Any] = {"sections": [_section_to_dict(s) for s in plan.sections]}
    if plan.timeline is not None:
        out["timeline"] = {
            "startDate": format_date(plan.timeline.start_date),
            "endDate": format_date(plan.timeline.end_date),
        }
    return out


def _section_to_dict(section: Section) -> dict[str, Any]:
    return {"name": section.name, "tasks": [_task_to_dict(t) for t in section.tasks]}


def _task_to_dict(task: Task) -> dict[str, Any]:
    out: dict[str, Any] = {"id": task.id, "type": task.type, "label": task.label}
    if task.start_date is not None:
        out["startDate"] = format_date(task.start_date)
    if task.duration is not None and not task.is_milestone:
        out["duration"] = task.duration
    if task.end_date is not None and not task.is_milestone:
        out["endDate"] = format_date(task.end_date)
    if task.dependencies:
        out["dependencies"] = list(task.dependencies)
    return out


def deserialize_plan(data: Any, *, file: Optional[str] = None) -> Plan:
    """Build a Plan from serialize_plan output (or hand-written JSON/YAML).

    Raises PlanLoadError(E_INVALID_PLAN) naming the first offending path.
    """
    if not isinstance(data, dict):
        raise PlanLoadError(code="E_INVALID_TOP_LEVEL", message="top-level document must be a mapping/object", file=file)

    raw_sections = data.get("sections", [])
    if not isinstance(raw_sections, list):
        raise _invalid("sections must be a list", file, "sections")

    sections: list[Section] = []
    for si, raw in enumerate(raw_sections):
        where = f"sections[{si}]"
        if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
            raise _invalid("section must be a mapping with a string name", file, where)
        raw_tasks = raw.get("tasks", [])
        if not isinstance(raw_tasks, list):
            raise _invalid("tasks must be a list", file, f"{where}.tasks")
        tasks = [_task_from_dict(t, file, f"{where}.tasks[{ti}]") for ti, t in enumerate(raw_tasks)]
        sections.append(Section(name=raw["name"], tasks=tasks))

    timeline = None
    raw_timeline = data.get("timeline")
    if raw_timeline is not None:
        if not isinstance(raw_timeline, dict):
            raise _invalid("timeline must be a mapping", file, "timeline")
        start = parse_date(raw_timeline.get("startDate"))
        end = parse_date(raw_timeline.get("endDate"))
        if start is None or end is None:
            raise _invalid("timeline needs startDate and endDate (YYYY-MM-DD)", file, "timeline")
        timeline = Timeline(start_date=start, end_date=end)

    return Plan(sections=sections, timeline=timeline)


def _task_from_dict(raw: Any, file: Optional[str], where: str) -> Task:
    if not isinstance(raw, dict):
        raise _invalid("task must be a mapping", file, where)
    tid = raw.get("id")
    if not isinstance(tid, str) or not tid:
        raise _invalid("task id must be a non-empty string", file, f"{where}.id")
    ttype = raw.get("type", "task")
    if ttype not in ("task", "milestone"):
        raise _invalid(f"unknown task type: {ttype}", file, f"{where}.type")

    start = _optional_date(raw, "startDate", file, where)
    end = _optional_date(raw, "endDate", file, where)
    duration = raw.get("duration")
    if duration is not None and (isinstance(duration, bool) or not isinstance(duration, int) or duration < 0):
        raise _invalid("duration must be a whole number of days >= 0", file, f"{where}.duration")
    deps = raw.get("dependencies") or []
    if not isinstance(deps, list) or not all(isinstance(d, str) for d in deps):
        raise _invalid("dependencies must be a list of ids", file, f"{where}.dependencies")

    label = raw.get("label")
    if ttype == "milestone":
        duration, end = None, None
    return Task(
        id=tid,
        type=ttype,
        label=label if isinstance(label, str) else tid,
        start_date=start,
        duration=duration,
        end_date=end,
        dependencies=list(deps),
    )


def _optional_date(raw: dict[str, Any], key: str, file: Optional[str], where: str):
    value = raw.get(key)
    if value is None:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise _invalid(f"{key} must be YYYY-MM-DD", file, f"{where}.{key}")
    return parsed


def _invalid(message: str, file: Optional[str], path: str) -> PlanLoadError:
    return PlanLoadError(code="E_INVALID_PLAN", message=message, file=file, path=path)


def load_plan(path: str) -> Plan:
    """Load a saved plan from .json or .yaml/.yml."""
    p = Path(path)
    if not p.exists():
        raise PlanLoadError(
            code="E_FILE_NOT_FOUND",
            message="file does not exist",
            file=str(p),
        )

    suffix = p.suffix.lower()
    raw_text = p.read_text(encoding="utf-8")

    try:
        if suffix in {".yaml", ".yml"}:
            data = yaml.safe_load(raw_text)
        elif suffix == ".json":
            data = json.loads(raw_text)
        else:
            raise PlanLoadError(
                code="E_UNSUPPORTED_FORMAT",
                message="supported formats are .yaml/.yml and .json",
                file=str(p),
            )
    except PlanLoadError:
        raise
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        code = "E_YAML_PARSE" if suffix in {".yaml", ".yml"} else "E_JSON_PARSE"
        raise PlanLoadError(code=code, message=str(e), file=str(p)) from e

    return deserialize_plan(data, file=str(p))


def dump_plan(plan: Plan, path: str) -> None:
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    data = serialize_plan(plan)
    if p.suffix.lower() in {".yaml", ".yml"}:
        p.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    else:
        p.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
