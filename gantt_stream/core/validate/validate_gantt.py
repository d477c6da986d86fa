from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterator
from typing import Optional

from gantt_stream.core.dates import parse_date
from gantt_stream.core.errors import PlanValidationError, sorted_errors
from gantt_stream.core.model import Plan
from gantt_stream.core.parse.parse_line import LAST_MILESTONE_ALIAS, milestone_id


ID_RE = re.compile(r"^[A-Za-z0-9_]+$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DURATION_RE = re.compile(r"^\d+d$")
DIRECTIVES = ("title", "dateformat", "section")


def validate_gantt(text: str, *, file: Optional[str] = None) -> list[PlanValidationError]:
    """Check gantt chart text line by line.

    Stricter than the streaming parser, which silently skips what it does not
    understand. Two passes: the first collects every id a line declares so
    that `after <id>` may point forward; the second checks each line.
    When the text contains ``` fences only the fenced lines are checked, so a
    whole markdown document can be passed in.
    """
    chart = list(_chart_lines(text.split("\n")))
    declared = _declared_ids(chart)

    errors: list[PlanValidationError] = []
    seen: set[str] = set()
    in_section = False

    def err(n: int, code: str, message: str) -> None:
        errors.append(PlanValidationError(code=code, message=message, file=file, path=f"line:{n}"))

    for n, line in chart:
        if not line or line.startswith("%%") or line.lower() == "gantt":
            continue
        title = _directive(line, "title")
        if title is not None:
            if not title:
                err(n, "E_GANTT_EMPTY_TITLE", "title cannot be empty")
            continue
        date_format = _directive(line, "dateformat")
        if date_format is not None:
            if not date_format:
                err(n, "E_GANTT_EMPTY_DATE_FORMAT", "dateFormat cannot be empty")
            continue
        section = _directive(line, "section")
        if section is not None:
            if not section:
                err(n, "E_GANTT_EMPTY_SECTION", "section name cannot be empty")
            else:
                in_section = True
            continue

        name, sep, definition = line.partition(":")
        if not sep or not name.strip() or not definition.strip():
            err(n, "E_GANTT_LINE_FORMAT", "expected '<name>: <definition>'")
            continue
        if not in_section:
            err(n, "E_GANTT_NO_SECTION", "task or milestone declared before any section")

        args = [a.strip() for a in definition.split(",")]

        # <label>: milestone, <date|after id>
        if len(args) == 2 and args[0].lower() == "milestone":
            mid = milestone_id(name)
            if mid in seen:
                err(n, "E_GANTT_DUPLICATE_ID", f"duplicate task/milestone id '{mid}'")
            seen.add(mid)
            _check_when(args[1], declared, lambda c, m: err(n, c, m))
            continue

        if len(args) != 3:
            err(n, "E_GANTT_LINE_FORMAT", "expected '<id>, <start|after id>, <N>d' or 'milestone, <date|after id>'")
            continue

        tid = args[0]
        if not ID_RE.match(tid):
            err(n, "E_GANTT_INVALID_ID", f"id '{tid}' may only contain letters, digits and underscores")
        elif tid in seen:
            err(n, "E_GANTT_DUPLICATE_ID", f"duplicate task/milestone id '{tid}'")
        seen.add(tid)

        # <label>: <id>, milestone, <date|after id>
        if args[1].lower() == "milestone":
            _check_when(args[2], declared, lambda c, m: err(n, c, m))
            continue

        _check_when(args[1], declared, lambda c, m: err(n, c, m))
        if not DURATION_RE.match(args[2]):
            err(n, "E_GANTT_DURATION_FORMAT", f"invalid duration '{args[2]}', expected '<number>d'")

    return sorted_errors(errors)


def _chart_lines(lines: list[str]) -> Iterator[tuple[int, str]]:
    fenced = any(raw.strip().startswith("```") for raw in lines)
    inside = not fenced
    for n, raw in enumerate(lines, start=1):
        line = raw.strip()
        if line.startswith("```"):
            inside = not inside
            continue
        if inside:
            yield n, line


def _declared_ids(chart: list[tuple[int, str]]) -> set[str]:
    out: set[str] = set()
    for _, line in chart:
        if not line or line.startswith("%%") or line.lower() == "gantt":
            continue
        if any(_directive(line, k) is not None for k in DIRECTIVES):
            continue
        name, sep, definition = line.partition(":")
        if not sep:
            continue
        args = [a.strip() for a in definition.split(",")]
        if len(args) == 2 and args[0].lower() == "milestone" and name.strip():
            out.add(milestone_id(name))
        elif len(args) == 3 and ID_RE.match(args[0]):
            out.add(args[0])
    return out


def _directive(line: str, keyword: str) -> Optional[str]:
    """Text after a directive keyword, or None when the line is not that directive."""
    head, _, rest = line.partition(" ")
    if head.lower() != keyword:
        return None
    return rest.strip()


def _check_when(value: str, declared: set[str], err) -> None:
    if value.lower().startswith("after"):
        dep = value[len("after"):].strip()
        if not dep:
            err("E_GANTT_EMPTY_DEPENDENCY", "dependency id after 'after' cannot be empty")
        elif dep not in declared and dep != LAST_MILESTONE_ALIAS:
            err("E_GANTT_UNKNOWN_DEPENDENCY", f"depends on undefined task/milestone '{dep}'")
        return
    if not DATE_RE.match(value) or parse_date(value) is None:
        err("E_GANTT_START_FORMAT", f"invalid start '{value}', expected YYYY-MM-DD or 'after <id>'")


def summarize_plan(plan: Plan) -> str:
    counts = Counter(t.type for _, t in plan.iter_tasks())
    pending = sum(1 for _, t in plan.iter_tasks() if t.is_pending)
    text = (
        f"OK: {len(plan.sections)} sections "
        f"(task={counts.get('task', 0)}, milestone={counts.get('milestone', 0)}, pending={pending})"
    )
    if plan.timeline is not None:
        text += f"\nTimeline: {plan.timeline.start_date.isoformat()} to {plan.timeline.end_date.isoformat()}"
    return text
