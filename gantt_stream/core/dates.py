from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any, Optional


ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_date(value: Any) -> Optional[date]:
    """Coerce a date-ish value to a day-granularity date.

    Accepts date/datetime objects, 'YYYY-MM-DD' and full ISO timestamps
    ('2024-05-19T00:00:00.000Z'). Returns None for anything else.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if len(text) >= 10 and ISO_DATE_RE.match(text[:10]):
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None


def add_days(d: date, days: int) -> date:
    return d + timedelta(days=days)


def days_between(start: date, end: date) -> int:
    return (end - start).days


def format_date(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d is not None else None


def round_half_up(x: float) -> int:
    # Day offsets round .5 away from the past, never to even.
    return int((x + 0.5) // 1)
