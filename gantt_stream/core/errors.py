from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional


@dataclass(frozen=True)
class PlanError(Exception):
    """Error envelope shared by the loaders, the chart/plan checks and the engine.

    Engine code hands these back as values; only the I/O and CLI edges raise.
    """

    code: str
    message: str
    file: Optional[str] = None
    path: Optional[str] = None

    @property
    def severity(self) -> str:
        return "error"

    @property
    def source(self) -> str:
        return "validate"

    def __str__(self) -> str:
        loc = ":".join(p for p in (self.file, self.path) if p) or "<plan>"
        return f"{loc}: {self.code}: {self.message}"

    def to_item(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "file": self.file,
            "path": self.path,
            "severity": self.severity,
            "source": self.source,
        }


class PlanLoadError(PlanError):
    @property
    def source(self) -> str:
        return "load"


class PlanValidationError(PlanError):
    @property
    def source(self) -> str:
        return "lint" if self.code.startswith("L_") else "validate"


class PlanWarning(PlanError):
    """Non-fatal engine outcome (dropped retry, cycle, unknown target)."""

    @property
    def severity(self) -> str:
        return "warning"

    @property
    def source(self) -> str:
        return "engine"


def _natural(text: str) -> tuple:
    return tuple(int(p) if p.isdigit() else p for p in re.split(r"(\d+)", text))


def sort_key(e: PlanError) -> tuple:
    # line:9 sorts before line:10
    return (e.file or "", _natural(e.path or ""), e.code)


def sorted_errors(errors: Iterable[PlanError]) -> list:
    return sorted(errors, key=sort_key)
