from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from gantt_stream.core.config import DEFAULT_CONFIG, EngineConfig
from gantt_stream.core.dates import days_between
from gantt_stream.core.model import Task, TaskDictionary, Timeline
from gantt_stream.core.parse.line_buffer import LineReconstructor
from gantt_stream.core.parse.parse_line import MilestoneLine, SectionLine, TaskLine, parse_line
from gantt_stream.core.resolve.dependency_dates import EndDateIndex, resolve_task_dates
from gantt_stream.core.stream.actions import (
    AddSection,
    BufferedAction,
    ProcessDependencies,
    ResolveDependency,
    UpdateTimeline,
    add_item,
)
from gantt_stream.core.timeline import task_span, widen


logger = logging.getLogger(__name__)

FENCE = "```"
HEADER_RE = re.compile(r"^#+\s*")


@dataclass(frozen=True)
class Thought:
    summary: str
    thoughts: str


@dataclass
class SketchSummary:
    total_tasks: int = 0
    total_milestones: int = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @property
    def duration(self) -> int:
        if self.start_date is None or self.end_date is None:
            return 0
        return days_between(self.start_date, self.end_date)


@dataclass
class StreamSummary:
    thinking: list[Thought] = field(default_factory=list)
    sketch: SketchSummary = field(default_factory=SketchSummary)
    chart_markdown: str = ""
    all_text: str = ""


@dataclass
class StreamState:
    complete_lines: list[str] = field(default_factory=list)
    in_block: bool = False
    current_section: Optional[str] = None
    known_sections: set[str] = field(default_factory=set)
    last_header: Optional[str] = None
    last_milestone_id: Optional[str] = None
    summary: StreamSummary = field(default_factory=StreamSummary)


@dataclass(frozen=True)
class ConsumeResult:
    actions: list[BufferedAction]
    # Text of the newest markdown header seen in this chunk, if any.
    summary: Optional[str] = None


class StreamSession:
    """Per-stream parser state machine.

    Feed text fragments in order with consume(); each call returns the actions
    produced by the lines the fragment completed. Call finish() at end of
    stream. The caller owns the session object; nothing is global.
    """

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        *,
        task_dictionary: Optional[TaskDictionary] = None,
        timeline: Optional[Timeline] = None,
    ) -> None:
        self.config = config
        self._lines = LineReconstructor()
        self.state = StreamState(in_block=not config.fenced)
        self.task_dictionary: TaskDictionary = dict(task_dictionary or {})
        self.timeline = timeline
        self._sweep_pending = False

    @property
    def partial_line(self) -> str:
        return self._lines.partial

    def consume(self, chunk: str) -> ConsumeResult:
        self.state.summary.all_text += chunk
        actions: list[BufferedAction] = []
        header: Optional[str] = None
        for line in self._lines.feed(chunk):
            header = self._process_line(line, actions) or header
        return ConsumeResult(actions=actions, summary=header)

    def finish(self) -> ConsumeResult:
        """End of stream: process the unterminated tail and request the final sweep."""
        actions: list[BufferedAction] = []
        header: Optional[str] = None
        for line in self._lines.flush():
            header = self._process_line(line, actions) or header
        if self._sweep_pending:
            actions.append(ProcessDependencies())
            self._sweep_pending = False
        return ConsumeResult(actions=actions, summary=header)

    def reset(self) -> None:
        self._lines.reset()
        self.state = StreamState(in_block=not self.config.fenced)
        self.task_dictionary = {}
        self.timeline = None
        self._sweep_pending = False

    def _process_line(self, raw: str, actions: list[BufferedAction]) -> Optional[str]:
        state = self.state
        state.complete_lines.append(raw)
        line = raw.strip()

        if self.config.fenced and line.startswith(FENCE):
            if state.in_block:
                self._leave_block(actions)
            else:
                self._enter_block()
            return None

        if line.startswith("#"):
            text = HEADER_RE.sub("", line).strip()
            if text:
                state.last_header = text
                state.summary.thinking.append(Thought(summary=text, thoughts=line))
                return text
            return None

        if not state.in_block:
            return None

        state.summary.chart_markdown += raw + "\n"
        self._process_chart_line(line, actions)
        return None

    def _enter_block(self) -> None:
        state = self.state
        state.in_block = True
        state.current_section = None
        state.known_sections = set()
        state.last_milestone_id = None
        logger.debug("entered chart block")

    def _leave_block(self, actions: list[BufferedAction]) -> None:
        self.state.in_block = False
        actions.append(ProcessDependencies())
        self._sweep_pending = False
        logger.debug("left chart block; queued dependency sweep")

    def _process_chart_line(self, line: str, actions: list[BufferedAction]) -> None:
        state = self.state
        parsed = parse_line(
            line,
            state.current_section,
            EndDateIndex(self.task_dictionary),
            last_milestone_id=state.last_milestone_id,
        )

        if isinstance(parsed, SectionLine):
            state.current_section = parsed.name
            if parsed.name not in state.known_sections:
                state.known_sections.add(parsed.name)
                actions.append(AddSection(name=parsed.name))
            return

        if isinstance(parsed, TaskLine):
            self._emit_item(parsed.section_name, parsed.task, actions)
        elif isinstance(parsed, MilestoneLine):
            state.last_milestone_id = parsed.milestone.id
            self._emit_item(parsed.section_name, parsed.milestone, actions)

    def _emit_item(self, section_name: str, item: Task, actions: list[BufferedAction]) -> None:
        self._sweep_pending = True
        if item.is_pending:
            item = resolve_task_dates(item, EndDateIndex(self.task_dictionary))
        self._track_sketch(item)
        if item.is_pending:
            logger.debug("deferring %s until %s resolves", item.id, ", ".join(item.dependencies))
            actions.append(ResolveDependency(section_name=section_name, task=item))
            return

        widened = widen(self.timeline, item)
        if widened is not self.timeline and widened is not None:
            self.timeline = widened
            actions.append(UpdateTimeline(timeline=widened))

        actions.append(add_item(section_name, item))
        self.task_dictionary[item.id] = item

    def _track_sketch(self, item: Task) -> None:
        sketch = self.state.summary.sketch
        if item.is_milestone:
            sketch.total_milestones += 1
        else:
            sketch.total_tasks += 1
        span = task_span(item)
        if span is None:
            return
        start, end = span
        if sketch.start_date is None or start < sketch.start_date:
            sketch.start_date = start
        if sketch.end_date is None or end > sketch.end_date:
            sketch.end_date = end
