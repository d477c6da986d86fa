from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Iterable, Iterator
from dataclasses import dataclass, field

from gantt_stream.core.apply.action_buffer import ActionBuffer
from gantt_stream.core.config import DEFAULT_CONFIG, EngineConfig
from gantt_stream.core.errors import PlanWarning
from gantt_stream.core.model import Plan, TaskDictionary
from gantt_stream.core.stream.actions import BufferedAction, ResolveDependency
from gantt_stream.core.stream.session import StreamSession, StreamSummary


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamOutcome:
    plan: Plan
    task_dictionary: TaskDictionary
    actions: list[BufferedAction] = field(default_factory=list)
    warnings: list[PlanWarning] = field(default_factory=list)
    dropped: list[ResolveDependency] = field(default_factory=list)
    summary: StreamSummary = field(default_factory=StreamSummary)


def chunk_text(text: str, size: int) -> Iterator[str]:
    """Split text into fragments of at most size characters."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    for i in range(0, len(text), size):
        yield text[i : i + size]


def build_plan(chunks: Iterable[str], config: EngineConfig = DEFAULT_CONFIG) -> StreamOutcome:
    """Consume a fragment stream and drain its actions as they arrive."""
    session = StreamSession(config)
    buffer = ActionBuffer(config=config)
    emitted: list[BufferedAction] = []

    for chunk in chunks:
        result = session.consume(chunk)
        emitted.extend(result.actions)
        buffer.push(result.actions)
        buffer.drain(final=False)
        session.task_dictionary.update(buffer.task_dictionary)
        session.timeline = buffer.plan.timeline

    result = session.finish()
    emitted.extend(result.actions)
    buffer.push(result.actions)
    buffer.drain()
    return _outcome(session, buffer, emitted)


async def build_plan_async(chunks: AsyncIterable[str], config: EngineConfig = DEFAULT_CONFIG) -> StreamOutcome:
    """build_plan for an async fragment source; drains yield between actions."""
    session = StreamSession(config)
    buffer = ActionBuffer(config=config)
    emitted: list[BufferedAction] = []

    async for chunk in chunks:
        result = session.consume(chunk)
        emitted.extend(result.actions)
        buffer.push(result.actions)
        await buffer.drain_async(final=False)
        session.task_dictionary.update(buffer.task_dictionary)
        session.timeline = buffer.plan.timeline

    result = session.finish()
    emitted.extend(result.actions)
    buffer.push(result.actions)
    await buffer.drain_async()
    return _outcome(session, buffer, emitted)


def _outcome(session: StreamSession, buffer: ActionBuffer, emitted: list[BufferedAction]) -> StreamOutcome:
    logger.debug("stream produced %d action(s), %d applied", len(emitted), buffer.processed)
    return StreamOutcome(
        plan=buffer.plan,
        task_dictionary=buffer.task_dictionary,
        actions=emitted,
        warnings=list(buffer.warnings),
        dropped=list(buffer.dropped),
        summary=session.state.summary,
    )
