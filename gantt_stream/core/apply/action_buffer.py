from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Iterable
from typing import Optional

from gantt_stream.core.apply.apply_action import ApplyResult, admit_retry, apply_action, note_warning
from gantt_stream.core.config import DEFAULT_CONFIG, EngineConfig
from gantt_stream.core.errors import PlanWarning
from gantt_stream.core.model import Plan, TaskDictionary, build_task_dictionary
from gantt_stream.core.stream.actions import BufferedAction, ResolveDependency, describe


logger = logging.getLogger(__name__)


class DrainInProgressError(RuntimeError):
    pass


class ActionBuffer:
    """FIFO queue of actions bound to one plan.

    Owns the current Plan and TaskDictionary for a session. Only one drain may
    run at a time; starting a second one while a drain is active raises
    DrainInProgressError instead of interleaving.

    drain(final=False) is for mid-stream use: it stops once everything left is
    a RESOLVE_DEPENDENCY that cannot make progress yet and parks those without
    spending their retries. The final drain enforces the retry cap and drops
    what never resolves.
    """

    def __init__(self, plan: Optional[Plan] = None, config: EngineConfig = DEFAULT_CONFIG) -> None:
        self.config = config
        self.plan = plan or Plan()
        self.task_dictionary: TaskDictionary = build_task_dictionary(self.plan.sections)
        self.warnings: list[PlanWarning] = []
        self.dropped: list[ResolveDependency] = []
        self._queue: deque[BufferedAction] = deque()
        self._draining = False
        self.processed = 0

    def __len__(self) -> int:
        return len(self._queue)

    @property
    def pending(self) -> list[BufferedAction]:
        return list(self._queue)

    @property
    def is_draining(self) -> bool:
        return self._draining

    @property
    def progress(self) -> float:
        total = self.processed + len(self._queue)
        return 1.0 if total == 0 else self.processed / total

    def push(self, actions: Iterable[BufferedAction]) -> None:
        self._queue.extend(actions)

    def apply_next(self) -> Optional[BufferedAction]:
        """Apply the head of the queue under the retry cap; returns it, or None when empty."""
        if not self._queue:
            return None
        action = self._queue.popleft()
        result = self._apply(action)
        for retry in result.requeue:
            warning = (
                admit_retry(retry, self.config.max_iterations, self.task_dictionary, self.plan)
                if isinstance(retry, ResolveDependency)
                else None
            )
            if warning is None:
                self._queue.append(retry)
                continue
            logger.warning("%s", warning)
            note_warning(self.warnings, warning)
            self.dropped.append(retry)
        return action

    def drain(self, *, final: bool = True) -> Plan:
        self._begin()
        try:
            if final:
                while self._queue:
                    self.apply_next()
            else:
                stalled = 0
                while self._queue and stalled < len(self._queue):
                    stalled = self._apply_parking(stalled)
        finally:
            self._draining = False
        return self.plan

    async def drain_async(self, *, final: bool = True) -> Plan:
        """drain(), yielding to the event loop between actions."""
        self._begin()
        try:
            stalled = 0
            while self._queue and (final or stalled < len(self._queue)):
                if final:
                    self.apply_next()
                else:
                    stalled = self._apply_parking(stalled)
                await asyncio.sleep(0)
        finally:
            self._draining = False
        return self.plan

    def reset(self, plan: Optional[Plan] = None) -> None:
        if self._draining:
            raise DrainInProgressError("cannot reset while draining")
        self.plan = plan or Plan()
        self.task_dictionary = build_task_dictionary(self.plan.sections)
        self.warnings = []
        self.dropped = []
        self._queue.clear()
        self.processed = 0

    def _apply(self, action: BufferedAction) -> ApplyResult:
        result = apply_action(
            self.plan,
            action,
            self.task_dictionary,
            max_iterations=self.config.max_iterations,
        )
        self.plan = result.plan
        self.task_dictionary = result.task_dictionary
        for warning in result.warnings:
            note_warning(self.warnings, warning)
        self.processed += 1
        logger.debug("applied %s", describe(action))
        return result

    def _apply_parking(self, stalled: int) -> int:
        # Unresolved retries go back unchanged; returns the run of fruitless retries.
        action = self._queue.popleft()
        result = self._apply(action)
        if result.requeue:
            self._queue.append(action)
            return stalled + 1
        return 0

    def _begin(self) -> None:
        if self._draining:
            raise DrainInProgressError("action queue is already draining")
        self._draining = True
