from __future__ import annotations

import asyncio
import inspect
from collections import deque
from typing import Callable

from .gate import CancellationGate
from .types import Failure, Outcome, Success, TaskDescriptor

Handle = asyncio.Future  # resolves to Outcome, or None when the task was skipped


def _noop(*_: object) -> None:
    return None


class ConcurrencyLimiter:
    def __init__(
        self,
        limit: int,
        gate: CancellationGate,
        *,
        on_start: Callable[[TaskDescriptor], None] = _noop,
        on_finish: Callable[[TaskDescriptor, Outcome], None] = _noop,
        on_skip: Callable[[TaskDescriptor], None] = _noop,
    ):
        if limit < 1:
            raise ValueError(f"Concurrency limit must be at least 1, got {limit}")

        self.limit = limit
        self.gate = gate
        self._on_start = on_start
        self._on_finish = on_finish
        self._on_skip = on_skip
        self._pending: deque[tuple[TaskDescriptor, Handle]] = deque()
        self._running: set[asyncio.Task] = set()
        self._active = 0
        self._executing = 0
        self.peak_executing = 0

    @property
    def active(self) -> int:
        return self._active

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, task: TaskDescriptor) -> Handle:
        loop = asyncio.get_running_loop()
        handle: Handle = loop.create_future()
        self._pending.append((task, handle))
        self._dispatch()
        return handle

    def _dispatch(self) -> None:
        while self._pending:
            if self.gate.cancelled:
                task, handle = self._pending.popleft()
                self._skip(task, handle)
                continue

            if self._active >= self.limit:
                return

            task, handle = self._pending.popleft()
            self._active += 1
            runner = asyncio.ensure_future(self._execute(task, handle))
            self._running.add(runner)
            runner.add_done_callback(self._running.discard)

    def _skip(self, task: TaskDescriptor, handle: Handle) -> None:
        self._on_skip(task)
        if not handle.done():
            handle.set_result(None)

    async def _execute(self, task: TaskDescriptor, handle: Handle) -> None:
        # The gate may have flipped between dispatch and the first step of
        # this coroutine.
        if self.gate.cancelled:
            self._active -= 1
            self._skip(task, handle)
            self._dispatch()
            return

        self._executing += 1
        self.peak_executing = max(self.peak_executing, self._executing)
        self._on_start(task)
        outcome: Outcome | None = None
        try:
            result = task.work()
            if inspect.isawaitable(result):
                result = await result
            outcome = Success(result)
        except Exception as exc:
            outcome = Failure(exc)
        finally:
            self._executing -= 1
            self._active -= 1
            if outcome is None:
                # Cancelled by the event loop, not a task failure.
                handle.cancel()
            else:
                self._on_finish(task, outcome)
                if not handle.done():
                    handle.set_result(outcome)
            self._dispatch()
