from __future__ import annotations

import sys
import time
from typing import Protocol, TextIO

from batchrun.logging_config import get_logger

from .types import Failure, Outcome, ProgressSnapshot, RunState, TaskDescriptor

logger = get_logger(__name__)


class ProgressSink(Protocol):
    def update(self, snapshot: ProgressSnapshot) -> None: ...

    def close(self) -> None: ...


class NullProgressSink:
    def update(self, snapshot: ProgressSnapshot) -> None:
        return None

    def close(self) -> None:
        return None


class TerminalProgressSink:
    """
    Single-line progress bar redrawn in place.

    Redraws are throttled to one per `interval` seconds; `close()` always
    draws the last snapshot it was given and ends the line.
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        *,
        interval: float = 0.1,
        width: int = 40,
    ):
        self.stream = stream if stream is not None else sys.stdout
        self.interval = interval
        self.width = width
        self._last: ProgressSnapshot | None = None
        self._last_draw = float("-inf")

    def update(self, snapshot: ProgressSnapshot) -> None:
        self._last = snapshot
        now = time.monotonic()
        if now - self._last_draw < self.interval:
            return
        self._last_draw = now
        self._draw(snapshot)

    def close(self) -> None:
        if self._last is not None:
            self._draw(self._last)
            self.stream.write("\n")
            self.stream.flush()

    def render(self, snapshot: ProgressSnapshot) -> str:
        ratio = snapshot.completed / snapshot.total if snapshot.total else 1.0
        filled = int(self.width * ratio)
        bar = "█" * filled + "░" * (self.width - filled)
        return (
            f" {bar} | {ratio * 100:.0f}% | "
            f"S: {snapshot.succeeded}, F: {snapshot.failed}, IP: {snapshot.in_flight} | "
            f"{snapshot.completed}/{snapshot.total}"
        )

    def _draw(self, snapshot: ProgressSnapshot) -> None:
        self.stream.write("\r" + self.render(snapshot))
        self.stream.flush()


class ProgressReporter:
    """Owns the run counters and pushes a snapshot to the sink on every change."""

    def __init__(self, state: RunState, sink: ProgressSink | None = None):
        self.state = state
        self.sink: ProgressSink | None = sink

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot.of(self.state)

    def task_started(self, task: TaskDescriptor) -> None:
        self.state.in_flight += 1
        self._emit()

    def task_finished(self, task: TaskDescriptor, outcome: Outcome) -> None:
        self.state.in_flight -= 1
        if isinstance(outcome, Failure):
            self.state.failed += 1
            logger.error("{} failed: {}", task.label, first_line(outcome.error))
        else:
            self.state.succeeded += 1
            logger.debug("{} succeeded", task.label)
        self._emit()

    def task_skipped(self, task: TaskDescriptor) -> None:
        self.state.skipped += 1
        logger.debug("{} skipped", task.label)

    def close(self) -> None:
        if self.sink is None:
            return
        sink, self.sink = self.sink, None
        try:
            sink.close()
        except Exception:
            logger.opt(exception=True).warning("Progress display failed to close")

    def _emit(self) -> None:
        if self.sink is None:
            return
        try:
            self.sink.update(self.snapshot())
        except Exception:
            logger.opt(exception=True).warning(
                "Progress display failed, continuing without it"
            )
            self.sink = None


def first_line(error: BaseException) -> str:
    message = str(error) or type(error).__name__
    return message.splitlines()[0]
