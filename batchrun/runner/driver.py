from __future__ import annotations

import asyncio
from typing import Callable

from batchrun.logging_config import get_logger

from .gate import CancellationGate
from .limiter import ConcurrencyLimiter, Handle
from .progress import NullProgressSink, ProgressReporter, ProgressSink
from .types import BatchSummary, Outcome, RunState, TaskDescriptor

logger = get_logger(__name__)

TaskFactory = Callable[[int], TaskDescriptor]


class BatchDriver:
    """
    Runs `factory(0) .. factory(total - 1)` with at most `concurrency` task
    bodies executing at once.

    Task failures are recorded and never stop the batch. `signal_cancel()`
    stops new tasks from starting; tasks already running finish and are
    counted. `run()` returns a summary whatever happened, except when the
    preflight raises, in which case nothing has started.
    """

    def __init__(
        self,
        total: int,
        concurrency: int,
        factory: TaskFactory,
        *,
        gate: CancellationGate | None = None,
        sink: ProgressSink | None = None,
        preflight: Callable[[], None] | None = None,
    ):
        if total < 0:
            raise ValueError(f"Total must not be negative, got {total}")
        if concurrency < 1:
            raise ValueError(f"Concurrency must be at least 1, got {concurrency}")

        self.total = total
        self.concurrency = concurrency
        self.factory = factory
        self.gate = gate if gate is not None else CancellationGate()
        self.sink = sink if sink is not None else NullProgressSink()
        self.preflight = preflight
        self.state = RunState(total)

    def signal_cancel(self) -> None:
        if self.gate.signal_cancel():
            logger.warning("Aborting: no new tasks will be started")

    async def run(self) -> BatchSummary:
        if self.preflight is not None:
            self.preflight()

        reporter = ProgressReporter(self.state, self.sink)
        limiter = ConcurrencyLimiter(
            self.concurrency,
            self.gate,
            on_start=reporter.task_started,
            on_finish=reporter.task_finished,
            on_skip=reporter.task_skipped,
        )
        submitted: list[tuple[str, Handle]] = []
        error: Exception | None = None

        logger.info(
            "Attempting {} tasks with concurrency {}", self.total, self.concurrency
        )

        try:
            for index in range(self.total):
                if self.gate.cancelled:
                    logger.warning(
                        "Skipping remaining {} tasks due to cancellation",
                        self.total - index,
                    )
                    break
                task = self.factory(index)
                submitted.append((task.label, limiter.submit(task)))
        except Exception as exc:
            logger.opt(exception=exc).error("Unexpected error while submitting tasks: {}", exc)
            error = exc
            self.signal_cancel()

        try:
            results = await asyncio.gather(*(handle for _, handle in submitted))
        finally:
            reporter.close()

        outcomes: dict[str, Outcome] = {}
        for (label, _), outcome in zip(submitted, results):
            if outcome is not None:
                outcomes[label] = outcome

        return BatchSummary(
            total=self.total,
            succeeded=self.state.succeeded,
            failed=self.state.failed,
            cancelled=self.gate.cancelled,
            outcomes=outcomes,
            error=error,
        )


async def run_batch(
    total: int,
    concurrency: int,
    factory: TaskFactory,
    *,
    gate: CancellationGate | None = None,
    sink: ProgressSink | None = None,
    preflight: Callable[[], None] | None = None,
) -> BatchSummary:
    driver = BatchDriver(
        total, concurrency, factory, gate=gate, sink=sink, preflight=preflight
    )
    return await driver.run()
