from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable


class RunnerError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class SetupFailure(RunnerError):
    """A precondition of the batch is missing; no task was started."""

    def __init__(self, *args: object) -> None:
        super().__init__(*args)


@dataclass(frozen=True)
class TaskDescriptor:
    label: str
    work: Callable[[], Awaitable[Any] | Any]


@dataclass(frozen=True)
class Success:
    value: Any = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    error: BaseException

    @property
    def ok(self) -> bool:
        return False


Outcome = Success | Failure


@dataclass
class RunState:
    total: int
    succeeded: int = 0
    failed: int = 0
    in_flight: int = 0
    skipped: int = 0

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed


@dataclass(frozen=True)
class ProgressSnapshot:
    completed: int
    total: int
    succeeded: int
    failed: int
    in_flight: int

    @classmethod
    def of(cls, state: RunState) -> ProgressSnapshot:
        return cls(
            state.completed, state.total, state.succeeded, state.failed, state.in_flight
        )


@dataclass(frozen=True)
class BatchSummary:
    total: int
    succeeded: int
    failed: int
    cancelled: bool
    outcomes: dict[str, Outcome] = field(default_factory=dict)
    error: Exception | None = None

    @property
    def attempted(self) -> int:
        return self.succeeded + self.failed

    @property
    def not_attempted(self) -> int:
        return self.total - self.attempted

    def failures(self) -> dict[str, Failure]:
        return {
            label: outcome
            for label, outcome in self.outcomes.items()
            if isinstance(outcome, Failure)
        }

    def as_dict(self) -> dict[str, int]:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "not_attempted": self.not_attempted,
        }
