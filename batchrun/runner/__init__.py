from .driver import BatchDriver, run_batch
from .gate import CancellationGate
from .limiter import ConcurrencyLimiter
from .progress import NullProgressSink, ProgressReporter, TerminalProgressSink
from .types import (
    BatchSummary,
    Failure,
    ProgressSnapshot,
    RunnerError,
    RunState,
    SetupFailure,
    Success,
    TaskDescriptor,
)

__all__ = [
    "BatchDriver",
    "BatchSummary",
    "CancellationGate",
    "ConcurrencyLimiter",
    "Failure",
    "NullProgressSink",
    "ProgressReporter",
    "ProgressSnapshot",
    "RunState",
    "RunnerError",
    "SetupFailure",
    "Success",
    "TaskDescriptor",
    "TerminalProgressSink",
    "run_batch",
]
