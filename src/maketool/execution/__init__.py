"""Execution engine package."""

from maketool.execution.base import (
    NO_EXIT_STATUS,
    ExecutionResult,
    ExecutorConfig,
    InvalidArgumentError,
    MakeCancelledError,
    MakeExecutionError,
    MakeParams,
    MakeTimeoutError,
    NonZeroExitError,
    SpawnError,
    serialize_result,
)
from maketool.execution.concurrency import CancelToken, SlotPool
from maketool.execution.make_exec import MakeExecutor

__all__ = [
    "NO_EXIT_STATUS",
    "CancelToken",
    "ExecutionResult",
    "ExecutorConfig",
    "InvalidArgumentError",
    "MakeCancelledError",
    "MakeExecutionError",
    "MakeExecutor",
    "MakeParams",
    "MakeTimeoutError",
    "NonZeroExitError",
    "SlotPool",
    "SpawnError",
    "serialize_result",
]
