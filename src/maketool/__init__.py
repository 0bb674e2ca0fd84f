"""Run make targets on behalf of callers with bounded time and parallelism."""

from maketool.execution import (
    CancelToken,
    ExecutionResult,
    ExecutorConfig,
    MakeExecutionError,
    MakeExecutor,
    MakeParams,
    serialize_result,
)
from maketool.helptext import format_help_preamble, process_help_output

__version__ = "0.1.0"

__all__ = [
    "CancelToken",
    "ExecutionResult",
    "ExecutorConfig",
    "MakeExecutionError",
    "MakeExecutor",
    "MakeParams",
    "format_help_preamble",
    "process_help_output",
    "serialize_result",
]
