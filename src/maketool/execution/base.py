"""Execution engine base types, errors, and result serialization."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any

# Exit code reported when the child never produced an exit status.
NO_EXIT_STATUS = -1


@dataclass(frozen=True)
class ExecutionResult:
    """Result of a single make invocation.

    Attributes:
        stdout: Captured standard output, decoded as UTF-8.
        stderr: Captured standard error, decoded as UTF-8.
        exit_code: Child exit status, or -1 when no status was obtained.
        duration_ms: Wall-clock milliseconds from spawn to termination.
    """

    stdout: str
    stderr: str
    exit_code: int
    duration_ms: int

    @property
    def success(self) -> bool:
        """Return True if the child ran to completion with status 0."""

        return self.exit_code == 0

    def to_dict(self) -> dict[str, Any]:
        """Return the externally visible mapping of the result."""

        return {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "duration_ms": self.duration_ms,
        }


def empty_result() -> ExecutionResult:
    """Return the result used when no child was spawned."""

    return ExecutionResult(stdout="", stderr="", exit_code=NO_EXIT_STATUS, duration_ms=0)


def serialize_result(result: ExecutionResult) -> str:
    """Render a result as compact JSON with no trailing newline."""

    return json.dumps(result.to_dict(), separators=(",", ":"))


class MakeExecutionError(RuntimeError):
    """Base class for make execution failures.

    Attributes:
        result: The result produced by the failed invocation, if any.
    """

    def __init__(self, message: str, result: ExecutionResult | None = None) -> None:
        super().__init__(message)
        self.result = result


class InvalidArgumentError(MakeExecutionError, ValueError):
    """Raised for an empty target or a misconfigured executor."""


class SpawnError(MakeExecutionError):
    """Raised when the operating system refuses to start the child."""


class NonZeroExitError(MakeExecutionError):
    """Raised when make ran and exited with a non-zero status."""


class MakeTimeoutError(MakeExecutionError):
    """Raised when the invocation deadline elapsed before make exited."""


class MakeCancelledError(MakeExecutionError):
    """Raised when the caller cancelled the invocation."""


@dataclass(frozen=True)
class MakeParams:
    """Parameters supplied by the caller for one invocation."""

    target: str


@dataclass(frozen=True)
class ExecutorConfig:
    """Immutable configuration for a make executor.

    Attributes:
        make_path: Absolute path to the make binary.
        work_dir: Absolute directory used as the child's working directory.
        timeout_s: Per-invocation timeout in seconds.
        max_concurrency: Maximum number of children alive at once.
    """

    make_path: str
    work_dir: str
    timeout_s: float = 60
    max_concurrency: int = 4

    def __post_init__(self) -> None:
        """Validate the configuration values."""

        if not self.make_path or not PurePath(self.make_path).is_absolute():
            raise InvalidArgumentError(
                f"make_path must be an absolute path, got {self.make_path!r}"
            )
        if not self.work_dir or not PurePath(self.work_dir).is_absolute():
            raise InvalidArgumentError(
                f"work_dir must be an absolute path, got {self.work_dir!r}"
            )
        if self.timeout_s <= 0:
            raise InvalidArgumentError(f"timeout_s must be positive, got {self.timeout_s}")
        if self.max_concurrency < 1:
            raise InvalidArgumentError(
                f"max_concurrency must be at least 1, got {self.max_concurrency}"
            )
