"""Bounded-concurrency executor that runs make targets as child processes."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time

from maketool.execution.base import (
    NO_EXIT_STATUS,
    ExecutionResult,
    ExecutorConfig,
    InvalidArgumentError,
    MakeCancelledError,
    MakeParams,
    MakeTimeoutError,
    NonZeroExitError,
    SpawnError,
    empty_result,
)
from maketool.execution.concurrency import CancelToken, SlotPool
from maketool.util.logging import get_logger
from maketool.util.observability import ObservabilityManager

_EXITED = "exited"
_TIMED_OUT = "timeout"
_CANCELLED = "cancelled"
_READ_SIZE = 65536

# Seconds to keep reading after a kill before returning the partial output.
DRAIN_GRACE_S = 0.25


class MakeExecutor:
    """Run make targets with a deadline and a cap on concurrent children.

    The executor is safe to call from many threads at once. Each call holds one
    slot of a shared :class:`SlotPool` for as long as its child is alive, and
    the slot is returned on every exit path.
    """

    def __init__(
        self,
        config: ExecutorConfig,
        *,
        observability: ObservabilityManager | None = None,
        poll_interval_s: float = 0.05,
    ) -> None:
        """Initialize the executor.

        Args:
            config: Validated executor configuration.
            observability: Optional sink for execution events and metrics.
            poll_interval_s: How often blocked waits re-check the cancel token.
        """

        self._config = config
        self._slots = SlotPool(config.max_concurrency, poll_interval_s=poll_interval_s)
        self._observability = observability
        self._poll_interval_s = poll_interval_s
        self._logger = get_logger(self.__class__.__name__)

    @property
    def config(self) -> ExecutorConfig:
        return self._config

    @property
    def slots(self) -> SlotPool:
        return self._slots

    def execute(self, params: MakeParams, token: CancelToken | None = None) -> ExecutionResult:
        """Run ``make <target>`` in the configured working directory.

        Args:
            params: Invocation parameters; ``params.target`` must be non-empty.
            token: Optional cancel token observed while waiting for a slot and
                while waiting for the child.

        Returns:
            ExecutionResult for a child that exited with status 0.

        Raises:
            InvalidArgumentError: If the target is empty.
            MakeCancelledError: If the token fired before completion.
            SpawnError: If the child could not be started.
            MakeTimeoutError: If the deadline elapsed and the child was killed.
            NonZeroExitError: If make exited with a non-zero status.
        """

        target = params.target
        if not isinstance(target, str) or not target:
            raise InvalidArgumentError("target must be a non-empty string", empty_result())

        if not self._slots.acquire(token):
            result = empty_result()
            self._record(target, _CANCELLED, result)
            raise MakeCancelledError(
                f"Cancelled while waiting to run target '{target}'", result
            )
        try:
            return self._run(target, token)
        finally:
            self._slots.release()

    def _run(self, target: str, token: CancelToken | None) -> ExecutionResult:
        timeout_s = self._config.timeout_s
        remaining = token.remaining() if token is not None else None
        if remaining is not None:
            timeout_s = min(timeout_s, remaining)
        deadline = time.monotonic() + timeout_s

        argv = [self._config.make_path, target]
        self._logger.info("Running %s in %s", argv, self._config.work_dir)
        start = time.monotonic()
        stdout_read, stdout_write = os.pipe()
        stderr_read, stderr_write = os.pipe()
        try:
            proc = subprocess.Popen(
                argv,
                cwd=self._config.work_dir,
                stdin=subprocess.DEVNULL,
                stdout=stdout_write,
                stderr=stderr_write,
                start_new_session=True,
            )
        except OSError as exc:
            os.close(stdout_read)
            os.close(stderr_read)
            result = ExecutionResult(
                stdout="",
                stderr="",
                exit_code=NO_EXIT_STATUS,
                duration_ms=_elapsed_ms(start),
            )
            self._record(target, "spawn_error", result)
            raise SpawnError(f"Failed to start {self._config.make_path}: {exc}", result) from exc
        finally:
            os.close(stdout_write)
            os.close(stderr_write)

        stdout = _PipeReader(stdout_read, f"{target}-stdout")
        stderr = _PipeReader(stderr_read, f"{target}-stderr")
        stdout.start()
        stderr.start()
        with proc:
            try:
                outcome = self._wait(proc, (stdout, stderr), deadline, token)
            except BaseException:
                _kill_process_group(proc)
                raise
        duration_ms = _elapsed_ms(start)

        if outcome != _EXITED:
            result = ExecutionResult(
                stdout=_decode(stdout.data()),
                stderr=_decode(stderr.data()),
                exit_code=NO_EXIT_STATUS,
                duration_ms=duration_ms,
            )
            self._record(target, outcome, result)
            if outcome == _CANCELLED:
                raise MakeCancelledError(f"Target '{target}' was cancelled", result)
            raise MakeTimeoutError(
                f"Target '{target}' timed out after {duration_ms / 1000:.2f}s", result
            )

        # A child terminated by a signal has no exit status of its own.
        exit_code = proc.returncode if proc.returncode >= 0 else NO_EXIT_STATUS
        result = ExecutionResult(
            stdout=_decode(stdout.data()),
            stderr=_decode(stderr.data()),
            exit_code=exit_code,
            duration_ms=duration_ms,
        )
        if exit_code != 0:
            self._record(target, "nonzero_exit", result)
            raise NonZeroExitError(
                f"Target '{target}' failed with exit code {exit_code}", result
            )
        self._record(target, "success", result)
        return result

    def _wait(
        self,
        proc: subprocess.Popen[bytes],
        readers: tuple[_PipeReader, ...],
        deadline: float,
        token: CancelToken | None,
    ) -> str:
        while True:
            slice_s = min(self._poll_interval_s, max(0.0, deadline - time.monotonic()))
            if _settle(proc, readers, slice_s):
                return _EXITED

            if token is not None and token.cancel_requested:
                outcome = _CANCELLED
            elif time.monotonic() >= deadline:
                outcome = _TIMED_OUT
            else:
                continue
            _kill_process_group(proc)
            proc.wait()
            # Descendants that left the process group can keep the pipes open.
            # Whatever the readers hold after the grace period is the partial output.
            _settle(proc, readers, DRAIN_GRACE_S)
            return outcome

    def _record(self, target: str, outcome: str, result: ExecutionResult) -> None:
        level = logging.INFO if outcome == "success" else logging.WARNING
        self._logger.log(
            level,
            "Target '%s' finished (%s) with exit code %s in %sms.",
            target,
            outcome,
            result.exit_code,
            result.duration_ms,
        )
        if self._observability is None:
            return
        self._observability.events.log(
            "make.execute",
            {
                "target": target,
                "outcome": outcome,
                "exit_code": result.exit_code,
                "duration_ms": result.duration_ms,
            },
            level=logging.getLevelName(level),
        )
        self._observability.metrics.increment(f"make.{outcome}")
        self._observability.metrics.record_duration("make.duration", result.duration_ms / 1000)


def _kill_process_group(proc: subprocess.Popen[bytes]) -> None:
    if os.name != "posix":
        if proc.poll() is None:
            proc.kill()
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        # The whole group already exited.
        pass


def _elapsed_ms(start: float) -> int:
    return round((time.monotonic() - start) * 1000)


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


class _PipeReader:
    """Drain one pipe on a daemon thread that owns and closes the descriptor."""

    def __init__(self, fd: int, name: str) -> None:
        self._fd = fd
        self._chunks: list[bytes] = []
        self._thread = threading.Thread(target=self._drain, name=f"make-{name}", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout: float) -> bool:
        """Wait for end of file; return True once the pipe is fully read."""

        self._thread.join(timeout)
        return not self._thread.is_alive()

    def data(self) -> bytes:
        return b"".join(list(self._chunks))

    def _drain(self) -> None:
        with os.fdopen(self._fd, "rb", buffering=0) as stream:
            while True:
                chunk = stream.read(_READ_SIZE)
                if not chunk:
                    return
                self._chunks.append(chunk)


def _settle(
    proc: subprocess.Popen[bytes], readers: tuple[_PipeReader, ...], timeout_s: float
) -> bool:
    """Wait up to ``timeout_s`` for the child to exit and both pipes to close."""

    end = time.monotonic() + timeout_s
    try:
        proc.wait(timeout=timeout_s)
    except subprocess.TimeoutExpired:
        return False
    return all(reader.join(max(0.0, end - time.monotonic())) for reader in readers)
