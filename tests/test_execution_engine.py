from __future__ import annotations

import json
import shutil
import threading
import time
from pathlib import Path
from typing import Callable

import pytest

from maketool.execution import (
    CancelToken,
    ExecutionResult,
    ExecutorConfig,
    InvalidArgumentError,
    MakeCancelledError,
    MakeExecutor,
    MakeParams,
    MakeTimeoutError,
    NonZeroExitError,
    SpawnError,
    serialize_result,
)

ExecutorFactory = Callable[..., MakeExecutor]

requires_make = pytest.mark.skipif(shutil.which("make") is None, reason="make not found in PATH")


def test_executor_keeps_config(fake_make: Path, work_dir: Path) -> None:
    config = ExecutorConfig(
        make_path=str(fake_make), work_dir=str(work_dir), timeout_s=60, max_concurrency=4
    )

    executor = MakeExecutor(config)

    assert executor.config is config
    assert executor.slots.capacity == 4
    assert executor.slots.in_use == 0


@pytest.mark.parametrize(
    "kwargs",
    [
        {"make_path": "", "work_dir": "/tmp"},
        {"make_path": "make", "work_dir": "/tmp"},
        {"make_path": "/usr/bin/make", "work_dir": ""},
        {"make_path": "/usr/bin/make", "work_dir": "relative/dir"},
        {"make_path": "/usr/bin/make", "work_dir": "/tmp", "timeout_s": 0},
        {"make_path": "/usr/bin/make", "work_dir": "/tmp", "timeout_s": -1},
        {"make_path": "/usr/bin/make", "work_dir": "/tmp", "max_concurrency": 0},
    ],
)
def test_executor_config_rejects_invalid_values(kwargs: dict[str, object]) -> None:
    with pytest.raises(InvalidArgumentError):
        ExecutorConfig(**kwargs)  # type: ignore[arg-type]


def test_execute_captures_stdout(make_executor: ExecutorFactory) -> None:
    executor = make_executor()

    result = executor.execute(MakeParams(target="hello"))

    assert result == ExecutionResult(
        stdout="Hello from test\n", stderr="", exit_code=0, duration_ms=result.duration_ms
    )
    assert result.duration_ms >= 0
    assert result.success is True


def test_execute_keeps_streams_separate(make_executor: ExecutorFactory) -> None:
    result = make_executor().execute(MakeParams(target="both"))

    assert result.stdout == "to stdout\n"
    assert result.stderr == "to stderr\n"


def test_execute_runs_in_work_dir(make_executor: ExecutorFactory, work_dir: Path) -> None:
    result = make_executor().execute(MakeParams(target="pwd"))

    assert Path(result.stdout.strip()).resolve() == work_dir.resolve()


def test_execute_rejects_empty_target(make_executor: ExecutorFactory) -> None:
    executor = make_executor()

    with pytest.raises(InvalidArgumentError) as exc_info:
        executor.execute(MakeParams(target=""))

    assert exc_info.value.result is not None
    assert exc_info.value.result.exit_code == -1
    assert executor.slots.in_use == 0


def test_execute_reports_nonzero_exit(make_executor: ExecutorFactory) -> None:
    executor = make_executor()

    with pytest.raises(NonZeroExitError) as exc_info:
        executor.execute(MakeParams(target="fail"))

    result = exc_info.value.result
    assert result is not None
    assert result.exit_code == 3
    assert result.stdout == "partial\n"
    assert result.stderr == "boom\n"
    assert executor.slots.in_use == 0


def test_execute_reports_signal_termination_without_status(
    make_executor: ExecutorFactory,
) -> None:
    with pytest.raises(NonZeroExitError) as exc_info:
        make_executor().execute(MakeParams(target="selfkill"))

    assert exc_info.value.result is not None
    assert exc_info.value.result.exit_code == -1


def test_execute_duration_covers_child_runtime(make_executor: ExecutorFactory) -> None:
    result = make_executor().execute(MakeParams(target="nap"))

    assert result.stdout == "rested\n"
    assert result.duration_ms >= 300


def test_execute_times_out_and_keeps_partial_output(make_executor: ExecutorFactory) -> None:
    executor = make_executor(timeout_s=0.5)

    start = time.monotonic()
    with pytest.raises(MakeTimeoutError) as exc_info:
        executor.execute(MakeParams(target="hang"))
    elapsed = time.monotonic() - start

    result = exc_info.value.result
    assert result is not None
    assert result.exit_code == -1
    assert result.stdout == "started\n"
    assert result.duration_ms >= 400
    assert elapsed < 5
    assert executor.slots.in_use == 0


@pytest.mark.skipif(shutil.which("setsid") is None, reason="setsid not found in PATH")
def test_execute_timeout_not_held_by_detached_descendant(make_executor: ExecutorFactory) -> None:
    executor = make_executor(timeout_s=0.5)

    start = time.monotonic()
    with pytest.raises(MakeTimeoutError) as exc_info:
        executor.execute(MakeParams(target="detach"))
    elapsed = time.monotonic() - start

    result = exc_info.value.result
    assert result is not None
    assert result.exit_code == -1
    assert result.stdout == "started\n"
    assert elapsed < 2
    assert executor.slots.in_use == 0


def test_execute_honours_earlier_caller_deadline(make_executor: ExecutorFactory) -> None:
    executor = make_executor(timeout_s=30)
    token = CancelToken.with_timeout(0.3)

    start = time.monotonic()
    with pytest.raises(MakeTimeoutError) as exc_info:
        executor.execute(MakeParams(target="hang"), token)

    assert time.monotonic() - start < 5
    assert exc_info.value.result is not None
    assert exc_info.value.result.exit_code == -1


def test_execute_cancel_kills_running_child(make_executor: ExecutorFactory) -> None:
    executor = make_executor(timeout_s=30)
    token = CancelToken()
    timer = threading.Timer(0.3, token.cancel)
    timer.start()

    start = time.monotonic()
    try:
        with pytest.raises(MakeCancelledError) as exc_info:
            executor.execute(MakeParams(target="hang"), token)
    finally:
        timer.cancel()

    assert time.monotonic() - start < 5
    result = exc_info.value.result
    assert result is not None
    assert result.exit_code == -1
    assert result.stdout == "started\n"
    assert executor.slots.in_use == 0


def test_execute_with_cancelled_token_spawns_nothing(make_executor: ExecutorFactory) -> None:
    executor = make_executor()
    token = CancelToken()
    token.cancel()

    with pytest.raises(MakeCancelledError) as exc_info:
        executor.execute(MakeParams(target="hello"), token)

    assert exc_info.value.result == ExecutionResult(
        stdout="", stderr="", exit_code=-1, duration_ms=0
    )
    assert executor.slots.in_use == 0


def test_execute_cancel_while_waiting_for_slot(make_executor: ExecutorFactory) -> None:
    executor = make_executor(timeout_s=30, max_concurrency=1)
    holder_token = CancelToken()
    holder_errors: list[Exception] = []

    def hold_slot() -> None:
        try:
            executor.execute(MakeParams(target="hang"), holder_token)
        except MakeCancelledError as exc:
            holder_errors.append(exc)

    holder = threading.Thread(target=hold_slot)
    holder.start()
    try:
        deadline = time.monotonic() + 5
        while executor.slots.in_use == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert executor.slots.in_use == 1

        waiter_token = CancelToken()
        timer = threading.Timer(0.2, waiter_token.cancel)
        timer.start()
        with pytest.raises(MakeCancelledError) as exc_info:
            executor.execute(MakeParams(target="hello"), waiter_token)
        timer.cancel()
    finally:
        holder_token.cancel()
        holder.join(timeout=10)

    result = exc_info.value.result
    assert result is not None
    assert result.exit_code == -1
    assert result.stdout == ""
    assert len(holder_errors) == 1
    assert executor.slots.in_use == 0


def test_execute_reports_missing_binary(work_dir: Path, tmp_path: Path) -> None:
    config = ExecutorConfig(make_path=str(tmp_path / "no-such-make"), work_dir=str(work_dir))
    executor = MakeExecutor(config)

    with pytest.raises(SpawnError) as exc_info:
        executor.execute(MakeParams(target="hello"))

    result = exc_info.value.result
    assert result is not None
    assert result.exit_code == -1
    assert result.stdout == ""
    assert result.stderr == ""
    assert executor.slots.in_use == 0


def test_execute_reports_non_executable_binary(work_dir: Path, tmp_path: Path) -> None:
    not_executable = tmp_path / "plain-file"
    not_executable.write_text("echo nope\n", encoding="utf-8")
    not_executable.chmod(0o644)
    executor = MakeExecutor(ExecutorConfig(make_path=str(not_executable), work_dir=str(work_dir)))

    with pytest.raises(SpawnError):
        executor.execute(MakeParams(target="hello"))


def test_execute_bounds_concurrent_children(make_executor: ExecutorFactory) -> None:
    executor = make_executor(max_concurrency=2)
    results: list[ExecutionResult] = []
    results_lock = threading.Lock()
    peak = 0
    stop_sampling = threading.Event()

    def sample() -> None:
        nonlocal peak
        while not stop_sampling.is_set():
            peak = max(peak, executor.slots.in_use)
            time.sleep(0.005)

    def run() -> None:
        result = executor.execute(MakeParams(target="nap"))
        with results_lock:
            results.append(result)

    sampler = threading.Thread(target=sample)
    sampler.start()
    workers = [threading.Thread(target=run) for _ in range(6)]
    start = time.monotonic()
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join(timeout=30)
    elapsed = time.monotonic() - start
    stop_sampling.set()
    sampler.join()

    assert len(results) == 6
    assert all(result.exit_code == 0 for result in results)
    assert peak <= 2
    # Six 0.3s children through two slots need at least three rounds.
    assert elapsed >= 0.85
    assert executor.slots.in_use == 0


def test_serialize_result_is_compact_json() -> None:
    result = ExecutionResult(stdout="Hello World", stderr="", exit_code=0, duration_ms=100)

    payload = serialize_result(result)

    assert payload == '{"stdout":"Hello World","stderr":"","exit_code":0,"duration_ms":100}'
    assert not payload.endswith("\n")


def test_serialize_result_escapes_output() -> None:
    result = ExecutionResult(
        stdout='quote " and\nnewline', stderr="tab\there", exit_code=-1, duration_ms=7
    )

    data = json.loads(serialize_result(result))

    assert set(data) == {"stdout", "stderr", "exit_code", "duration_ms"}
    assert data["stdout"] == 'quote " and\nnewline'
    assert data["stderr"] == "tab\there"
    assert data["exit_code"] == -1


def _write_makefile(directory: Path, body: str) -> None:
    (directory / "Makefile").write_text(body, encoding="utf-8")


@requires_make
def test_real_make_runs_target(tmp_path: Path) -> None:
    _write_makefile(tmp_path, '.PHONY: hello\nhello:\n\t@echo "Hello from test"\n')
    executor = MakeExecutor(
        ExecutorConfig(make_path=shutil.which("make") or "", work_dir=str(tmp_path), timeout_s=10)
    )

    result = executor.execute(MakeParams(target="hello"))

    assert result.exit_code == 0
    assert result.stdout == "Hello from test\n"


@requires_make
def test_real_make_times_out(tmp_path: Path) -> None:
    _write_makefile(tmp_path, ".PHONY: slow\nslow:\n\t@sleep 10\n")
    executor = MakeExecutor(
        ExecutorConfig(make_path=shutil.which("make") or "", work_dir=str(tmp_path), timeout_s=1)
    )

    start = time.monotonic()
    with pytest.raises(MakeTimeoutError) as exc_info:
        executor.execute(MakeParams(target="slow"))

    assert time.monotonic() - start < 5
    assert exc_info.value.result is not None
    assert exc_info.value.result.exit_code == -1


@requires_make
def test_real_make_missing_target(tmp_path: Path) -> None:
    _write_makefile(tmp_path, '.PHONY: hello\nhello:\n\t@echo "Hello"\n')
    executor = MakeExecutor(
        ExecutorConfig(make_path=shutil.which("make") or "", work_dir=str(tmp_path), timeout_s=10)
    )

    with pytest.raises(NonZeroExitError) as exc_info:
        executor.execute(MakeParams(target="nonexistent"))

    result = exc_info.value.result
    assert result is not None
    assert result.exit_code != 0
    assert result.stderr != ""
