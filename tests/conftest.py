from __future__ import annotations

import stat
from pathlib import Path
from typing import Callable

import pytest

from maketool.execution.base import ExecutorConfig
from maketool.execution.make_exec import MakeExecutor
from maketool.util.observability import ObservabilityManager

FAKE_MAKE = """#!/bin/sh
case "$1" in
  hello) echo "Hello from test" ;;
  both) echo "to stdout"; echo "to stderr" >&2 ;;
  fail) echo "partial"; echo "boom" >&2; exit 3 ;;
  nap) sleep 0.3; echo "rested" ;;
  hang) echo "started"; sleep 30 ;;
  detach) echo "started"; setsid sleep 6 & sleep 30 ;;
  selfkill) kill -TERM $$ ;;
  pwd) pwd ;;
  help) printf 'Usage:\\n  make <target>\\n\\nTargets:\\n  hello  Say hello\\n\\nNotes\\n\\nInternal prose\\n' ;;
  *) echo "make: *** No rule to make target '$1'.  Stop." >&2; exit 2 ;;
esac
"""

@pytest.fixture
def fake_make(tmp_path: Path) -> Path:
    """Write an executable stand-in for make that dispatches on its target."""

    script = tmp_path / "bin" / "fake-make"
    script.parent.mkdir()
    script.write_text(FAKE_MAKE, encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def make_executor(fake_make: Path, work_dir: Path) -> Callable[..., MakeExecutor]:
    """Return a factory for executors backed by the fake make script."""

    def factory(
        *,
        timeout_s: float = 10,
        max_concurrency: int = 1,
        observability: ObservabilityManager | None = None,
    ) -> MakeExecutor:
        config = ExecutorConfig(
            make_path=str(fake_make),
            work_dir=str(work_dir),
            timeout_s=timeout_s,
            max_concurrency=max_concurrency,
        )
        return MakeExecutor(config, observability=observability)

    return factory
