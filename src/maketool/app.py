"""Application wiring for CLI-friendly make execution."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from maketool.config import (
    AppConfig,
    config_to_dict,
    load_config,
    to_executor_config,
    update_timeout,
)
from maketool.execution.base import ExecutionResult, InvalidArgumentError, MakeParams
from maketool.execution.concurrency import CancelToken
from maketool.execution.make_exec import MakeExecutor
from maketool.tools.make_tools import build_default_tool_registry, describe_targets
from maketool.tools.registry import ToolRegistry
from maketool.util.logging import configure_logging, get_logger
from maketool.util.observability import ObservabilityManager, create_observability_manager


class AppConfigError(RuntimeError):
    """Raised when configuration or runtime setup fails."""


@dataclass(frozen=True)
class RuntimeContext:
    """Container for the services a transport needs to serve make."""

    config: AppConfig
    executor: MakeExecutor
    tools: ToolRegistry
    observability: ObservabilityManager


_LOGGER = get_logger("maketool.app")


def initialize_config(workspace: Path) -> Path:
    """Create a default configuration file in the workspace.

    Args:
        workspace: Workspace directory where the config should be written.

    Returns:
        Path to the generated configuration file.

    Raises:
        AppConfigError: If the config file already exists.
    """

    workspace = workspace.resolve()
    config_path = workspace / "maketool.yaml"
    if config_path.exists():
        raise AppConfigError(
            f"Config file already exists at {config_path}. Remove it or choose another "
            "workspace."
        )
    config_path.write_text(
        json.dumps(config_to_dict(AppConfig(workspace_root=workspace)), indent=2),
        encoding="utf-8",
    )
    _LOGGER.info("Initialized configuration at %s", config_path)
    return config_path


def run_target(
    target: str,
    workspace: Path,
    timeout_s: float | None = None,
    token: CancelToken | None = None,
) -> ExecutionResult:
    """Run a single make target for the workspace.

    Raises:
        MakeExecutionError: If make fails; the error carries the result.
    """

    runtime = _build_runtime_from_workspace(workspace, timeout_s=timeout_s, describe=False)
    return runtime.executor.execute(MakeParams(target=target), token)


def describe_workspace(workspace: Path) -> str:
    """Return the formatted help listing for the workspace."""

    runtime = _build_runtime_from_workspace(workspace, timeout_s=None, describe=False)
    return describe_targets(runtime.executor, runtime.config.help)


def list_tools(workspace: Path) -> list[dict[str, Any]]:
    """Return the listing entry of every tool served for the workspace."""

    runtime = _build_runtime_from_workspace(workspace, timeout_s=None, describe=True)
    return [tool.describe() for tool in runtime.tools.list_tools()]


def _build_runtime_from_workspace(
    workspace: Path,
    *,
    timeout_s: float | None,
    describe: bool,
) -> RuntimeContext:
    _LOGGER.info("Loading configuration from workspace %s", workspace)
    config = load_config(workspace)
    configure_logging(config.logging.level)
    if timeout_s is not None:
        config = update_timeout(config, timeout_s)
    return build_runtime(config, describe=describe)


def build_runtime(
    config: AppConfig,
    *,
    executor: MakeExecutor | None = None,
    describe: bool = True,
) -> RuntimeContext:
    """Build runtime services for serving make.

    Args:
        config: Application configuration.
        executor: Optional pre-built executor (for testing).
        describe: Whether to run the help target while building the tools.

    Returns:
        RuntimeContext with initialized services.

    Raises:
        AppConfigError: If the make settings are invalid.
    """

    observability = create_observability_manager()
    if executor is None:
        try:
            executor_config = to_executor_config(config)
        except InvalidArgumentError as exc:
            raise AppConfigError(f"Invalid make configuration: {exc}") from exc
        executor = MakeExecutor(executor_config, observability=observability)
    tools = build_default_tool_registry(executor, config.help, describe=describe)
    _LOGGER.info(
        "Runtime initialized for %s (timeout %ss, %s concurrent).",
        executor.config.work_dir,
        executor.config.timeout_s,
        executor.config.max_concurrency,
    )
    return RuntimeContext(
        config=config,
        executor=executor,
        tools=tools,
        observability=observability,
    )
