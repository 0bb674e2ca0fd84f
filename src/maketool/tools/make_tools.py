"""Built-in tools that run make targets and render the help listing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from maketool.config import HelpConfig
from maketool.execution.base import MakeExecutionError, MakeParams
from maketool.execution.make_exec import MakeExecutor
from maketool.helptext import compose_help, format_help_preamble
from maketool.tools.base import Tool, ToolExecutionError, ToolResult
from maketool.tools.registry import ToolRegistry
from maketool.util.logging import get_logger

_LOGGER = get_logger("maketool.tools")


def describe_targets(executor: MakeExecutor, help_config: HelpConfig) -> str:
    """Render the preamble followed by the trimmed help listing.

    A failing help target leaves only the formatted preamble.
    """

    try:
        result = executor.execute(MakeParams(target=help_config.target))
    except MakeExecutionError as exc:
        _LOGGER.warning("Help target '%s' unavailable: %s", help_config.target, exc)
        return format_help_preamble(help_config.preamble)
    return compose_help(help_config.preamble, result.stdout)


@dataclass
class MakeTool(Tool):
    """Tool that runs a single make target via the executor."""

    executor: MakeExecutor
    targets_help: str = ""

    @property
    def name(self) -> str:
        return "make"

    @property
    def description(self) -> str:
        summary = f"Run a make target in {self.executor.config.work_dir}."
        if self.targets_help:
            return f"{summary}\n\n{self.targets_help}"
        return summary

    @property
    def parameters(self) -> dict[str, str]:
        return {"target": "Name of the make target to run."}

    def execute(self, arguments: dict[str, Any]) -> ToolResult:
        target = arguments.get("target")
        if not isinstance(target, str) or not target.strip():
            raise ToolExecutionError("'target' must be a non-empty string")

        try:
            result = self.executor.execute(MakeParams(target=target.strip()))
        except MakeExecutionError as exc:
            output = exc.result.to_dict() if exc.result is not None else None
            return ToolResult(name=self.name, success=False, output=output, error=str(exc))
        return ToolResult(name=self.name, success=True, output=result.to_dict())


@dataclass
class MakeHelpTool(Tool):
    """Tool that returns the project's help listing without its Notes trailer."""

    executor: MakeExecutor
    help_config: HelpConfig = field(default_factory=HelpConfig)

    @property
    def name(self) -> str:
        return "make_help"

    @property
    def description(self) -> str:
        return f"Show the targets documented by 'make {self.help_config.target}'."

    def execute(self, arguments: dict[str, Any]) -> ToolResult:
        try:
            result = self.executor.execute(MakeParams(target=self.help_config.target))
        except MakeExecutionError as exc:
            output = exc.result.to_dict() if exc.result is not None else None
            return ToolResult(name=self.name, success=False, output=output, error=str(exc))
        text = compose_help(self.help_config.preamble, result.stdout)
        return ToolResult(name=self.name, success=True, output={"help": text})


def build_default_tool_registry(
    executor: MakeExecutor,
    help_config: HelpConfig | None = None,
    *,
    describe: bool = True,
) -> ToolRegistry:
    """Create a registry pre-populated with the make tools.

    Args:
        executor: Executor backing both tools.
        help_config: Help target and preamble settings.
        describe: Whether to run the help target to enrich the make tool's
            description.

    Returns:
        ToolRegistry with built-in tools registered.
    """

    help_config = help_config or HelpConfig()
    targets_help = describe_targets(executor, help_config) if describe else ""
    registry = ToolRegistry()
    registry.register(MakeTool(executor=executor, targets_help=targets_help))
    registry.register(MakeHelpTool(executor=executor, help_config=help_config))
    return registry
