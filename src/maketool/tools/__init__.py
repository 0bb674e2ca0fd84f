"""Tools that expose make to an external transport."""

from maketool.tools.base import Tool, ToolExecutionError, ToolResult
from maketool.tools.make_tools import (
    MakeHelpTool,
    MakeTool,
    build_default_tool_registry,
    describe_targets,
)
from maketool.tools.registry import ToolNotFoundError, ToolRegistry, ToolRegistryError

__all__ = [
    "MakeHelpTool",
    "MakeTool",
    "Tool",
    "ToolExecutionError",
    "ToolResult",
    "ToolNotFoundError",
    "ToolRegistry",
    "ToolRegistryError",
    "build_default_tool_registry",
    "describe_targets",
]
