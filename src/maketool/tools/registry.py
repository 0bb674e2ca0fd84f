"""Registry for tool definitions."""

from __future__ import annotations

import threading
from typing import Iterable

from maketool.tools.base import Tool, ToolResult


class ToolRegistryError(RuntimeError):
    """Raised when tool registry operations fail."""


class ToolNotFoundError(ToolRegistryError):
    """Raised when a tool is not found in the registry."""


class ToolRegistrationError(ToolRegistryError):
    """Raised when a tool cannot be registered."""


class ToolRegistry:
    """Registry for tool instances.

    Lookups and registrations are guarded by a lock so a transport can
    dispatch calls from several threads.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._lock = threading.Lock()

    def register(self, tool: Tool) -> None:
        """Register a tool instance by name.

        Args:
            tool: Tool to register.

        Raises:
            ToolRegistrationError: If a tool with the same name already exists.
        """

        with self._lock:
            if tool.name in self._tools:
                raise ToolRegistrationError(f"Tool '{tool.name}' is already registered")
            self._tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        """Retrieve a tool by name.

        Raises:
            ToolNotFoundError: If no tool exists with the given name.
        """

        with self._lock:
            try:
                return self._tools[name]
            except KeyError as exc:
                raise ToolNotFoundError(f"Tool '{name}' is not registered") from exc

    def list_tools(self) -> Iterable[Tool]:
        """Return all registered tools."""

        with self._lock:
            return list(self._tools.values())

    def execute(self, name: str, arguments: dict[str, object]) -> ToolResult:
        """Execute a named tool with the provided arguments.

        Args:
            name: Tool name to execute.
            arguments: Structured arguments for the tool.

        Returns:
            ToolResult produced by the tool.

        Raises:
            ToolNotFoundError: If the tool is not registered.
            ToolExecutionError: If the tool rejects its arguments.
        """

        tool = self.get(name)
        return tool.execute(dict(arguments))
