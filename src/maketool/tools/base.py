"""Interface shared by the make tools served to callers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


class ToolExecutionError(RuntimeError):
    """Raised when a tool call carries unusable arguments."""


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool call.

    ``output`` holds the serialized execution result (or the help text) even
    when ``success`` is False, so callers still see partial make output.
    """

    name: str
    success: bool
    output: Any | None = None
    error: str | None = None


class Tool(ABC):
    """A named operation a transport can list and call with keyword arguments."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the unique name of the tool."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Return the full description, possibly several lines long."""

    @property
    def parameters(self) -> dict[str, str]:
        """Map each accepted argument name to a short description."""

        return {}

    def describe(self) -> dict[str, Any]:
        """Return the listing entry a transport advertises for this tool."""

        return {
            "name": self.name,
            "description": self.description,
            "parameters": dict(self.parameters),
        }

    @abstractmethod
    def execute(self, arguments: dict[str, Any]) -> ToolResult:
        """Run the tool.

        Raises:
            ToolExecutionError: If the arguments are invalid.
        """
