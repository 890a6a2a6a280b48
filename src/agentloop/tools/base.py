"""Tool handler contract."""

from __future__ import annotations

from abc import ABC, abstractmethod

from agentloop.memory import MessageLog
from agentloop.models import ToolArguments, ToolDefinition


class ToolHandler(ABC):
    """A component that executes one or more named tools.

    Every handler declares its tools through :meth:`tool_definitions`, which
    returns a list even for single-tool handlers, so the registry never
    needs to probe the handler's type.
    """

    @abstractmethod
    def tool_definitions(self) -> list[ToolDefinition]:
        """Return the definitions of every tool this handler owns."""

    @abstractmethod
    async def execute(self, tool_name: str, arguments: ToolArguments, log: MessageLog) -> str:
        """Run *tool_name* and return a textual observation.

        Args:
            tool_name: Which of this handler's tools was invoked.
            arguments: Structured arguments from the model.
            log: The shared message log, for handlers that need context.

        Returns:
            Observation text handed back to the model.
        """
