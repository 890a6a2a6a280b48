"""Tool executor: dispatches tool calls to their handlers."""

from __future__ import annotations

import logging

from agentloop.errors import HandlerError
from agentloop.memory import MessageLog
from agentloop.models import ToolCall, ToolResult
from agentloop.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolExecutor:
    """Dispatches tool calls from the assistant to their handlers.

    Failures never escape: an unknown tool or a failing handler becomes an
    error observation so the loop can carry on.

    Args:
        registry: Where tool names are looked up.
        log: Message log handed to every handler.
    """

    def __init__(self, registry: ToolRegistry, log: MessageLog) -> None:
        self._registry = registry
        self._log = log

    async def execute(self, tool_call: ToolCall) -> ToolResult:
        """Execute a tool call.

        Args:
            tool_call: The tool invocation requested by the assistant.

        Returns:
            A :class:`~agentloop.models.ToolResult` with the tool's output or an
            error description.
        """
        entry = self._registry.get(tool_call.name)
        if entry is None:
            logger.warning("Unknown tool requested: %s", tool_call.name)
            return ToolResult(
                tool_call_id=tool_call.id,
                name=tool_call.name,
                output=f"Warning: no handler is registered for tool '{tool_call.name}'.",
                is_error=True,
            )

        if tool_call.argument_error is not None:
            logger.warning("Malformed arguments for %s: %s", tool_call.name, tool_call.argument_error)
            return ToolResult(
                tool_call_id=tool_call.id,
                name=tool_call.name,
                output=f"Error executing {tool_call.name}: {tool_call.argument_error}",
                is_error=True,
            )

        try:
            output = await entry.handler.execute(tool_call.name, tool_call.arguments, self._log)
        except HandlerError as exc:
            logger.warning("Tool %s failed: %s", tool_call.name, exc)
            return self._error(tool_call, exc)
        except Exception as exc:
            logger.exception("Unexpected error in tool %s", tool_call.name)
            return self._error(tool_call, exc)

        return ToolResult(tool_call_id=tool_call.id, name=tool_call.name, output=output)

    @staticmethod
    def _error(tool_call: ToolCall, exc: Exception) -> ToolResult:
        return ToolResult(
            tool_call_id=tool_call.id,
            name=tool_call.name,
            output=f"Error executing {tool_call.name}: {exc}",
            is_error=True,
        )
