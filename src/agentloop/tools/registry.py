"""Tool registry: maps tool names to their definitions and handlers."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from agentloop.models import ToolDefinition
from agentloop.tools.base import ToolHandler

logger = logging.getLogger(__name__)


class ToolEntry:
    """Combines a tool's schema definition with the handler that runs it.

    Args:
        definition: The :class:`~agentloop.models.ToolDefinition` exposed to the model.
        handler: Handler instance that owns the tool.
    """

    def __init__(self, definition: ToolDefinition, handler: ToolHandler) -> None:
        self.definition = definition
        self.handler = handler


class ToolRegistry:
    """Index of tool name → :class:`ToolEntry`.

    Built once from a set of handlers; a handler owning several tools is
    indexed under each of its names.

    Args:
        handlers: Handlers to register, in priority order.
    """

    def __init__(self, handlers: Iterable[ToolHandler] = ()) -> None:
        self._entries: dict[str, ToolEntry] = {}
        for handler in handlers:
            self.register(handler)

    def register(self, handler: ToolHandler) -> None:
        """Index every tool *handler* exposes.

        A name that is already taken keeps its first owner.
        """
        for definition in handler.tool_definitions():
            if definition.name in self._entries:
                logger.warning(
                    "Tool %s already registered by %s; ignoring %s",
                    definition.name,
                    type(self._entries[definition.name].handler).__name__,
                    type(handler).__name__,
                )
                continue
            self._entries[definition.name] = ToolEntry(definition=definition, handler=handler)
            logger.debug("Registered tool %s (%s)", definition.name, type(handler).__name__)

    def get(self, name: str) -> ToolEntry | None:
        return self._entries.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def names(self) -> list[str]:
        return list(self._entries)

    def definitions(self) -> list[ToolDefinition]:
        """Return all registered tool definitions (for passing to the LLM).

        Returns:
            List of :class:`~agentloop.models.ToolDefinition` objects.
        """
        return [entry.definition for entry in self._entries.values()]
