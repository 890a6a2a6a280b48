"""Think pseudo-tool: a scratchpad the model can plan in between lookups."""

from __future__ import annotations

import logging

from agentloop.memory import MessageLog
from agentloop.models import ToolArguments, ToolDefinition
from agentloop.tools.base import ToolHandler

logger = logging.getLogger(__name__)

_DEFINITION = ToolDefinition(
    name="think",
    description=(
        "Write down a short plan before answering: what is already known from earlier "
        "observations, which lookup or side-log tool could fill the gap, and when you "
        "have enough to answer. Nothing is executed and the note is echoed back."
    ),
    parameters={
        "type": "object",
        "properties": {
            "thought": {
                "type": "string",
                "description": "The plan or reasoning to record.",
            }
        },
        "required": ["thought"],
    },
)


class ThinkHandler(ToolHandler):
    """Record a reasoning step and return it unchanged."""

    def tool_definitions(self) -> list[ToolDefinition]:
        return [_DEFINITION]

    async def execute(self, tool_name: str, arguments: ToolArguments, log: MessageLog) -> str:
        thought = arguments.get_string("thought")
        logger.debug("think: %s", thought[:80])
        return thought
