"""Message-log inspector: lets the agent look at its own side-logs."""

from __future__ import annotations

import logging

from agentloop.errors import HandlerError
from agentloop.memory import MessageLog
from agentloop.models import ToolArguments, ToolDefinition
from agentloop.tools.base import ToolHandler

logger = logging.getLogger(__name__)

_DEFAULT_LIMIT = 20
_MAX_LIMIT = 200

_LIST_MODULES = ToolDefinition(
    name="list_log_modules",
    description=(
        "List the named side-logs kept for this session (for example 'react', "
        "which records earlier tool observations) with their message counts."
    ),
    parameters={"type": "object", "properties": {}, "required": []},
)

_READ_MODULE = ToolDefinition(
    name="read_log_module",
    description=(
        "Read the most recent entries of a named side-log. Use it to recall "
        "observations gathered while answering earlier questions."
    ),
    parameters={
        "type": "object",
        "properties": {
            "module": {
                "type": "string",
                "description": "Name of the side-log, as returned by list_log_modules.",
            },
            "limit": {
                "type": "integer",
                "description": f"Maximum entries to return. Defaults to {_DEFAULT_LIMIT}.",
            },
        },
        "required": ["module"],
    },
)


class LogInspectorHandler(ToolHandler):
    """Read-only access to the module logs of the shared message log."""

    def tool_definitions(self) -> list[ToolDefinition]:
        return [_LIST_MODULES, _READ_MODULE]

    async def execute(self, tool_name: str, arguments: ToolArguments, log: MessageLog) -> str:
        if tool_name == _LIST_MODULES.name:
            return self._list_modules(log)
        if tool_name == _READ_MODULE.name:
            return self._read_module(arguments, log)
        raise HandlerError(f"LogInspectorHandler does not provide tool '{tool_name}'")

    @staticmethod
    def _list_modules(log: MessageLog) -> str:
        modules = log.modules
        if not modules:
            return "No side-logs recorded yet."
        lines = [f"{name}: {len(log.module_messages(name))} messages" for name in sorted(modules)]
        return "\n".join(lines)

    @staticmethod
    def _read_module(arguments: ToolArguments, log: MessageLog) -> str:
        module = arguments.get_string("module").strip()
        if not module:
            raise HandlerError("argument 'module' is required")
        limit = arguments.get_int("limit", _DEFAULT_LIMIT)
        limit = max(1, min(limit, _MAX_LIMIT))

        messages = log.module_messages(module)
        if not messages:
            return f"Side-log '{module}' is empty or does not exist."

        shown = messages[-limit:]
        logger.debug("read_log_module: %d of %d entries from %s", len(shown), len(messages), module)
        lines = [f"[{m.timestamp:%H:%M:%S}] {m.role.value}: {m.content}" for m in shown]
        if len(messages) > len(shown):
            lines.insert(0, f"... ({len(messages) - len(shown)} earlier entries not shown)")
        return "\n".join(lines)
