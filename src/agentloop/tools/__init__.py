"""Tools package: handler contract, registry, executor and built-in handlers."""

from agentloop.tools.base import ToolHandler
from agentloop.tools.executor import ToolExecutor
from agentloop.tools.log_inspector import LogInspectorHandler
from agentloop.tools.registry import ToolEntry, ToolRegistry
from agentloop.tools.think import ThinkHandler


def default_handlers() -> list[ToolHandler]:
    """Return fresh instances of the handlers shipped with the package."""
    return [ThinkHandler(), LogInspectorHandler()]


__all__ = [
    "LogInspectorHandler",
    "ThinkHandler",
    "ToolEntry",
    "ToolExecutor",
    "ToolHandler",
    "ToolRegistry",
    "default_handlers",
]
