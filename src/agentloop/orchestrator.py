"""Orchestrator: entry point that turns a user query into a final answer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from agentloop.engine import REACT_MODULE, ReActEngine
from agentloop.errors import AgentError
from agentloop.events import EventSink
from agentloop.memory import MessageLog
from agentloop.models import AgentSettings, ExecutionResult, Message, Role, ToolDefinition
from agentloop.providers.base import ProviderAdapter
from agentloop.tools.base import ToolHandler
from agentloop.tools.executor import ToolExecutor
from agentloop.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

_NO_RESPONSE = "No response received from the model."


class Orchestrator:
    """Coordinates the message log, the backend and the tool handlers.

    Tools from every handler are indexed once and registered with the
    provider at construction. Each query then runs either through the
    :class:`~agentloop.engine.ReActEngine` or, when ReAct is disabled,
    through a single backend call.

    Args:
        provider: Backend adapter.
        handlers: Tool handlers to expose to the model.
        log: Shared message log.
        settings: Loop behaviour switches.
        events: Optional sink for engine events.
    """

    def __init__(
        self,
        provider: ProviderAdapter,
        handlers: Iterable[ToolHandler],
        log: MessageLog,
        settings: AgentSettings,
        events: EventSink | None = None,
    ) -> None:
        self._provider = provider
        self._log = log
        self._settings = settings
        self._registry = ToolRegistry(handlers)
        self._executor = ToolExecutor(self._registry, log)
        self._provider.register_tools(self._registry.definitions())
        self._engine = ReActEngine(provider, self._executor, log, settings, events)
        self.last_result: ExecutionResult | None = None

        logger.info(
            "Registered %d tools with %s (react=%s, multi_tool_loop=%s)",
            len(self._registry),
            provider.provider_name,
            settings.enable_react_pattern,
            settings.enable_multi_tool_loop,
        )

    @property
    def react_enabled(self) -> bool:
        return self._settings.enable_react_pattern and self._settings.enable_multi_tool_loop

    @property
    def available_tools(self) -> list[ToolDefinition]:
        return self._registry.definitions()

    async def process_query(self, user_query: str, cancel: asyncio.Event | None = None) -> str:
        """Answer *user_query*, recording the exchange in the global log.

        Exactly two global-log entries are written per query: the user's
        text and the final answer. Intermediate tool traffic goes to the
        ``react`` module log only, closed by a one-line run summary.

        Args:
            user_query: Text from the user.
            cancel: Optional cancellation signal for the backend calls.

        Returns:
            The final answer text.
        """
        historical_context = self._log.snapshot_global()
        self._log.append_global(Role.USER, user_query)

        if self.react_enabled:
            logger.debug("Using ReAct engine")
            result = await self._engine.run(user_query, historical_context, cancel)
            self.last_result = result
            self._log.record_usage(result.usage)
            self._log.append_module(
                REACT_MODULE,
                Role.SYSTEM,
                f"run finished: {result.termination_reason} "
                f"({result.total_iterations} iterations, {result.tool_calls_count} tools)",
            )
            logger.info(
                "ReAct run: %d iterations, %d tools, %dms (%s)",
                result.total_iterations,
                result.tool_calls_count,
                result.total_duration_ms,
                result.termination_reason,
            )
            final_answer = result.final_answer
        else:
            logger.debug("Using single-call mode")
            final_answer = await self._single_call(user_query, historical_context, cancel)

        self._log.append_global(Role.ASSISTANT, final_answer)
        return final_answer

    async def _single_call(
        self,
        user_query: str,
        historical_context: list[Message],
        cancel: asyncio.Event | None,
    ) -> str:
        """One backend call; a tool request runs only its first tool."""
        try:
            response = await self._provider.send_message(user_query, historical_context, cancel)
        except AgentError as exc:
            logger.error("Backend call failed: %s", exc)
            return f"Error during execution: {exc}"
        except Exception as exc:
            logger.exception("Unexpected error during single-call query")
            return f"Error during execution: {exc}"

        if response.usage is not None:
            self._log.record_usage(response.usage)

        if not response.has_tool_calls:
            return response.content or _NO_RESPONSE

        tool_call = response.tool_calls[0]
        logger.debug("%s invoked tool %s", self._provider.provider_name, tool_call.name)
        tool_result = await self._executor.execute(tool_call)
        return tool_result.output
