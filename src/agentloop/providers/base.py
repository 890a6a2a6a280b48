"""Abstract base class for LLM provider adapters."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Iterable, Sequence
from typing import TypeVar

from agentloop.errors import RunCancelled
from agentloop.models import BackendResponse, Message, ToolDefinition

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class ProviderAdapter(ABC):
    """Interface that every LLM provider adapter must implement.

    Concrete subclasses wrap a specific API and own only wire marshalling:
    turning internal :class:`~agentloop.models.Message` objects into the
    request body, and the reply into a
    :class:`~agentloop.models.BackendResponse`. Loop and termination logic
    never lives here.
    """

    def __init__(self) -> None:
        self._tools: list[ToolDefinition] = []

    # ------------------------------------------------------------------
    # Tool registration
    # ------------------------------------------------------------------

    def register_tool(self, tool: ToolDefinition) -> None:
        """Expose a tool to the model. Re-registering a name is a no-op."""
        if any(existing.name == tool.name for existing in self._tools):
            logger.debug("Tool %s already registered with %s", tool.name, self.provider_name)
            return
        self._tools.append(tool)

    def register_tools(self, tools: Iterable[ToolDefinition]) -> None:
        for tool in tools:
            self.register_tool(tool)

    @property
    def registered_tools(self) -> tuple[ToolDefinition, ...]:
        """Snapshot of the tools exposed to the model."""
        return tuple(self._tools)

    # ------------------------------------------------------------------
    # Wire format
    # ------------------------------------------------------------------

    @abstractmethod
    def format_messages(self, messages: Sequence[Message]) -> list[dict[str, object]]:
        """Convert internal :class:`~agentloop.models.Message` objects to the API wire format.

        Args:
            messages: Conversation history in internal representation.

        Returns:
            List of dicts ready to send to the API.
        """

    @abstractmethod
    def format_tools(self, tools: Sequence[ToolDefinition]) -> list[dict[str, object]]:
        """Convert :class:`~agentloop.models.ToolDefinition` objects to the API tool schema.

        Args:
            tools: Tool definitions to convert.

        Returns:
            List of dicts in the provider's tool schema format.
        """

    # ------------------------------------------------------------------
    # Round trip
    # ------------------------------------------------------------------

    @abstractmethod
    async def send_message(
        self,
        user_text: str,
        context: Sequence[Message],
        cancel: asyncio.Event | None = None,
    ) -> BackendResponse:
        """Perform exactly one request/response round trip with the backend.

        The user text is sent after *context*. *context* itself is never
        mutated.

        Args:
            user_text: The current user query.
            context: Prior conversation turns, oldest first.
            cancel: Optional signal; when set the pending request is abandoned.

        Returns:
            The normalized :class:`~agentloop.models.BackendResponse`.

        Raises:
            ProviderError: On transport failure or a non-success response.
            ProtocolError: If the reply cannot be parsed. Malformed tool
                arguments are not an error here: they are kept on the
                :class:`~agentloop.models.ToolCall` (``argument_error``).
            RunCancelled: If *cancel* fires before the reply arrives.
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Diagnostic identity of the backend."""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _with_cancel(self, call: Awaitable[_T], cancel: asyncio.Event | None) -> _T:
        """Await *call*, abandoning it if *cancel* is set first."""
        if cancel is None:
            return await call
        if cancel.is_set():
            if asyncio.iscoroutine(call):
                call.close()
            raise RunCancelled("Request cancelled before it was sent", provider=self.provider_name)

        call_task = asyncio.ensure_future(call)
        cancel_task = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {call_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_task.cancel()
            if not call_task.done():
                call_task.cancel()

        if call_task in done:
            return call_task.result()

        await asyncio.gather(call_task, return_exceptions=True)
        raise RunCancelled("Request cancelled while waiting for the backend", provider=self.provider_name)
