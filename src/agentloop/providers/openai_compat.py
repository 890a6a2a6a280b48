"""OpenAI-compatible chat-completions adapter (OpenAI, OpenRouter, LM Studio, Ollama)."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Sequence
from typing import Any

import openai
from openai import AsyncOpenAI

from agentloop.errors import ProtocolError, ProviderError
from agentloop.models import (
    BackendResponse,
    Message,
    Role,
    ToolCall,
    ToolDefinition,
    Usage,
)
from agentloop.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)

# Local servers accept any key, but the SDK refuses an empty one.
_LOCAL_API_KEY = "not-needed"


class OpenAICompatibleAdapter(ProviderAdapter):
    """Provider adapter for any server speaking the OpenAI chat-completions API.

    Args:
        model: Model identifier sent with every request.
        api_key: API key; may be empty for local servers.
        base_url: Endpoint override (``None`` means api.openai.com).
        name: Label used in diagnostics.
        max_tokens: Maximum completion tokens.
        temperature: Sampling temperature.
        timeout: Per-request timeout in seconds.
        system_prompt: Optional system prompt prepended to every request.
        default_headers: Extra HTTP headers (OpenRouter attribution, ...).
    """

    def __init__(
        self,
        model: str,
        api_key: str = "",
        base_url: str | None = None,
        name: str = "openai",
        max_tokens: int = 2000,
        temperature: float = 0.7,
        timeout: float = 300.0,
        system_prompt: str = "",
        default_headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__()
        self._client = AsyncOpenAI(
            api_key=api_key or _LOCAL_API_KEY,
            base_url=base_url,
            timeout=timeout,
            default_headers=default_headers,
        )
        self._name = name
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._system_prompt = system_prompt

    @property
    def provider_name(self) -> str:
        return f"{self._name} ({self._model}) [tools: {len(self._tools)}]"

    # ------------------------------------------------------------------
    # Message formatting
    # ------------------------------------------------------------------

    def format_messages(self, messages: Sequence[Message]) -> list[dict[str, object]]:
        """Convert internal messages to OpenAI-compatible wire format.

        Args:
            messages: Conversation history.

        Returns:
            List of message dicts for the OpenAI ``messages`` parameter.
        """
        result: list[dict[str, object]] = []
        for msg in messages:
            if msg.role == Role.TOOL:
                result.append(
                    {
                        "role": "tool",
                        "content": msg.content,
                        "tool_call_id": msg.tool_call_id or "",
                    }
                )
            elif msg.role == Role.ASSISTANT and msg.tool_calls:
                wire_tool_calls = [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {
                            "name": tc.name,
                            "arguments": json.dumps(tc.arguments.to_dict()),
                        },
                    }
                    for tc in msg.tool_calls
                ]
                result.append(
                    {
                        "role": "assistant",
                        "content": msg.content or "",
                        "tool_calls": wire_tool_calls,
                    }
                )
            else:
                result.append({"role": msg.role.value, "content": msg.content})
        return result

    def format_tools(self, tools: Sequence[ToolDefinition]) -> list[dict[str, object]]:
        """Convert tool definitions to OpenAI function-calling schema.

        Args:
            tools: Tool definitions to convert.

        Returns:
            List of tool dicts in ``{"type": "function", "function": {...}}`` format.
        """
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in tools
        ]

    # ------------------------------------------------------------------
    # Round trip
    # ------------------------------------------------------------------

    async def send_message(
        self,
        user_text: str,
        context: Sequence[Message],
        cancel: asyncio.Event | None = None,
    ) -> BackendResponse:
        """Send the conversation plus *user_text* and normalize the reply.

        Args:
            user_text: Current user query, sent last.
            context: Prior conversation turns.
            cancel: Optional cancellation signal.

        Returns:
            The normalized :class:`~agentloop.models.BackendResponse`.
        """
        wire_messages: list[dict[str, object]] = []
        if self._system_prompt:
            wire_messages.append({"role": "system", "content": self._system_prompt})
        wire_messages.extend(self.format_messages(context))
        wire_messages.append({"role": "user", "content": user_text})

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": wire_messages,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
        }
        if self._tools:
            kwargs["tools"] = self.format_tools(self._tools)

        logger.debug("%s: sending %d messages", self._name, len(wire_messages))
        try:
            completion = await self._with_cancel(
                self._client.chat.completions.create(**kwargs), cancel
            )
        except openai.APIStatusError as exc:
            raise ProviderError(
                f"{self._name} API error {exc.status_code}: {exc.message}",
                provider=self._name,
                status_code=exc.status_code,
            ) from exc
        except openai.APIError as exc:
            raise ProviderError(f"{self._name} request failed: {exc}", provider=self._name) from exc

        return self._parse_completion(completion)

    def _parse_completion(self, completion: Any) -> BackendResponse:
        """Map a ChatCompletion object onto :class:`BackendResponse`."""
        choices = getattr(completion, "choices", None)
        if not choices:
            raise ProtocolError(f"{self._name} returned a completion without choices")

        choice = choices[0]
        message = choice.message
        tool_calls: list[ToolCall] = []
        for raw in message.tool_calls or []:
            function = raw.function
            if function is None or not function.name:
                raise ProtocolError(f"{self._name} returned a tool call without a function name")
            tool_calls.append(
                ToolCall.from_raw(
                    id=raw.id or f"call_{uuid.uuid4().hex[:12]}",
                    name=function.name,
                    raw=function.arguments,
                )
            )

        usage = None
        if completion.usage is not None:
            usage = Usage(
                input_tokens=completion.usage.prompt_tokens or 0,
                output_tokens=completion.usage.completion_tokens or 0,
                model=self._model,
                provider=self._name,
            )

        finish_reason = choice.finish_reason or "stop"
        return BackendResponse(
            content=message.content,
            tool_calls=tool_calls,
            done=finish_reason in {"stop", "tool_calls"},
            usage=usage,
            metadata={"finish_reason": finish_reason, "id": getattr(completion, "id", None)},
        )
