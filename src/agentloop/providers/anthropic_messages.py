"""Anthropic Messages API adapter."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Sequence
from typing import Any

import anthropic
from anthropic import AsyncAnthropic

from agentloop.errors import ProtocolError, ProviderError
from agentloop.models import (
    BackendResponse,
    Message,
    Role,
    ToolArguments,
    ToolCall,
    ToolDefinition,
    Usage,
)
from agentloop.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)


class AnthropicAdapter(ProviderAdapter):
    """Provider adapter for Anthropic's Messages API.

    System messages are lifted out of the conversation into the ``system``
    parameter. Tool results travel as ``tool_result`` blocks inside user
    turns, and consecutive same-role turns are merged so the request keeps
    strict user/assistant alternation.
    """

    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        timeout: float = 300.0,
        system_prompt: str = "",
    ) -> None:
        super().__init__()
        self._client = AsyncAnthropic(api_key=api_key, base_url=base_url, timeout=timeout)
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._system_prompt = system_prompt

    @property
    def provider_name(self) -> str:
        return f"anthropic ({self._model}) [tools: {len(self._tools)}]"

    # ------------------------------------------------------------------
    # Message formatting
    # ------------------------------------------------------------------

    def format_messages(self, messages: Sequence[Message]) -> list[dict[str, object]]:
        """Convert internal messages to Anthropic content-block turns.

        System messages are skipped here; see :meth:`_system_text`.
        """
        turns: list[dict[str, Any]] = []
        for msg in messages:
            if msg.role == Role.SYSTEM:
                continue
            if msg.role == Role.TOOL:
                role = "user"
                blocks: list[dict[str, Any]] = [
                    {
                        "type": "tool_result",
                        "tool_use_id": msg.tool_call_id or "",
                        "content": msg.content,
                    }
                ]
            elif msg.role == Role.ASSISTANT and msg.tool_calls:
                role = "assistant"
                blocks = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                blocks.extend(
                    {
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": tc.arguments.to_dict(),
                    }
                    for tc in msg.tool_calls
                )
            else:
                role = msg.role.value
                blocks = [{"type": "text", "text": msg.content}]

            if turns and turns[-1]["role"] == role:
                turns[-1]["content"].extend(blocks)
            else:
                turns.append({"role": role, "content": blocks})
        return turns

    def format_tools(self, tools: Sequence[ToolDefinition]) -> list[dict[str, object]]:
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": {
                    "type": "object",
                    "properties": tool.parameters.get("properties", {}),
                    "required": tool.parameters.get("required", []),
                },
            }
            for tool in tools
        ]

    def _system_text(self, messages: Sequence[Message]) -> str:
        parts = [self._system_prompt] if self._system_prompt else []
        parts.extend(msg.content for msg in messages if msg.role == Role.SYSTEM and msg.content)
        return "\n\n".join(parts)

    # ------------------------------------------------------------------
    # Round trip
    # ------------------------------------------------------------------

    async def send_message(
        self,
        user_text: str,
        context: Sequence[Message],
        cancel: asyncio.Event | None = None,
    ) -> BackendResponse:
        turns = self.format_messages([*context, Message(role=Role.USER, content=user_text)])

        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
            "messages": turns,
        }
        if system := self._system_text(context):
            kwargs["system"] = system
        if self._tools:
            kwargs["tools"] = self.format_tools(self._tools)

        logger.debug("anthropic: sending %d turns", len(turns))
        try:
            response = await self._with_cancel(self._client.messages.create(**kwargs), cancel)
        except anthropic.APIStatusError as exc:
            raise ProviderError(
                f"Anthropic API error {exc.status_code}: {exc.message}",
                provider="anthropic",
                status_code=exc.status_code,
            ) from exc
        except anthropic.APIError as exc:
            raise ProviderError(f"Anthropic request failed: {exc}", provider="anthropic") from exc

        return self._parse_response(response)

    def _parse_response(self, response: Any) -> BackendResponse:
        blocks = getattr(response, "content", None)
        if blocks is None:
            raise ProtocolError("Anthropic returned a response without content blocks")

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in blocks:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                call_id = block.id or f"toolu_{uuid.uuid4().hex[:12]}"
                if isinstance(block.input, dict):
                    tool_calls.append(
                        ToolCall(id=call_id, name=block.name, arguments=ToolArguments(block.input))
                    )
                else:
                    tool_calls.append(
                        ToolCall(
                            id=call_id,
                            name=block.name,
                            raw_arguments=json.dumps(block.input, default=str),
                            argument_error=(
                                "Tool arguments must be a JSON object, "
                                f"got {type(block.input).__name__}"
                            ),
                        )
                    )

        usage = None
        if response.usage is not None:
            usage = Usage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
                model=self._model,
                provider="anthropic",
            )

        stop_reason = response.stop_reason or "end_turn"
        return BackendResponse(
            content="".join(text_parts),
            tool_calls=tool_calls,
            done=stop_reason in {"end_turn", "tool_use"},
            usage=usage,
            metadata={"stop_reason": stop_reason},
        )
