"""Tests for tools/executor.py."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock

import pytest

from agentloop.errors import HandlerError
from agentloop.memory import MessageLog
from agentloop.models import ToolArguments, ToolCall, ToolDefinition
from agentloop.tools.base import ToolHandler
from agentloop.tools.executor import ToolExecutor
from agentloop.tools.registry import ToolRegistry
from agentloop.tools.think import ThinkHandler

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _MockHandler(ToolHandler):
    """Handler whose ``execute`` is an AsyncMock for call inspection."""

    def __init__(self, name: str = "probe", **mock_kwargs: object) -> None:
        self._name = name
        self.execute = AsyncMock(**mock_kwargs)  # type: ignore[method-assign]

    def tool_definitions(self) -> list[ToolDefinition]:
        return [ToolDefinition(name=self._name, description="probe")]

    async def execute(self, tool_name: str, arguments: ToolArguments, log: MessageLog) -> str:
        raise NotImplementedError


def _make_tool_call(name: str, arguments: dict | None = None) -> ToolCall:
    return ToolCall(id="tc-1", name=name, arguments=arguments or {})


def _make_executor(*handlers: ToolHandler) -> tuple[ToolExecutor, MessageLog]:
    log = MessageLog()
    return ToolExecutor(ToolRegistry(handlers), log), log


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestToolExecutor:
    async def test_executes_registered_tool(self) -> None:
        executor, _ = _make_executor(ThinkHandler())
        result = await executor.execute(_make_tool_call("think", {"thought": "testing"}))
        assert result.output == "testing"
        assert result.is_error is False
        assert result.tool_call_id == "tc-1"
        assert result.name == "think"

    async def test_handler_receives_name_arguments_and_log(self) -> None:
        handler = _MockHandler(return_value="ok")
        executor, log = _make_executor(handler)

        await executor.execute(_make_tool_call("probe", {"k": "v"}))

        handler.execute.assert_awaited_once()
        name, arguments, passed_log = handler.execute.call_args.args
        assert name == "probe"
        assert arguments.get_string("k") == "v"
        assert passed_log is log

    async def test_unknown_tool_returns_warning(self) -> None:
        executor, _ = _make_executor()
        result = await executor.execute(_make_tool_call("nonexistent_tool"))
        assert result.is_error is True
        assert "no handler is registered" in result.output
        assert "nonexistent_tool" in result.output

    async def test_handler_error_becomes_observation(self, caplog: pytest.LogCaptureFixture) -> None:
        handler = _MockHandler(side_effect=HandlerError("bad input"))
        executor, _ = _make_executor(handler)

        with caplog.at_level(logging.WARNING, logger="agentloop.tools.executor"):
            result = await executor.execute(_make_tool_call("probe"))

        assert result.is_error is True
        assert result.output == "Error executing probe: bad input"
        assert "probe failed" in caplog.text

    async def test_malformed_arguments_skip_handler(self) -> None:
        handler = _MockHandler(return_value="never")
        executor, _ = _make_executor(handler)
        tc = ToolCall.from_raw(id="tc-9", name="probe", raw="{not json")

        result = await executor.execute(tc)

        handler.execute.assert_not_awaited()
        assert result.is_error is True
        assert result.tool_call_id == "tc-9"
        assert result.output.startswith("Error executing probe: Tool arguments are not valid JSON")

    async def test_unexpected_exception_becomes_observation(self) -> None:
        handler = _MockHandler(side_effect=KeyError("boom"))
        executor, _ = _make_executor(handler)

        result = await executor.execute(_make_tool_call("probe"))

        assert result.is_error is True
        assert result.output.startswith("Error executing probe:")
        assert "boom" in result.output
