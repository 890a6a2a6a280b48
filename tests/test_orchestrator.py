"""Tests for src/agentloop/orchestrator.py."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

from agentloop.engine import REACT_MODULE
from agentloop.errors import ProviderError
from agentloop.memory import MessageLog
from agentloop.models import (
    AgentSettings,
    BackendResponse,
    Role,
    Termination,
    ToolArguments,
    ToolCall,
    ToolDefinition,
    Usage,
)
from agentloop.orchestrator import Orchestrator
from agentloop.tools.base import ToolHandler

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _EchoHandler(ToolHandler):
    def __init__(self) -> None:
        self.calls: list[str] = []

    def tool_definitions(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(name="echo", description="Echo text"),
            ToolDefinition(name="shout", description="Echo text loudly"),
        ]

    async def execute(self, tool_name: str, arguments: ToolArguments, log: MessageLog) -> str:
        self.calls.append(tool_name)
        text = arguments.get_string("text")
        return text.upper() if tool_name == "shout" else text


def _make_provider(responses: Any) -> MagicMock:
    provider = MagicMock()
    provider.provider_name = "stub"
    provider.send_message = AsyncMock(side_effect=responses)
    return provider


def _tool_response(*calls: tuple[str, str]) -> BackendResponse:
    return BackendResponse(
        content="",
        tool_calls=[
            ToolCall(id=f"c{i}", name=name, arguments={"text": text})
            for i, (name, text) in enumerate(calls)
        ],
        usage=Usage(input_tokens=5, output_tokens=5),
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_registers_handler_tools_with_provider(self) -> None:
        provider = _make_provider([])
        orchestrator = Orchestrator(provider, [_EchoHandler()], MessageLog(), AgentSettings())

        provider.register_tools.assert_called_once()
        registered = provider.register_tools.call_args.args[0]
        assert [d.name for d in registered] == ["echo", "shout"]
        assert [d.name for d in orchestrator.available_tools] == ["echo", "shout"]

    def test_react_enabled_needs_both_switches(self) -> None:
        provider = _make_provider([])
        on = Orchestrator(provider, [], MessageLog(), AgentSettings())
        off = Orchestrator(
            provider, [], MessageLog(), AgentSettings(enable_multi_tool_loop=False)
        )
        assert on.react_enabled is True
        assert off.react_enabled is False


class TestReActMode:
    async def test_two_global_records_per_query(self) -> None:
        provider = _make_provider(
            [_tool_response(("echo", "hi")), BackendResponse(content="Echoed: hi")]
        )
        log = MessageLog()
        orchestrator = Orchestrator(provider, [_EchoHandler()], log, AgentSettings())

        answer = await orchestrator.process_query("say hi")

        assert answer == "Echoed: hi"
        messages = log.snapshot_global()
        assert [(m.role, m.content) for m in messages] == [
            (Role.USER, "say hi"),
            (Role.ASSISTANT, "Echoed: hi"),
        ]

    async def test_trace_goes_to_react_module(self) -> None:
        provider = _make_provider(
            [_tool_response(("echo", "hi")), BackendResponse(content="done")]
        )
        log = MessageLog()
        orchestrator = Orchestrator(provider, [_EchoHandler()], log, AgentSettings())

        await orchestrator.process_query("q")

        trace = [m.content for m in log.module_messages(REACT_MODULE)]
        assert trace[0] == "echo: hi"
        assert trace[-1].startswith("run finished: direct response")
        assert "1 tools" in trace[-1]

    async def test_history_snapshot_excludes_current_query(self) -> None:
        provider = _make_provider(
            [BackendResponse(content="first"), BackendResponse(content="second")]
        )
        log = MessageLog()
        orchestrator = Orchestrator(provider, [], log, AgentSettings())

        await orchestrator.process_query("one")
        await orchestrator.process_query("two")

        second_context = provider.send_message.call_args_list[1].args[1]
        assert [m.content for m in second_context] == ["one", "first"]

    async def test_last_result_and_usage_recorded(self) -> None:
        provider = _make_provider(
            [BackendResponse(content="ok", usage=Usage(input_tokens=7, output_tokens=3))]
        )
        log = MessageLog()
        orchestrator = Orchestrator(provider, [], log, AgentSettings())

        await orchestrator.process_query("q")

        assert orchestrator.last_result is not None
        assert orchestrator.last_result.termination == Termination.DIRECT_ANSWER
        assert log.usage.total == 10

    async def test_backend_failure_still_answers(self) -> None:
        provider = _make_provider(ProviderError("connection refused"))
        log = MessageLog()
        orchestrator = Orchestrator(provider, [], log, AgentSettings())

        answer = await orchestrator.process_query("q")

        assert answer.startswith("Error during execution")
        assert len(log.snapshot_global()) == 2
        assert orchestrator.last_result is not None
        assert orchestrator.last_result.success is False


class TestSingleCallMode:
    def _settings(self) -> AgentSettings:
        return AgentSettings(enable_react_pattern=False)

    async def test_only_first_tool_dispatched(self) -> None:
        handler = _EchoHandler()
        provider = _make_provider([_tool_response(("shout", "hey"), ("echo", "ignored"))])
        log = MessageLog()
        orchestrator = Orchestrator(provider, [handler], log, self._settings())

        answer = await orchestrator.process_query("q")

        assert answer == "HEY"
        assert handler.calls == ["shout"]
        assert provider.send_message.call_count == 1
        assert orchestrator.last_result is None
        assert len(log.snapshot_global()) == 2

    async def test_plain_content_returned(self) -> None:
        provider = _make_provider([BackendResponse(content="plain")])
        orchestrator = Orchestrator(provider, [], MessageLog(), self._settings())
        assert await orchestrator.process_query("q") == "plain"

    async def test_empty_content_uses_fallback(self) -> None:
        provider = _make_provider([BackendResponse(content=None)])
        orchestrator = Orchestrator(provider, [], MessageLog(), self._settings())
        assert await orchestrator.process_query("q") == "No response received from the model."

    async def test_backend_error_rendered_as_answer(self) -> None:
        provider = _make_provider(ProviderError("bad gateway"))
        log = MessageLog()
        orchestrator = Orchestrator(provider, [], log, self._settings())

        answer = await orchestrator.process_query("q")

        assert answer == "Error during execution: bad gateway"
        assert log.snapshot_global()[-1].content == answer

    async def test_unexpected_error_still_closes_exchange(self) -> None:
        provider = _make_provider(AttributeError("'NoneType' object has no attribute 'message'"))
        log = MessageLog()
        orchestrator = Orchestrator(provider, [], log, self._settings())

        answer = await orchestrator.process_query("q")

        assert answer.startswith("Error during execution:")
        assert [m.role for m in log.snapshot_global()] == [Role.USER, Role.ASSISTANT]
