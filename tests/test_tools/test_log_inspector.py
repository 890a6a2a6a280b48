"""Tests for tools/log_inspector.py."""

from __future__ import annotations

import pytest

from agentloop.errors import HandlerError
from agentloop.memory import MessageLog
from agentloop.models import Role, ToolArguments
from agentloop.tools.log_inspector import LogInspectorHandler


@pytest.fixture
def log() -> MessageLog:
    log = MessageLog()
    for i in range(5):
        log.append_module("react", Role.TOOL, f"lookup: result {i}")
    log.append_module("notes", Role.SYSTEM, "remember this")
    return log


class TestListLogModules:
    async def test_lists_modules_with_counts(self, log: MessageLog) -> None:
        output = await LogInspectorHandler().execute("list_log_modules", ToolArguments(), log)
        assert output.splitlines() == ["notes: 1 messages", "react: 5 messages"]

    async def test_empty_log(self) -> None:
        output = await LogInspectorHandler().execute("list_log_modules", ToolArguments(), MessageLog())
        assert output == "No side-logs recorded yet."


class TestReadLogModule:
    async def test_reads_entries(self, log: MessageLog) -> None:
        output = await LogInspectorHandler().execute(
            "read_log_module", ToolArguments({"module": "react"}), log
        )
        lines = output.splitlines()
        assert len(lines) == 5
        assert lines[0].endswith("tool: lookup: result 0")

    async def test_limit_keeps_most_recent(self, log: MessageLog) -> None:
        output = await LogInspectorHandler().execute(
            "read_log_module", ToolArguments({"module": "react", "limit": 2}), log
        )
        lines = output.splitlines()
        assert lines[0] == "... (3 earlier entries not shown)"
        assert lines[1].endswith("result 3")
        assert lines[2].endswith("result 4")

    async def test_missing_module(self, log: MessageLog) -> None:
        output = await LogInspectorHandler().execute(
            "read_log_module", ToolArguments({"module": "nope"}), log
        )
        assert output == "Side-log 'nope' is empty or does not exist."

    async def test_module_argument_required(self, log: MessageLog) -> None:
        with pytest.raises(HandlerError, match="module"):
            await LogInspectorHandler().execute("read_log_module", ToolArguments(), log)

    async def test_unknown_tool_name(self, log: MessageLog) -> None:
        with pytest.raises(HandlerError):
            await LogInspectorHandler().execute("drop_log", ToolArguments(), log)
