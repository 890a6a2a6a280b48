"""Structured engine events and the sinks that consume them."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from rich.console import Console

logger = logging.getLogger(__name__)


class EventKind(StrEnum):
    """What happened inside the engine."""

    RUN_START = "run_start"
    ROUND_START = "round_start"
    BUDGET_WARNING = "budget_warning"
    FORCED_FINAL = "forced_final"
    TOOL_DISPATCH = "tool_dispatch"
    OBSERVATION = "observation"
    DUPLICATE_CALL = "duplicate_call"
    LOOP_DETECTED = "loop_detected"
    TOKENS = "tokens"
    TERMINATION = "termination"
    ERROR = "error"
    SUMMARY = "summary"


@dataclass(frozen=True)
class EngineEvent:
    """A leveled event emitted by the engine.

    Args:
        kind: Event classification.
        message: Short human-readable description.
        level: ``logging`` level number.
        iteration: Round the event belongs to, if any.
        data: Extra structured payload.
    """

    kind: EventKind
    message: str
    level: int = logging.INFO
    iteration: int | None = None
    data: dict[str, Any] = field(default_factory=dict)


# An event sink is any callable accepting an EngineEvent.
EventSink = Callable[[EngineEvent], None]


class LoggingEventSink:
    """Forward engine events to the standard logging module."""

    def __init__(self, name: str = "agentloop.engine") -> None:
        self._logger = logging.getLogger(name)

    def __call__(self, event: EngineEvent) -> None:
        prefix = f"[{event.iteration}] " if event.iteration is not None else ""
        self._logger.log(event.level, "%s%s: %s", prefix, event.kind.value, event.message)


_STYLES: dict[EventKind, str] = {
    EventKind.RUN_START: "cyan",
    EventKind.ROUND_START: "bold cyan",
    EventKind.BUDGET_WARNING: "yellow",
    EventKind.FORCED_FINAL: "yellow",
    EventKind.TOOL_DISPATCH: "magenta",
    EventKind.OBSERVATION: "dim yellow",
    EventKind.DUPLICATE_CALL: "yellow",
    EventKind.LOOP_DETECTED: "bold yellow",
    EventKind.TOKENS: "dim cyan",
    EventKind.TERMINATION: "green",
    EventKind.ERROR: "bold red",
    EventKind.SUMMARY: "dim",
}

_MAX_OBSERVATION_DISPLAY = 500


class ConsoleEventSink:
    """Render engine events on a Rich console.

    Args:
        console: Console to print to.
        enabled: When False only errors are shown.
    """

    def __init__(self, console: Console | None = None, enabled: bool = True) -> None:
        self._console = console if console is not None else Console()
        self.enabled = enabled

    def __call__(self, event: EngineEvent) -> None:
        if not self.enabled and event.level < logging.ERROR:
            return
        text = event.message
        if event.kind == EventKind.OBSERVATION and len(text) > _MAX_OBSERVATION_DISPLAY:
            text = text[:_MAX_OBSERVATION_DISPLAY] + "..."
        style = _STYLES.get(event.kind, "")
        self._console.print(text, style=style, markup=False, highlight=False)


def fan_out(*sinks: EventSink) -> EventSink:
    """Combine several sinks into one."""

    def _emit(event: EngineEvent) -> None:
        for sink in sinks:
            sink(event)

    return _emit
