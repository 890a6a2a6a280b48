"""Conversation message log: one global history plus named module side-logs."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict

from agentloop.models import Message, Role, Usage

logger = logging.getLogger(__name__)


class MessageLog:
    """Append-only record of conversational turns.

    The global log holds the user-visible dialogue. Module logs hold
    auxiliary traces (for example the ``react`` tool trace) and never leak
    into the global log. Every operation takes the instance lock, so one log
    can be shared by several conversations running concurrently in the same
    process.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._global: list[Message] = []
        self._modules: defaultdict[str, list[Message]] = defaultdict(list)
        self._usage: Usage = Usage()

    # ------------------------------------------------------------------
    # Global log
    # ------------------------------------------------------------------

    def append_global(self, role: Role | str, content: str) -> Message:
        """Append a message to the global log.

        Args:
            role: Who produced the message.
            content: Text of the message.

        Returns:
            The stored :class:`~agentloop.models.Message`.
        """
        message = Message(role=Role(role), content=content)
        with self._lock:
            self._global.append(message)
        return message

    def snapshot_global(self) -> list[Message]:
        """Return a copy of the global log, safe to mutate."""
        with self._lock:
            return list(self._global)

    # ------------------------------------------------------------------
    # Module logs
    # ------------------------------------------------------------------

    def append_module(self, module: str, role: Role | str, content: str) -> Message:
        """Append a message to the named module log, creating it on first use."""
        message = Message(role=Role(role), content=content)
        with self._lock:
            self._modules[module].append(message)
        return message

    def module_messages(self, module: str) -> list[Message]:
        """Return a copy of a module log (empty if it was never written)."""
        with self._lock:
            return list(self._modules.get(module, ()))

    @property
    def modules(self) -> list[str]:
        with self._lock:
            return list(self._modules)

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def record_usage(self, usage: Usage) -> None:
        """Accumulate token usage from a completion.

        Args:
            usage: The usage stats from one or more model calls.
        """
        with self._lock:
            self._usage.input_tokens += usage.input_tokens
            self._usage.output_tokens += usage.output_tokens

    @property
    def usage(self) -> Usage:
        """Cumulative token usage across all recorded runs."""
        with self._lock:
            return Usage(
                input_tokens=self._usage.input_tokens,
                output_tokens=self._usage.output_tokens,
            )

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    @property
    def total_message_count(self) -> int:
        with self._lock:
            return len(self._global) + sum(len(msgs) for msgs in self._modules.values())

    def clear_global(self) -> None:
        with self._lock:
            self._global = []

    def clear_module(self, module: str) -> None:
        with self._lock:
            self._modules.pop(module, None)

    def clear_all(self) -> None:
        """Wipe every log and reset usage counters."""
        with self._lock:
            self._global = []
            self._modules.clear()
            self._usage = Usage()
        logger.info("Message log cleared")
