"""ReAct engine: Reason → Act → Observe, bounded by an iteration budget."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from collections.abc import Sequence
from datetime import datetime

from agentloop.errors import RunCancelled
from agentloop.events import EngineEvent, EventKind, EventSink, LoggingEventSink
from agentloop.memory import MessageLog
from agentloop.models import (
    AgentSettings,
    BackendResponse,
    ExecutionResult,
    Message,
    ReActStep,
    Role,
    SubCall,
    Termination,
)
from agentloop.providers.base import ProviderAdapter
from agentloop.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)

# Module log that receives the tool trace of every run.
REACT_MODULE = "react"

TOOL_CALL_PLACEHOLDER = "Processing information with tools..."

_BUDGET_WARNING = (
    "IMPORTANT: only {remaining} of {total} iterations remain. If you already have "
    "enough information, prepare to give the user a final answer in the next "
    "iteration. If you still need tools, use only the ones strictly necessary."
)
_FORCE_FINAL = (
    "You have reached the final iteration ({total}/{total}). You can NOT invoke any "
    "more tools. Give the user a final answer NOW based on everything gathered so "
    "far. Summarize what you found and present a complete, useful answer."
)
_LOOP_BREAK = (
    "You are invoking the same tool repeatedly with the same arguments. Give the "
    "user a final answer with the information you already have. Do NOT invoke any "
    "more tools."
)

_NO_RESPONSE = "No response."
_NO_FINAL_ANSWER = "No final answer available."
_LOOP_FALLBACK = "Information processed."
_SINGLE_TOOL_FALLBACK = "Execution completed."
_NOT_COMPLETED = "The iteration limit was reached without completing the task."


def sanitize_context(context: Sequence[Message]) -> list[Message]:
    """Give every content-less assistant tool-call message placeholder text.

    Some backends reject assistant turns with empty content. Tool calls are
    carried over untouched and the transform is idempotent.

    Args:
        context: Conversation to sanitize. Not modified.

    Returns:
        A new list with the rewritten messages.
    """
    sanitized: list[Message] = []
    for message in context:
        if message.role == Role.ASSISTANT and message.tool_calls and not message.content.strip():
            sanitized.append(dataclasses.replace(message, content=TOOL_CALL_PLACEHOLDER))
        else:
            sanitized.append(message)
    return sanitized


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class ReActEngine:
    """Drives bounded rounds of backend calls and tool dispatch for one query.

    A run always ends in one of: a direct answer, a forced final answer on
    the reserved last round, a loop break after repeated identical tool
    calls, single-tool mode, budget exhaustion, or a failure. :meth:`run`
    reports every one of them through the returned
    :class:`~agentloop.models.ExecutionResult` and never raises (task
    cancellation of the caller excepted).

    Args:
        provider: Backend adapter used for every round trip.
        executor: Dispatches tool calls to handlers.
        log: Message log receiving the per-call tool trace.
        settings: Loop behaviour switches.
        events: Sink for structured engine events.
    """

    def __init__(
        self,
        provider: ProviderAdapter,
        executor: ToolExecutor,
        log: MessageLog,
        settings: AgentSettings,
        events: EventSink | None = None,
    ) -> None:
        if settings.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {settings.max_iterations}")
        self._provider = provider
        self._executor = executor
        self._log = log
        self._settings = settings
        self._events: EventSink = events if events is not None else LoggingEventSink()

    async def run(
        self,
        user_query: str,
        historical_context: Sequence[Message],
        cancel: asyncio.Event | None = None,
    ) -> ExecutionResult:
        """Execute the ReAct loop for *user_query*.

        Args:
            user_query: The user's question.
            historical_context: Prior conversation, oldest first. Not modified.
            cancel: Optional signal; once set, the current round is aborted and
                the run ends as a failure.

        Returns:
            The fully populated :class:`~agentloop.models.ExecutionResult`.
        """
        cfg = self._settings
        result = ExecutionResult(start_time=datetime.now())
        started = time.perf_counter()
        context = sanitize_context(historical_context)
        step: ReActStep | None = None

        last_signature: tuple[str, str] | None = None
        consecutive_duplicates = 0

        self._emit(EventKind.RUN_START, f"ReAct loop started (max {cfg.max_iterations} iterations)")
        try:
            for iteration in range(1, cfg.max_iterations + 1):
                step = ReActStep(iteration=iteration)
                step_started = time.perf_counter()
                self._emit(
                    EventKind.ROUND_START,
                    f"Iteration {iteration}/{cfg.max_iterations}",
                    iteration=iteration,
                )

                remaining = cfg.max_iterations - iteration + 1
                if remaining == cfg.iteration_warning_threshold and any(
                    s.action_tool for s in result.steps
                ):
                    self._emit(
                        EventKind.BUDGET_WARNING,
                        f"Only {remaining} iterations left; asking for a final answer soon",
                        level=logging.WARNING,
                        iteration=iteration,
                    )
                    context.append(
                        Message(
                            role=Role.SYSTEM,
                            content=_BUDGET_WARNING.format(
                                remaining=remaining, total=cfg.max_iterations
                            ),
                        )
                    )

                if (
                    cfg.reserve_last_iteration_for_final_answer
                    and iteration == cfg.max_iterations
                    and any(s.observation for s in result.steps)
                ):
                    self._emit(
                        EventKind.FORCED_FINAL,
                        "Last iteration reached; requesting the final answer",
                        level=logging.WARNING,
                        iteration=iteration,
                    )
                    context.append(
                        Message(role=Role.SYSTEM, content=_FORCE_FINAL.format(total=cfg.max_iterations))
                    )
                    response = await self._call(user_query, context, cancel, step, result)
                    self._complete(step, response.content or _NO_FINAL_ANSWER, step_started, result)
                    self._terminate(
                        result,
                        step.final_answer,
                        Termination.FORCED_FINAL,
                        "final answer forced at iteration budget",
                    )
                    return result

                response = await self._call(user_query, context, cancel, step, result)

                if not response.has_tool_calls:
                    self._complete(step, response.content or _NO_RESPONSE, step_started, result)
                    self._terminate(
                        result,
                        step.final_answer,
                        Termination.DIRECT_ANSWER,
                        "direct response, no tool invocation",
                    )
                    return result

                step.thought = response.content or None
                context.append(
                    Message(
                        role=Role.ASSISTANT,
                        content=response.content or "",
                        tool_calls=tuple(response.tool_calls),
                    )
                )

                for tool_call in response.tool_calls:
                    arguments = tool_call.canonical_arguments
                    step.action_tool = tool_call.name
                    step.action_arguments = arguments
                    signature = (tool_call.name, arguments)

                    if cfg.prevent_duplicate_tool_calls and signature == last_signature:
                        consecutive_duplicates += 1
                        self._emit(
                            EventKind.DUPLICATE_CALL,
                            f"Same tool invoked {consecutive_duplicates} times in a row: {tool_call.name}",
                            level=logging.WARNING,
                            iteration=iteration,
                        )
                        if consecutive_duplicates >= cfg.max_consecutive_duplicates:
                            self._emit(
                                EventKind.LOOP_DETECTED,
                                "Loop detected; requesting the final answer",
                                level=logging.WARNING,
                                iteration=iteration,
                            )
                            context.append(Message(role=Role.SYSTEM, content=_LOOP_BREAK))
                            response = await self._call(user_query, context, cancel, step, result)
                            self._complete(
                                step, response.content or _LOOP_FALLBACK, step_started, result
                            )
                            self._terminate(
                                result,
                                step.final_answer,
                                Termination.LOOP_DETECTED,
                                f"loop detected - {consecutive_duplicates} duplicate invocations",
                            )
                            return result
                    else:
                        consecutive_duplicates = 0
                    last_signature = signature

                    self._emit(
                        EventKind.TOOL_DISPATCH,
                        f"Tool invoked: {tool_call.name} {arguments}",
                        iteration=iteration,
                        data={"tool": tool_call.name, "arguments": arguments},
                    )
                    tool_result = await self._executor.execute(tool_call)
                    observation = tool_result.output
                    step.observation = observation
                    step.sub_calls.append(
                        SubCall(tool=tool_call.name, arguments=arguments, observation=observation)
                    )
                    self._emit(
                        EventKind.OBSERVATION,
                        f"Observation: {observation}",
                        level=logging.WARNING if tool_result.is_error else logging.INFO,
                        iteration=iteration,
                    )
                    context.append(
                        Message(role=Role.TOOL, content=observation, tool_call_id=tool_call.id)
                    )
                    self._log.append_module(REACT_MODULE, Role.TOOL, f"{tool_call.name}: {observation}")

                self._record(step, step_started, result)

                if not cfg.enable_multi_tool_loop:
                    self._terminate(
                        result,
                        step.observation or _SINGLE_TOOL_FALLBACK,
                        Termination.SINGLE_TOOL,
                        "single-tool mode",
                    )
                    return result

            self._emit(
                EventKind.TERMINATION,
                "Iteration limit reached without an explicit final answer",
                level=logging.WARNING,
            )
            last_observation = result.steps[-1].observation if result.steps else None
            if last_observation:
                self._terminate(
                    result,
                    last_observation,
                    Termination.BUDGET_EXHAUSTED,
                    "iteration budget exhausted - used last observation",
                )
            else:
                self._terminate(
                    result,
                    _NOT_COMPLETED,
                    Termination.BUDGET_EXHAUSTED,
                    "iteration budget exhausted",
                )
        except Exception as exc:
            if step is not None and (not result.steps or result.steps[-1] is not step):
                self._record(step, step_started, result)
            result.success = False
            result.final_answer = f"Error during execution: {exc}"
            result.termination = Termination.FAILED
            result.termination_reason = f"{type(exc).__name__}: {exc}"
            self._emit(EventKind.ERROR, f"Run failed: {exc}", level=logging.ERROR)
        finally:
            result.end_time = datetime.now()
            result.total_duration_ms = _elapsed_ms(started)
            self._emit(
                EventKind.SUMMARY,
                (
                    f"{result.total_iterations} iterations, {result.tool_calls_count} tools, "
                    f"{result.total_duration_ms}ms, {result.usage.format_compact()}, "
                    f"success={result.success}, reason={result.termination_reason}"
                ),
                data={
                    "iterations": result.total_iterations,
                    "tool_calls": result.tool_calls_count,
                    "success": result.success,
                },
            )

        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _call(
        self,
        user_query: str,
        context: list[Message],
        cancel: asyncio.Event | None,
        step: ReActStep,
        result: ExecutionResult,
    ) -> BackendResponse:
        """One backend round trip on a freshly sanitized copy of *context*."""
        if cancel is not None and cancel.is_set():
            raise RunCancelled("Run cancelled by caller")
        response = await self._provider.send_message(user_query, sanitize_context(context), cancel)
        if response.usage is not None:
            step.usage = response.usage
            result.record_usage(response.usage)
            self._emit(
                EventKind.TOKENS,
                f"Iteration {step.iteration}: {response.usage.format_compact()}",
                level=logging.DEBUG,
                iteration=step.iteration,
            )
        return response

    def _complete(
        self, step: ReActStep, answer: str, step_started: float, result: ExecutionResult
    ) -> None:
        step.is_complete = True
        step.final_answer = answer
        self._record(step, step_started, result)

    @staticmethod
    def _record(step: ReActStep, step_started: float, result: ExecutionResult) -> None:
        step.duration_ms = _elapsed_ms(step_started)
        result.steps.append(step)

    def _terminate(
        self,
        result: ExecutionResult,
        answer: str | None,
        termination: Termination,
        reason: str,
    ) -> None:
        result.final_answer = answer or _NO_RESPONSE
        result.success = True
        result.termination = termination
        result.termination_reason = reason
        self._emit(EventKind.TERMINATION, f"Finished: {reason}", data={"termination": termination})

    def _emit(
        self,
        kind: EventKind,
        message: str,
        level: int = logging.INFO,
        iteration: int | None = None,
        data: dict[str, object] | None = None,
    ) -> None:
        try:
            self._events(
                EngineEvent(kind=kind, message=message, level=level, iteration=iteration, data=data or {})
            )
        except Exception:
            logger.exception("Event sink failed on %s", kind)
