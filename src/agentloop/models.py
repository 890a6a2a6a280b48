"""Shared dataclasses and enums for the ReAct agent loop."""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from agentloop.errors import ProtocolError


class Role(StrEnum):
    """Message role in a conversation."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"
    SYSTEM = "system"


class Termination(StrEnum):
    """Classification of why a ReAct run stopped."""

    DIRECT_ANSWER = "direct_answer"
    FORCED_FINAL = "forced_final"
    LOOP_DETECTED = "loop_detected"
    SINGLE_TOOL = "single_tool"
    BUDGET_EXHAUSTED = "budget_exhausted"
    FAILED = "failed"


class ToolArguments(Mapping[str, Any]):
    """Immutable, ordered view over the arguments of a tool call.

    Handlers read values through the typed accessors so that they never
    depend on how a particular backend encodes arguments on the wire.

    Args:
        values: Parsed argument mapping. Copied on construction.
    """

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values: Mapping[str, Any] = MappingProxyType(dict(values or {}))

    @classmethod
    def from_json(cls, raw: str | None) -> ToolArguments:
        """Parse raw JSON argument text as sent by a backend.

        Args:
            raw: JSON object text. Blank or ``None`` means no arguments.

        Returns:
            The parsed :class:`ToolArguments`.

        Raises:
            ProtocolError: If *raw* is not a JSON object.
        """
        if raw is None or not raw.strip():
            return cls()
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ProtocolError(f"Tool arguments are not valid JSON: {exc}") from exc
        if not isinstance(parsed, dict):
            raise ProtocolError(
                f"Tool arguments must be a JSON object, got {type(parsed).__name__}"
            )
        return cls(parsed)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ToolArguments({dict(self._values)!r})"

    def has(self, key: str) -> bool:
        return key in self._values

    def get_string(self, key: str, default: str = "") -> str:
        value = self._values.get(key)
        if value is None:
            return default
        return value if isinstance(value, str) else str(value)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._values.get(key)
        if isinstance(value, bool):
            return default
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return default
        return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return value.strip().lower() == "true"
        return default

    def get_object(self, key: str) -> Any:
        """Return a composite (list/dict) value, or ``None`` when absent."""
        return self._values.get(key)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def canonical(self) -> str:
        """Stable JSON text used to compare two invocations for equality."""
        return json.dumps(dict(self._values), sort_keys=True, separators=(",", ":"), default=str)


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the assistant.

    Args:
        id: Unique identifier correlating the call with its tool-result message.
        name: Name of the tool to invoke.
        arguments: Structured arguments for the tool.
        raw_arguments: Argument text exactly as the backend sent it, if any.
        argument_error: Why *raw_arguments* could not be parsed. Set only for
            malformed calls, whose *arguments* are then empty.
    """

    id: str
    name: str
    arguments: ToolArguments = field(default_factory=ToolArguments)
    raw_arguments: str | None = None
    argument_error: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.arguments, ToolArguments):
            object.__setattr__(self, "arguments", ToolArguments(self.arguments))

    @classmethod
    def from_raw(cls, id: str, name: str, raw: str | None) -> ToolCall:
        """Build a call from raw JSON argument text.

        Malformed text does not raise: it is kept on the call together with
        the parse error, so dispatch can report it back to the model.
        """
        try:
            arguments = ToolArguments.from_json(raw)
        except ProtocolError as exc:
            return cls(id=id, name=name, raw_arguments=raw, argument_error=str(exc))
        return cls(id=id, name=name, arguments=arguments, raw_arguments=raw)

    @property
    def canonical_arguments(self) -> str:
        """Comparison key for the arguments; raw text when they are malformed."""
        if self.argument_error is not None:
            return self.raw_arguments or ""
        return self.arguments.canonical()


@dataclass(frozen=True)
class Message:
    """A single message in the conversation history.

    Args:
        role: Who produced this message.
        content: Text content of the message.
        tool_call_id: For role=TOOL, the ID of the tool call being responded to.
        tool_calls: For role=ASSISTANT, tool calls requested by the model.
        timestamp: Creation time.
    """

    role: Role
    content: str
    tool_call_id: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        if not isinstance(self.tool_calls, tuple):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))


@dataclass
class ToolResult:
    """The result of executing a tool.

    Args:
        tool_call_id: ID of the tool call this result corresponds to.
        name: Name of the tool that was executed.
        output: String observation produced by the tool.
        is_error: Whether the tool encountered an error.
    """

    tool_call_id: str
    name: str
    output: str
    is_error: bool = False


@dataclass
class Usage:
    """Token usage for a single completion.

    Args:
        input_tokens: Number of tokens in the prompt.
        output_tokens: Number of tokens in the completion.
        model: Model that served the call, when reported.
        provider: Backend that served the call, when reported.
    """

    input_tokens: int = 0
    output_tokens: int = 0
    model: str | None = None
    provider: str | None = None

    @property
    def total(self) -> int:
        """Total tokens consumed."""
        return self.input_tokens + self.output_tokens

    def format_compact(self) -> str:
        return f"{self.total:,} tokens ({self.input_tokens:,} in / {self.output_tokens:,} out)"


@dataclass(frozen=True)
class ToolDefinition:
    """Schema definition for a tool exposed to the model.

    Args:
        name: Tool name (used by the model to invoke it).
        description: Human/model-readable description of what the tool does.
        parameters: JSON Schema describing the tool's parameters.
    """

    name: str
    description: str
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )


@dataclass
class BackendResponse:
    """Normalized shape every provider adapter returns for one round trip.

    Args:
        content: Text produced by the model, if any.
        tool_calls: Tool invocations requested by the model, in order.
        done: Whether the backend reported the turn as finished.
        usage: Token accounting for the call, when reported.
        metadata: Backend-specific extras (stop reason, raw ids, ...).
    """

    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    done: bool = True
    usage: Usage | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


@dataclass(frozen=True)
class SubCall:
    """One tool dispatch made during a ReAct round."""

    tool: str
    arguments: str
    observation: str


@dataclass
class ReActStep:
    """One round of the ReAct loop: thought, action and observation."""

    iteration: int
    thought: str | None = None
    action_tool: str | None = None
    action_arguments: str | None = None
    observation: str | None = None
    is_complete: bool = False
    final_answer: str | None = None
    duration_ms: int = 0
    usage: Usage | None = None
    timestamp: datetime = field(default_factory=datetime.now)
    sub_calls: list[SubCall] = field(default_factory=list)


@dataclass
class ExecutionResult:
    """Outcome of one ReAct run, with its full step trace.

    Args:
        final_answer: Answer returned to the user.
        steps: Recorded rounds, in order.
        success: Whether the run produced a usable answer.
        termination: Machine-readable classification of why the run stopped.
        termination_reason: Human-readable termination description.
        start_time: When the run started.
        end_time: When the run finished.
        total_duration_ms: Wall-clock duration of the run.
        usage: Token usage accumulated across every backend call.
    """

    final_answer: str = ""
    steps: list[ReActStep] = field(default_factory=list)
    success: bool = False
    termination: Termination | None = None
    termination_reason: str = ""
    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    total_duration_ms: int = 0
    usage: Usage = field(default_factory=Usage)

    @property
    def total_iterations(self) -> int:
        return len(self.steps)

    @property
    def tool_calls_count(self) -> int:
        return sum(1 for step in self.steps if step.action_tool)

    def record_usage(self, usage: Usage | None) -> None:
        if usage is None:
            return
        self.usage.input_tokens += usage.input_tokens
        self.usage.output_tokens += usage.output_tokens


@dataclass
class AgentSettings:
    """Behaviour switches for the ReAct loop.

    Args:
        max_iterations: Hard ceiling on rounds per query.
        enable_react_pattern: Use the ReAct engine instead of the single-call mode.
        enable_multi_tool_loop: Allow more than one round of tool use.
        prevent_duplicate_tool_calls: Track identical consecutive invocations.
        max_consecutive_duplicates: Duplicate count that breaks the loop.
        reserve_last_iteration_for_final_answer: Force a tool-free last round.
        iteration_warning_threshold: Remaining-rounds count at which the model
            is warned that the budget is closing.
        show_intermediate_steps: Render engine events on the console.
    """

    max_iterations: int = 10
    enable_react_pattern: bool = True
    enable_multi_tool_loop: bool = True
    prevent_duplicate_tool_calls: bool = True
    max_consecutive_duplicates: int = 2
    reserve_last_iteration_for_final_answer: bool = True
    iteration_warning_threshold: int = 2
    show_intermediate_steps: bool = True


@dataclass
class Config:
    """Runtime configuration for the agent.

    Args:
        provider: Provider identifier (``openai``, ``openrouter``, ``lmstudio``,
            ``ollama`` or ``anthropic``).
        model: Model string (e.g., 'gpt-4o-mini').
        api_key: API key for the provider (may be empty for local backends).
        base_url: Override for the provider endpoint.
        max_tokens: Maximum tokens per completion.
        temperature: Sampling temperature.
        timeout_seconds: Per-request timeout handed to the SDK client.
        system_prompt: System prompt prepended to every request.
        agent: ReAct loop settings.
    """

    provider: str
    model: str
    api_key: str = ""
    base_url: str | None = None
    max_tokens: int = 2000
    temperature: float = 0.7
    timeout_seconds: float = 300.0
    system_prompt: str = ""
    agent: AgentSettings = field(default_factory=AgentSettings)
