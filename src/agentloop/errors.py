"""Exception taxonomy for backend round trips and tool dispatch."""

from __future__ import annotations


class AgentError(Exception):
    """Base class for all errors raised inside the agent loop."""


class ProviderError(AgentError):
    """A backend transport failure or non-success response.

    Args:
        message: Human-readable description.
        provider: Name of the backend that failed, if known.
        status_code: HTTP status returned by the backend, if any.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class ProtocolError(AgentError):
    """A backend response that could not be parsed into a BackendResponse."""


class RunCancelled(ProviderError):
    """The caller's cancellation signal fired while a backend call was pending."""


class HandlerError(AgentError):
    """A tool handler failed while executing.

    Handlers may raise this to report a failure with a clean message; the
    executor turns it (or any other exception) into an observation.
    """
