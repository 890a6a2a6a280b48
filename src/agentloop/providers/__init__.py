"""Providers package: factory function to get the configured provider adapter."""

from agentloop.models import Config
from agentloop.providers.anthropic_messages import AnthropicAdapter
from agentloop.providers.base import ProviderAdapter
from agentloop.providers.openai_compat import OpenAICompatibleAdapter

# Default endpoints for the OpenAI-compatible backends.
_OPENAI_COMPATIBLE_URLS: dict[str, str | None] = {
    "openai": None,
    "openrouter": "https://openrouter.ai/api/v1",
    "lmstudio": "http://localhost:1234/v1",
    "ollama": "http://localhost:11434/v1",
}

_OPENROUTER_HEADERS = {
    "HTTP-Referer": "https://github.com/agentloop",
    "X-Title": "agentloop",
}


def get_provider(config: Config) -> ProviderAdapter:
    """Return the appropriate provider adapter for the given config.

    Args:
        config: Agent runtime configuration.

    Returns:
        A :class:`~agentloop.providers.base.ProviderAdapter` instance.

    Raises:
        ValueError: If the provider in *config* is not recognised.
    """
    if config.provider == "anthropic":
        return AnthropicAdapter(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            timeout=config.timeout_seconds,
            system_prompt=config.system_prompt,
        )
    if config.provider in _OPENAI_COMPATIBLE_URLS:
        return OpenAICompatibleAdapter(
            model=config.model,
            api_key=config.api_key,
            base_url=config.base_url or _OPENAI_COMPATIBLE_URLS[config.provider],
            name=config.provider,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            timeout=config.timeout_seconds,
            system_prompt=config.system_prompt,
            default_headers=_OPENROUTER_HEADERS if config.provider == "openrouter" else None,
        )
    raise ValueError(f"Unknown provider: {config.provider!r}")


__all__ = ["AnthropicAdapter", "OpenAICompatibleAdapter", "ProviderAdapter", "get_provider"]
