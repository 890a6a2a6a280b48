"""Configuration loader: reads TOML defaults then applies env-var overrides."""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import fields
from pathlib import Path
from typing import Any

from agentloop.models import AgentSettings, Config

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "default.toml"

# Backends that run locally and need no API key.
_LOCAL_PROVIDERS = {"lmstudio", "ollama"}

# Provider-specific key variables, consulted after AGENT_API_KEY.
_PROVIDER_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


def _merge(data: dict[str, Any], overlay: dict[str, Any]) -> None:
    """Merge *overlay* into *data*; the ``agent`` table is merged key by key."""
    for key, value in overlay.items():
        if key == "agent" and isinstance(value, dict):
            data.setdefault("agent", {}).update(value)
        else:
            data[key] = value


def _load_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as fh:
        return tomllib.load(fh)


def _agent_settings(raw: dict[str, Any]) -> AgentSettings:
    known = {f.name for f in fields(AgentSettings)}
    unknown = set(raw) - known
    if unknown:
        logger.warning("Ignoring unknown [agent] settings: %s", ", ".join(sorted(unknown)))
    settings = AgentSettings(**{k: v for k, v in raw.items() if k in known})

    if settings.max_iterations < 1:
        raise ValueError("agent.max_iterations must be at least 1.")
    if settings.max_consecutive_duplicates < 1:
        raise ValueError("agent.max_consecutive_duplicates must be at least 1.")
    return settings


def load_config(config_path: Path | None = None) -> Config:
    """Load agent configuration from a TOML file with env-var overrides.

    Resolution order (later wins):
    1. Built-in defaults in ``config/default.toml``
    2. Values in *config_path* (if provided)
    3. Environment variables: ``AGENT_PROVIDER``, ``AGENT_API_KEY`` (or the
       provider's own variable, e.g. ``OPENAI_API_KEY``), ``AGENT_MODEL``,
       ``AGENT_BASE_URL``, ``AGENT_MAX_TOKENS``, ``AGENT_SYSTEM_PROMPT``,
       ``AGENT_MAX_ITERATIONS``

    Args:
        config_path: Optional path to an additional TOML config file.

    Returns:
        Populated :class:`~agentloop.models.Config` instance.

    Raises:
        FileNotFoundError: If *config_path* is given but does not exist.
        ValueError: If a required value is missing or a setting is invalid.
    """
    data: dict[str, Any] = {}

    # 1. Load built-in defaults.
    if _DEFAULT_CONFIG_PATH.exists():
        _merge(data, _load_toml(_DEFAULT_CONFIG_PATH))
        logger.debug("Loaded default config from %s", _DEFAULT_CONFIG_PATH)

    # 2. Overlay user-supplied config file.
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        _merge(data, _load_toml(config_path))
        logger.debug("Overlaid config from %s", config_path)

    # 3. Environment variable overrides.
    if provider_env := os.environ.get("AGENT_PROVIDER"):
        data["provider"] = provider_env
    provider = str(data.get("provider", "openai")).lower()

    api_key = os.environ.get("AGENT_API_KEY", "")
    if not api_key and provider in _PROVIDER_KEY_ENV:
        api_key = os.environ.get(_PROVIDER_KEY_ENV[provider], "")
    if api_key:
        data["api_key"] = api_key

    if model_env := os.environ.get("AGENT_MODEL"):
        data["model"] = model_env

    if base_url_env := os.environ.get("AGENT_BASE_URL"):
        data["base_url"] = base_url_env

    if max_tokens_env := os.environ.get("AGENT_MAX_TOKENS"):
        data["max_tokens"] = int(max_tokens_env)

    if system_prompt_env := os.environ.get("AGENT_SYSTEM_PROMPT"):
        data["system_prompt"] = system_prompt_env

    if max_iterations_env := os.environ.get("AGENT_MAX_ITERATIONS"):
        data.setdefault("agent", {})["max_iterations"] = int(max_iterations_env)

    # Validate required fields.
    if not data.get("api_key") and provider not in _LOCAL_PROVIDERS:
        env_name = _PROVIDER_KEY_ENV.get(provider, "AGENT_API_KEY")
        raise ValueError(
            f"No API key found. Set the AGENT_API_KEY or {env_name} environment variable."
        )
    if not data.get("model"):
        raise ValueError(
            "No model configured. Set AGENT_MODEL or provide a config file."
        )

    return Config(
        provider=provider,
        model=str(data["model"]),
        api_key=str(data.get("api_key", "")),
        base_url=str(data["base_url"]) if data.get("base_url") else None,
        max_tokens=int(str(data.get("max_tokens", 2000))),
        temperature=float(str(data.get("temperature", 0.7))),
        timeout_seconds=float(str(data.get("timeout_seconds", 300))),
        system_prompt=str(data.get("system_prompt", "")),
        agent=_agent_settings(dict(data.get("agent", {}))),
    )
