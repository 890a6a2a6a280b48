"""Tests for src/agentloop/config.py."""

from __future__ import annotations

from pathlib import Path

import pytest

from agentloop.config import load_config

_ENV_VARS = (
    "AGENT_PROVIDER",
    "AGENT_API_KEY",
    "AGENT_MODEL",
    "AGENT_BASE_URL",
    "AGENT_MAX_TOKENS",
    "AGENT_SYSTEM_PROMPT",
    "AGENT_MAX_ITERATIONS",
    "OPENAI_API_KEY",
    "OPENROUTER_API_KEY",
    "ANTHROPIC_API_KEY",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _write_toml(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")


class TestLoadConfig:
    def test_loads_defaults_with_env_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")
        cfg = load_config()
        assert cfg.api_key == "sk-test-key"
        assert cfg.provider == "openai"
        assert cfg.model == "gpt-4o-mini"
        assert cfg.max_tokens == 2000
        assert cfg.agent.max_iterations == 10
        assert cfg.agent.prevent_duplicate_tool_calls is True

    def test_loads_from_toml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AGENT_API_KEY", "sk-from-env")
        cfg_file = tmp_path / "my_config.toml"
        _write_toml(
            cfg_file,
            """
model = "gpt-4o"
max_tokens = 1024
system_prompt = "Be concise."

[agent]
max_iterations = 4
enable_multi_tool_loop = false
""",
        )
        cfg = load_config(config_path=cfg_file)
        assert cfg.model == "gpt-4o"
        assert cfg.max_tokens == 1024
        assert cfg.system_prompt == "Be concise."
        assert cfg.api_key == "sk-from-env"
        assert cfg.agent.max_iterations == 4
        assert cfg.agent.enable_multi_tool_loop is False
        # Untouched [agent] keys keep their defaults.
        assert cfg.agent.max_consecutive_duplicates == 2

    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AGENT_API_KEY", "sk-env-key")
        monkeypatch.setenv("AGENT_MODEL", "gpt-4.1")
        monkeypatch.setenv("AGENT_MAX_ITERATIONS", "6")
        cfg_file = tmp_path / "cfg.toml"
        _write_toml(cfg_file, 'model = "gpt-4o"\n[agent]\nmax_iterations = 3\n')
        cfg = load_config(config_path=cfg_file)
        assert cfg.model == "gpt-4.1"
        assert cfg.agent.max_iterations == 6

    def test_provider_specific_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AGENT_PROVIDER", "Anthropic")
        monkeypatch.setenv("AGENT_MODEL", "claude-sonnet-4-5")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
        cfg = load_config()
        assert cfg.provider == "anthropic"
        assert cfg.api_key == "sk-ant"

    def test_agent_api_key_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AGENT_API_KEY", "sk-agent")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
        assert load_config().api_key == "sk-agent"

    def test_local_provider_needs_no_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AGENT_PROVIDER", "ollama")
        monkeypatch.setenv("AGENT_BASE_URL", "http://gpu-box:11434/v1")
        cfg = load_config()
        assert cfg.api_key == ""
        assert cfg.base_url == "http://gpu-box:11434/v1"

    def test_missing_config_file_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AGENT_API_KEY", "sk-test")
        with pytest.raises(FileNotFoundError):
            load_config(config_path=Path("/nonexistent/path/config.toml"))

    def test_missing_api_key_raises(self) -> None:
        with pytest.raises(ValueError, match="API key"):
            load_config()

    def test_missing_model_raises(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AGENT_API_KEY", "sk-test")
        # Suppress default.toml so no model is pre-configured.
        monkeypatch.setattr("agentloop.config._DEFAULT_CONFIG_PATH", tmp_path / "noexist.toml")
        with pytest.raises(ValueError, match="model"):
            load_config()

    def test_invalid_max_iterations_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AGENT_API_KEY", "sk-test")
        monkeypatch.setenv("AGENT_MAX_ITERATIONS", "0")
        with pytest.raises(ValueError, match="max_iterations"):
            load_config()

    def test_unknown_agent_keys_ignored(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("AGENT_API_KEY", "sk-test")
        cfg_file = tmp_path / "cfg.toml"
        _write_toml(cfg_file, "[agent]\nturbo_mode = true\n")
        cfg = load_config(config_path=cfg_file)
        assert not hasattr(cfg.agent, "turbo_mode")

    def test_agent_max_tokens_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AGENT_API_KEY", "sk-key")
        monkeypatch.setenv("AGENT_MAX_TOKENS", "1024")
        assert load_config().max_tokens == 1024

    def test_agent_system_prompt_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AGENT_API_KEY", "sk-key")
        monkeypatch.setenv("AGENT_SYSTEM_PROMPT", "You are an expert.")
        assert load_config().system_prompt == "You are an expert."
