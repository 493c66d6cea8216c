from __future__ import annotations

import pytest

from teams_anthropic.config import ChatModelConfig, parse_timeout


def test_defaults_without_environment():
    config = ChatModelConfig.from_env({})
    assert config.model == "claude-sonnet-4-5-20250929"
    assert config.api_key is None
    assert config.base_url is None
    assert config.timeout == 60.0
    assert config.request_options == {}


def test_reads_anthropic_environment():
    config = ChatModelConfig.from_env(
        {
            "ANTHROPIC_API_KEY": "sk-env",
            "ANTHROPIC_BASE_URL": "http://proxy.local",
            "ANTHROPIC_MODEL": "claude-3-5-haiku-20241022",
            "ANTHROPIC_TIMEOUT": "12.5",
        }
    )
    assert config.api_key == "sk-env"
    assert config.base_url == "http://proxy.local"
    assert config.model == "claude-3-5-haiku-20241022"
    assert config.timeout == 12.5


def test_overrides_win_and_none_is_ignored(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ANTHROPIC_MODEL", "claude-3-opus-20240229")
    config = ChatModelConfig.from_env(model=None, timeout=5.0)
    assert config.model == "claude-3-opus-20240229"
    assert config.timeout == 5.0


@pytest.mark.parametrize("raw", ["soon", "0", "-3"])
def test_invalid_timeouts_are_rejected(raw: str):
    with pytest.raises(ValueError):
        parse_timeout(raw)
    with pytest.raises(ValueError):
        ChatModelConfig.from_env({"ANTHROPIC_TIMEOUT": raw})
