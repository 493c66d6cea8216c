"""Configuration helpers shared by the chat model and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Any, Mapping

from .models import DEFAULT_MODEL

DEFAULT_TIMEOUT_SECONDS = 60.0


@dataclass(slots=True)
class ChatModelConfig:
    """Settings used to construct an :class:`~teams_anthropic.AnthropicChatModel`.

    Attributes
    ----------
    model:
        The Claude model identifier sent with every request.
    api_key:
        Anthropic API key. When ``None`` the chat model falls back to the
        ``ANTHROPIC_API_KEY`` environment variable.
    base_url:
        Optional override for the API endpoint, useful for proxies.
    headers:
        Extra HTTP headers added to every request.
    timeout:
        Default request timeout in seconds.
    request_options:
        Provider parameters applied to every request (``temperature``,
        ``max_tokens`` ...). Per-call overrides take precedence.
    """

    model: str = DEFAULT_MODEL.value
    api_key: str | None = None
    base_url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    request_options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> "ChatModelConfig":
        """Build a configuration from ``ANTHROPIC_*`` environment variables.

        Parameters
        ----------
        environ:
            Mapping to read instead of :data:`os.environ`.
        overrides:
            Field values that win over the environment. ``None`` values are
            ignored so optional CLI flags can be passed through unchanged.
        """

        env = os.environ if environ is None else environ

        values: dict[str, Any] = {
            "model": env.get("ANTHROPIC_MODEL") or DEFAULT_MODEL.value,
            "api_key": env.get("ANTHROPIC_API_KEY") or None,
            "base_url": env.get("ANTHROPIC_BASE_URL") or None,
        }

        raw_timeout = env.get("ANTHROPIC_TIMEOUT")
        if raw_timeout:
            values["timeout"] = parse_timeout(raw_timeout)

        for key, value in overrides.items():
            if value is not None:
                values[key] = value

        return cls(**values)


def parse_timeout(raw: str) -> float:
    """Parse a positive timeout in seconds."""

    try:
        seconds = float(raw)
    except ValueError:
        raise ValueError(f"timeout must be a number of seconds, got {raw!r}") from None
    if seconds <= 0:
        raise ValueError(f"timeout must be positive, got {raw!r}")
    return seconds


__all__ = ["ChatModelConfig", "DEFAULT_TIMEOUT_SECONDS", "parse_timeout"]
