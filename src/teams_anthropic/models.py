"""Known Claude model identifiers and lookup helpers."""

from __future__ import annotations

from enum import Enum
from typing import Union


class AnthropicModel(str, Enum):
    """Anthropic model identifiers accepted by the Messages API."""

    CLAUDE_OPUS_4_5 = "claude-opus-4-5-20251101"
    CLAUDE_SONNET_4_5 = "claude-sonnet-4-5-20250929"

    CLAUDE_OPUS_3_5 = "claude-opus-3-5-20240229"
    CLAUDE_SONNET_3_5 = "claude-3-5-sonnet-20241022"
    CLAUDE_HAIKU_3_5 = "claude-3-5-haiku-20241022"

    CLAUDE_3_OPUS = "claude-3-opus-20240229"
    CLAUDE_3_SONNET = "claude-3-sonnet-20240229"
    CLAUDE_3_HAIKU = "claude-3-haiku-20240307"


DEFAULT_MODEL = AnthropicModel.CLAUDE_SONNET_4_5

_DISPLAY_NAMES: dict[AnthropicModel, str] = {
    AnthropicModel.CLAUDE_OPUS_4_5: "Claude Opus 4.5",
    AnthropicModel.CLAUDE_SONNET_4_5: "Claude Sonnet 4.5",
    AnthropicModel.CLAUDE_OPUS_3_5: "Claude Opus 3.5",
    AnthropicModel.CLAUDE_SONNET_3_5: "Claude Sonnet 3.5",
    AnthropicModel.CLAUDE_HAIKU_3_5: "Claude Haiku 3.5",
    AnthropicModel.CLAUDE_3_OPUS: "Claude 3 Opus",
    AnthropicModel.CLAUDE_3_SONNET: "Claude 3 Sonnet",
    AnthropicModel.CLAUDE_3_HAIKU: "Claude 3 Haiku",
}

_FAMILIES = ("opus", "sonnet", "haiku")


def get_model_display_name(model: Union[AnthropicModel, str]) -> str:
    """Return a human readable name such as ``"Claude Sonnet 4.5"``."""

    return _DISPLAY_NAMES[AnthropicModel(model)]


def is_valid_model(value: str) -> bool:
    """Whether ``value`` is one of the known model identifiers."""

    return value in {member.value for member in AnthropicModel}


def get_all_models() -> list[AnthropicModel]:
    return list(AnthropicModel)


def get_model_family(model: Union[AnthropicModel, str]) -> str:
    """Return ``"opus"``, ``"sonnet"`` or ``"haiku"`` for ``model``.

    Raises
    ------
    ValueError
        If the identifier does not name a known family.
    """

    identifier = model.value if isinstance(model, AnthropicModel) else str(model)
    lowered = identifier.lower()
    for family in _FAMILIES:
        if family in lowered:
            return family
    raise ValueError(f"Unknown model family for model: {identifier}")


__all__ = [
    "AnthropicModel",
    "DEFAULT_MODEL",
    "get_all_models",
    "get_model_display_name",
    "get_model_family",
    "is_valid_model",
]
