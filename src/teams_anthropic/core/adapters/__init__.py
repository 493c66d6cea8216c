"""Chat model interface, Anthropic adapter and streaming primitives."""

from __future__ import annotations

from .accumulator import StreamAccumulator
from .anthropic import AnthropicChatModel, AnthropicStreamIterator, create_anthropic_stream
from .base import ChatModel, ChatSendOptions
from .stream import (
    BaseStreamIterator,
    FinalEvent,
    StreamEvent,
    TokenEvent,
    ToolCallEvent,
)
from .transform import (
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    extract_system_instruction,
    from_provider_format,
    to_provider_format,
)

__all__ = [
    "AnthropicChatModel",
    "AnthropicStreamIterator",
    "BaseStreamIterator",
    "ChatModel",
    "ChatSendOptions",
    "FinalEvent",
    "StreamAccumulator",
    "StreamEvent",
    "TextBlock",
    "TokenEvent",
    "ToolCallEvent",
    "ToolResultBlock",
    "ToolUseBlock",
    "create_anthropic_stream",
    "extract_system_instruction",
    "from_provider_format",
    "to_provider_format",
]
