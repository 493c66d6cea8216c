"""Anthropic Claude chat model for host conversation frameworks.

The package exposes :class:`AnthropicChatModel`, which translates host
messages to the Anthropic Messages API, streams or fetches replies, and runs
requested functions until the model answers, together with the message
types, memory and configuration helpers it works with.
"""

from __future__ import annotations

from .config import ChatModelConfig
from .core.adapters import AnthropicChatModel, ChatModel, ChatSendOptions
from .core.errors import AdapterError, ConfigurationError, ProtocolError, StreamIncompleteError
from .core.functions import FunctionDefinition
from .core.memory import LocalMemory, Memory
from .core.message import (
    FunctionCall,
    FunctionMessage,
    Message,
    MessageRole,
    ModelMessage,
    SystemMessage,
    UserMessage,
)
from .models import (
    AnthropicModel,
    get_all_models,
    get_model_display_name,
    get_model_family,
    is_valid_model,
)

__all__ = [
    "AdapterError",
    "AnthropicChatModel",
    "AnthropicModel",
    "ChatModel",
    "ChatModelConfig",
    "ChatSendOptions",
    "ConfigurationError",
    "FunctionCall",
    "FunctionDefinition",
    "FunctionMessage",
    "LocalMemory",
    "Memory",
    "Message",
    "MessageRole",
    "ModelMessage",
    "ProtocolError",
    "StreamIncompleteError",
    "SystemMessage",
    "UserMessage",
    "get_all_models",
    "get_model_display_name",
    "get_model_family",
    "is_valid_model",
]

__version__ = "0.1.0"
