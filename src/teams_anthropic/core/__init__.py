"""Core message types, memory, function execution and adapters."""

from __future__ import annotations

from .errors import AdapterError, ConfigurationError, ProtocolError, StreamIncompleteError
from .functions import FunctionCallExecutor, FunctionDefinition
from .memory import LocalMemory, Memory
from .message import (
    FunctionCall,
    FunctionMessage,
    Message,
    MessageRole,
    ModelMessage,
    SystemMessage,
    UserMessage,
)

__all__ = [
    "AdapterError",
    "ConfigurationError",
    "FunctionCall",
    "FunctionCallExecutor",
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
]
