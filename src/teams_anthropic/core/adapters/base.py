"""Chat model interface shared by provider implementations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from ..functions import FunctionDefinition
from ..memory import Memory
from ..message import Message, ModelMessage, SystemMessage
from .accumulator import ChunkCallback


@dataclass(slots=True)
class ChatSendOptions:
    """Per-call options for :meth:`ChatModel.send`.

    Attributes
    ----------
    messages:
        The conversation memory. A fresh :class:`~teams_anthropic.core.memory.LocalMemory`
        is used for the call when omitted.
    system:
        System instruction override, placed ahead of any system message found
        in memory.
    on_chunk:
        Streaming callback. When supplied the provider is called in streaming
        mode and each text delta is awaited through this callback.
    functions:
        Capability mapping of function name to definition for this call.
    auto_function_calling:
        Execute requested calls and continue the turn. When disabled the
        model message carrying the calls is returned to the caller.
    request:
        Provider parameter overrides (``temperature``, ``max_tokens`` ...).
    timeout:
        Request timeout in seconds for this call.
    """

    messages: Memory | None = None
    system: Union[str, SystemMessage, None] = None
    on_chunk: ChunkCallback | None = None
    functions: Mapping[str, FunctionDefinition] | None = None
    auto_function_calling: bool = True
    request: Mapping[str, Any] = field(default_factory=dict)
    timeout: float | None = None


class ChatModel(ABC):
    """Abstract interface for chat models driven by the host framework."""

    @abstractmethod
    async def send(
        self,
        message: Union[Message, str],
        options: ChatSendOptions | None = None,
    ) -> ModelMessage:
        """Run one turn and return the final model message. Never raises."""


__all__ = ["ChatModel", "ChatSendOptions"]
