"""Conversation log shared between the caller and the chat model."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from .message import MESSAGE_TYPES, Message


class Memory(ABC):
    """Ordered, append-only log of conversation messages.

    Implementations are not safe for concurrent ``send`` calls against the
    same instance; callers serialize turns per conversation.
    """

    @abstractmethod
    async def push(self, message: Message) -> None:
        """Append ``message`` to the end of the log."""

    @abstractmethod
    async def values(self) -> list[Message]:
        """Return a snapshot of the log in insertion order."""

    @abstractmethod
    def __len__(self) -> int:
        """Number of messages currently stored."""


class LocalMemory(Memory):
    """In-process memory backed by a list."""

    def __init__(self, messages: Iterable[Message] | None = None) -> None:
        self._messages: list[Message] = []
        for message in messages or ():
            self._append(message)

    async def push(self, message: Message) -> None:
        self._append(message)

    async def values(self) -> list[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def _append(self, message: Message) -> None:
        if not isinstance(message, MESSAGE_TYPES):
            msg = f"cannot store {type(message).__name__} in memory"
            raise TypeError(msg)
        self._messages.append(message)


__all__ = ["LocalMemory", "Memory"]
