"""Conversation session serializing turns against one memory."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Union

from teams_anthropic.core.adapters.base import ChatModel, ChatSendOptions
from teams_anthropic.core.memory import LocalMemory, Memory
from teams_anthropic.core.message import Message, ModelMessage


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Turn:
    """One completed ``send`` call: the caller's input and the final reply."""

    input: Message | str
    reply: ModelMessage

    @property
    def failed(self) -> bool:
        return self.reply.content.startswith("Error: ")


class SessionTranscript:
    """Ordered record of the turns taken in a session."""

    def __init__(self) -> None:
        self._turns: list[Turn] = []

    def record(self, turn: Turn) -> None:
        self._turns.append(turn)

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)


class ChatSession:
    """Own a conversation memory and serialize sends against it.

    Memory is not safe for concurrent turns, so every :meth:`send` holds an
    :class:`asyncio.Lock` for the duration of the turn. ``defaults`` supplies
    the options used for each call; keyword overrides replace individual
    fields for one call.
    """

    def __init__(
        self,
        model: ChatModel,
        *,
        memory: Memory | None = None,
        defaults: ChatSendOptions | None = None,
    ) -> None:
        self._model = model
        self.memory = memory if memory is not None else LocalMemory()
        self._defaults = defaults or ChatSendOptions()
        self._lock = asyncio.Lock()
        self.transcript = SessionTranscript()

    async def send(self, message: Union[Message, str], **overrides) -> ModelMessage:
        if "messages" in overrides:
            msg = "ChatSession sends always use the session memory; 'messages' cannot be overridden"
            raise ValueError(msg)
        options = replace(self._defaults, messages=self.memory, **overrides)
        async with self._lock:
            reply = await self._model.send(message, options)
            turn = Turn(input=message, reply=reply)
            self.transcript.record(turn)

        if turn.failed:
            LOGGER.warning("turn %d failed: %s", len(self.transcript), reply.content)
        else:
            LOGGER.debug("turn %d complete (memory=%d)", len(self.transcript), len(self.memory))
        return reply

    async def history(self) -> list[Message]:
        return await self.memory.values()


__all__ = ["ChatSession", "SessionTranscript", "Turn"]
