"""Canonical streaming event schema and base iterator primitives."""

from __future__ import annotations

import abc
import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any, AsyncIterator, Deque, Dict, List, Optional, Protocol, Union


@dataclass(slots=True)
class TokenEvent:
    """Incremental assistant text emitted during streaming generation."""

    content: str
    index: int


@dataclass(slots=True)
class ToolCallEvent:
    """Tool invocation progress.

    The first event for an ``id`` announces the call, later events carry
    partial JSON argument fragments and the event with ``is_final`` set marks
    the end of the call's content block.
    """

    id: str
    name: str
    args_fragment: str
    is_final: bool = False


@dataclass(slots=True)
class FinalEvent:
    """Terminal event containing the consolidated assistant text."""

    output: str
    stop_reason: Optional[str] = None
    usage: Optional[Dict[str, int]] = None


StreamEvent = Union[TokenEvent, ToolCallEvent, FinalEvent]


class BaseStreamIterator(AsyncIterator[StreamEvent], metaclass=abc.ABCMeta):
    """Shared async iterator driving provider-specific streaming adapters.

    Subclasses source raw provider events by implementing
    :meth:`_get_next_chunk`. Each chunk is normalized into zero or more
    :class:`StreamEvent` instances via a :class:`StreamNormalizer`; the
    iterator buffers them so consumers receive a linear stream of canonical
    events. The provider stream is released once a :class:`FinalEvent` has
    been delivered or the source is exhausted.
    """

    def __init__(self, normalizer: StreamNormalizer) -> None:
        self._normalizer = normalizer
        self._buffer: Deque[StreamEvent] = deque()
        self._closed = False
        self._finalized = False
        self._close_lock = asyncio.Lock()

    def __aiter__(self) -> BaseStreamIterator:
        return self

    async def __anext__(self) -> StreamEvent:
        while not self._buffer:
            if self._closed or self._finalized:
                await self.close()
                raise StopAsyncIteration

            try:
                chunk = await self._get_next_chunk()
            except StopAsyncIteration:
                await self.close()
                raise
            self._buffer.extend(await self._normalizer.normalize_chunk(chunk))

        event = self._buffer.popleft()
        if isinstance(event, FinalEvent):
            self._finalized = True
            if not self._buffer:
                await self.close()
        return event

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Release provider resources and prevent additional iteration."""

        async with self._close_lock:
            if self._closed:
                return

            self._closed = True
            self._buffer.clear()
            await self._on_close()

    @abc.abstractmethod
    async def _get_next_chunk(self) -> Dict[str, Any]:
        """Retrieve the next raw event from the provider stream."""

    async def _on_close(self) -> None:
        """Allow subclasses to dispose provider resources when closing."""


class StreamNormalizer(Protocol):
    async def normalize_chunk(self, chunk: Dict[str, Any]) -> List[StreamEvent]:
        """Map a provider-specific event into canonical stream events."""


__all__ = [
    "BaseStreamIterator",
    "FinalEvent",
    "StreamEvent",
    "StreamNormalizer",
    "TokenEvent",
    "ToolCallEvent",
]
