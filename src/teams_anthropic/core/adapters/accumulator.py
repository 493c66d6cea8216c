"""Fold canonical stream events into a single model message."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
import inspect
import json
import logging
from typing import Any, Optional, Union

from ..errors import AdapterError, StreamIncompleteError
from ..message import ModelMessage
from .stream import FinalEvent, StreamEvent, TokenEvent, ToolCallEvent
from .transform import ContentBlock, TextBlock, ToolUseBlock, blocks_to_model_message

ChunkCallback = Callable[[str], Union[Awaitable[None], None]]


@dataclass
class _PendingCall:
    id: str
    name: str
    fragments: list[str] = field(default_factory=list)
    block: ToolUseBlock | None = None

    def close(self) -> ToolUseBlock:
        raw = "".join(self.fragments).strip()
        if not raw:
            arguments: Any = {}
        else:
            try:
                arguments = json.loads(raw)
            except json.JSONDecodeError as exc:
                msg = f"tool call '{self.id}' streamed invalid JSON arguments: {exc.msg}"
                raise AdapterError(msg) from exc
        if not isinstance(arguments, dict):
            msg = f"tool call '{self.id}' arguments must decode to an object"
            raise AdapterError(msg)

        self.block = ToolUseBlock(id=self.id, name=self.name, input=arguments)
        return self.block


class StreamAccumulator:
    """Consume a stream of :class:`StreamEvent` objects into a :class:`ModelMessage`.

    Text deltas are forwarded to ``on_chunk`` in emission order and the next
    event is not read until the callback has completed. Tool argument
    fragments are buffered per call and decoded once the call closes.

    A stream that ends without a :class:`FinalEvent`, or with a tool call
    still open, raises :class:`StreamIncompleteError`; no partial message is
    returned. The event source is closed on every exit path, including task
    cancellation.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._log = logger or logging.getLogger(__name__)

    async def accumulate(
        self,
        events: AsyncIterator[StreamEvent],
        on_chunk: Optional[ChunkCallback] = None,
    ) -> ModelMessage:
        text_parts: list[str] = []
        calls: dict[str, _PendingCall] = {}
        final: FinalEvent | None = None

        try:
            async for event in events:
                if isinstance(event, TokenEvent):
                    if not event.content:
                        continue
                    text_parts.append(event.content)
                    if on_chunk is not None:
                        result = on_chunk(event.content)
                        if inspect.isawaitable(result):
                            await result
                elif isinstance(event, ToolCallEvent):
                    self._track_call(calls, event)
                elif isinstance(event, FinalEvent):
                    final = event
        finally:
            await _close_events(events)

        if final is None:
            msg = "provider stream ended before the response was complete"
            raise StreamIncompleteError(msg)

        open_ids = [call.id for call in calls.values() if call.block is None]
        if open_ids:
            msg = f"provider stream ended with open tool calls: {', '.join(open_ids)}"
            raise StreamIncompleteError(msg)

        self._log.debug(
            "stream complete stop_reason=%s usage=%s", final.stop_reason, final.usage
        )

        blocks: list[ContentBlock] = []
        if text_parts:
            blocks.append(TextBlock(text="".join(text_parts)))
        blocks.extend(call.block for call in calls.values() if call.block is not None)
        return blocks_to_model_message(blocks)

    def _track_call(self, calls: dict[str, _PendingCall], event: ToolCallEvent) -> None:
        pending = calls.get(event.id)
        if pending is None:
            pending = _PendingCall(id=event.id, name=event.name)
            calls[event.id] = pending
        elif pending.block is not None:
            msg = f"tool call '{event.id}' received data after it was closed"
            raise AdapterError(msg)

        if event.args_fragment:
            pending.fragments.append(event.args_fragment)
        if event.is_final:
            pending.close()


async def _close_events(events: Any) -> None:
    for closer_name in ("aclose", "close"):
        closer = getattr(events, closer_name, None)
        if closer is None or not callable(closer):
            continue
        result = closer()
        if inspect.isawaitable(result):
            await result
        return


__all__ = ["ChunkCallback", "StreamAccumulator"]
