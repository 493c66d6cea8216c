"""Anthropic chat model adapter with streaming and function calling."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
import inspect
import json
import logging
import os
from typing import TYPE_CHECKING, Any, Union

import anthropic
from anthropic import AsyncAnthropic

from ...models import AnthropicModel, is_valid_model
from ..errors import AdapterError, ConfigurationError, ProtocolError, error_text
from ..functions import FunctionCallExecutor, functions_to_tools
from ..memory import LocalMemory, Memory
from ..message import MESSAGE_TYPES, Message, ModelMessage, SystemMessage, UserMessage, new_call_id
from .accumulator import StreamAccumulator
from .base import ChatModel, ChatSendOptions
from .stream import BaseStreamIterator, FinalEvent, StreamNormalizer, TokenEvent, ToolCallEvent
from .transform import coerce_mapping, extract_system_instruction, from_provider_format, to_provider_format

if TYPE_CHECKING:
    from ...config import ChatModelConfig

DEFAULT_MAX_TOKENS = 4096
DEFAULT_TIMEOUT = 60.0
DEFAULT_LOGGER_NAME = "teams_anthropic.chat"

MANAGED_REQUEST_KEYS = frozenset({"model", "messages", "system", "tools", "stream"})


def create_anthropic_stream(client: Any, payload: Mapping[str, Any]) -> Any:
    """Open a streaming Messages API call using the provided client."""

    return client.messages.create(**payload)


class AnthropicChatModel(ChatModel):
    """Drive Anthropic's Messages API as a host chat model.

    One :meth:`send` call is a turn: the input is appended to memory, the
    provider is called (streaming when ``on_chunk`` is supplied), the reply is
    appended, and requested functions are executed and fed back until the
    model answers without pending calls. ``send`` never raises; failures are
    returned as a model message whose content starts with ``"Error: "``.
    """

    def __init__(
        self,
        model: Union[AnthropicModel, str],
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        request_options: Mapping[str, Any] | None = None,
        logger: logging.Logger | None = None,
        client: Any | None = None,
    ) -> None:
        self._log = logger or logging.getLogger(DEFAULT_LOGGER_NAME)
        identifier = model.value if isinstance(model, AnthropicModel) else (model or "")
        self._model = str(identifier).strip()
        self._timeout = timeout
        self._request_options = dict(request_options or {})
        self._executor = FunctionCallExecutor(logger=self._log)
        self._accumulator = StreamAccumulator(logger=self._log)
        self._config_error: ConfigurationError | None = None

        if not self._model:
            self._config_error = ConfigurationError("a model identifier is required")
        elif not is_valid_model(self._model):
            self._log.warning("model %s is not a known Claude model identifier", self._model)

        self._client = client
        if self._client is None:
            resolved_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
            if not resolved_key:
                self._config_error = self._config_error or ConfigurationError(
                    "an Anthropic API key is required (pass api_key or set ANTHROPIC_API_KEY)"
                )
            else:
                self._client = AsyncAnthropic(
                    api_key=resolved_key,
                    base_url=base_url,
                    default_headers=dict(headers) if headers else None,
                    timeout=timeout,
                )

        if self._config_error is not None:
            self._log.error("AnthropicChatModel misconfigured: %s", self._config_error)
        else:
            self._log.info("AnthropicChatModel initialized with model: %s", self._model)

    @classmethod
    def from_config(
        cls,
        config: ChatModelConfig,
        *,
        logger: logging.Logger | None = None,
        client: Any | None = None,
    ) -> AnthropicChatModel:
        """Build a chat model from a :class:`~teams_anthropic.config.ChatModelConfig`."""

        return cls(
            config.model,
            api_key=config.api_key,
            base_url=config.base_url,
            headers=config.headers,
            timeout=config.timeout,
            request_options=config.request_options,
            logger=logger,
            client=client,
        )

    @property
    def model(self) -> str:
        return self._model

    async def send(
        self,
        message: Union[Message, str],
        options: ChatSendOptions | None = None,
    ) -> ModelMessage:
        try:
            return await self._run_turn(message, options or ChatSendOptions())
        except Exception as exc:
            description = describe_error(exc)
            self._log.exception("AnthropicChatModel.send failed: %s", description)
            return ModelMessage(content=f"Error: {description}")

    async def _run_turn(self, message: Union[Message, str], options: ChatSendOptions) -> ModelMessage:
        if self._config_error is not None:
            raise self._config_error

        if isinstance(message, str):
            message = UserMessage(content=message)
        if not isinstance(message, MESSAGE_TYPES):
            msg = f"cannot send {type(message).__name__}; expected a message"
            raise ProtocolError(msg)

        memory = options.messages if options.messages is not None else LocalMemory()
        functions = options.functions or {}
        tools = functions_to_tools(functions) if functions else None
        auto_execute = options.auto_function_calling and bool(functions)

        pending: Sequence[Message] = [message]
        while True:
            for item in pending:
                await memory.push(item)

            last = pending[-1]
            if isinstance(last, ModelMessage) and last.has_function_calls:
                reply = last
            else:
                reply = await self._request(memory, options, tools)
                await memory.push(reply)

            if not (reply.has_function_calls and auto_execute):
                return reply

            self._log.debug("auto-executing %d function calls", len(reply.function_calls or ()))
            pending = await self._executor.execute(reply, functions)

    async def _request(
        self,
        memory: Memory,
        options: ChatSendOptions,
        tools: list[dict[str, Any]] | None,
    ) -> ModelMessage:
        history = await memory.values()
        payload = self.build_request(history, options, tools=tools)
        self._log.debug(
            "sending %d messages to Anthropic (stream=%s)",
            len(payload["messages"]),
            options.on_chunk is not None,
        )

        if options.on_chunk is not None:
            stream = create_anthropic_stream(self._client, {**payload, "stream": True})
            if inspect.isawaitable(stream):
                stream = await stream
            iterator = AnthropicStreamIterator(stream)
            return await self._accumulator.accumulate(iterator, options.on_chunk)

        response = await self._client.messages.create(**payload)
        self._log.debug(
            "received response %s stop_reason=%s",
            getattr(response, "id", None),
            getattr(response, "stop_reason", None),
        )
        return from_provider_format(response)

    def build_request(
        self,
        history: Sequence[Message],
        options: ChatSendOptions,
        *,
        tools: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Merge defaults, per-call overrides and managed fields into a payload."""

        payload: dict[str, Any] = {"max_tokens": DEFAULT_MAX_TOKENS}
        timeout: Any = self._timeout
        for source in (self._request_options, options.request or {}):
            for key, value in source.items():
                if key in MANAGED_REQUEST_KEYS:
                    self._log.warning("ignoring request option '%s' managed by the adapter", key)
                    continue
                if key == "timeout":
                    timeout = value
                    continue
                payload[key] = value

        if options.timeout is not None:
            timeout = options.timeout
        payload["timeout"] = timeout

        candidates: list[Message] = list(history)
        if options.system is not None:
            override = options.system
            if isinstance(override, str):
                override = SystemMessage(content=override)
            candidates.insert(0, override)

        payload["model"] = self._model
        payload["messages"] = to_provider_format(history)
        system = extract_system_instruction(candidates)
        if system:
            payload["system"] = system
        if tools:
            payload["tools"] = tools
        return payload


class AnthropicStreamIterator(BaseStreamIterator):
    """Stream iterator that converts Anthropic stream events into canonical events."""

    def __init__(
        self,
        stream: Any,
        *,
        normalizer: StreamNormalizer | None = None,
    ) -> None:
        self._stream = stream
        self._iterator = self._coerce_async_iterator(stream)
        super().__init__(normalizer or AnthropicStreamNormalizer())

    async def _get_next_chunk(self) -> dict[str, Any]:
        try:
            raw_event = await self._iterator.__anext__()
        except StopAsyncIteration:
            raise
        except anthropic.APIError:
            raise
        except Exception as exc:
            msg = f"Anthropic stream failed: {error_text(exc)}"
            raise AdapterError(msg) from exc

        return dict(coerce_mapping(raw_event, path="stream event"))

    async def _on_close(self) -> None:
        for closer_name in ("aclose", "close"):
            closer = getattr(self._stream, closer_name, None)
            if closer is None:
                continue
            result = closer()
            if inspect.isawaitable(result):
                await result
            return

    def _coerce_async_iterator(self, stream: Any) -> Any:
        iterator_factory = getattr(stream, "__aiter__", None)
        if iterator_factory is None or not callable(iterator_factory):
            msg = "Anthropic stream must support async iteration"
            raise AdapterError(msg)
        iterator = iterator_factory()
        if not hasattr(iterator, "__anext__"):
            msg = "Anthropic stream iterator must define '__anext__'"
            raise AdapterError(msg)
        return iterator


@dataclass
class _BlockState:
    """Track an open content block while its deltas arrive."""

    kind: str
    call_id: str | None = None
    name: str | None = None


class AnthropicStreamNormalizer(StreamNormalizer):
    """Normalize Messages API stream events into canonical events."""

    def __init__(self) -> None:
        self._token_index = 0
        self._text_fragments: list[str] = []
        self._blocks: dict[int, _BlockState] = {}
        self._seen_call_ids: set[str] = set()
        self._stop_reason: str | None = None
        self._usage: dict[str, int] = {}
        self._final_emitted = False

    async def normalize_chunk(
        self, chunk: Mapping[str, Any]
    ) -> list[TokenEvent | ToolCallEvent | FinalEvent]:
        event_type = chunk.get("type")

        if event_type == "message_start":
            message = chunk.get("message") or {}
            self._merge_usage(coerce_mapping(message, path="message_start.message").get("usage"))
            return []
        if event_type == "content_block_start":
            return self._start_block(chunk)
        if event_type == "content_block_delta":
            return self._apply_delta(chunk)
        if event_type == "content_block_stop":
            return self._stop_block(chunk)
        if event_type == "message_delta":
            delta = coerce_mapping(chunk.get("delta") or {}, path="message_delta.delta")
            stop_reason = delta.get("stop_reason")
            if isinstance(stop_reason, str):
                self._stop_reason = stop_reason
            self._merge_usage(chunk.get("usage"))
            return []
        if event_type == "message_stop":
            return self._finish()
        if event_type == "error":
            error = coerce_mapping(chunk.get("error") or {}, path="error")
            kind = error.get("type", "error")
            detail = error.get("message", "unknown stream error")
            msg = f"Anthropic stream error ({kind}): {detail}"
            raise AdapterError(msg)

        # ping and unrecognised event types carry no content
        return []

    def _start_block(self, chunk: Mapping[str, Any]) -> list[TokenEvent | ToolCallEvent]:
        index = self._require_index(chunk)
        block = coerce_mapping(chunk.get("content_block") or {}, path="content_block")
        kind = block.get("type")

        if kind == "text":
            self._blocks[index] = _BlockState(kind="text")
            initial = block.get("text") or ""
            return self._text_events(initial)

        if kind == "tool_use":
            name = block.get("name")
            if not isinstance(name, str) or not name:
                msg = f"tool_use block at index {index} is missing a valid name"
                raise AdapterError(msg)
            call_id = block.get("id")
            if not isinstance(call_id, str) or not call_id or call_id in self._seen_call_ids:
                call_id = new_call_id()
            self._seen_call_ids.add(call_id)
            self._blocks[index] = _BlockState(kind="tool_use", call_id=call_id, name=name)

            events: list[TokenEvent | ToolCallEvent] = [
                ToolCallEvent(id=call_id, name=name, args_fragment="")
            ]
            initial_input = block.get("input")
            if isinstance(initial_input, Mapping) and initial_input:
                events.append(
                    ToolCallEvent(id=call_id, name=name, args_fragment=json.dumps(dict(initial_input)))
                )
            return events

        self._blocks[index] = _BlockState(kind=str(kind))
        return []

    def _apply_delta(self, chunk: Mapping[str, Any]) -> list[TokenEvent | ToolCallEvent]:
        index = self._require_index(chunk)
        state = self._blocks.get(index)
        if state is None:
            msg = f"content_block_delta for unknown block index {index}"
            raise AdapterError(msg)

        delta = coerce_mapping(chunk.get("delta") or {}, path="content_block_delta.delta")
        delta_type = delta.get("type")

        if delta_type == "text_delta":
            text = delta.get("text")
            if not isinstance(text, str):
                msg = "text_delta.text must be a string"
                raise AdapterError(msg)
            return self._text_events(text)

        if delta_type == "input_json_delta":
            if state.kind != "tool_use" or state.call_id is None or state.name is None:
                msg = f"input_json_delta for non tool_use block at index {index}"
                raise AdapterError(msg)
            fragment = delta.get("partial_json") or ""
            if not isinstance(fragment, str):
                msg = "input_json_delta.partial_json must be a string"
                raise AdapterError(msg)
            if not fragment:
                return []
            return [ToolCallEvent(id=state.call_id, name=state.name, args_fragment=fragment)]

        return []

    def _stop_block(self, chunk: Mapping[str, Any]) -> list[ToolCallEvent]:
        index = self._require_index(chunk)
        state = self._blocks.pop(index, None)
        if state is None or state.kind != "tool_use" or state.call_id is None or state.name is None:
            return []
        return [ToolCallEvent(id=state.call_id, name=state.name, args_fragment="", is_final=True)]

    def _finish(self) -> list[FinalEvent]:
        if self._final_emitted:
            return []
        self._final_emitted = True
        return [
            FinalEvent(
                output="".join(self._text_fragments),
                stop_reason=self._stop_reason,
                usage=dict(self._usage) or None,
            )
        ]

    def _text_events(self, text: str) -> list[TokenEvent]:
        if not text:
            return []
        event = TokenEvent(content=text, index=self._token_index)
        self._token_index += 1
        self._text_fragments.append(text)
        return [event]

    def _merge_usage(self, usage: Any) -> None:
        if usage is None:
            return
        for key, value in coerce_mapping(usage, path="usage").items():
            if isinstance(value, int) and not isinstance(value, bool):
                self._usage[key] = value

    def _require_index(self, chunk: Mapping[str, Any]) -> int:
        index = chunk.get("index")
        if isinstance(index, bool) or not isinstance(index, int):
            msg = f"{chunk.get('type')} event is missing an integer index"
            raise AdapterError(msg)
        return index


def describe_error(exc: BaseException) -> str:
    """Describe ``exc`` for an error reply, including provider status codes."""

    if isinstance(exc, anthropic.APITimeoutError):
        return "Anthropic request timed out"
    if isinstance(exc, anthropic.APIStatusError):
        return f"Anthropic API returned {exc.status_code}: {exc.message}"
    if isinstance(exc, anthropic.APIConnectionError):
        return f"could not connect to Anthropic: {exc.message}"
    return error_text(exc)


__all__ = [
    "AnthropicChatModel",
    "AnthropicStreamIterator",
    "AnthropicStreamNormalizer",
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_TIMEOUT",
    "MANAGED_REQUEST_KEYS",
    "create_anthropic_stream",
    "describe_error",
]
