"""Pure conversion helpers between host messages and the Anthropic schema."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, ClassVar, Union

from ..errors import AdapterError, ProtocolError
from ..message import (
    FunctionCall,
    FunctionMessage,
    Message,
    ModelMessage,
    SystemMessage,
    UserMessage,
    new_call_id,
    thaw_json,
)


@dataclass(frozen=True, slots=True)
class TextBlock:
    """Plain text fragment of a model response."""

    text: str

    type: ClassVar[str] = "text"


@dataclass(frozen=True, slots=True)
class ToolUseBlock:
    """Tool invocation emitted by the model."""

    id: str
    name: str
    input: Mapping[str, Any]

    type: ClassVar[str] = "tool_use"


@dataclass(frozen=True, slots=True)
class ToolResultBlock:
    """Function output addressed to a previous tool invocation."""

    tool_use_id: str
    content: str

    type: ClassVar[str] = "tool_result"


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


def block_to_provider(block: ContentBlock) -> dict[str, Any]:
    """Render a content block as an Anthropic request payload."""

    if isinstance(block, TextBlock):
        return {"type": block.type, "text": block.text}
    if isinstance(block, ToolUseBlock):
        return {
            "type": block.type,
            "id": block.id,
            "name": block.name,
            "input": thaw_json(block.input),
        }
    if isinstance(block, ToolResultBlock):
        return {
            "type": block.type,
            "tool_use_id": block.tool_use_id,
            "content": block.content,
        }
    msg = f"unsupported content block {type(block).__name__}"
    raise ProtocolError(msg)


def to_provider_format(messages: Iterable[Message]) -> list[dict[str, Any]]:
    """Convert host messages into the Anthropic ``messages`` array.

    System messages are skipped; use :func:`extract_system_instruction` to
    obtain the instruction. Function results become user turns carrying a
    single ``tool_result`` block and must answer a call, not yet answered,
    made by the model message immediately before them.
    """

    converted: list[dict[str, Any]] = []
    open_call_ids: set[str] = set()

    for message in messages:
        if isinstance(message, SystemMessage):
            continue

        if isinstance(message, UserMessage):
            open_call_ids = set()
            converted.append({"role": "user", "content": message.content})
            continue

        if isinstance(message, ModelMessage):
            open_call_ids = {call.id for call in message.function_calls or ()}
            converted.append(_model_message_to_provider(message))
            continue

        if isinstance(message, FunctionMessage):
            if message.function_id not in open_call_ids:
                msg = (
                    f"function result '{message.function_id}' does not answer an open call "
                    "from the preceding model message"
                )
                raise ProtocolError(msg)
            open_call_ids.discard(message.function_id)
            block = ToolResultBlock(tool_use_id=message.function_id, content=message.content)
            converted.append({"role": "user", "content": [block_to_provider(block)]})
            continue

        msg = f"unsupported message type {type(message).__name__}"
        raise ProtocolError(msg)

    return converted


def extract_system_instruction(messages: Iterable[Message]) -> str | None:
    """Return the content of the first system message, if any."""

    for message in messages:
        if isinstance(message, SystemMessage):
            return message.content
    return None


def from_provider_format(response: Mapping[str, Any] | Any) -> ModelMessage:
    """Convert an Anthropic ``Message`` response into a :class:`ModelMessage`."""

    payload = coerce_mapping(response, path="response")
    raw_blocks = payload.get("content")
    if not isinstance(raw_blocks, Sequence) or isinstance(raw_blocks, (str, bytes, bytearray)):
        msg = "provider response is missing a content block list"
        raise AdapterError(msg)

    blocks: list[ContentBlock] = []
    for index, item in enumerate(raw_blocks):
        block = parse_content_block(item, path=f"content[{index}]")
        if block is not None:
            blocks.append(block)
    return blocks_to_model_message(blocks)


def parse_content_block(item: Mapping[str, Any] | Any, *, path: str) -> ContentBlock | None:
    """Parse one response block; unsupported block types yield ``None``."""

    mapping = coerce_mapping(item, path=path)
    block_type = mapping.get("type")

    if block_type == "text":
        text = mapping.get("text", "")
        if not isinstance(text, str):
            msg = f"{path}.text must be a string"
            raise AdapterError(msg)
        return TextBlock(text=text)

    if block_type == "tool_use":
        name = mapping.get("name")
        if not isinstance(name, str) or not name:
            msg = f"{path} is missing a valid tool name"
            raise AdapterError(msg)
        call_id = mapping.get("id")
        if not isinstance(call_id, str) or not call_id:
            call_id = new_call_id()
        raw_input = mapping.get("input")
        if raw_input is None:
            raw_input = {}
        if not isinstance(raw_input, Mapping):
            msg = f"{path}.input must be a mapping"
            raise AdapterError(msg)
        return ToolUseBlock(id=call_id, name=name, input=dict(raw_input))

    return None


def blocks_to_model_message(blocks: Iterable[ContentBlock]) -> ModelMessage:
    """Fold response blocks into a model message, keeping block order."""

    text_parts: list[str] = []
    calls: list[FunctionCall] = []
    seen_ids: set[str] = set()

    for block in blocks:
        if isinstance(block, TextBlock):
            text_parts.append(block.text)
        elif isinstance(block, ToolUseBlock):
            call_id = block.id
            if call_id in seen_ids:
                call_id = new_call_id()
            seen_ids.add(call_id)
            calls.append(FunctionCall(id=call_id, name=block.name, arguments=block.input))

    return ModelMessage(content="".join(text_parts), function_calls=tuple(calls) or None)


def coerce_mapping(value: Mapping[str, Any] | Any, *, path: str) -> Mapping[str, Any]:
    if isinstance(value, Mapping):
        return value

    if hasattr(value, "model_dump"):
        dumped = value.model_dump()
        if isinstance(dumped, Mapping):
            return dumped

    msg = f"{path} must be a mapping"
    raise AdapterError(msg)


def _model_message_to_provider(message: ModelMessage) -> dict[str, Any]:
    if not message.function_calls:
        return {"role": "assistant", "content": message.content}

    blocks: list[ContentBlock] = []
    if message.content:
        blocks.append(TextBlock(text=message.content))
    for call in message.function_calls:
        blocks.append(ToolUseBlock(id=call.id, name=call.name, input=call.arguments))
    return {"role": "assistant", "content": [block_to_provider(block) for block in blocks]}


__all__ = [
    "ContentBlock",
    "TextBlock",
    "ToolResultBlock",
    "ToolUseBlock",
    "block_to_provider",
    "blocks_to_model_message",
    "coerce_mapping",
    "extract_system_instruction",
    "from_provider_format",
    "parse_content_block",
    "to_provider_format",
]
