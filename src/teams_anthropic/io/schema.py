"""JSON schema for host-format conversation messages."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, JsonValue, TypeAdapter, model_validator

from teams_anthropic.core.message import (
    FunctionCall,
    FunctionMessage,
    Message,
    MessageRole,
    ModelMessage,
    SystemMessage,
    UserMessage,
)

JSONValue = JsonValue


class HostFunctionCall(BaseModel):
    """Function invocation carried by a model message."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(..., min_length=1, description="Identifier shared with the answering function message.")
    name: str = Field(..., min_length=1, description="Name of the requested function.")
    arguments: Dict[str, JSONValue] = Field(default_factory=dict, description="Decoded call arguments.")


class HostMessage(BaseModel):
    """One entry of a host-format conversation log."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    role: MessageRole = Field(..., description="Author of the message.")
    content: str = Field("", description="Text content of the message.")
    function_calls: Optional[List[HostFunctionCall]] = Field(
        None, description="Calls requested by the model; only valid on model messages."
    )
    function_id: Optional[str] = Field(
        None, description="Call answered by this result; required on function messages."
    )

    @model_validator(mode="after")
    def _check_role_fields(self) -> "HostMessage":
        if self.function_calls is not None and self.role is not MessageRole.MODEL:
            raise ValueError("function_calls is only valid on model messages")
        if self.role is MessageRole.FUNCTION:
            if not self.function_id:
                raise ValueError("function messages require a function_id")
        elif self.function_id is not None:
            raise ValueError("function_id is only valid on function messages")
        return self

    def to_message(self) -> Message:
        """Convert into the matching message dataclass."""

        if self.role is MessageRole.USER:
            return UserMessage(content=self.content)
        if self.role is MessageRole.SYSTEM:
            return SystemMessage(content=self.content)
        if self.role is MessageRole.FUNCTION:
            return FunctionMessage(function_id=self.function_id or "", content=self.content)

        calls = tuple(
            FunctionCall(id=call.id, name=call.name, arguments=call.arguments)
            for call in self.function_calls or ()
        )
        return ModelMessage(content=self.content, function_calls=calls or None)

    @classmethod
    def from_message(cls, message: Message) -> "HostMessage":
        if isinstance(message, ModelMessage):
            calls = None
            if message.function_calls:
                calls = [
                    HostFunctionCall(id=call.id, name=call.name, arguments=call.arguments_dict())
                    for call in message.function_calls
                ]
            return cls(role=MessageRole.MODEL, content=message.content, function_calls=calls)
        if isinstance(message, FunctionMessage):
            return cls(
                role=MessageRole.FUNCTION,
                content=message.content,
                function_id=message.function_id,
            )
        return cls(role=message.role, content=message.content)


_HOST_LOG = TypeAdapter(List[HostMessage])


def load_messages(data: Union[str, bytes]) -> list[Message]:
    """Parse a JSON array of host-format messages."""

    return [entry.to_message() for entry in _HOST_LOG.validate_json(data)]


def dump_messages(messages: Sequence[Message], *, indent: int | None = None) -> str:
    """Render messages as a JSON array in host format."""

    entries = [HostMessage.from_message(message) for message in messages]
    return _HOST_LOG.dump_json(entries, indent=indent, exclude_none=True).decode("utf-8")


__all__ = [
    "HostFunctionCall",
    "HostMessage",
    "JSONValue",
    "dump_messages",
    "load_messages",
]
