"""Host-side message schema exchanged with the chat model."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
import json
import math
from types import MappingProxyType
from typing import Any, ClassVar, Union
from uuid import uuid4


class MessageRole(str, Enum):
    """Role names understood by the host conversation framework."""

    USER = "user"
    MODEL = "model"
    FUNCTION = "function"
    SYSTEM = "system"


def new_call_id() -> str:
    """Return a locally unique identifier for a function call."""

    return f"call_{uuid4().hex}"


@dataclass(frozen=True, slots=True)
class FunctionCall:
    """A function invocation requested by the model."""

    id: str
    name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            msg = "function call id must be a non-empty string"
            raise ValueError(msg)
        if not isinstance(self.name, str) or not self.name:
            msg = "function call name must be a non-empty string"
            raise ValueError(msg)
        if not isinstance(self.arguments, Mapping):
            msg = "function call arguments must be a mapping"
            raise TypeError(msg)

        plain_arguments = thaw_json(dict(self.arguments))
        ensure_json_compatible(plain_arguments, path="FunctionCall.arguments")

        sanitized = json.loads(json.dumps(plain_arguments, allow_nan=False))
        object.__setattr__(self, "arguments", freeze_json(sanitized))

    def arguments_dict(self) -> dict[str, Any]:
        """Return a mutable deep copy of the call arguments."""

        return thaw_json(self.arguments)


@dataclass(frozen=True, slots=True)
class UserMessage:
    """Text supplied by the human side of the conversation."""

    content: str

    role: ClassVar[MessageRole] = MessageRole.USER

    def __post_init__(self) -> None:
        _require_text(self.content)


@dataclass(frozen=True, slots=True)
class SystemMessage:
    """Instruction that frames the model's behaviour for a turn."""

    content: str

    role: ClassVar[MessageRole] = MessageRole.SYSTEM

    def __post_init__(self) -> None:
        _require_text(self.content)


@dataclass(frozen=True, slots=True)
class FunctionMessage:
    """Result of executing one :class:`FunctionCall`."""

    function_id: str
    content: str

    role: ClassVar[MessageRole] = MessageRole.FUNCTION

    def __post_init__(self) -> None:
        if not isinstance(self.function_id, str) or not self.function_id:
            msg = "function_id must be a non-empty string"
            raise ValueError(msg)
        _require_text(self.content)


@dataclass(frozen=True, slots=True)
class ModelMessage:
    """A response produced by the model, optionally requesting function calls."""

    content: str = ""
    function_calls: tuple[FunctionCall, ...] | None = None

    role: ClassVar[MessageRole] = MessageRole.MODEL

    def __post_init__(self) -> None:
        _require_text(self.content)

        if self.function_calls is None:
            return
        if not isinstance(self.function_calls, Sequence) or isinstance(
            self.function_calls, (str, bytes, bytearray)
        ):
            msg = "function_calls must be a sequence of FunctionCall instances"
            raise TypeError(msg)

        candidates = tuple(self.function_calls)
        seen: set[str] = set()
        for call in candidates:
            if not isinstance(call, FunctionCall):
                msg = "function_calls must contain FunctionCall instances"
                raise TypeError(msg)
            if call.id in seen:
                msg = f"duplicate function call id '{call.id}'"
                raise ValueError(msg)
            seen.add(call.id)

        object.__setattr__(self, "function_calls", candidates or None)

    @property
    def has_function_calls(self) -> bool:
        """Whether the model is waiting on function results."""

        return bool(self.function_calls)


Message = Union[UserMessage, ModelMessage, FunctionMessage, SystemMessage]

MESSAGE_TYPES: tuple[type, ...] = (UserMessage, ModelMessage, FunctionMessage, SystemMessage)


def thaw_json(value: Any) -> Any:
    """Convert frozen mappings and tuples back into plain dicts and lists."""

    if isinstance(value, Mapping):
        return {key: thaw_json(inner) for key, inner in value.items()}

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [thaw_json(inner) for inner in value]

    return value


def _require_text(content: Any) -> None:
    if not isinstance(content, str):
        msg = "message content must be a string"
        raise TypeError(msg)


def ensure_json_compatible(value: Any, *, path: str) -> None:
    if isinstance(value, Mapping):
        for key, inner in value.items():
            if not isinstance(key, str) or not key:
                msg = f"{path} keys must be non-empty strings"
                raise TypeError(msg)
            ensure_json_compatible(inner, path=f"{path}.{key}")
        return

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        for index, item in enumerate(value):
            ensure_json_compatible(item, path=f"{path}[{index}]")
        return

    if isinstance(value, (bool, type(None), str)):
        return

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            msg = f"{path} contains non-finite float values"
            raise ValueError(msg)
        return

    msg = f"{path} contains unsupported value type {type(value).__name__}"
    raise TypeError(msg)


def freeze_json(value: Any) -> Any:
    if isinstance(value, dict):
        frozen_dict = {key: freeze_json(inner) for key, inner in value.items()}
        return MappingProxyType(frozen_dict)

    if isinstance(value, list):
        return tuple(freeze_json(inner) for inner in value)

    return value


__all__ = [
    "FunctionCall",
    "FunctionMessage",
    "MESSAGE_TYPES",
    "Message",
    "MessageRole",
    "ModelMessage",
    "SystemMessage",
    "UserMessage",
    "ensure_json_compatible",
    "freeze_json",
    "new_call_id",
    "thaw_json",
]
