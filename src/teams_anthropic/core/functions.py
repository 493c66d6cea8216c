"""Function definitions, tool schema mapping and the function call executor."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
import inspect
import json
import logging
import re
from typing import Any

from pydantic_core import to_jsonable_python

from .errors import AdapterError, error_text
from .message import (
    FunctionCall,
    FunctionMessage,
    ModelMessage,
    ensure_json_compatible,
    freeze_json,
    thaw_json,
)

_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,64}$")

FunctionHandler = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True, slots=True)
class FunctionDefinition:
    """A capability the model may invoke during a turn.

    ``parameters`` is either a complete JSON schema describing an object or a
    bare mapping of property schemas. ``handler`` receives the decoded
    argument mapping and may be a plain or a coroutine function.
    """

    handler: FunctionHandler
    parameters: Mapping[str, Any] | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        if not callable(self.handler):
            msg = "function handler must be callable"
            raise AdapterError(msg)

        if self.description is not None:
            if not isinstance(self.description, str):
                msg = "function description must be a string when provided"
                raise AdapterError(msg)
            stripped = self.description.strip()
            object.__setattr__(self, "description", stripped or None)

        if self.parameters is None:
            return
        if not isinstance(self.parameters, Mapping):
            msg = "function parameters must be a mapping"
            raise AdapterError(msg)

        raw_parameters = thaw_json(self.parameters)
        try:
            ensure_json_compatible(raw_parameters, path="FunctionDefinition.parameters")
        except (TypeError, ValueError) as exc:
            raise AdapterError(str(exc)) from exc
        object.__setattr__(self, "parameters", freeze_json(raw_parameters))

    def input_schema(self) -> dict[str, Any]:
        """Return the JSON schema describing the handler's arguments."""

        if self.parameters is None:
            return {"type": "object", "properties": {}}

        plain = thaw_json(self.parameters)
        if plain.get("type") == "object":
            plain.setdefault("properties", {})
            return plain
        return {"type": "object", "properties": plain, "required": []}


def functions_to_tools(functions: Mapping[str, FunctionDefinition]) -> list[dict[str, Any]]:
    """Convert a capability mapping into Anthropic tool schemas."""

    if not isinstance(functions, Mapping):
        msg = "functions must be a mapping of name to FunctionDefinition"
        raise AdapterError(msg)

    tools: list[dict[str, Any]] = []
    for name, definition in functions.items():
        if not isinstance(name, str) or not _NAME_PATTERN.fullmatch(name):
            msg = f"function name {name!r} must match ^[a-zA-Z0-9_-]{{1,64}}$"
            raise AdapterError(msg)
        if not isinstance(definition, FunctionDefinition):
            msg = f"functions['{name}'] must be a FunctionDefinition"
            raise AdapterError(msg)

        tools.append(
            {
                "name": name,
                "description": definition.description or f"Function: {name}",
                "input_schema": definition.input_schema(),
            }
        )
    return tools


def serialize_result(result: Any) -> str:
    """Render a handler result as message text."""

    if isinstance(result, str):
        return result
    return json.dumps(to_jsonable_python(result), ensure_ascii=False)


class FunctionCallExecutor:
    """Execute the calls requested by a model message, in order."""

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._log = logger or logging.getLogger(__name__)

    async def execute(
        self,
        message: ModelMessage,
        functions: Mapping[str, FunctionDefinition],
    ) -> list[FunctionMessage]:
        """Return one function message per call, matching the call order."""

        results: list[FunctionMessage] = []
        for call in message.function_calls or ():
            results.append(await self.execute_call(call, functions))
        return results

    async def execute_call(
        self,
        call: FunctionCall,
        functions: Mapping[str, FunctionDefinition],
    ) -> FunctionMessage:
        definition = functions.get(call.name)
        if definition is None:
            self._log.error("model requested unknown function %s (id=%s)", call.name, call.id)
            return FunctionMessage(
                function_id=call.id,
                content=f"Error: unknown function '{call.name}'",
            )

        self._log.debug("executing function %s id=%s", call.name, call.id)
        try:
            result = definition.handler(call.arguments_dict())
            if inspect.isawaitable(result):
                result = await result
            content = serialize_result(result)
        except Exception as exc:
            self._log.error("function %s failed: %s", call.name, error_text(exc))
            return FunctionMessage(function_id=call.id, content=f"Error: {error_text(exc)}")

        return FunctionMessage(function_id=call.id, content=content)


__all__ = [
    "FunctionCallExecutor",
    "FunctionDefinition",
    "FunctionHandler",
    "functions_to_tools",
    "serialize_result",
]
