from __future__ import annotations

import asyncio
import logging

import anthropic
import httpx
import pytest

from teams_anthropic.core.adapters.anthropic import AnthropicChatModel
from teams_anthropic.core.adapters.base import ChatSendOptions
from teams_anthropic.core.functions import FunctionDefinition
from teams_anthropic.core.memory import LocalMemory
from teams_anthropic.core.message import (
    FunctionCall,
    FunctionMessage,
    ModelMessage,
    SystemMessage,
    UserMessage,
)
from teams_anthropic.models import AnthropicModel

from tests.fixtures import anthropic_fake

MODEL = AnthropicModel.CLAUDE_SONNET_4_5


def _model(*replies: object, **kwargs: object) -> tuple[AnthropicChatModel, anthropic_fake.FakeMessages]:
    client = anthropic_fake.build_client(*replies)
    return AnthropicChatModel(MODEL, client=client, **kwargs), client.messages


def _add_definition(handler=None) -> dict[str, FunctionDefinition]:
    return {
        "add": FunctionDefinition(
            handler=handler or (lambda arguments: arguments["a"] + arguments["b"]),
            parameters={"a": {"type": "number"}, "b": {"type": "number"}},
            description="Add two numbers",
        )
    }


def test_basic_turn_appends_input_and_reply() -> None:
    chat_model, messages = _model(anthropic_fake.text_response("4"))
    memory = LocalMemory()

    reply = asyncio.run(chat_model.send(UserMessage("2+2?"), ChatSendOptions(messages=memory)))

    assert reply == ModelMessage(content="4")
    assert len(memory) == 2
    [call] = messages.calls
    assert call["model"] == MODEL.value
    assert call["messages"] == [{"role": "user", "content": "2+2?"}]
    assert call["max_tokens"] == 4096
    assert "system" not in call
    assert "tools" not in call


def test_function_call_loop_executes_and_continues() -> None:
    chat_model, messages = _model(
        anthropic_fake.tool_use_response("1", "add", {"a": 2, "b": 2}),
        anthropic_fake.text_response("4"),
    )
    memory = LocalMemory()

    reply = asyncio.run(
        chat_model.send(
            UserMessage("2+2?"),
            ChatSendOptions(messages=memory, functions=_add_definition()),
        )
    )

    assert reply == ModelMessage(content="4")
    assert len(messages.calls) == 2

    history = asyncio.run(memory.values())
    assert [type(message) for message in history] == [
        UserMessage,
        ModelMessage,
        FunctionMessage,
        ModelMessage,
    ]
    assert history[1].function_calls == (FunctionCall(id="1", name="add", arguments={"a": 2, "b": 2}),)
    assert history[2] == FunctionMessage(function_id="1", content="4")

    second = messages.calls[1]
    assert second["messages"][-1] == {
        "role": "user",
        "content": [{"type": "tool_result", "tool_use_id": "1", "content": "4"}],
    }
    assert second["tools"][0]["name"] == "add"


def test_parallel_tool_calls_are_answered_in_call_order() -> None:
    response = anthropic_fake.tool_use_response("call_a", "add", {"a": 1, "b": 2}, text="Adding both.")
    response["content"].append({"type": "tool_use", "id": "call_b", "name": "add", "input": {"a": 3, "b": 4}})
    chat_model, messages = _model(response, anthropic_fake.text_response("3 and 7"))
    memory = LocalMemory()

    reply = asyncio.run(
        chat_model.send(
            UserMessage("1+2 and 3+4?"),
            ChatSendOptions(messages=memory, functions=_add_definition()),
        )
    )

    assert reply == ModelMessage(content="3 and 7")
    history = asyncio.run(memory.values())
    assert [call.id for call in history[1].function_calls] == ["call_a", "call_b"]
    assert history[2:4] == [
        FunctionMessage(function_id="call_a", content="3"),
        FunctionMessage(function_id="call_b", content="7"),
    ]

    continuation = messages.calls[1]["messages"]
    assert [block["id"] for block in continuation[1]["content"] if block["type"] == "tool_use"] == [
        "call_a",
        "call_b",
    ]
    assert [turn["content"][0]["tool_use_id"] for turn in continuation[2:]] == ["call_a", "call_b"]


def test_handler_failure_is_fed_back_to_the_model() -> None:
    def boom(arguments: dict) -> None:
        raise ValueError("boom")

    chat_model, messages = _model(
        anthropic_fake.tool_use_response("1", "add", {"a": 2, "b": 2}),
        anthropic_fake.text_response("I could not add those."),
    )
    memory = LocalMemory()

    reply = asyncio.run(
        chat_model.send(
            "2+2?",
            ChatSendOptions(messages=memory, functions=_add_definition(boom)),
        )
    )

    assert reply.content == "I could not add those."
    history = asyncio.run(memory.values())
    assert "Error: boom" in history[2].content
    assert len(messages.calls) == 2


def test_async_handlers_are_awaited() -> None:
    async def add(arguments: dict) -> dict:
        await asyncio.sleep(0)
        return {"sum": arguments["a"] + arguments["b"]}

    chat_model, messages = _model(
        anthropic_fake.tool_use_response("1", "add", {"a": 1, "b": 2}),
        anthropic_fake.text_response("3"),
    )

    reply = asyncio.run(chat_model.send("1+2?", ChatSendOptions(functions=_add_definition(add))))

    assert reply.content == "3"
    tool_result = messages.calls[1]["messages"][-1]["content"][0]
    assert tool_result["content"] == '{"sum": 3}'


def test_chained_function_calls_loop_until_text() -> None:
    chat_model, messages = _model(
        anthropic_fake.tool_use_response("1", "add", {"a": 1, "b": 1}),
        anthropic_fake.tool_use_response("2", "add", {"a": 2, "b": 2}),
        anthropic_fake.tool_use_response("3", "add", {"a": 4, "b": 4}),
        anthropic_fake.text_response("8"),
    )
    memory = LocalMemory()

    reply = asyncio.run(
        chat_model.send("double thrice", ChatSendOptions(messages=memory, functions=_add_definition()))
    )

    assert reply.content == "8"
    assert len(messages.calls) == 4
    assert len(memory) == 8

    history = asyncio.run(memory.values())
    for index in (1, 3, 5):
        [call] = history[index].function_calls
        assert history[index + 1].function_id == call.id


def test_auto_function_calling_disabled_returns_calls() -> None:
    executed: list[dict] = []
    chat_model, messages = _model(anthropic_fake.tool_use_response("1", "add", {"a": 2, "b": 2}))
    memory = LocalMemory()

    reply = asyncio.run(
        chat_model.send(
            "2+2?",
            ChatSendOptions(
                messages=memory,
                functions=_add_definition(executed.append),
                auto_function_calling=False,
            ),
        )
    )

    assert reply.function_calls == (FunctionCall(id="1", name="add", arguments={"a": 2, "b": 2}),)
    assert executed == []
    assert len(messages.calls) == 1
    assert len(memory) == 2


def test_calls_without_functions_are_returned_unexecuted() -> None:
    chat_model, messages = _model(anthropic_fake.tool_use_response("1", "add", {"a": 2, "b": 2}))

    reply = asyncio.run(chat_model.send("2+2?"))

    assert reply.has_function_calls
    assert len(messages.calls) == 1


def test_replayed_model_message_executes_calls_first() -> None:
    chat_model, messages = _model(anthropic_fake.text_response("4"))
    memory = LocalMemory([UserMessage("2+2?")])
    replay = ModelMessage(function_calls=(FunctionCall(id="1", name="add", arguments={"a": 2, "b": 2}),))

    reply = asyncio.run(
        chat_model.send(replay, ChatSendOptions(messages=memory, functions=_add_definition()))
    )

    assert reply.content == "4"
    assert len(messages.calls) == 1
    history = asyncio.run(memory.values())
    assert history[1] == replay
    assert history[2] == FunctionMessage(function_id="1", content="4")


def test_streaming_matches_one_shot() -> None:
    streaming_model, streaming_messages = _model(anthropic_fake.text_stream_events("Hello, world"))
    one_shot_model, _ = _model(anthropic_fake.text_response("Hello, world"))
    chunks: list[str] = []

    async def on_chunk(delta: str) -> None:
        chunks.append(delta)

    streamed = asyncio.run(streaming_model.send("hi", ChatSendOptions(on_chunk=on_chunk)))
    direct = asyncio.run(one_shot_model.send("hi"))

    assert streamed == direct == ModelMessage(content="Hello, world")
    assert "".join(chunks) == "Hello, world"
    assert len(chunks) == len("Hello, world")
    [call] = streaming_messages.calls
    assert call["stream"] is True
    assert streaming_messages.streams[0].closed


def test_streaming_function_loop() -> None:
    chat_model, messages = _model(
        anthropic_fake.tool_use_stream_events("toolu_1", "add", ['{"a": 2,', ' "b": 2}']),
        anthropic_fake.text_stream_events("4"),
    )
    memory = LocalMemory()

    reply = asyncio.run(
        chat_model.send(
            "2+2?",
            ChatSendOptions(messages=memory, functions=_add_definition(), on_chunk=lambda delta: None),
        )
    )

    assert reply.content == "4"
    assert len(memory) == 4
    assert all(call["stream"] is True for call in messages.calls)


def test_incomplete_stream_is_not_appended() -> None:
    events = anthropic_fake.text_stream_events("partial")[:-1]
    chat_model, _ = _model(events)
    memory = LocalMemory()

    reply = asyncio.run(
        chat_model.send("hi", ChatSendOptions(messages=memory, on_chunk=lambda delta: None))
    )

    assert reply.content.startswith("Error: ")
    assert len(memory) == 1


@pytest.mark.parametrize(
    "failure",
    [
        RuntimeError("network down"),
        anthropic.APITimeoutError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")),
    ],
)
def test_provider_failures_become_error_messages(failure: Exception) -> None:
    chat_model, _ = _model(failure)
    memory = LocalMemory()

    reply = asyncio.run(chat_model.send("hi", ChatSendOptions(messages=memory)))

    assert isinstance(reply, ModelMessage)
    assert reply.content.startswith("Error: ")
    assert len(memory) == 1


def test_status_errors_are_described_with_status_code() -> None:
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    failure = anthropic.AuthenticationError(
        "invalid x-api-key",
        response=httpx.Response(401, request=request),
        body=None,
    )
    chat_model, _ = _model(failure)

    reply = asyncio.run(chat_model.send("hi"))

    assert reply.content == "Error: Anthropic API returned 401: invalid x-api-key"


def test_malformed_response_becomes_error_message() -> None:
    chat_model, _ = _model({"id": "msg_1", "stop_reason": "end_turn"})

    reply = asyncio.run(chat_model.send("hi"))

    assert reply.content.startswith("Error: ")


def test_protocol_errors_do_not_raise() -> None:
    chat_model, messages = _model(anthropic_fake.text_response("unused"))
    memory = LocalMemory([UserMessage("hi")])

    reply = asyncio.run(
        chat_model.send(FunctionMessage(function_id="orphan", content="4"), ChatSendOptions(messages=memory))
    )

    assert reply.content.startswith("Error: ")
    assert "orphan" in reply.content
    assert messages.calls == []


def test_missing_api_key_is_reported_by_send(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.ERROR, logger="teams_anthropic.chat"):
        chat_model = AnthropicChatModel(MODEL)

    reply = asyncio.run(chat_model.send("hi"))

    assert reply.content.startswith("Error: ")
    assert "API key" in reply.content
    assert any("misconfigured" in record.getMessage() for record in caplog.records)


def test_empty_model_is_a_configuration_error() -> None:
    chat_model = AnthropicChatModel("", client=anthropic_fake.build_client())

    reply = asyncio.run(chat_model.send("hi"))

    assert reply.content == "Error: a model identifier is required"


def test_unknown_model_only_warns(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="teams_anthropic.chat"):
        custom = AnthropicChatModel(
            "claude-custom-proxy",
            client=anthropic_fake.build_client(anthropic_fake.text_response("ok")),
        )

    assert asyncio.run(custom.send("hi")).content == "ok"
    assert any("claude-custom-proxy" in record.getMessage() for record in caplog.records)


def test_explicit_logger_receives_records(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("tests.chat")
    with caplog.at_level(logging.DEBUG, logger="tests.chat"):
        chat_model, _ = _model(anthropic_fake.text_response("ok"), logger=logger)
        asyncio.run(chat_model.send("hi"))

    names = {record.name for record in caplog.records}
    assert "tests.chat" in names
    assert "teams_anthropic.chat" not in names
    assert any("initialized" in record.getMessage() for record in caplog.records)


def test_system_instruction_comes_from_memory_or_override() -> None:
    chat_model, messages = _model(anthropic_fake.text_response("a"), anthropic_fake.text_response("b"))
    memory = LocalMemory([SystemMessage("from memory"), SystemMessage("ignored")])

    asyncio.run(chat_model.send("one", ChatSendOptions(messages=memory)))
    asyncio.run(chat_model.send("two", ChatSendOptions(messages=memory, system="override")))

    assert messages.calls[0]["system"] == "from memory"
    assert messages.calls[1]["system"] == "override"
    assert all(entry["role"] != "system" for entry in messages.calls[0]["messages"])
