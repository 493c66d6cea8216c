"""Command line interface for chatting with Claude models."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from pydantic import ValidationError

from .config import ChatModelConfig
from .core.adapters.anthropic import AnthropicChatModel
from .core.adapters.base import ChatSendOptions
from .core.memory import LocalMemory
from .io.schema import dump_messages, load_messages
from .models import get_all_models, get_model_display_name, get_model_family


def create_chat_model(config: ChatModelConfig) -> AnthropicChatModel:
    return AnthropicChatModel.from_config(config)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Chat with Anthropic Claude models")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log adapter activity to stderr",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("models", help="list known Claude model identifiers")

    chat_parser = subparsers.add_parser("chat", help="send one message and print the reply")
    chat_parser.add_argument("prompt", help="Message text to send")
    chat_parser.add_argument("--model", help="Model identifier (defaults to ANTHROPIC_MODEL)")
    chat_parser.add_argument("--system", help="System instruction for the turn")
    chat_parser.add_argument(
        "--history",
        type=Path,
        help="JSON file with earlier messages in host format",
    )
    chat_parser.add_argument(
        "--save",
        type=Path,
        help="Write the conversation, including the reply, to this JSON file",
    )
    chat_parser.add_argument(
        "--stream",
        action="store_true",
        help="Print text as it arrives instead of after the reply completes",
    )
    chat_parser.add_argument("--max-tokens", type=int, help="Maximum tokens to generate")
    chat_parser.add_argument("--temperature", type=float, help="Sampling temperature")

    return parser


def _handle_models(args: argparse.Namespace) -> int:
    for model in get_all_models():
        print(f"{model.value}\t{get_model_display_name(model)}\t{get_model_family(model)}")
    return 0


def _handle_chat(args: argparse.Namespace) -> int:
    try:
        config = ChatModelConfig.from_env(model=args.model)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    memory = LocalMemory()
    if args.history:
        try:
            memory = LocalMemory(load_messages(args.history.read_text(encoding="utf-8")))
        except (OSError, ValidationError) as exc:
            print(f"error: cannot load history from {args.history}: {exc}", file=sys.stderr)
            return 2

    chat_model = create_chat_model(config)

    request: dict[str, Any] = {}
    if args.max_tokens is not None:
        request["max_tokens"] = args.max_tokens
    if args.temperature is not None:
        request["temperature"] = args.temperature

    options = ChatSendOptions(messages=memory, system=args.system, request=request)
    if args.stream:
        options.on_chunk = _write_chunk

    reply = asyncio.run(chat_model.send(args.prompt, options))

    if args.stream and not reply.content.startswith("Error: "):
        sys.stdout.write("\n")
    else:
        print(reply.content)

    if args.save:
        history = asyncio.run(memory.values())
        args.save.parent.mkdir(parents=True, exist_ok=True)
        args.save.write_text(dump_messages(history, indent=2), encoding="utf-8")

    return 1 if reply.content.startswith("Error: ") else 0


def _write_chunk(delta: str) -> None:
    sys.stdout.write(delta)
    sys.stdout.flush()


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.command == "models":
        return _handle_models(args)
    if args.command == "chat":
        return _handle_chat(args)
    parser.error("no command provided")
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
