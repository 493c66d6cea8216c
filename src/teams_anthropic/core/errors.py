"""Custom exception types raised inside the chat model pipeline."""

from __future__ import annotations


class AdapterError(RuntimeError):
    """Raised when an adapter cannot fulfil a request."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigurationError(AdapterError):
    """Raised when the chat model is missing credentials or a model id."""


class ProtocolError(AdapterError):
    """Raised when a conversation violates the message pairing rules."""


class StreamIncompleteError(AdapterError):
    """Raised when a provider stream ends before the response is complete."""


def error_text(exc: BaseException) -> str:
    """Return a one-line description of ``exc`` suitable for message content."""

    text = str(exc).strip()
    return text or type(exc).__name__


__all__ = [
    "AdapterError",
    "ConfigurationError",
    "ProtocolError",
    "StreamIncompleteError",
    "error_text",
]
