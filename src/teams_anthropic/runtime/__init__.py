"""Caller-side helpers for running conversations."""

from .session import ChatSession, SessionTranscript, Turn

__all__ = [
    "ChatSession",
    "SessionTranscript",
    "Turn",
]
