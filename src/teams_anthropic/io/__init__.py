"""Host-format JSON schemas for conversation logs."""

from .schema import HostFunctionCall, HostMessage, dump_messages, load_messages

__all__ = [
    "HostFunctionCall",
    "HostMessage",
    "dump_messages",
    "load_messages",
]
