"""Relay domain exports."""
from .entity import Connection, LiveState, Transport
from .messages import InboundMessage, MessageType, parse_message, parse_topics

__all__ = [
    "Connection",
    "LiveState",
    "Transport",
    "InboundMessage",
    "MessageType",
    "parse_message",
    "parse_topics",
]
