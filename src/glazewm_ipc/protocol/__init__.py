"""Protocol layer - wire encoding of requests and decoding of server messages."""

from .messages import (
    EventSubscription,
    ServerMessage,
    ServerMessageType,
    command_message,
    container_id,
    decode_server_message,
    query_message,
    subscribe_message,
    unsubscribe_message,
    wire_value,
)
from .types import Direction, QueryCommand, WmEventType

__all__ = [
    # Envelopes
    "ServerMessage",
    "ServerMessageType",
    "EventSubscription",
    "decode_server_message",
    # Outbound encoding
    "query_message",
    "command_message",
    "subscribe_message",
    "unsubscribe_message",
    "container_id",
    "wire_value",
    # Enums
    "WmEventType",
    "QueryCommand",
    "Direction",
]
