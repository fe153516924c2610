"""Wire format for the IPC protocol.

Outbound messages are plain text:
- query <name>
- command <command>                  (focused container as context)
- command "<command>" -c <id>        (explicit context container)
- subscribe -e <type>,<type>,...
- unsubscribe <subscription id>

Inbound messages are JSON envelopes:
    {
        "messageType": "client_response",
        "clientMessage": "query monitors",
        "data": {"monitors": [...]},
        "error": null
    }
    {
        "messageType": "event_subscription",
        "subscriptionId": "...",
        "data": {"type": "focus_changed", ...}
    }

Note: Field aliases use camelCase to match the server; do not change them.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import ProtocolDecodeError
from .types import QueryCommand, WmEventType


class ServerMessageType(str, Enum):
    """Kinds of message the server sends."""

    CLIENT_RESPONSE = "client_response"
    EVENT_SUBSCRIPTION = "event_subscription"


class ServerMessage(BaseModel):
    """An envelope received from the server.

    Replies carry the originating request text in `client_message`; events
    carry an event-type tag in `data["type"]`.
    """

    model_config = ConfigDict(populate_by_name=True)

    message_type: ServerMessageType = Field(alias="messageType")
    client_message: str | None = Field(default=None, alias="clientMessage")
    data: Any = None
    error: str | None = None
    success: bool | None = None
    subscription_id: str | None = Field(default=None, alias="subscriptionId")

    def is_reply(self) -> bool:
        """Check if this is a reply to a client request."""
        return self.message_type == ServerMessageType.CLIENT_RESPONSE

    def is_event(self) -> bool:
        """Check if this is a pushed event."""
        return self.message_type == ServerMessageType.EVENT_SUBSCRIPTION

    @property
    def event_type(self) -> str | None:
        """Event-type tag of an event message."""
        if isinstance(self.data, Mapping):
            value = self.data.get("type")
            return value if isinstance(value, str) else None
        return None


class EventSubscription(BaseModel):
    """Reply payload of a subscribe request."""

    model_config = ConfigDict(populate_by_name=True)

    subscription_id: str = Field(alias="subscriptionId")


def decode_server_message(raw: str | bytes) -> ServerMessage:
    """Decode one inbound stream payload.

    Raises:
        ProtocolDecodeError: If the payload is not a valid envelope
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        parsed = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolDecodeError(f"Invalid JSON: {e}", raw) from e

    if not isinstance(parsed, dict):
        raise ProtocolDecodeError(f"Expected a JSON object, got {type(parsed).__name__}", raw)

    try:
        return ServerMessage.model_validate(parsed)
    except ValidationError as e:
        raise ProtocolDecodeError(f"Invalid envelope: {e}", raw) from e


def wire_value(value: str | Enum) -> str:
    """Return the wire text of an enum member or plain string."""
    return value.value if isinstance(value, Enum) else str(value)


def container_id(container: Any) -> str:
    """Resolve a context container to its id.

    Accepts an id string, a mapping with an "id" key, or an object with an
    `id` attribute.
    """
    if isinstance(container, str):
        return container
    if isinstance(container, Mapping):
        return str(container["id"])
    return str(container.id)


def query_message(query: QueryCommand | str) -> str:
    """Encode a query request."""
    return f"query {wire_value(query)}"


def command_message(command: str, context_container: Any = None) -> str:
    """Encode a command request.

    Without a context container the server runs the command against the
    focused container.
    """
    if not context_container:
        return f"command {command}"
    return f'command "{command}" -c {container_id(context_container)}'


def subscribe_message(event_types: Iterable[WmEventType | str]) -> str:
    """Encode a subscribe request for one or more event types."""
    return f"subscribe -e {','.join(wire_value(t) for t in event_types)}"


def unsubscribe_message(subscription_id: str) -> str:
    """Encode an unsubscribe request."""
    return f"unsubscribe {subscription_id}"
