"""GlazeWM IPC client.

Talks to the window manager's IPC server over a single WebSocket:
- Queries and commands with replies correlated to their requests
- Event subscriptions multiplexed to independently registered handlers
"""

from .callbacks import CallbackRegistry, UnlistenFn
from .client import WmClient
from .config import DEFAULT_PORT, WmClientConfig
from .connection import ConnectionManager, ConnectionState, MessageStream, StreamFactory
from .correlator import RequestCorrelator
from .errors import (
    ProtocolDecodeError,
    RemoteCommandError,
    RequestTimeoutError,
    WmClientError,
    WmConnectionError,
)
from .protocol import (
    Direction,
    EventSubscription,
    QueryCommand,
    ServerMessage,
    ServerMessageType,
    WmEventType,
)
from .subscriptions import Subscription, SubscriptionMultiplexer

__all__ = [
    # Client
    "WmClient",
    "WmClientConfig",
    "DEFAULT_PORT",
    # Core components
    "CallbackRegistry",
    "UnlistenFn",
    "ConnectionManager",
    "ConnectionState",
    "MessageStream",
    "StreamFactory",
    "RequestCorrelator",
    "SubscriptionMultiplexer",
    "Subscription",
    # Protocol
    "ServerMessage",
    "ServerMessageType",
    "EventSubscription",
    "WmEventType",
    "QueryCommand",
    "Direction",
    # Errors
    "WmClientError",
    "WmConnectionError",
    "RemoteCommandError",
    "ProtocolDecodeError",
    "RequestTimeoutError",
]
