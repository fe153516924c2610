"""WmClient - IPC client for the window manager.

Combines the connection manager, request correlator and subscription
multiplexer behind one object, plus thin helpers for the common queries and
commands.

Usage:
    async with WmClient() as client:
        monitors = await client.get_monitors()

        unlisten = await client.subscribe(
            WmEventType.FOCUS_CHANGED,
            lambda event: print(event["focusedContainer"]),
        )
        ...
        await unlisten()
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from .callbacks import UnlistenFn
from .config import WmClientConfig
from .connection import (
    ConnectCallback,
    ConnectionManager,
    ConnectionState,
    DisconnectCallback,
    ErrorCallback,
    MessageCallback,
    StreamFactory,
)
from .correlator import RequestCorrelator
from .protocol.messages import command_message, query_message
from .protocol.types import Direction, QueryCommand, WmEventType
from .subscriptions import SubscribeCallback, Subscription, SubscriptionMultiplexer

# Upper bound on waiting for unsubscribe acknowledgements in close()
CLOSE_TIMEOUT = 5.0


class WmClient:
    """Client for the window manager's IPC server.

    The connection is established when the first message is sent, or
    explicitly by calling connect().
    """

    def __init__(
        self,
        config: WmClientConfig | None = None,
        *,
        port: int | None = None,
        stream_factory: StreamFactory | None = None,
    ):
        self.config = config or WmClientConfig()
        if port is not None:
            self.config = replace(self.config, port=port)

        self._connection = ConnectionManager(self.config, stream_factory)
        self._correlator = RequestCorrelator(self._connection, timeout=self.config.timeout)
        self._subscriptions = SubscriptionMultiplexer(self._connection, self._correlator)

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._connection.state

    @property
    def is_connected(self) -> bool:
        """Check if the connection is open."""
        return self._connection.is_connected

    # =========================================================================
    # Connection
    # =========================================================================

    async def connect(self) -> None:
        """Establish the WebSocket connection.

        Raises:
            WmConnectionError: If the connection attempt fails
        """
        await self._connection.connect()

    async def close(self) -> None:
        """Unsubscribe everything and close the connection.

        The connection is closed even if an unsubscribe fails or goes
        unacknowledged; that failure is raised afterwards.
        """
        try:
            if self._connection.is_connected:
                await self._subscriptions.unsubscribe_all(
                    timeout=self.config.timeout or CLOSE_TIMEOUT
                )
        finally:
            await self._connection.close()

    def on_message(self, callback: MessageCallback) -> UnlistenFn:
        """Register a callback for every message received from the server."""
        return self._connection.on_message(callback)

    def on_connect(self, callback: ConnectCallback) -> UnlistenFn:
        """Register a callback for when the connection opens."""
        return self._connection.on_connect(callback)

    def on_disconnect(self, callback: DisconnectCallback) -> UnlistenFn:
        """Register a callback for when the connection closes."""
        return self._connection.on_disconnect(callback)

    def on_error(self, callback: ErrorCallback) -> UnlistenFn:
        """Register a callback for connection errors."""
        return self._connection.on_error(callback)

    # =========================================================================
    # Requests
    # =========================================================================

    async def send_and_wait_reply(self, message: str, timeout: float | None = None) -> Any:
        """Send a raw encoded message and wait for its reply payload.

        Raises:
            RemoteCommandError: If the server is unable to handle the message
        """
        return await self._correlator.send_and_wait_reply(message, timeout=timeout)

    async def query(self, query: QueryCommand | str) -> Any:
        """Run `query <name>` and return the payload."""
        return await self.send_and_wait_reply(query_message(query))

    async def get_monitors(self) -> dict[str, Any]:
        """Get all monitors."""
        return await self.query(QueryCommand.MONITORS)

    async def get_workspaces(self) -> dict[str, Any]:
        """Get all active workspaces."""
        return await self.query(QueryCommand.WORKSPACES)

    async def get_windows(self) -> dict[str, Any]:
        """Get all windows."""
        return await self.query(QueryCommand.WINDOWS)

    async def get_focused_container(self) -> dict[str, Any]:
        """Get the focused container.

        This is either a window or a workspace without any descendant windows.
        """
        return await self.query(QueryCommand.FOCUSED)

    async def get_binding_modes(self) -> dict[str, Any]:
        """Get the active binding modes (if any)."""
        return await self.query(QueryCommand.BINDING_MODES)

    async def run_command(self, command: str, context_container: Any = None) -> None:
        """Invoke a WM command (e.g. "focus --workspace 1").

        Args:
            command: WM command to run
            context_container: Container (or its id) to use as context;
                defaults to the focused container

        Raises:
            RemoteCommandError: If the command fails
        """
        await self.send_and_wait_reply(command_message(command, context_container))

    async def adjust_borders(
        self,
        top: str | None = None,
        right: str | None = None,
        bottom: str | None = None,
        left: str | None = None,
    ) -> None:
        """Adjust the borders of the focused window. At least one side is required."""
        sides = {"top": top, "right": right, "bottom": bottom, "left": left}
        params = [f"--{side} {value}" for side, value in sides.items() if value]
        if not params:
            raise ValueError("At least one of top, right, bottom or left is required")
        await self.run_command(f"adjust-borders {' '.join(params)}")

    async def close_window(self) -> None:
        """Close the focused window."""
        await self.run_command("close")

    async def focus_direction(self, direction: Direction | str) -> None:
        """Focus the container in a direction."""
        await self.run_command(f"focus --direction {Direction(direction).value}")

    async def focus_workspace(self, workspace: str) -> None:
        """Focus a workspace by name."""
        await self.run_command(f"focus --workspace {workspace}")

    async def next_workspace(self) -> None:
        await self.run_command("focus --next-workspace")

    async def prev_workspace(self) -> None:
        await self.run_command("focus --prev-workspace")

    async def recent_workspace(self) -> None:
        await self.run_command("focus --recent-workspace")

    # =========================================================================
    # Events
    # =========================================================================

    async def subscribe(
        self, event: WmEventType | str, callback: SubscribeCallback
    ) -> Subscription:
        """Register a callback for one event type.

        Returns:
            The subscription; `await subscription()` unsubscribes
        """
        return await self.subscribe_many([event], callback)

    async def subscribe_many(
        self, events: Iterable[WmEventType | str], callback: SubscribeCallback
    ) -> Subscription:
        """Register a callback for several event types."""
        return await self._subscriptions.subscribe(events, callback)

    async def __aenter__(self) -> WmClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
