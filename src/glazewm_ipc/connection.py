"""Connection Manager - owns the single WebSocket stream to the IPC server.

Architecture:
- One stream at a time; concurrent connect() calls share one in-flight
  connect task instead of opening a second stream
- A background reader task per stream decodes every payload and fans it
  out to the message listeners
- Lifecycle changes are reported through the connect/disconnect/error
  listener registries

The stream itself is created by an injectable factory so tests (and other
transports) can stand in for websockets.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import websockets

from .callbacks import CallbackRegistry, UnlistenFn
from .config import WmClientConfig
from .errors import ProtocolDecodeError, WmConnectionError
from .protocol.messages import ServerMessage, decode_server_message

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Connection state machine."""

    ABSENT = "absent"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@runtime_checkable
class MessageStream(Protocol):
    """Duplex text message stream (websockets' ClientConnection satisfies this)."""

    async def send(self, message: str) -> None:
        """Send one text message."""
        ...

    async def close(self) -> None:
        """Close the stream. Iteration ends once closed."""
        ...

    def __aiter__(self) -> AsyncIterator[str | bytes]:
        """Iterate over inbound messages until the stream closes."""
        ...


StreamFactory = Callable[[str], Awaitable[MessageStream]]

MessageCallback = Callable[[ServerMessage], Any]
ConnectCallback = Callable[[str], Any]
DisconnectCallback = Callable[[Exception | None], Any]
ErrorCallback = Callable[[Exception], Any]


class ConnectionManager:
    """Owns the stream and its lifecycle.

    The stream is opened lazily by the first send() or explicitly with
    connect(). Once closed, the next connect() opens a fresh stream; there is
    no automatic reconnect.
    """

    def __init__(
        self,
        config: WmClientConfig | None = None,
        stream_factory: StreamFactory | None = None,
    ):
        self.config = config or WmClientConfig()
        self._stream_factory = stream_factory or self._open_websocket
        self._state = ConnectionState.ABSENT
        self._stream: MessageStream | None = None
        self._connect_task: asyncio.Task[MessageStream] | None = None
        self._reader_task: asyncio.Task[None] | None = None

        self._message_callbacks: CallbackRegistry[ServerMessage] = CallbackRegistry("message")
        self._connect_callbacks: CallbackRegistry[str] = CallbackRegistry("connect")
        self._disconnect_callbacks: CallbackRegistry[Exception | None] = CallbackRegistry(
            "disconnect"
        )
        self._error_callbacks: CallbackRegistry[Exception] = CallbackRegistry("error")

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if the stream is open."""
        return self._state == ConnectionState.OPEN

    @property
    def url(self) -> str:
        """URL of the IPC server."""
        return self.config.url

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> None:
        """Ensure the stream is open.

        Raises:
            WmConnectionError: If the stream could not be opened
        """
        if self._state == ConnectionState.OPEN:
            return

        # A stream still closing finishes, and reports its disconnect, first
        await self._wait_closed()
        if self._state == ConnectionState.OPEN:
            return

        task = self._connect_task
        if task is None:
            task = asyncio.create_task(self._open())
            self._connect_task = task

        # Shielded so one cancelled caller does not abort the shared attempt
        await asyncio.shield(task)

    async def close(self) -> None:
        """Close the stream. No-op if there is none."""
        task = self._connect_task
        if task is not None:
            try:
                await asyncio.shield(task)
            except WmConnectionError:
                return

        if self._state == ConnectionState.CLOSING:
            await self._wait_closed()
            return

        stream = self._stream
        if stream is None or self._state != ConnectionState.OPEN:
            return

        self._state = ConnectionState.CLOSING
        reader = self._reader_task
        try:
            await stream.close()
        except Exception as e:
            logger.warning(f"Error while closing connection to {self.url}: {e}")

        # The reader finishes once the stream is closed and reports the disconnect
        if reader is not None and reader is not asyncio.current_task():
            await reader

    async def send(self, message: str) -> None:
        """Send one encoded message, connecting first if needed.

        Raises:
            WmConnectionError: If not connected or the send fails
        """
        await self.connect()

        stream = self._stream
        if stream is None:
            raise WmConnectionError("Not connected")

        logger.debug(f"Sending: {message}")
        try:
            await stream.send(message)
        except Exception as e:
            raise WmConnectionError(f"Failed to send message '{message}': {e}") from e

    async def _open(self) -> MessageStream:
        """Create the stream and start its reader."""
        url = self.url
        self._state = ConnectionState.CONNECTING
        logger.debug(f"Connecting to {url}")

        try:
            stream = await self._stream_factory(url)
        except Exception as e:
            self._state = ConnectionState.ABSENT
            self._connect_task = None
            logger.error(f"Failed to connect to {url}: {e}")
            self._error_callbacks.dispatch(e)
            raise WmConnectionError(f"Failed to connect to {url}: {e}") from e

        self._stream = stream
        self._state = ConnectionState.OPEN
        self._connect_task = None
        self._reader_task = asyncio.create_task(self._read_loop(stream))

        logger.info(f"Connected to {url}")
        self._connect_callbacks.dispatch(url)
        return stream

    async def _wait_closed(self) -> None:
        """Wait for a closing stream's reader to finish."""
        reader = self._reader_task
        if (
            self._state == ConnectionState.CLOSING
            and reader is not None
            and reader is not asyncio.current_task()
        ):
            await asyncio.shield(reader)

    async def _open_websocket(self, url: str) -> MessageStream:
        """Default stream factory."""
        return await websockets.connect(
            url,
            ping_interval=self.config.ping_interval,
            ping_timeout=self.config.ping_timeout,
        )

    async def _read_loop(self, stream: MessageStream) -> None:
        """Background task reading payloads from one stream."""
        error: Exception | None = None
        try:
            async for raw in stream:
                self._handle_payload(raw)
        except Exception as e:
            error = e
            logger.error(f"Connection to {self.url} failed: {e}")
            self._error_callbacks.dispatch(e)
        finally:
            if self._stream is stream:
                self._stream = None
                self._state = ConnectionState.CLOSED
            if self._reader_task is asyncio.current_task():
                self._reader_task = None

        logger.info(f"Disconnected from {self.url}")
        self._disconnect_callbacks.dispatch(error)

    def _handle_payload(self, raw: str | bytes) -> None:
        """Decode one payload and fan it out. Malformed payloads are dropped."""
        try:
            message = decode_server_message(raw)
        except ProtocolDecodeError as e:
            logger.warning(f"Dropping malformed message: {e}")
            return

        logger.debug(
            f"Received {message.message_type.value}: "
            f"{message.client_message or message.event_type}"
        )
        self._message_callbacks.dispatch(message)

    # =========================================================================
    # Listener registration
    # =========================================================================

    def on_message(self, callback: MessageCallback) -> UnlistenFn:
        """Register a callback for every decoded server message."""
        return self._message_callbacks.register(callback)

    def on_connect(self, callback: ConnectCallback) -> UnlistenFn:
        """Register a callback for when the stream opens. Receives the URL."""
        return self._connect_callbacks.register(callback)

    def on_disconnect(self, callback: DisconnectCallback) -> UnlistenFn:
        """Register a callback for when the stream closes.

        Receives the exception that ended the stream, or None on a clean close.
        """
        return self._disconnect_callbacks.register(callback)

    def on_error(self, callback: ErrorCallback) -> UnlistenFn:
        """Register a callback for connection failures."""
        return self._error_callbacks.register(callback)

    async def __aenter__(self) -> ConnectionManager:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
