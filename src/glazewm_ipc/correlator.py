"""Request Correlator - matches server replies to the requests that caused them.

The server echoes the text of each request in the reply's `clientMessage`
field, so correlation is by content. Pending requests are kept in a mapping
keyed by a local request id, with a FIFO queue of ids per request text: a
reply resolves the oldest pending request with the same text. Identical
concurrent requests therefore resolve in the order they were sent.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any

from .callbacks import UnlistenFn
from .connection import ConnectionManager
from .errors import RemoteCommandError, RequestTimeoutError, WmConnectionError
from .protocol.messages import ServerMessage

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """A request waiting for its reply."""

    request_id: int
    message: str
    future: asyncio.Future[Any]


class RequestCorrelator:
    """Sends requests and resolves each with exactly one matching reply.

    One standing message listener serves every pending request. Pending
    requests fail with WmConnectionError when the stream disconnects.
    """

    def __init__(self, connection: ConnectionManager, timeout: float | None = None):
        self._connection = connection
        self.timeout = timeout
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingRequest] = {}
        self._queues: dict[str, deque[int]] = {}
        self._unlisteners: list[UnlistenFn] = [
            connection.on_message(self._on_message),
            connection.on_disconnect(self._on_disconnect),
        ]

    @property
    def pending_count(self) -> int:
        """Number of requests still waiting for a reply."""
        return len(self._pending)

    async def send_and_wait_reply(self, message: str, timeout: float | None = None) -> Any:
        """Send an encoded request and wait for its reply.

        Args:
            message: Encoded request text, sent verbatim
            timeout: Seconds to wait; defaults to the correlator's timeout

        Returns:
            The reply's `data` payload

        Raises:
            WmConnectionError: If the stream cannot be opened or is lost
            RemoteCommandError: If the server replied with an error
            RequestTimeoutError: If no reply arrived within the timeout
        """
        await self._connection.connect()

        pending = PendingRequest(
            request_id=next(self._ids),
            message=message,
            future=asyncio.get_running_loop().create_future(),
        )
        self._add(pending)

        try:
            await self._connection.send(message)

            wait = timeout if timeout is not None else self.timeout
            if wait is None:
                return await pending.future

            try:
                return await asyncio.wait_for(pending.future, wait)
            except TimeoutError as e:
                raise RequestTimeoutError(message, wait) from e
        finally:
            self._remove(pending)

    def detach(self) -> None:
        """Stop listening to the connection."""
        for unlisten in self._unlisteners:
            unlisten()
        self._unlisteners.clear()

    def _add(self, pending: PendingRequest) -> None:
        self._pending[pending.request_id] = pending
        self._queues.setdefault(pending.message, deque()).append(pending.request_id)

    def _remove(self, pending: PendingRequest) -> None:
        self._pending.pop(pending.request_id, None)
        queue = self._queues.get(pending.message)
        if queue is None:
            return
        if pending.request_id in queue:
            queue.remove(pending.request_id)
        if not queue:
            del self._queues[pending.message]

    def _on_message(self, message: ServerMessage) -> None:
        """Resolve the oldest pending request matching a reply."""
        if not message.is_reply() or message.client_message is None:
            return

        queue = self._queues.get(message.client_message)
        if not queue:
            logger.warning(f"Dropping reply with no pending request: {message.client_message}")
            return

        request_id = queue.popleft()
        if not queue:
            del self._queues[message.client_message]

        pending = self._pending.pop(request_id)
        if pending.future.done():
            return

        if message.error:
            pending.future.set_exception(RemoteCommandError(pending.message, message.error))
        else:
            pending.future.set_result(message.data)

    def _on_disconnect(self, error: Exception | None) -> None:
        """Fail every pending request; their replies can no longer arrive."""
        if not self._pending:
            return

        logger.debug(f"Failing {len(self._pending)} pending request(s) after disconnect")
        for pending in self._pending.values():
            if pending.future.done():
                continue
            exc = WmConnectionError(
                f"Connection closed while waiting for reply to '{pending.message}'"
            )
            exc.__cause__ = error
            pending.future.set_exception(exc)

        self._pending.clear()
        self._queues.clear()
