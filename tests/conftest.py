"""Pytest configuration and shared fixtures.

Provides an in-memory stream standing in for the WebSocket connection, so the
client can be exercised without a running window manager.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

from glazewm_ipc.client import WmClient
from glazewm_ipc.config import WmClientConfig
from glazewm_ipc.connection import ConnectionManager

# Payload fed to a stream: a dict (JSON-encoded), raw text/bytes, an exception
# to raise from the reader, or None to end the stream.
Payload = dict[str, Any] | str | bytes | BaseException | None
Responder = Callable[[str], list[Payload]]


def reply(client_message: str, data: Any = None, error: str | None = None) -> dict[str, Any]:
    """Build a client_response envelope."""
    message: dict[str, Any] = {
        "messageType": "client_response",
        "clientMessage": client_message,
        "data": data,
        "success": error is None,
    }
    if error is not None:
        message["error"] = error
    return message


def event(event_type: str, subscription_id: str = "sub-1", **fields: Any) -> dict[str, Any]:
    """Build an event_subscription envelope."""
    return {
        "messageType": "event_subscription",
        "subscriptionId": subscription_id,
        "data": {"type": event_type, **fields},
        "success": True,
    }


class FakeStream:
    """In-memory duplex stream.

    Sent messages are recorded in `sent`. Inbound payloads are queued with
    feed(); a responder, if given, produces payloads for each sent message.
    With `batched`, queued payloads are read back to back without yielding
    to other tasks.
    """

    def __init__(self, responder: Responder | None = None, batched: bool = False):
        self.sent: list[str] = []
        self.closed = False
        self.responder = responder
        self.batched = batched
        self._inbox: asyncio.Queue[Payload] = asyncio.Queue()

    def feed(self, payload: Payload) -> None:
        if isinstance(payload, dict):
            payload = json.dumps(payload)
        self._inbox.put_nowait(payload)

    def fail(self, error: BaseException) -> None:
        self._inbox.put_nowait(error)

    def end(self) -> None:
        self._inbox.put_nowait(None)

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionError("stream is closed")
        self.sent.append(message)
        if self.responder:
            for payload in self.responder(message):
                self.feed(payload)

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.end()

    def __aiter__(self) -> AsyncIterator[str | bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str | bytes]:
        while True:
            # Suspend between messages like a network read would
            if not self.batched:
                await asyncio.sleep(0)
            item = await self._inbox.get()
            if item is None:
                return
            if isinstance(item, BaseException):
                raise item
            yield item


class FakeStreamFactory:
    """Stream factory recording every open attempt."""

    def __init__(
        self,
        responder: Responder | None = None,
        fail_with: Exception | None = None,
        batched: bool = False,
    ):
        self.responder = responder
        self.fail_with = fail_with
        self.batched = batched
        self.calls: list[str] = []
        self.streams: list[FakeStream] = []

    async def __call__(self, url: str) -> FakeStream:
        self.calls.append(url)
        # Yield so concurrent connect() calls overlap with the open
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        stream = FakeStream(self.responder, self.batched)
        self.streams.append(stream)
        return stream

    @property
    def stream(self) -> FakeStream:
        return self.streams[-1]


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until predicate() holds."""

    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0)

    await asyncio.wait_for(poll(), timeout)


async def settle(rounds: int = 50) -> None:
    """Let the reader task process everything already fed."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def subscription_responder(subscription_id: str = "sub-1") -> Responder:
    """Responder acknowledging subscribe and unsubscribe requests."""

    def respond(message: str) -> list[Payload]:
        if message.startswith("subscribe "):
            return [reply(message, {"subscriptionId": subscription_id})]
        if message.startswith("unsubscribe "):
            return [reply(message, {"subscriptionId": message.split(" ", 1)[1]})]
        return [reply(message, None)]

    return respond


@pytest.fixture
def stream_factory() -> FakeStreamFactory:
    return FakeStreamFactory()


@pytest.fixture
def connection(stream_factory: FakeStreamFactory) -> ConnectionManager:
    return ConnectionManager(WmClientConfig(), stream_factory)


@pytest.fixture
def client(stream_factory: FakeStreamFactory) -> WmClient:
    return WmClient(stream_factory=stream_factory)
