"""Subscription Multiplexer - routes pushed events to registered handlers.

Each subscription is one `subscribe -e ...` request on the shared stream.
The server answers with a subscription id; from then on every
`event_subscription` message whose event type is in the requested set is
handed to the subscription's handler, in arrival order.

The listener is registered before the subscribe request is sent. Events the
reader processes after the acknowledgement but before the subscribing caller
resumes are held back and delivered first once the id is known.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

from .callbacks import UnlistenFn
from .connection import ConnectionManager
from .correlator import RequestCorrelator
from .protocol.messages import (
    EventSubscription,
    ServerMessage,
    subscribe_message,
    unsubscribe_message,
    wire_value,
)
from .protocol.types import WmEventType

logger = logging.getLogger(__name__)

# Called with the `data` payload of each matching event
SubscribeCallback = Callable[[dict[str, Any]], Any]


class Subscription:
    """A standing registration for one or more event types.

    Awaiting the subscription object itself unsubscribes, so it can be used
    directly as the unlisten function:

        unlisten = await client.subscribe(WmEventType.FOCUS_CHANGED, handler)
        ...
        await unlisten()
    """

    def __init__(
        self,
        multiplexer: SubscriptionMultiplexer,
        event_types: tuple[str, ...],
        handler: SubscribeCallback,
    ):
        self.subscription_id: str | None = None
        self.event_types = event_types
        self.handler = handler
        self.request = subscribe_message(event_types)
        self._multiplexer = multiplexer
        self._unlisten: UnlistenFn | None = None
        self._matches_all = WmEventType.ALL.value in event_types

        # None once the subscription id is known and events flow straight through
        self._backlog: list[ServerMessage] | None = []
        self._acknowledged = False

    @property
    def active(self) -> bool:
        """Check if events are still delivered to the handler."""
        return self._unlisten is not None

    def matches(self, message: ServerMessage) -> bool:
        """Check if a message is an event this subscription asked for."""
        if not message.is_event():
            return False
        return self._matches_all or message.event_type in self.event_types

    async def unsubscribe(self) -> None:
        """Stop delivery and tell the server. Calling again is a no-op."""
        if not self._detach():
            return
        await self._multiplexer._send_unsubscribe(self)

    async def __call__(self) -> None:
        await self.unsubscribe()

    def _attach(self, connection: ConnectionManager) -> None:
        self._unlisten = connection.on_message(self._on_message)

    def _detach(self) -> bool:
        """Deregister the listener. Returns False if already detached."""
        if self._unlisten is None:
            return False
        self._unlisten()
        self._unlisten = None
        return True

    def _activate(self, subscription_id: str) -> None:
        """Record the server-issued id and deliver held-back events."""
        self.subscription_id = subscription_id
        backlog, self._backlog = self._backlog or [], None
        for message in backlog:
            try:
                self.handler(message.data)
            except Exception:
                logger.exception(f"Error in handler for subscription {subscription_id}")

    def _on_message(self, message: ServerMessage) -> None:
        if self._backlog is None:
            if self.matches(message):
                self.handler(message.data)
            return

        # Only events after our own acknowledgement belong to this subscription
        if not self._acknowledged:
            self._acknowledged = message.is_reply() and message.client_message == self.request
        elif self.matches(message):
            self._backlog.append(message)

    def __repr__(self) -> str:
        return (
            f"Subscription(id={self.subscription_id!r}, "
            f"events={list(self.event_types)!r}, active={self.active})"
        )


class SubscriptionMultiplexer:
    """Creates subscriptions and tracks the active ones."""

    def __init__(self, connection: ConnectionManager, correlator: RequestCorrelator):
        self._connection = connection
        self._correlator = correlator
        self._active: dict[str, Subscription] = {}
        self._unlisten_disconnect = connection.on_disconnect(self._on_disconnect)

    @property
    def subscriptions(self) -> list[Subscription]:
        """Active subscriptions in creation order."""
        return list(self._active.values())

    async def subscribe(
        self,
        event_types: Iterable[WmEventType | str],
        handler: SubscribeCallback,
    ) -> Subscription:
        """Subscribe a handler to one or more event types.

        Args:
            event_types: Event types to receive (WmEventType.ALL for every event)
            handler: Called synchronously with each matching event's data

        Returns:
            The subscription; await it (or its unsubscribe()) to stop delivery

        Raises:
            ValueError: If no event types are given
            RemoteCommandError: If the server rejects the subscription
        """
        types = tuple(dict.fromkeys(wire_value(t) for t in event_types))
        if not types:
            raise ValueError("At least one event type is required")

        subscription = Subscription(self, types, handler)
        subscription._attach(self._connection)
        try:
            reply = await self._correlator.send_and_wait_reply(subscription.request)
            subscription_id = EventSubscription.model_validate(reply).subscription_id
        except BaseException:
            subscription._detach()
            raise

        self._active[subscription_id] = subscription
        subscription._activate(subscription_id)

        logger.debug(f"Subscribed {subscription_id} to {', '.join(types)}")
        return subscription

    async def unsubscribe_all(self, timeout: float | None = None) -> None:
        """Unsubscribe every active subscription.

        All listeners are removed before any request is sent, and every
        unsubscribe is attempted even if some fail.

        Args:
            timeout: Seconds to wait for each acknowledgement

        Raises:
            WmClientError: The first failure, after all requests have finished
        """
        subscriptions = [s for s in self._active.values() if s._detach()]
        if not subscriptions:
            return

        results = await asyncio.gather(
            *(self._send_unsubscribe(s, timeout) for s in subscriptions),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, BaseException)]
        for error in errors:
            logger.warning(f"Unsubscribe failed: {error}")
        if errors:
            raise errors[0]

    async def _send_unsubscribe(
        self, subscription: Subscription, timeout: float | None = None
    ) -> None:
        """Send the unsubscribe request for an already detached subscription."""
        subscription_id = subscription.subscription_id
        if subscription_id is None:
            return

        self._active.pop(subscription_id, None)
        await self._correlator.send_and_wait_reply(
            unsubscribe_message(subscription_id), timeout=timeout
        )
        logger.debug(f"Unsubscribed {subscription_id}")

    def _on_disconnect(self, error: Exception | None) -> None:
        """Drop all subscriptions; the server forgets them with the stream."""
        if not self._active:
            return

        logger.debug(f"Dropping {len(self._active)} subscription(s) after disconnect")
        for subscription in self._active.values():
            subscription._detach()
        self._active.clear()
