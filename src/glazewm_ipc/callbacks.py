"""Callback Registry - ordered listener lists with stable handles.

Each channel of the client (message, connect, disconnect, error) is a
CallbackRegistry. Registering returns an unregister function bound to that
exact registration, so registering the same callable twice yields two
independent entries.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Unregister a callback. Calling it more than once is a no-op.
UnlistenFn = Callable[[], None]


class _Entry(Generic[T]):
    """One registration. Compared by identity."""

    __slots__ = ("callback", "active")

    def __init__(self, callback: Callable[[T], Any]):
        self.callback = callback
        self.active = True


class CallbackRegistry(Generic[T]):
    """Insertion-ordered collection of callbacks for one channel.

    Dispatch iterates a snapshot of the entries, so callbacks may register or
    unregister listeners while being dispatched. An entry unregistered during
    a pass is not invoked for the rest of that pass.
    """

    def __init__(self, name: str = "callback"):
        self.name = name
        self._entries: list[_Entry[T]] = []

    def register(self, callback: Callable[[T], Any]) -> UnlistenFn:
        """Append a callback.

        Args:
            callback: Called with the dispatched value

        Returns:
            Function that removes this registration
        """
        entry: _Entry[T] = _Entry(callback)
        self._entries.append(entry)

        def unregister() -> None:
            if not entry.active:
                return
            entry.active = False
            for index, candidate in enumerate(self._entries):
                if candidate is entry:
                    del self._entries[index]
                    break

        return unregister

    def dispatch(self, value: T) -> None:
        """Invoke every registered callback with value, in insertion order."""
        for entry in list(self._entries):
            if not entry.active:
                continue
            try:
                entry.callback(value)
            except Exception:
                logger.exception(f"Error in {self.name} listener")

    def clear(self) -> None:
        """Remove all callbacks."""
        for entry in self._entries:
            entry.active = False
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Callable[[T], Any]]:
        return iter([entry.callback for entry in self._entries])
