"""Unit tests for the callback registry."""

from __future__ import annotations

import logging

import pytest

from glazewm_ipc.callbacks import CallbackRegistry


class TestRegistration:
    """Tests for register/unregister."""

    def test_dispatch_in_insertion_order(self) -> None:
        """Callbacks are invoked in the order they were registered."""
        registry: CallbackRegistry[int] = CallbackRegistry()
        calls: list[str] = []

        registry.register(lambda v: calls.append(f"a{v}"))
        registry.register(lambda v: calls.append(f"b{v}"))
        registry.register(lambda v: calls.append(f"c{v}"))
        registry.dispatch(1)

        assert calls == ["a1", "b1", "c1"]

    def test_unregister_removes_callback(self) -> None:
        """Unregistered callbacks are no longer invoked."""
        registry: CallbackRegistry[int] = CallbackRegistry()
        calls: list[int] = []

        unregister = registry.register(calls.append)
        unregister()
        registry.dispatch(1)

        assert calls == []
        assert len(registry) == 0

    def test_unregister_twice_keeps_later_registration(self) -> None:
        """A second unregister does not remove a listener now at the same index."""
        registry: CallbackRegistry[int] = CallbackRegistry()
        first: list[int] = []
        second: list[int] = []

        unregister_first = registry.register(first.append)
        unregister_first()
        registry.register(second.append)
        unregister_first()
        registry.dispatch(7)

        assert first == []
        assert second == [7]
        assert len(registry) == 1

    def test_same_callable_registered_twice(self) -> None:
        """Each registration of the same callable is independent."""
        registry: CallbackRegistry[int] = CallbackRegistry()
        calls: list[int] = []

        unregister_one = registry.register(calls.append)
        registry.register(calls.append)
        unregister_one()
        registry.dispatch(3)

        assert calls == [3]

    def test_unregister_preserves_order_of_remaining(self) -> None:
        """Removing a middle entry keeps the others in order."""
        registry: CallbackRegistry[int] = CallbackRegistry()
        calls: list[str] = []

        registry.register(lambda _: calls.append("a"))
        unregister_b = registry.register(lambda _: calls.append("b"))
        registry.register(lambda _: calls.append("c"))
        unregister_b()
        registry.dispatch(0)

        assert calls == ["a", "c"]

    def test_clear(self) -> None:
        registry: CallbackRegistry[int] = CallbackRegistry()
        unregister = registry.register(lambda _: None)
        registry.clear()

        assert len(registry) == 0
        unregister()  # still safe


class TestDispatch:
    """Tests for dispatch semantics."""

    def test_register_during_dispatch_not_called_this_pass(self) -> None:
        """Dispatch iterates a snapshot of the registry."""
        registry: CallbackRegistry[int] = CallbackRegistry()
        late: list[int] = []

        def add_listener(_: int) -> None:
            registry.register(late.append)

        registry.register(add_listener)
        registry.dispatch(1)
        assert late == []

        registry.dispatch(2)
        assert late == [2]

    def test_unregister_during_dispatch_skips_entry(self) -> None:
        """An entry removed earlier in the same pass is not invoked."""
        registry: CallbackRegistry[int] = CallbackRegistry()
        calls: list[str] = []
        unregister_second = None

        def first(_: int) -> None:
            calls.append("first")
            assert unregister_second is not None
            unregister_second()

        registry.register(first)
        unregister_second = registry.register(lambda _: calls.append("second"))
        registry.dispatch(0)

        assert calls == ["first"]

    def test_failing_callback_does_not_stop_dispatch(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Exceptions are logged and the next callback still runs."""
        registry: CallbackRegistry[int] = CallbackRegistry("message")
        calls: list[int] = []

        def broken(_: int) -> None:
            raise RuntimeError("boom")

        registry.register(broken)
        registry.register(calls.append)

        with caplog.at_level(logging.ERROR, logger="glazewm_ipc.callbacks"):
            registry.dispatch(5)

        assert calls == [5]
        assert "Error in message listener" in caplog.text

    def test_iter_yields_callbacks(self) -> None:
        registry: CallbackRegistry[int] = CallbackRegistry()

        def callback(_: int) -> None:
            pass

        registry.register(callback)
        assert list(registry) == [callback]
