"""Test the event bus."""

import asyncio

import pytest

from craftgate.gateway.events import EventBus, EventTypes
from tests.mocks import Recorder


class TestRegistration:
    def test_on_then_emit_invokes_listener_once(self):
        bus = EventBus()
        listener = Recorder()
        bus.on("player_joined", listener)

        bus.emit("player_joined", {"name": "Steve"})

        assert listener.calls == [{"name": "Steve"}]

    def test_registering_twice_is_idempotent(self):
        bus = EventBus()
        listener = Recorder()
        bus.on("player_joined", listener)
        bus.on("player_joined", listener)

        bus.emit("player_joined", "Alex")

        assert listener.calls == ["Alex"]
        assert bus.listener_count("player_joined") == 1

    def test_off_stops_delivery(self):
        bus = EventBus()
        listener = Recorder()
        bus.on("player_left", listener)
        bus.off("player_left", listener)

        bus.emit("player_left", "Steve")

        assert listener.calls == []
        assert "player_left" not in bus.event_types()

    def test_off_unknown_listener_is_safe(self):
        bus = EventBus()
        bus.off("player_left", Recorder())  # never registered, should not raise

    def test_off_with_fresh_bound_method(self):
        class Plugin:
            def __init__(self):
                self.seen = []

            def handle(self, payload):
                self.seen.append(payload)

        bus = EventBus()
        plugin = Plugin()
        bus.on("player_chat", plugin.handle)
        bus.off("player_chat", plugin.handle)

        bus.emit("player_chat", "hi")

        assert plugin.seen == []

    def test_remove_all_clears_only_that_type(self):
        bus = EventBus()
        chat, join = Recorder(), Recorder()
        bus.on("player_chat", chat)
        bus.on("player_chat", Recorder())
        bus.on("player_joined", join)

        bus.remove_all("player_chat")
        bus.emit("player_chat", "hi")
        bus.emit("player_joined", "Steve")

        assert chat.calls == []
        assert join.calls == ["Steve"]

    def test_clear_drops_everything(self):
        bus = EventBus()
        bus.on("a", Recorder())
        bus.on("b", Recorder())

        bus.clear()

        assert bus.event_types() == []


class TestEmit:
    def test_emit_without_listeners_is_noop(self):
        EventBus().emit("nobody_listens", 1)

    def test_listeners_run_in_registration_order(self):
        bus = EventBus()
        order = []
        bus.on("tick", lambda p: order.append("first"))
        bus.on("tick", lambda p: order.append("second"))
        bus.on("tick", lambda p: order.append("third"))

        bus.emit("tick")

        assert order == ["first", "second", "third"]

    def test_raising_listener_does_not_block_others(self):
        bus = EventBus()
        second = Recorder()

        def broken(payload):
            raise RuntimeError("handler failed")

        bus.on("player_joined", broken)
        bus.on("player_joined", second)

        bus.emit("player_joined", "Steve")  # must not raise

        assert second.calls == ["Steve"]

    def test_listener_unregistering_itself_mid_emit(self):
        bus = EventBus()
        calls = []

        def once(payload):
            calls.append("once")
            bus.off("tick", once)

        after = Recorder()
        bus.on("tick", once)
        bus.on("tick", after)

        bus.emit("tick", 1)
        bus.emit("tick", 2)

        assert calls == ["once"]
        assert after.calls == [1, 2]

    def test_listener_added_mid_emit_waits_for_next_emit(self):
        bus = EventBus()
        late = Recorder()

        def adder(payload):
            bus.on("tick", late)

        bus.on("tick", adder)

        bus.emit("tick", 1)
        assert late.calls == []

        bus.emit("tick", 2)
        assert late.calls == [2]

    @pytest.mark.asyncio
    async def test_async_listener_is_scheduled(self):
        bus = EventBus()
        received = asyncio.Event()
        seen = []

        async def handler(payload):
            seen.append(payload)
            received.set()

        bus.on("player_joined", handler)
        bus.emit("player_joined", "Steve")

        await asyncio.wait_for(received.wait(), timeout=1)
        assert seen == ["Steve"]

    @pytest.mark.asyncio
    async def test_failing_async_listener_is_isolated(self):
        bus = EventBus()
        other = Recorder()

        async def broken(payload):
            raise RuntimeError("async handler failed")

        bus.on("tick", broken)
        bus.on("tick", other)

        bus.emit("tick", 1)
        await asyncio.sleep(0.01)

        assert other.calls == [1]
        assert not bus._tasks


def test_builtin_event_type_names():
    assert EventTypes.CONNECTION == "connection"
    assert EventTypes.DISCONNECTION == "disconnection"
    assert EventTypes.ERROR == "error"
