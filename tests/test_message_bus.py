"""
Unit Tests for the Message Bus

Handler ordering across one event is not guaranteed, so assertions only look at
what was delivered, never at relative order.
"""

import asyncio

import pytest

from core.errors import EventTimeoutError
from core.message_bus import INTENT_PARSED, Event, MessageBus


@pytest.fixture
def bus():
    return MessageBus()


class TestSubscriptions:
    """Test registering and removing handlers."""

    @pytest.mark.asyncio
    async def test_on_receives_envelope(self, bus):
        received = []
        bus.on(INTENT_PARSED, received.append)

        event = await bus.emit(INTENT_PARSED, {"action": "read"})

        assert len(received) == 1
        assert isinstance(received[0], Event)
        assert received[0].type == INTENT_PARSED
        assert received[0].data == {"action": "read"}
        assert received[0].timestamp > 0
        assert event == received[0]

    @pytest.mark.asyncio
    async def test_subscribe_receives_data_and_unsubscribes(self, bus):
        received = []
        unsubscribe = bus.subscribe("custom.event", received.append)

        await bus.emit("custom.event", 1)
        unsubscribe()
        await bus.emit("custom.event", 2)

        assert received == [1]
        assert bus.listener_count("custom.event") == 0

    @pytest.mark.asyncio
    async def test_off_removes_envelope_handler(self, bus):
        received = []
        bus.on("x", received.append)
        bus.off("x", received.append)

        await bus.emit("x")

        assert received == []

    @pytest.mark.asyncio
    async def test_once_delivers_a_single_time(self, bus):
        received = []
        bus.once("x", received.append)

        await bus.emit("x", "first")
        await bus.emit("x", "second")

        assert received == ["first"]

    @pytest.mark.asyncio
    async def test_other_event_types_ignored(self, bus):
        received = []
        bus.subscribe("a", received.append)

        await bus.emit("b", "nope")

        assert received == []

    def test_empty_event_type_rejected(self, bus):
        with pytest.raises(ValueError):
            bus.on("", lambda event: None)

    def test_clear(self, bus):
        bus.on("a", lambda e: None)
        bus.subscribe("a", lambda d: None)
        bus.subscribe("b", lambda d: None)

        bus.clear("a")
        assert bus.listener_count("a") == 0
        assert bus.listener_count("b") == 1

        bus.clear()
        assert bus.listener_count("b") == 0


class TestEmit:
    """Test delivery semantics."""

    @pytest.mark.asyncio
    async def test_sync_and_async_handlers(self, bus):
        received = set()

        def sync_handler(data):
            received.add(("sync", data))

        async def async_handler(data):
            await asyncio.sleep(0)
            received.add(("async", data))

        bus.subscribe("x", sync_handler)
        bus.subscribe("x", async_handler)

        await bus.publish("x", 5)

        assert received == {("sync", 5), ("async", 5)}

    @pytest.mark.asyncio
    async def test_handlers_run_concurrently(self, bus):
        started = []
        release = asyncio.Event()

        async def waiter(data):
            started.append("waiter")
            await release.wait()

        async def releaser(data):
            started.append("releaser")
            release.set()

        bus.subscribe("x", waiter)
        bus.subscribe("x", releaser)

        await asyncio.wait_for(bus.emit("x"), timeout=1)

        assert set(started) == {"waiter", "releaser"}

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self, bus):
        received = []

        def broken(data):
            raise RuntimeError("boom")

        bus.subscribe("x", broken)
        bus.subscribe("x", received.append)

        with pytest.raises(RuntimeError, match="boom"):
            await bus.emit("x", "payload")

        assert received == ["payload"]

    @pytest.mark.asyncio
    async def test_emit_without_handlers(self, bus):
        event = await bus.emit("nobody.listens", {"a": 1})
        assert event.data == {"a": 1}


class TestWaitFor:

    @pytest.mark.asyncio
    async def test_resolves_with_next_event_data(self, bus):
        waiter = asyncio.create_task(bus.wait_for("done", timeout_ms=1000))
        await asyncio.sleep(0)

        await bus.emit("done", {"ok": True})

        assert await waiter == {"ok": True}
        assert bus.listener_count("done") == 0

    @pytest.mark.asyncio
    async def test_timeout(self, bus):
        with pytest.raises(EventTimeoutError) as exc_info:
            await bus.wait_for("never", timeout_ms=10)

        assert isinstance(exc_info.value, TimeoutError)
        assert str(exc_info.value) == "Timeout waiting for event: never"
        assert bus.listener_count("never") == 0

    @pytest.mark.asyncio
    async def test_zero_timeout_expires_immediately(self, bus):
        with pytest.raises(EventTimeoutError):
            await bus.wait_for("never", timeout_ms=0)

        assert bus.listener_count("never") == 0
