"""Tests del Event Bus fan-out con política drop-oldest."""

from __future__ import annotations

import pytest

from backend.infrastructure.external.event_bus_adapter import EventBusAdapter


class TestEventBus:
    @pytest.mark.asyncio
    async def test_fan_out_to_all_subscribers(self):
        bus = EventBusAdapter()
        first = await bus.subscribe("signal", "a")
        second = await bus.subscribe("signal", "b")

        await bus.publish("signal", {"n": 1})

        assert first.get_nowait() == {"n": 1}
        assert second.get_nowait() == {"n": 1}

    @pytest.mark.asyncio
    async def test_topics_are_isolated(self):
        bus = EventBusAdapter()
        prices = await bus.subscribe("price", "a")
        await bus.publish("signal", {"n": 1})
        assert prices.empty()

    @pytest.mark.asyncio
    async def test_drop_oldest_when_full(self):
        bus = EventBusAdapter(max_queue_size=2)
        queue = await bus.subscribe("price", "slow")

        for n in range(3):
            await bus.publish("price", n)

        assert [queue.get_nowait(), queue.get_nowait()] == [1, 2]
        assert bus.stats["dropped"] == 1

    @pytest.mark.asyncio
    async def test_unsubscribe_all(self):
        bus = EventBusAdapter()
        await bus.subscribe("price", "a")
        await bus.subscribe("signal", "b")

        await bus.unsubscribe_all("price")
        assert bus.subscriber_count == 1

        await bus.unsubscribe_all()
        assert bus.subscriber_count == 0
