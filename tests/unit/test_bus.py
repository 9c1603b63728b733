import asyncio

import pytest

from wandelbadge.core.bus import EventBus
from wandelbadge.core.contracts import BusStatus, ConfigChanged


@pytest.mark.asyncio
async def test_publish_and_subscribe_round_trip() -> None:
    bus = EventBus(queue_size=8)
    await bus.start()

    received = asyncio.Event()
    payloads: list[ConfigChanged] = []

    async def handler(topic: str, payload: ConfigChanged) -> None:
        payloads.append(payload)
        received.set()

    bus.subscribe("badge.config.changed", handler)

    await bus.publish("badge.config.changed", ConfigChanged(source="api", changed_fields=["km"]))
    await asyncio.wait_for(received.wait(), timeout=0.2)

    await bus.stop()

    assert payloads and payloads[0].changed_fields == ["km"]


@pytest.mark.asyncio
async def test_unsubscribed_handler_is_not_called() -> None:
    bus = EventBus(telemetry_enabled=False)
    await bus.start()

    calls: list[str] = []

    async def handler(topic: str, payload: ConfigChanged) -> None:
        calls.append(topic)

    subscription = bus.subscribe("badge.config.changed", handler)
    bus.unsubscribe(subscription)
    await bus.publish("badge.config.changed", ConfigChanged(source="push"))
    await asyncio.sleep(0.05)
    await bus.stop()

    assert calls == []


@pytest.mark.asyncio
async def test_failing_handler_does_not_stop_dispatch() -> None:
    bus = EventBus(telemetry_enabled=False)
    await bus.start()

    received = asyncio.Event()

    async def broken(topic: str, payload: ConfigChanged) -> None:
        raise RuntimeError("boom")

    async def healthy(topic: str, payload: ConfigChanged) -> None:
        received.set()

    bus.subscribe("badge.config.changed", broken)
    bus.subscribe("badge.config.changed", healthy)
    await bus.publish("badge.config.changed", ConfigChanged(source="api"))
    await asyncio.wait_for(received.wait(), timeout=0.2)
    await bus.stop()


@pytest.mark.asyncio
async def test_bus_emits_status_telemetry() -> None:
    bus = EventBus(queue_size=4, telemetry_interval=0.01)
    await bus.start()

    statuses: list[BusStatus] = []
    received = asyncio.Event()

    async def handler(topic: str, payload: BusStatus) -> None:
        statuses.append(payload)
        received.set()

    bus.subscribe("status.bus", handler)
    await asyncio.wait_for(received.wait(), timeout=0.5)
    await bus.stop()

    assert statuses
    assert statuses[0].queue_capacity == 4
