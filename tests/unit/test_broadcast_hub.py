from __future__ import annotations

import pytest

from wandelbadge.modules.dashboard.broadcast_hub import BroadcastHub, ConnectionState


@pytest.mark.asyncio
async def test_broadcast_reaches_open_connections_except_excluded() -> None:
    hub = BroadcastHub()
    first = hub.connect()
    second = hub.connect()
    third = hub.connect()
    third.state = ConnectionState.CLOSING

    delivered = hub.broadcast({"km": 3}, exclude=first.connection_id)

    assert delivered == 1
    assert first.queue.empty()
    assert third.queue.empty()
    assert second.queue.get_nowait() == {"type": "UPDATE_CONFIG", "data": {"km": 3}}


@pytest.mark.asyncio
async def test_full_queue_drops_for_that_connection_only() -> None:
    hub = BroadcastHub(queue_size=1)
    slow = hub.connect()
    fast = hub.connect()

    hub.broadcast({"km": 1})
    fast.queue.get_nowait()
    delivered = hub.broadcast({"km": 2})

    assert delivered == 1
    assert slow.dropped_total == 1
    assert slow.queue.get_nowait()["data"]["km"] == 1
    assert fast.queue.get_nowait()["data"]["km"] == 2


@pytest.mark.asyncio
async def test_disconnect_closes_and_forgets() -> None:
    hub = BroadcastHub()
    connection = hub.connect()
    assert hub.is_open(connection.connection_id)
    assert hub.open_count == 1

    hub.disconnect(connection)

    assert connection.state is ConnectionState.CLOSED
    assert not hub.is_open(connection.connection_id)
    assert len(hub) == 0
    assert connection.send({"type": "UPDATE_CONFIG"}) is False
