"""
Fan-out of configuration updates to live push connections.

Each subscriber owns a bounded outbound queue drained by its own sender task
in the websocket gateway. `broadcast` only enqueues, synchronously and in call
order, so two updates always reach a given connection in the order the
registry applied them. Delivery is at-most-once: a full queue drops the
message for that slow consumer only.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

UPDATE_MESSAGE = "UPDATE_CONFIG"


class ConnectionState(StrEnum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(eq=False, slots=True)
class SubscriberConnection:
    """One live push client as seen by the hub and the rate limiter."""

    connection_id: str
    queue: asyncio.Queue[dict[str, Any]]
    state: ConnectionState = ConnectionState.OPEN
    dropped_total: int = field(default=0)

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    def send(self, message: dict[str, Any]) -> bool:
        """Enqueue ``message`` for this connection; False when it was dropped."""
        if self.state is ConnectionState.CLOSED:
            return False
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped_total += 1
            logger.warning(
                "Dropping %s for slow push connection %s.",
                message.get("type", "message"),
                self.connection_id,
            )
            return False
        return True


class BroadcastHub:
    """Registry of subscriber connections with ordered, non-blocking fan-out."""

    def __init__(self, *, queue_size: int = 64) -> None:
        self._queue_size = queue_size
        self._connections: dict[str, SubscriberConnection] = {}
        self._ids = itertools.count(1)
        self._broadcast_total = 0

    @property
    def queue_size(self) -> int:
        return self._queue_size

    @queue_size.setter
    def queue_size(self, value: int) -> None:
        self._queue_size = max(1, int(value))

    def connect(self) -> SubscriberConnection:
        """Register a new open connection."""
        connection = SubscriberConnection(
            connection_id=f"push-{next(self._ids)}",
            queue=asyncio.Queue(maxsize=self._queue_size),
        )
        self._connections[connection.connection_id] = connection
        logger.debug("Push connection %s registered.", connection.connection_id)
        return connection

    def disconnect(self, connection: SubscriberConnection) -> None:
        """Mark ``connection`` closed and forget it."""
        connection.state = ConnectionState.CLOSED
        self._connections.pop(connection.connection_id, None)
        logger.debug("Push connection %s removed.", connection.connection_id)

    def get(self, connection_id: str) -> SubscriberConnection | None:
        return self._connections.get(connection_id)

    def is_open(self, connection_id: str) -> bool:
        connection = self._connections.get(connection_id)
        return connection is not None and connection.is_open

    @property
    def open_count(self) -> int:
        return sum(1 for connection in self._connections.values() if connection.is_open)

    def __len__(self) -> int:
        return len(self._connections)

    def broadcast(
        self,
        config: Mapping[str, Any],
        exclude: SubscriberConnection | str | None = None,
    ) -> int:
        """
        Push the full configuration to every open connection except ``exclude``.

        Returns the number of connections the update was queued for.
        """
        excluded_id = (
            exclude.connection_id if isinstance(exclude, SubscriberConnection) else exclude
        )
        message = {"type": UPDATE_MESSAGE, "data": dict(config)}
        delivered = 0
        for connection in list(self._connections.values()):
            if connection.connection_id == excluded_id or not connection.is_open:
                continue
            if connection.send(message):
                delivered += 1
        self._broadcast_total += 1
        logger.debug("Broadcast config update to %d push connections.", delivered)
        return delivered


__all__ = ["BroadcastHub", "ConnectionState", "SubscriberConnection", "UPDATE_MESSAGE"]
