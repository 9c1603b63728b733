"""
Realtime push channel that keeps every open editor in sync.

On connect a client receives the current configuration and the default
flag. It may then send `SET_CONFIG` messages, which go through the same
registry write path as the HTTP API, with the sender excluded from the
resulting broadcast. Rate-limit, parse and validation problems are answered
in-band with an `ERROR` message; the connection stays open.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from ...badge.errors import InvalidConfigError
from ...badge.registry import ConfigRegistry
from ...core.contracts import BaseModule, HealthStatus, ModuleConfig, PushConnections
from ..guard.rate_limiter import PUSH_LIMIT_MESSAGE, ConnectionRateLimiter
from .broadcast_hub import BroadcastHub, ConnectionState, SubscriberConnection

logger = logging.getLogger(__name__)

INIT_MESSAGE = "INIT_CONFIG"
SET_MESSAGE = "SET_CONFIG"
ERROR_MESSAGE = "ERROR"


class WebsocketGateway(BaseModule):
    """Serve the push channel on top of the broadcast hub."""

    name = "modules.dashboard.websocket_gateway"

    def __init__(
        self,
        *,
        registry: ConfigRegistry,
        hub: BroadcastHub | None = None,
        limiter: ConnectionRateLimiter | None = None,
        path: str = "/ws",
        connections_topic: str = "badge.push.connections",
    ) -> None:
        super().__init__()
        self._registry = registry
        self._hub = hub or BroadcastHub()
        self._limiter = limiter or ConnectionRateLimiter()
        self._limiter.bind(self._hub.is_open)
        self._path = path
        self._connections_topic = connections_topic
        self._senders: set[asyncio.Task[None]] = set()

    @property
    def hub(self) -> BroadcastHub:
        return self._hub

    async def configure(self, config: ModuleConfig) -> None:
        await super().configure(config)
        options = config.options
        self._path = options.get("path", self._path)
        if "queue_size" in options:
            self._hub.queue_size = int(options["queue_size"])

    async def start(self) -> None:
        logger.info("WebsocketGateway accepting push connections on %s and /", self._path)

    async def stop(self) -> None:
        for task in list(self._senders):
            task.cancel()
        if self._senders:
            await asyncio.gather(*self._senders, return_exceptions=True)
        self._senders.clear()

    async def health(self) -> HealthStatus:
        return HealthStatus(status="healthy", details={"clients": self._hub.open_count})

    def router(self) -> APIRouter:
        router = APIRouter()
        router.add_api_websocket_route(self._path, self.websocket_endpoint)
        # Editors may open the push channel on the site root as well.
        if self._path != "/":
            router.add_api_websocket_route("/", self.websocket_endpoint)
        return router

    async def websocket_endpoint(self, websocket: WebSocket) -> None:
        await websocket.accept()
        connection = self._hub.connect()
        snapshot = self._registry.read()
        connection.send(
            {"type": INIT_MESSAGE, "data": snapshot.as_dict(), "isDefault": snapshot.is_default}
        )
        sender = asyncio.create_task(
            self._pump(websocket, connection), name=f"push-sender-{connection.connection_id}"
        )
        self._senders.add(sender)
        sender.add_done_callback(self._senders.discard)
        logger.info("Client connected (%s)", connection.connection_id)
        await self._publish_connections()
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = (message.get("bytes") or b"").decode("utf-8", errors="replace")
                await self._handle_message(connection, raw)
        except WebSocketDisconnect:
            pass
        finally:
            connection.state = ConnectionState.CLOSING
            self._hub.disconnect(connection)
            self._limiter.discard(connection.connection_id)
            sender.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sender
            logger.info("Client disconnected (%s)", connection.connection_id)
            await self._publish_connections()

    async def _handle_message(self, connection: SubscriberConnection, raw: str) -> None:
        if not self._limiter.allow(connection.connection_id):
            connection.send({"type": ERROR_MESSAGE, "message": PUSH_LIMIT_MESSAGE})
            return
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            logger.info("Error processing message from %s: %s", connection.connection_id, exc)
            connection.send({"type": ERROR_MESSAGE, "message": f"Malformed message: {exc}"})
            return
        if not isinstance(payload, dict):
            connection.send({"type": ERROR_MESSAGE, "message": "Message must be an object"})
            return
        if payload.get("type") != SET_MESSAGE:
            logger.debug("Ignoring push message of type %r", payload.get("type"))
            return
        try:
            await self._registry.write(payload.get("data"), exclude=connection, source="push")
        except InvalidConfigError as exc:
            connection.send({"type": ERROR_MESSAGE, "message": str(exc)})

    async def _pump(self, websocket: WebSocket, connection: SubscriberConnection) -> None:
        while True:
            message: dict[str, Any] = await connection.queue.get()
            try:
                await websocket.send_json(message)
            except (WebSocketDisconnect, RuntimeError) as exc:
                logger.debug("Push send to %s failed: %s", connection.connection_id, exc)
                connection.state = ConnectionState.CLOSING
                return

    async def _publish_connections(self) -> None:
        if not self.has_bus:
            return
        await self.bus.publish(
            self._connections_topic, PushConnections(open_connections=self._hub.open_count)
        )


__all__ = ["WebsocketGateway"]
