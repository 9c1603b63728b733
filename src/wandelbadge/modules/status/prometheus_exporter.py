"""
Expose badge service metrics via Prometheus.

The exporter listens to registry, push and renderer events on the bus and
keeps counters and gauges so operators can watch edit traffic without
digging through logs.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server

from ...core.bus import Subscription
from ...core.contracts import (
    BadgeRendered,
    BaseModule,
    BasePayload,
    BusStatus,
    ConfigChanged,
    ConfigRejected,
    HealthStatus,
    ModuleConfig,
    PushConnections,
)

logger = logging.getLogger(__name__)


def _default_server_factory(
    port: int, addr: str, registry: CollectorRegistry
) -> object:  # pragma: no cover - thin wrapper
    return start_http_server(port=port, addr=addr, registry=registry)


class PrometheusExporter(BaseModule):
    """Status module that exports write, push and render metrics via HTTP."""

    name = "modules.status.prometheus_exporter"

    def __init__(
        self,
        *,
        registry: CollectorRegistry | None = None,
        server_factory: Callable[[int, str, CollectorRegistry], object] | None = None,
    ) -> None:
        super().__init__()
        self._registry = registry or CollectorRegistry()
        self._server_factory = server_factory or _default_server_factory
        self._server: object | None = None
        self._port = 9093
        self._addr = "127.0.0.1"
        self._topics = {
            "changed": "badge.config.changed",
            "rejected": "badge.config.rejected",
            "connections": "badge.push.connections",
            "rendered": "badge.rendered",
            "bus": "status.bus",
        }
        self._subscriptions: list[Subscription] = []
        self._config_writes = Counter(
            "wandelbadge_config_writes_total",
            "Accepted configuration writes.",
            ["source"],
            registry=self._registry,
        )
        self._config_rejections = Counter(
            "wandelbadge_config_rejections_total",
            "Configuration writes rejected by validation.",
            ["source"],
            registry=self._registry,
        )
        self._push_connections = Gauge(
            "wandelbadge_push_connections",
            "Currently open push connections.",
            registry=self._registry,
        )
        self._renders = Counter(
            "wandelbadge_renders_total",
            "Badge images rendered.",
            registry=self._registry,
        )
        self._render_seconds = Histogram(
            "wandelbadge_render_seconds",
            "Time spent rendering a badge image.",
            registry=self._registry,
        )
        self._queue_depth = Gauge(
            "wandelbadge_bus_queue_depth",
            "Number of events currently waiting on the bus.",
            registry=self._registry,
        )
        self._dropped_total = Gauge(
            "wandelbadge_bus_dropped_total",
            "Total dropped bus events.",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    async def configure(self, config: ModuleConfig) -> None:
        await super().configure(config)
        options = config.options
        self._port = int(options.get("port", self._port))
        self._addr = options.get("addr", self._addr)
        for key in self._topics:
            self._topics[key] = options.get(f"{key}_topic", self._topics[key])

    async def start(self) -> None:
        if self._server is None:
            self._server = self._server_factory(self._port, self._addr, self._registry)
            logger.info("Started Prometheus exporter on %s:%d", self._addr, self._port)
        handlers = {
            "changed": self._handle_changed,
            "rejected": self._handle_rejected,
            "connections": self._handle_connections,
            "rendered": self._handle_rendered,
            "bus": self._handle_bus_status,
        }
        self._subscriptions = [
            self.bus.subscribe(self._topics[key], handler) for key, handler in handlers.items()
        ]

    async def stop(self) -> None:
        for subscription in self._subscriptions:
            self.bus.unsubscribe(subscription)
        self._subscriptions = []
        shutdown = getattr(self._server, "shutdown", None)
        if callable(shutdown):
            shutdown()
        self._server = None

    async def health(self) -> HealthStatus:
        status = "healthy" if self._server is not None else "degraded"
        return HealthStatus(status=status, details={"addr": self._addr, "port": self._port})

    async def _handle_changed(self, topic: str, payload: BasePayload) -> None:
        if isinstance(payload, ConfigChanged):
            self._config_writes.labels(source=payload.source).inc()

    async def _handle_rejected(self, topic: str, payload: BasePayload) -> None:
        if isinstance(payload, ConfigRejected):
            self._config_rejections.labels(source=payload.source).inc()

    async def _handle_connections(self, topic: str, payload: BasePayload) -> None:
        if isinstance(payload, PushConnections):
            self._push_connections.set(payload.open_connections)

    async def _handle_rendered(self, topic: str, payload: BasePayload) -> None:
        if isinstance(payload, BadgeRendered):
            self._renders.inc()
            self._render_seconds.observe(payload.duration_seconds)

    async def _handle_bus_status(self, topic: str, payload: BasePayload) -> None:
        if not isinstance(payload, BusStatus):
            return
        self._queue_depth.set(payload.queue_depth)
        self._dropped_total.set(payload.dropped_total)


__all__ = ["PrometheusExporter"]
