import asyncio

import pytest
from prometheus_client import CollectorRegistry

from wandelbadge.core.bus import EventBus
from wandelbadge.core.contracts import (
    BadgeRendered,
    BusStatus,
    ConfigChanged,
    ConfigRejected,
    ModuleConfig,
    PushConnections,
)
from wandelbadge.modules.status.prometheus_exporter import PrometheusExporter


class FakeServer:
    def __init__(self) -> None:
        self.shutdown_called = False

    def shutdown(self) -> None:
        self.shutdown_called = True


@pytest.mark.asyncio
async def test_prometheus_exporter_tracks_badge_events() -> None:
    registry = CollectorRegistry()
    started = {}
    server = FakeServer()

    def factory(port: int, addr: str, _registry: CollectorRegistry) -> FakeServer:
        started["port"] = port
        started["addr"] = addr
        started["registry"] = _registry
        return server

    bus = EventBus(telemetry_enabled=False)
    await bus.start()

    module = PrometheusExporter(registry=registry, server_factory=factory)
    module.set_bus(bus)
    await module.configure(ModuleConfig(options={"port": 9999, "addr": "127.0.0.1"}))
    await module.start()

    await bus.publish("badge.config.changed", ConfigChanged(source="api", changed_fields=["km"]))
    await bus.publish("badge.config.changed", ConfigChanged(source="push"))
    await bus.publish("badge.config.rejected", ConfigRejected(source="push", field="km"))
    await bus.publish("badge.push.connections", PushConnections(open_connections=3))
    await bus.publish("badge.rendered", BadgeRendered(duration_seconds=0.2, size_bytes=1024))
    await bus.publish(
        "status.bus",
        BusStatus(
            queue_depth=1,
            queue_capacity=8,
            subscriber_count=1,
            published_total=5,
            processed_total=4,
            dropped_total=0,
        ),
    )
    await asyncio.sleep(0.05)

    await module.stop()
    await bus.stop()

    assert started["port"] == 9999
    assert server.shutdown_called is True
    assert registry.get_sample_value("wandelbadge_config_writes_total", {"source": "api"}) == 1
    assert registry.get_sample_value("wandelbadge_config_writes_total", {"source": "push"}) == 1
    assert (
        registry.get_sample_value("wandelbadge_config_rejections_total", {"source": "push"}) == 1
    )
    assert registry.get_sample_value("wandelbadge_push_connections") == 3
    assert registry.get_sample_value("wandelbadge_renders_total") == 1
    assert registry.get_sample_value("wandelbadge_render_seconds_count") == 1
    assert registry.get_sample_value("wandelbadge_bus_queue_depth") == 1
