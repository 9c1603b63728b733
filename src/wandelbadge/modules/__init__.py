"""
Collection of wandelbadge runtime modules grouped by responsibility.
"""

from .dashboard.broadcast_hub import BroadcastHub
from .dashboard.control_api import ControlApi
from .dashboard.websocket_gateway import WebsocketGateway
from .guard.rate_limiter import ConnectionRateLimiter, RouteRateLimiter
from .status.prometheus_exporter import PrometheusExporter
from .storage.config_store import ConfigStore

__all__ = [
    "BroadcastHub",
    "ConfigStore",
    "ConnectionRateLimiter",
    "ControlApi",
    "PrometheusExporter",
    "RouteRateLimiter",
    "WebsocketGateway",
]
