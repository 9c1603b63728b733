"""Dashboard/control surface modules."""

from .broadcast_hub import BroadcastHub, ConnectionState, SubscriberConnection
from .control_api import ControlApi
from .websocket_gateway import WebsocketGateway

__all__ = [
    "BroadcastHub",
    "ConnectionState",
    "ControlApi",
    "SubscriberConnection",
    "WebsocketGateway",
]
