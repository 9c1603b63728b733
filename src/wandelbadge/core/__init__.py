"""
Core infrastructure shared by the wandelbadge modules.

Exposes the asynchronous event bus, the module contracts, the settings
service and the orchestrator that ties them together.
"""

from .bus import EventBus, Subscription
from .contracts import (
    BadgeRendered,
    BaseModule,
    BasePayload,
    ConfigChanged,
    ConfigRejected,
    HealthStatus,
    ModuleConfig,
    PushConnections,
)
from .orchestrator import Orchestrator
from .settings import SettingsError, SettingsService, SettingsSnapshot

__all__ = [
    "BadgeRendered",
    "BaseModule",
    "BasePayload",
    "ConfigChanged",
    "ConfigRejected",
    "EventBus",
    "HealthStatus",
    "ModuleConfig",
    "Orchestrator",
    "PushConnections",
    "SettingsError",
    "SettingsService",
    "SettingsSnapshot",
    "Subscription",
]
