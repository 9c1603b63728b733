"""
Contracts and payload schemas shared by the wandelbadge modules.

Modules talk to each other through the event bus using the payloads defined
here, and expose a common lifecycle (`configure` / `start` / `stop` / `health`)
so the orchestrator can wire them without knowing their internals.
"""

from __future__ import annotations

import abc
import datetime as dt
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field


class BasePayload(BaseModel):
    """Base class for all bus payloads."""

    model_config = ConfigDict(extra="allow", frozen=True)

    schema_version: str = Field(
        default="1.0.0", description="Semantic version of the payload schema."
    )
    timestamp_utc: dt.datetime = Field(
        default_factory=lambda: dt.datetime.now(tz=dt.UTC),
        description="Creation timestamp in UTC.",
    )


class ConfigChanged(BasePayload):
    """Published on `badge.config.changed` after the registry accepted a write."""

    source: str = Field(default="unknown", description="Transport that issued the write.")
    changed_fields: list[str] = Field(default_factory=list)


class ConfigRejected(BasePayload):
    """Published on `badge.config.rejected` when a write failed validation."""

    source: str = Field(default="unknown")
    field: str | None = Field(default=None, description="First offending field, if any.")
    reason: str = Field(default="")


class PushConnections(BasePayload):
    """Live push connection count emitted on `badge.push.connections`."""

    open_connections: int = Field(ge=0)


class BadgeRendered(BasePayload):
    """Emitted on `badge.rendered` once a PNG was produced for a request."""

    duration_seconds: float = Field(ge=0.0)
    size_bytes: int = Field(ge=0)


class BusStatus(BasePayload):
    """Telemetry snapshot emitted by the event bus on `status.bus`."""

    queue_depth: int = Field(ge=0, description="Current number of queued events.")
    queue_capacity: int = Field(gt=0, description="Maximum queue capacity.")
    subscriber_count: int = Field(ge=0, description="Total registered handlers.")
    published_total: int = Field(ge=0)
    processed_total: int = Field(ge=0)
    dropped_total: int = Field(ge=0)


class HealthStatus(BaseModel):
    """Structured health report for modules."""

    model_config = ConfigDict(extra="allow", frozen=True)

    status: str = Field(description="Health classification such as healthy/degraded/error.")
    details: dict[str, Any] = Field(default_factory=dict)


class ModuleConfig(BaseModel):
    """Baseline configuration contract applied to all modules."""

    model_config = ConfigDict(extra="allow")

    enabled: bool = Field(default=True)
    options: dict[str, Any] = Field(
        default_factory=dict, description="Arbitrary module configuration."
    )


@runtime_checkable
class EventHandler(Protocol):
    """Callable type for bus subscribers."""

    async def __call__(self, topic: str, payload: BasePayload) -> None: ...


if TYPE_CHECKING:
    from .bus import EventBus


class BaseModule(abc.ABC):
    """
    Abstract base class for all runtime modules.

    Modules receive the shared event bus before `configure` and own any
    background tasks they start in `start`.
    """

    name: str

    def __init__(self) -> None:
        self._configured = False
        self._config = ModuleConfig()
        self._bus: EventBus | None = None

    @property
    def bus(self) -> EventBus:
        if self._bus is None:
            raise RuntimeError(f"{self.__class__.__name__} has not been attached to an EventBus.")
        return self._bus

    @property
    def has_bus(self) -> bool:
        return self._bus is not None

    def set_bus(self, bus: EventBus) -> None:
        """Attach the shared event bus instance to the module."""
        self._bus = bus

    async def configure(self, config: ModuleConfig) -> None:
        """Apply the provided configuration prior to module start."""
        self._config = config
        self._configured = True

    @abc.abstractmethod
    async def start(self) -> None:
        """Begin processing by registering bus subscriptions or scheduling tasks."""

    async def stop(self) -> None:
        """Release resources; the default implementation does nothing."""
        return None

    async def health(self) -> HealthStatus:
        """Return a basic health status; modules can override for richer diagnostics."""
        status = "healthy" if self._configured else "degraded"
        return HealthStatus(status=status, details={"configured": self._configured})


__all__ = [
    "BadgeRendered",
    "BaseModule",
    "BasePayload",
    "BusStatus",
    "ConfigChanged",
    "ConfigRejected",
    "EventHandler",
    "HealthStatus",
    "ModuleConfig",
    "PushConnections",
]
