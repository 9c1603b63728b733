"""
Authoritative in-memory holder of the shared badge configuration.

The registry is the only writer of the configuration. A write merges the
partial input with the canonical defaults, validates the result and swaps it
in without crossing an ``await``, so readers never observe a half-applied
write. Fan-out to push clients and the durable write are both triggered from
inside that synchronous section; observers on the event bus are notified
afterwards.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol

from ..core.contracts import ConfigChanged, ConfigRejected
from .errors import InvalidConfigError, InvalidFieldError
from .schema import DEFAULT_CONFIG, merge_with_defaults, validate_config

if TYPE_CHECKING:
    from ..core.bus import EventBus

logger = logging.getLogger(__name__)


class DurableSlot(Protocol):
    """Single-slot persistence used by the registry."""

    def load(self) -> dict[str, Any] | None: ...

    def enqueue(self, config: Mapping[str, Any]) -> None: ...


class Broadcaster(Protocol):
    """Fan-out target notified after every accepted write."""

    def broadcast(self, config: Mapping[str, Any], exclude: Any | None = None) -> int: ...


@dataclass(frozen=True, slots=True)
class RegistrySnapshot:
    """Complete configuration read at one instant plus the default flag."""

    config: Mapping[str, Any]
    is_default: bool

    def as_dict(self) -> dict[str, Any]:
        return dict(self.config)


class ConfigRegistry:
    """Process-wide owner of the current badge configuration."""

    def __init__(
        self,
        *,
        store: DurableSlot | None = None,
        hub: Broadcaster | None = None,
        bus: EventBus | None = None,
        defaults: Mapping[str, Any] = DEFAULT_CONFIG,
        changed_topic: str = "badge.config.changed",
        rejected_topic: str = "badge.config.rejected",
    ) -> None:
        self._store = store
        self._hub = hub
        self._bus = bus
        self._defaults = defaults
        self._changed_topic = changed_topic
        self._rejected_topic = rejected_topic
        self._current: Mapping[str, Any] = MappingProxyType(dict(defaults))
        self._is_default = True

    def attach_hub(self, hub: Broadcaster) -> None:
        self._hub = hub

    def attach_bus(self, bus: EventBus) -> None:
        self._bus = bus

    def load(self) -> RegistrySnapshot:
        """
        Initialise from the durable slot, falling back to the defaults.

        A stored value that no longer validates is ignored with a log line.
        """
        raw = self._store.load() if self._store is not None else None
        if raw is None:
            logger.info("No stored badge configuration; starting from defaults.")
            return self.read()
        try:
            candidate = merge_with_defaults(raw, self._defaults)
            validate_config(candidate)
        except InvalidConfigError as exc:
            logger.warning("Stored badge configuration rejected (%s); using defaults.", exc)
            return self.read()
        self._current = MappingProxyType(candidate)
        self._is_default = False
        logger.info("Loaded stored badge configuration.")
        return self.read()

    def read(self) -> RegistrySnapshot:
        """Return the current configuration snapshot; never blocks."""
        return RegistrySnapshot(config=self._current, is_default=self._is_default)

    async def write(
        self,
        partial: Mapping[str, Any] | None,
        *,
        exclude: Any | None = None,
        source: str = "api",
    ) -> RegistrySnapshot:
        """
        Merge, validate and apply ``partial``.

        Raises `InvalidFieldError` (or `InvalidConfigError` for a non-object
        body) and leaves the configuration untouched when validation fails.
        ``exclude`` is skipped by the broadcast, typically the push connection
        that sent the write.
        """
        try:
            candidate = merge_with_defaults(partial, self._defaults)
            validate_config(candidate)
        except InvalidConfigError as exc:
            field = exc.field if isinstance(exc, InvalidFieldError) else None
            logger.info("Rejected badge config write from %s: %s", source, exc)
            await self._publish_rejected(source, field, str(exc))
            raise

        previous = self._current
        self._current = MappingProxyType(candidate)
        self._is_default = False
        snapshot = self.read()
        if self._hub is not None:
            self._hub.broadcast(snapshot.config, exclude=exclude)
        if self._store is not None:
            self._store.enqueue(snapshot.config)

        changed = [key for key, value in candidate.items() if previous.get(key) != value]
        logger.debug("Applied badge config write from %s; changed=%s", source, changed)
        if self._bus is not None:
            await self._bus.publish(
                self._changed_topic, ConfigChanged(source=source, changed_fields=changed)
            )
        return snapshot

    async def _publish_rejected(self, source: str, field: str | None, reason: str) -> None:
        if self._bus is None:
            return
        await self._bus.publish(
            self._rejected_topic, ConfigRejected(source=source, field=field, reason=reason)
        )


__all__ = ["Broadcaster", "ConfigRegistry", "DurableSlot", "RegistrySnapshot"]
