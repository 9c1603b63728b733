"""Error types raised around the shared badge configuration."""

from __future__ import annotations


class BadgeError(Exception):
    """Base class for badge configuration and rendering errors."""


class InvalidConfigError(BadgeError, ValueError):
    """The submitted configuration is unusable as a whole."""


class InvalidFieldError(InvalidConfigError):
    """A single field failed its validation rule; the write is rejected."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Invalid value for {field}")
        self.field = field


class RateLimitExceeded(BadgeError):
    """A request or push message exceeded its throughput guard."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class DecodeError(BadgeError):
    """An embedded or referenced image could not be decoded."""


class PersistenceError(BadgeError):
    """Writing the durable configuration slot failed."""


__all__ = [
    "BadgeError",
    "DecodeError",
    "InvalidConfigError",
    "InvalidFieldError",
    "PersistenceError",
    "RateLimitExceeded",
]
