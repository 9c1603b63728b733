"""Shared badge configuration: schema, validation and the registry."""

from .errors import (
    BadgeError,
    DecodeError,
    InvalidConfigError,
    InvalidFieldError,
    PersistenceError,
    RateLimitExceeded,
)
from .registry import ConfigRegistry, RegistrySnapshot
from .schema import DEFAULT_CONFIG, FIELD_RULES, merge_with_defaults, validate_config

__all__ = [
    "DEFAULT_CONFIG",
    "FIELD_RULES",
    "BadgeError",
    "ConfigRegistry",
    "DecodeError",
    "InvalidConfigError",
    "InvalidFieldError",
    "PersistenceError",
    "RateLimitExceeded",
    "RegistrySnapshot",
    "merge_with_defaults",
    "validate_config",
]
