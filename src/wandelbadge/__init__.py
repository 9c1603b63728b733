"""
Wandelbadge - shared walking-challenge badge editor

A single server that keeps one badge configuration in sync across every
open editor, persists it to disk and renders it as a story-sized PNG.
"""

__version__ = "0.1.0"

from wandelbadge.badge import DEFAULT_CONFIG, ConfigRegistry, RegistrySnapshot
from wandelbadge.render import BadgeRenderer

__all__ = [
    "DEFAULT_CONFIG",
    "BadgeRenderer",
    "ConfigRegistry",
    "RegistrySnapshot",
]
