"""Storage-oriented modules responsible for persistence."""

from .config_store import ConfigStore, write_json_atomic

__all__ = ["ConfigStore", "write_json_atomic"]
