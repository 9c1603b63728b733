"""
Dynaconf-powered runtime settings with Pydantic validation.

Runtime settings (ports, directories, limits, asset paths) are loaded from
`config.yaml` and an optional `secrets.yaml`, overridable through
`WANDELBADGE_*` environment variables, and validated into a frozen snapshot.
The snapshot also knows how to turn itself into per-module `ModuleConfig`
objects so the entrypoint never builds option dictionaries by hand.

These are process settings only; the shared badge configuration lives in
`wandelbadge.badge.registry`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from dynaconf import Dynaconf
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .contracts import ModuleConfig


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    """Case-insensitive dictionary lookup helper."""
    value = raw.get(key) or raw.get(key.upper()) or raw.get(key.lower())
    if isinstance(value, dict):
        return value
    return {}


CONFIG_FILENAMES = ("config.yaml", "secrets.yaml")
_REPO_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_DIR = _REPO_ROOT / "config"


class SettingsError(RuntimeError):
    """Raised when settings files are missing or invalid."""


class ServerSettings(BaseModel):
    """HTTP and WebSocket listener."""

    model_config = ConfigDict(extra="ignore")

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000, ge=1, le=65535)
    static_dir: Path | None = Field(default=Path("public"))
    max_body_bytes: int = Field(default=50 * 1024 * 1024, gt=0)
    shutdown_timeout: float = Field(default=1.0, gt=0)


class StorageSettings(BaseModel):
    """Durable slot for the shared badge configuration."""

    model_config = ConfigDict(extra="ignore")

    data_dir: Path = Field(default=Path("data"))
    filename: str = Field(default="config.json")

    @field_validator("data_dir", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value
        return Path(value)

    @property
    def config_path(self) -> Path:
        return self.data_dir / self.filename


class RateLimitSettings(BaseModel):
    """Route and push connection throttles."""

    model_config = ConfigDict(extra="ignore")

    route_max_requests: int = Field(default=60, gt=0)
    route_window_seconds: float = Field(default=60.0, gt=0)
    push_max_messages: int = Field(default=10, gt=0)
    push_window_seconds: float = Field(default=1.0, gt=0)
    sweep_interval_seconds: float = Field(default=300.0, gt=0)


class PushSettings(BaseModel):
    """Per-connection outbound queue."""

    model_config = ConfigDict(extra="ignore")

    queue_size: int = Field(default=64, ge=1)


class RendererSettings(BaseModel):
    """Font and image collaborators used by the badge renderer."""

    model_config = ConfigDict(extra="ignore")

    fonts_dir: Path | None = Field(default=Path("assets/fonts"))
    emoji_font: Path | None = Field(default=None)
    builtin_logo: Path | None = Field(default=Path("assets/fight_cancer_logo.png"))
    background_path: Path | None = Field(default=None)


class MetricsSettings(BaseModel):
    """Optional Prometheus endpoint."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = Field(default=False)
    addr: str = Field(default="127.0.0.1")
    port: int = Field(default=9093, ge=1, le=65535)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    level: str = Field(default="INFO")
    file: Path | None = Field(default=Path("data/wandelbadge.log"))


class SettingsSnapshot(BaseModel):
    """Validated view over every settings section."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    server: ServerSettings = Field(default_factory=ServerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    push: PushSettings = Field(default_factory=PushSettings)
    renderer: RendererSettings = Field(default_factory=RendererSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def module_config(self, module_name: str) -> ModuleConfig:
        """Build the `ModuleConfig` for a registered module name."""
        builders = {
            "modules.dashboard.control_api": self._control_api_options,
            "modules.dashboard.websocket_gateway": self._websocket_gateway_options,
            "modules.guard.connection_rate_limiter": self._connection_limiter_options,
            "modules.storage.config_store": self._config_store_options,
            "modules.status.prometheus_exporter": self._prometheus_options,
        }
        try:
            builder = builders[module_name]
        except KeyError as exc:
            raise KeyError(f"No settings builder registered for {module_name}") from exc
        enabled = True
        if module_name == "modules.status.prometheus_exporter":
            enabled = self.metrics.enabled
        return ModuleConfig(enabled=enabled, options=builder())

    def _control_api_options(self) -> dict[str, Any]:
        return {
            "host": self.server.host,
            "port": self.server.port,
            "static_dir": str(self.server.static_dir) if self.server.static_dir else None,
            "max_body_bytes": self.server.max_body_bytes,
            "shutdown_timeout": self.server.shutdown_timeout,
        }

    def _websocket_gateway_options(self) -> dict[str, Any]:
        return {"queue_size": self.push.queue_size}

    def _connection_limiter_options(self) -> dict[str, Any]:
        return {
            "max_messages": self.rate_limit.push_max_messages,
            "window_seconds": self.rate_limit.push_window_seconds,
            "sweep_interval_seconds": self.rate_limit.sweep_interval_seconds,
        }

    def _config_store_options(self) -> dict[str, Any]:
        return {"path": str(self.storage.config_path)}

    def _prometheus_options(self) -> dict[str, Any]:
        return {"addr": self.metrics.addr, "port": self.metrics.port}


class SettingsService:
    """Runtime facade for loading and validating process settings."""

    def __init__(
        self,
        *,
        config_dir: str | Path | None = None,
        settings: Dynaconf | None = None,
    ) -> None:
        self._config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        settings_files = [self._config_dir / name for name in CONFIG_FILENAMES]
        existing_files = [str(path) for path in settings_files if path.exists()]
        if settings is None and not existing_files:
            raise SettingsError(
                f"No settings files found in {self._config_dir}. Expected at least config.yaml."
            )
        self._settings = settings or Dynaconf(
            envvar_prefix="WANDELBADGE",
            settings_files=existing_files,
            load_dotenv=True,
            environments=False,
        )
        self._snapshot = self._build_snapshot()

    @property
    def snapshot(self) -> SettingsSnapshot:
        """Latest validated settings snapshot."""
        return self._snapshot

    def refresh(self) -> SettingsSnapshot:
        """Reload settings files and rebuild the snapshot."""
        self._settings.reload()
        self._snapshot = self._build_snapshot()
        return self._snapshot

    def module_config_for(self, module_name: str) -> ModuleConfig:
        return self._snapshot.module_config(module_name)

    def _build_snapshot(self) -> SettingsSnapshot:
        raw = self._settings.as_dict()
        data = {
            key: _section(raw, key)
            for key in ("server", "storage", "rate_limit", "push", "renderer", "metrics", "logging")
        }
        try:
            return SettingsSnapshot.model_validate(data)
        except ValidationError as exc:
            raise SettingsError("Settings validation failed") from exc


__all__ = [
    "DEFAULT_CONFIG_DIR",
    "LoggingSettings",
    "MetricsSettings",
    "PushSettings",
    "RateLimitSettings",
    "RendererSettings",
    "ServerSettings",
    "SettingsError",
    "SettingsService",
    "SettingsSnapshot",
    "StorageSettings",
]
