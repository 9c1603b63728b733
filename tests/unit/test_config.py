"""Tests for the Dynaconf-backed settings service."""

from __future__ import annotations

from pathlib import Path

import pytest

from wandelbadge.core.settings import SettingsError, SettingsService, SettingsSnapshot


def test_settings_service_loads_snapshot(sample_settings: SettingsService) -> None:
    snapshot = sample_settings.snapshot
    assert isinstance(snapshot, SettingsSnapshot)
    assert snapshot.server.port == 3100
    assert snapshot.server.static_dir is None
    assert snapshot.storage.config_path.name == "badge.json"
    assert snapshot.rate_limit.route_max_requests == 5
    assert snapshot.logging.file is None


def test_module_config_generation(sample_settings: SettingsService) -> None:
    api_cfg = sample_settings.module_config_for("modules.dashboard.control_api")
    assert api_cfg.options["host"] == "127.0.0.1"
    assert api_cfg.options["max_body_bytes"] == 4096
    assert api_cfg.options["shutdown_timeout"] == 0.5

    store_cfg = sample_settings.module_config_for("modules.storage.config_store")
    assert store_cfg.options["path"].endswith("badge.json")

    limiter_cfg = sample_settings.module_config_for("modules.guard.connection_rate_limiter")
    assert limiter_cfg.options == {
        "max_messages": 3,
        "window_seconds": 1.0,
        "sweep_interval_seconds": 30.0,
    }

    gateway_cfg = sample_settings.module_config_for("modules.dashboard.websocket_gateway")
    assert gateway_cfg.options["queue_size"] == 8

    exporter_cfg = sample_settings.module_config_for("modules.status.prometheus_exporter")
    assert exporter_cfg.enabled is True
    assert exporter_cfg.options["port"] == 9999


def test_unknown_module_raises(sample_settings: SettingsService) -> None:
    with pytest.raises(KeyError):
        sample_settings.module_config_for("modules.unknown")


def test_missing_config_dir_raises(tmp_path: Path) -> None:
    with pytest.raises(SettingsError):
        SettingsService(config_dir=tmp_path / "missing")


def test_invalid_settings_raise(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text("server:\n  port: 0\n", encoding="utf-8")
    with pytest.raises(SettingsError):
        SettingsService(config_dir=config_dir)
