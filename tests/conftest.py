from __future__ import annotations

import base64
import io
import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest
from PIL import Image

from wandelbadge.badge.registry import ConfigRegistry
from wandelbadge.core.settings import SettingsService
from wandelbadge.render.assets import AssetLoader, FontProvider
from wandelbadge.render.renderer import BadgeRenderer


def _write_yaml(path: Path, content: str) -> None:
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")


def _png_bytes(
    size: tuple[int, int] = (40, 20), color: tuple[int, ...] = (200, 30, 30, 255)
) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def _png_data_url(size: tuple[int, int] = (40, 20)) -> str:
    return "data:image/png;base64," + base64.b64encode(_png_bytes(size)).decode("ascii")


@pytest.fixture
def sample_config_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary configuration directory for tests.
    """

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    data_dir = tmp_path / "data"
    config_yaml = f"""
    server:
      host: "127.0.0.1"
      port: 3100
      static_dir: null
      max_body_bytes: 4096
      shutdown_timeout: 0.5

    storage:
      data_dir: "{data_dir.as_posix()}"
      filename: "badge.json"

    rate_limit:
      route_max_requests: 5
      route_window_seconds: 10
      push_max_messages: 3
      push_window_seconds: 1
      sweep_interval_seconds: 30

    push:
      queue_size: 8

    renderer:
      fonts_dir: null
      builtin_logo: null

    metrics:
      enabled: true
      addr: "127.0.0.1"
      port: 9999

    logging:
      level: "DEBUG"
      file: null
    """
    _write_yaml(config_dir / "config.yaml", config_yaml)
    return config_dir


@pytest.fixture
def sample_settings(sample_config_dir: Path) -> SettingsService:
    """Return a SettingsService wired to the temporary configuration."""

    return SettingsService(config_dir=sample_config_dir)


@pytest.fixture
def registry() -> ConfigRegistry:
    return ConfigRegistry()


@pytest.fixture
def logo_file(tmp_path: Path) -> Path:
    path = tmp_path / "logo.png"
    path.write_bytes(_png_bytes((100, 50)))
    return path


@pytest.fixture
def renderer(logo_file: Path) -> BadgeRenderer:
    return BadgeRenderer(fonts=FontProvider(), assets=AssetLoader(), builtin_logo=logo_file)


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    return _png_bytes


@pytest.fixture
def make_data_url() -> Callable[..., str]:
    return _png_data_url
