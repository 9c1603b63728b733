"""
CLI entrypoint that boots the wandelbadge server.

Loads Dynaconf settings, restores the shared badge configuration from disk,
wires the store, push gateway, renderer and HTTP API onto one orchestrator
and runs until interrupted.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.handlers
import signal
from collections.abc import Sequence
from pathlib import Path

from .badge.registry import ConfigRegistry
from .core.orchestrator import Orchestrator
from .core.settings import SettingsError, SettingsService, SettingsSnapshot
from .modules import (
    BroadcastHub,
    ConfigStore,
    ConnectionRateLimiter,
    ControlApi,
    PrometheusExporter,
    RouteRateLimiter,
    WebsocketGateway,
)
from .render.assets import AssetLoader, FontProvider
from .render.renderer import BadgeRenderer

LOGGER = logging.getLogger(__name__)
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _ensure_rotating_file_handler(
    log_file: Path,
    *,
    max_mb: int = 10,
    backup_count: int = 3,
) -> None:
    """Attach a rotating file handler pointed at ``log_file`` if missing."""

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create log directory %s: %s", log_file.parent, exc)
        return

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            existing = getattr(handler, "baseFilename", None)
            if existing and Path(existing) == log_file.resolve():
                return

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)


def build_renderer(snapshot: SettingsSnapshot) -> BadgeRenderer:
    renderer = snapshot.renderer
    return BadgeRenderer(
        fonts=FontProvider(fonts_dir=renderer.fonts_dir, emoji_font=renderer.emoji_font),
        assets=AssetLoader(),
        builtin_logo=renderer.builtin_logo,
        background_path=renderer.background_path,
    )


async def run_server(*, config_dir: Path | None, log_level: str | None = None) -> None:
    """Instantiate modules and run until interrupted."""

    settings = SettingsService(config_dir=config_dir)
    snapshot = settings.snapshot
    if log_level is None:
        logging.getLogger().setLevel(_level(snapshot.logging.level))
    if snapshot.logging.file is not None:
        _ensure_rotating_file_handler(snapshot.logging.file)

    orchestrator = Orchestrator()
    store = ConfigStore(snapshot.storage.config_path)
    hub = BroadcastHub(queue_size=snapshot.push.queue_size)
    registry = ConfigRegistry(store=store, hub=hub, bus=orchestrator.bus)
    registry.load()

    connection_limiter = ConnectionRateLimiter()
    gateway = WebsocketGateway(registry=registry, hub=hub, limiter=connection_limiter)
    route_limiter = RouteRateLimiter(
        max_requests=snapshot.rate_limit.route_max_requests,
        per_seconds=snapshot.rate_limit.route_window_seconds,
    )
    api = ControlApi(
        registry=registry,
        renderer=build_renderer(snapshot),
        route_limiter=route_limiter,
        gateway=gateway,
        health_source=orchestrator.health,
    )

    await orchestrator.add_module(store, settings.module_config_for(store.name))
    await orchestrator.add_module(
        connection_limiter, settings.module_config_for(connection_limiter.name)
    )
    await orchestrator.add_module(gateway, settings.module_config_for(gateway.name))
    exporter_config = settings.module_config_for(PrometheusExporter.name)
    if exporter_config.enabled:
        await orchestrator.add_module(PrometheusExporter(), exporter_config)
    else:
        LOGGER.info("Prometheus exporter disabled; skipping")
    # Registered last so it stops first and no write lands after the store drained.
    await orchestrator.add_module(api, settings.module_config_for(api.name))

    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    await orchestrator.start()
    LOGGER.info(
        "Wandelbadge running on http://%s:%s. Press Ctrl+C to stop.",
        snapshot.server.host,
        snapshot.server.port,
    )

    try:
        await stop_event.wait()
    finally:
        await orchestrator.stop()


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _request_shutdown(sig_name: str) -> None:
        if not stop_event.is_set():
            LOGGER.info("Received %s, beginning graceful shutdown.", sig_name)
            stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_shutdown, sig.name)
        except NotImplementedError:  # Windows Proactor loop
            signal.signal(  # type: ignore[arg-type]
                sig,
                lambda signum, _frame, sig_name=sig.name: loop.call_soon_threadsafe(
                    _request_shutdown, sig_name or str(signum)
                ),
            )


def _level(name: str) -> int:
    level = getattr(logging, name.upper(), logging.INFO)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=_level(level),
        format=LOG_FORMAT,
    )


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Wandelbadge shared badge server.")
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Directory that contains config.yaml/secrets.yaml (default: repo config/).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Python logging level (default: logging.level from config.yaml).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level or "INFO")
    try:
        asyncio.run(run_server(config_dir=args.config_dir, log_level=args.log_level))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user.")
        return 0
    except SettingsError as exc:
        LOGGER.error("Configuration failed: %s", exc)
        return 2
    except Exception:  # pragma: no cover - surfaced to operator
        LOGGER.exception("Wandelbadge server crashed.")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())


__all__ = ["build_renderer", "configure_logging", "main", "parse_args", "run_server"]
