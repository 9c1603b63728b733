"""
FastAPI surface for reading, writing and rendering the shared badge.

Routes under `/api` share one global sliding-window limiter. The push
channel from `WebsocketGateway` and the static editor files are mounted on
the same application so a single listener serves everything.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from ...badge.errors import InvalidConfigError, InvalidFieldError, RateLimitExceeded
from ...badge.registry import ConfigRegistry
from ...core.contracts import BadgeRendered, BaseModule, HealthStatus, ModuleConfig
from ...render.renderer import BadgeRenderer
from ..guard.rate_limiter import RouteRateLimiter
from .websocket_gateway import WebsocketGateway

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

HealthSource = Callable[[], Awaitable[dict[str, HealthStatus]]]


class ControlApi(BaseModule):
    """Expose the badge configuration and renderer over HTTP."""

    name = "modules.dashboard.control_api"

    def __init__(
        self,
        *,
        registry: ConfigRegistry,
        renderer: BadgeRenderer,
        route_limiter: RouteRateLimiter | None = None,
        gateway: WebsocketGateway | None = None,
        health_source: HealthSource | None = None,
        config_factory: Callable[..., uvicorn.Config] | None = None,
        server_factory: Callable[[uvicorn.Config], uvicorn.Server] | None = None,
    ) -> None:
        super().__init__()
        self._registry = registry
        self._renderer = renderer
        self._limiter = route_limiter or RouteRateLimiter()
        self._gateway = gateway
        self._health_source = health_source
        self._host = "0.0.0.0"
        self._port = 3000
        self._serve_api = True
        self._static_dir: Path | None = None
        self._max_body_bytes = 50 * 1024 * 1024
        self._shutdown_timeout = 1.0
        self._rendered_topic = "badge.rendered"
        self._app: FastAPI | None = None
        self._server: uvicorn.Server | None = None
        self._server_task: asyncio.Task[None] | None = None
        self._config_factory = config_factory or uvicorn.Config
        self._server_factory = server_factory or uvicorn.Server

    async def configure(self, config: ModuleConfig) -> None:
        await super().configure(config)
        options = config.options
        self._host = options.get("host", self._host)
        self._port = int(options.get("port", self._port))
        self._serve_api = bool(options.get("serve_api", self._serve_api))
        static_dir = options.get("static_dir")
        self._static_dir = Path(static_dir) if static_dir else None
        self._max_body_bytes = int(options.get("max_body_bytes", self._max_body_bytes))
        self._shutdown_timeout = float(options.get("shutdown_timeout", self._shutdown_timeout))
        self._rendered_topic = options.get("rendered_topic", self._rendered_topic)

    async def start(self) -> None:
        self._app = self._build_app()
        if not self._serve_api:
            logger.info("ControlApi running in embedded-only mode (no HTTP server).")
            return
        config = self._config_factory(
            app=self._app,
            host=self._host,
            port=self._port,
            loop="asyncio",
            lifespan="on",
            log_level="info",
        )
        self._server = self._server_factory(config)
        self._server_task = asyncio.create_task(self._server.serve())
        logger.info("Server running on http://%s:%s", self._host, self._port)

    async def stop(self) -> None:
        if self._server_task:
            self._server.should_exit = True  # type: ignore[union-attr]
            done, _pending = await asyncio.wait(
                [self._server_task], timeout=self._shutdown_timeout
            )
            if not done:
                logger.warning(
                    "Server did not exit within %.1fs; cancelling.", self._shutdown_timeout
                )
                self._server_task.cancel()
            try:
                await self._server_task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Server task failed")
            self._server_task = None
        self._server = None

    @property
    def app(self) -> FastAPI:
        if self._app is None:
            raise RuntimeError("ControlApi has not been started or configured yet.")
        return self._app

    async def _check_route_limit(self) -> None:
        self._limiter.check()

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="wandelbadge", version="0.1.0")

        @app.exception_handler(RateLimitExceeded)
        async def rate_limited(_request: Request, exc: RateLimitExceeded) -> JSONResponse:
            headers = {}
            if exc.retry_after is not None:
                headers["Retry-After"] = str(max(1, math.ceil(exc.retry_after)))
            return JSONResponse(status_code=429, content={"error": str(exc)}, headers=headers)

        api = APIRouter(prefix="/api", dependencies=[Depends(self._check_route_limit)])

        @api.get("/config")
        async def get_config() -> dict[str, Any]:
            return self._registry.read().as_dict()

        @api.post("/config")
        async def post_config(request: Request) -> Response:
            declared = request.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > self._max_body_bytes:
                return JSONResponse(status_code=413, content={"error": "Request body too large"})
            body = bytearray()
            async for chunk in request.stream():
                body.extend(chunk)
                if len(body) > self._max_body_bytes:
                    return JSONResponse(
                        status_code=413, content={"error": "Request body too large"}
                    )
            try:
                partial = json.loads(body) if body.strip() else {}
            except ValueError:
                return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})
            try:
                await self._registry.write(partial, source="api")
            except InvalidFieldError as exc:
                logger.info("Invalid config: %s", exc)
                return JSONResponse(
                    status_code=400, content={"error": str(exc), "field": exc.field}
                )
            except InvalidConfigError as exc:
                logger.info("Invalid config: %s", exc)
                return JSONResponse(status_code=400, content={"error": str(exc)})
            return Response(status_code=200)

        @api.get("/badge.png")
        async def badge_png() -> Response:
            snapshot = self._registry.read()
            started = time.perf_counter()
            try:
                png = await asyncio.to_thread(self._renderer.render, snapshot.config)
            except Exception:
                logger.exception("Failed to render badge")
                return JSONResponse(
                    status_code=500,
                    content={"error": "Failed to render badge"},
                    headers=NO_CACHE_HEADERS,
                )
            duration = time.perf_counter() - started
            if self.has_bus:
                await self.bus.publish(
                    self._rendered_topic,
                    BadgeRendered(duration_seconds=duration, size_bytes=len(png)),
                )
            return Response(content=png, media_type="image/png", headers=NO_CACHE_HEADERS)

        app.include_router(api)

        @app.get("/health")
        async def health() -> dict[str, Any]:
            modules: dict[str, Any] = {}
            if self._health_source is not None:
                reports = await self._health_source()
                modules = {name: report.model_dump() for name, report in reports.items()}
            return {"status": "ok", "modules": modules}

        if self._gateway is not None:
            app.include_router(self._gateway.router())

        if self._static_dir is not None and self._static_dir.is_dir():
            app.mount("/", StaticFiles(directory=self._static_dir, html=True), name="static")
        elif self._static_dir is not None:
            logger.info("Static directory %s not found; serving API only.", self._static_dir)

        return app


__all__ = ["NO_CACHE_HEADERS", "ControlApi"]
