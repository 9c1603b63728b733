"""
Throughput guards for the two write transports.

`RouteRateLimiter` is a single global sliding window in front of the HTTP API.
`ConnectionRateLimiter` keeps a fixed window per push connection and runs a
periodic sweep that forgets counters of connections that are no longer open.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from ...badge.errors import RateLimitExceeded
from ...core.contracts import BaseModule, HealthStatus, ModuleConfig

logger = logging.getLogger(__name__)

ROUTE_LIMIT_MESSAGE = "Too many requests, please try again later."
PUSH_LIMIT_MESSAGE = "Rate limit exceeded. Please slow down."


class RouteRateLimiter:
    """Sliding window shared by every caller of the guarded routes."""

    def __init__(
        self,
        *,
        max_requests: int = 60,
        per_seconds: float = 60.0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._max_requests = max_requests
        self._per_seconds = per_seconds
        self._clock = clock or time.monotonic
        self._history: deque[float] = deque()

    def configure(self, *, max_requests: int, per_seconds: float) -> None:
        self._max_requests = int(max_requests)
        self._per_seconds = float(per_seconds)

    def check(self) -> None:
        """Record one request or raise `RateLimitExceeded`."""
        now = self._clock()
        self._prune(now)
        if len(self._history) >= self._max_requests:
            retry_after = max(0.0, self._per_seconds - (now - self._history[0]))
            logger.debug("Route rate limit hit; retry after %.1fs", retry_after)
            raise RateLimitExceeded(ROUTE_LIMIT_MESSAGE, retry_after=retry_after)
        self._history.append(now)

    @property
    def remaining(self) -> int:
        self._prune(self._clock())
        return max(0, self._max_requests - len(self._history))

    def _prune(self, now: float) -> None:
        while self._history and now - self._history[0] >= self._per_seconds:
            self._history.popleft()


@dataclass(slots=True)
class _WindowState:
    count: int
    reset_at: float


class ConnectionRateLimiter(BaseModule):
    """Fixed window message counter per push connection."""

    name = "modules.guard.connection_rate_limiter"

    def __init__(
        self,
        *,
        is_open: Callable[[str], bool] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        super().__init__()
        self._max_messages = 10
        self._window_seconds = 1.0
        self._sweep_interval = 300.0
        self._is_open = is_open
        self._clock = clock or time.monotonic
        self._windows: dict[str, _WindowState] = {}
        self._task: asyncio.Task[None] | None = None
        self._rejected_total = 0

    async def configure(self, config: ModuleConfig) -> None:
        await super().configure(config)
        options = config.options
        self._max_messages = int(options.get("max_messages", self._max_messages))
        self._window_seconds = float(options.get("window_seconds", self._window_seconds))
        self._sweep_interval = float(
            options.get("sweep_interval_seconds", self._sweep_interval)
        )

    def bind(self, is_open: Callable[[str], bool]) -> None:
        """Attach the liveness check used by the sweep."""
        self._is_open = is_open

    def allow(self, connection_id: str) -> bool:
        """Count one inbound message; False once the window budget is spent."""
        now = self._clock()
        state = self._windows.get(connection_id)
        if state is None or now >= state.reset_at:
            state = _WindowState(count=0, reset_at=now + self._window_seconds)
            self._windows[connection_id] = state
        state.count += 1
        if state.count > self._max_messages:
            self._rejected_total += 1
            return False
        return True

    def check(self, connection_id: str) -> None:
        """Like `allow` but raises `RateLimitExceeded`."""
        if not self.allow(connection_id):
            state = self._windows[connection_id]
            raise RateLimitExceeded(
                PUSH_LIMIT_MESSAGE, retry_after=max(0.0, state.reset_at - self._clock())
            )

    def discard(self, connection_id: str) -> None:
        self._windows.pop(connection_id, None)

    def tracked(self) -> list[str]:
        return list(self._windows)

    def sweep(self) -> int:
        """Drop counters of connections that are no longer open."""
        if self._is_open is None:
            return 0
        stale = [key for key in self._windows if not self._is_open(key)]
        for key in stale:
            del self._windows[key]
        if stale:
            logger.info("Cleaned up %d stale rate limit entries.", len(stale))
        return len(stale)

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._sweep_loop(), name="push-rate-limit-sweep")
        logger.info(
            "ConnectionRateLimiter allowing %d messages per %ss per connection",
            self._max_messages,
            self._window_seconds,
        )

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        self._windows.clear()

    async def health(self) -> HealthStatus:
        return HealthStatus(
            status="healthy",
            details={"tracked": len(self._windows), "rejected_total": self._rejected_total},
        )

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            self.sweep()


__all__ = [
    "PUSH_LIMIT_MESSAGE",
    "ROUTE_LIMIT_MESSAGE",
    "ConnectionRateLimiter",
    "RouteRateLimiter",
]
