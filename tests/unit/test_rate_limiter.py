import asyncio

import pytest

from wandelbadge.badge.errors import RateLimitExceeded
from wandelbadge.core.contracts import ModuleConfig
from wandelbadge.modules.guard.rate_limiter import (
    PUSH_LIMIT_MESSAGE,
    ROUTE_LIMIT_MESSAGE,
    ConnectionRateLimiter,
    RouteRateLimiter,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_route_limiter_blocks_after_budget() -> None:
    clock = FakeClock()
    limiter = RouteRateLimiter(max_requests=3, per_seconds=60, clock=clock)

    for _ in range(3):
        limiter.check()
    with pytest.raises(RateLimitExceeded) as excinfo:
        limiter.check()

    assert str(excinfo.value) == ROUTE_LIMIT_MESSAGE
    assert excinfo.value.retry_after == pytest.approx(60.0)
    assert limiter.remaining == 0


def test_route_limiter_window_slides() -> None:
    clock = FakeClock()
    limiter = RouteRateLimiter(max_requests=2, per_seconds=10, clock=clock)
    limiter.check()
    clock.now = 5.0
    limiter.check()
    clock.now = 10.0

    limiter.check()

    with pytest.raises(RateLimitExceeded):
        limiter.check()


def test_connection_limiter_rejects_eleventh_message() -> None:
    clock = FakeClock()
    limiter = ConnectionRateLimiter(clock=clock)

    results = [limiter.allow("push-1") for _ in range(11)]

    assert results == [True] * 10 + [False]
    assert limiter.allow("push-2") is True


def test_connection_limiter_window_resets() -> None:
    clock = FakeClock()
    limiter = ConnectionRateLimiter(clock=clock)
    for _ in range(11):
        limiter.allow("push-1")

    clock.now = 1.0

    assert limiter.allow("push-1") is True


def test_connection_limiter_check_raises() -> None:
    limiter = ConnectionRateLimiter(clock=FakeClock())
    for _ in range(10):
        limiter.check("push-1")
    with pytest.raises(RateLimitExceeded, match=PUSH_LIMIT_MESSAGE):
        limiter.check("push-1")


def test_sweep_removes_closed_connections() -> None:
    open_ids = {"push-1"}
    limiter = ConnectionRateLimiter(is_open=open_ids.__contains__, clock=FakeClock())
    limiter.allow("push-1")
    limiter.allow("push-2")

    removed = limiter.sweep()

    assert removed == 1
    assert limiter.tracked() == ["push-1"]


@pytest.mark.asyncio
async def test_sweep_runs_periodically() -> None:
    limiter = ConnectionRateLimiter(is_open=lambda _key: False, clock=FakeClock())
    await limiter.configure(
        ModuleConfig(
            options={"max_messages": 2, "window_seconds": 1, "sweep_interval_seconds": 0.01}
        )
    )
    limiter.allow("push-9")
    await limiter.start()
    await asyncio.sleep(0.05)
    tracked = limiter.tracked()
    await limiter.stop()

    assert tracked == []
