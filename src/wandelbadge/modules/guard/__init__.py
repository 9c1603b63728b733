"""Request and message throttling."""

from .rate_limiter import ConnectionRateLimiter, RouteRateLimiter

__all__ = ["ConnectionRateLimiter", "RouteRateLimiter"]
