"""Rate limiting: fixed-window counters per client and route bucket."""

from __future__ import annotations

from magic_link.ratelimit.limiter import RateLimiter, RateLimitResult

__all__ = ["RateLimitResult", "RateLimiter"]
