"""Fixed-window rate limiter backed by the cache client.

Each identifier gets its own counter.  The first request in a window creates
the counter with an expiry of ``window_ms``; requests past ``limit`` inside
the same window are refused until the counter expires.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from magic_link.cache.client import CacheClient

logger = logging.getLogger(__name__)

_KEY_NAMESPACE = "ratelimit:"


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single rate-limit check."""

    allowed: bool
    retry_after_ms: int
    remaining: int


class RateLimiter:
    """Fixed-window counters keyed by identifier.

    Usage::

        limiter = RateLimiter(cache)
        result = await limiter.check("redeem:203.0.113.9", limit=10, window_ms=60_000)
        if not result.allowed:
            ...
    """

    def __init__(self, cache: CacheClient) -> None:
        self._cache = cache

    async def check(self, identifier: str, limit: int, window_ms: int) -> RateLimitResult:
        """Count one request for *identifier* and decide whether it may proceed.

        Args:
            identifier: Logical caller identity (typically ``bucket:client``).
            limit: Maximum requests allowed per window.
            window_ms: Window length in milliseconds.

        Returns:
            RateLimitResult.  ``retry_after_ms`` is the full window for the first
            request and the time until the window ends otherwise.

        Raises:
            ValueError: If *limit* or *window_ms* is not positive.
        """
        if limit <= 0 or window_ms <= 0:
            msg = "limit and window_ms must be positive"
            raise ValueError(msg)

        count, ttl_ms = await self._cache.incr_window(_KEY_NAMESPACE + identifier, window_ms)
        retry_after_ms = max(0, min(ttl_ms, window_ms))

        if count > limit:
            logger.debug("Rate limit exceeded for %s (%d/%d)", identifier, count, limit)
            return RateLimitResult(allowed=False, retry_after_ms=retry_after_ms, remaining=0)

        return RateLimitResult(
            allowed=True,
            retry_after_ms=retry_after_ms,
            remaining=limit - count,
        )

    async def reset(self, identifier: str) -> None:
        """Forget the counter for *identifier*."""
        await self._cache.delete(_KEY_NAMESPACE + identifier)
