"""In-memory counter cache with per-key expiry."""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from magic_link.config.settings import CacheConfig


def _now_ms() -> int:
    return int(time.monotonic() * 1000)


class MemoryCache:
    """In-memory fixed-window counters for a single process.

    Increments never await, so each one is atomic on the event loop.
    """

    def __init__(self, config: CacheConfig, max_size: int = 100_000) -> None:
        """Initialize in-memory cache.

        Args:
            config: Cache configuration (unused for memory backend).
            max_size: Maximum number of keys to store before evicting the oldest.
        """
        self._config = config
        self._max_size = max_size
        # Format: {key: (count, expiry_ms)}
        self._counters: OrderedDict[str, tuple[int, int]] = OrderedDict()

    async def connect(self) -> None:  # noqa: ASYNC910
        """Connect (no-op for in-memory)."""

    async def close(self) -> None:  # noqa: ASYNC910
        """Close and clear the cache."""
        self._counters.clear()

    async def incr_window(self, key: str, window_ms: int) -> tuple[int, int]:  # noqa: ASYNC910
        """Increment *key*, starting a new window when the old one has ended.

        Args:
            key: Counter key.
            window_ms: Window length in milliseconds.

        Returns:
            Tuple of (count, milliseconds until the window ends).
        """
        now = _now_ms()
        entry = self._counters.get(key)

        if entry is None or entry[1] <= now:
            self._counters.pop(key, None)
            self._counters[key] = (1, now + window_ms)
            if len(self._counters) > self._max_size:
                self._counters.popitem(last=False)
            return 1, window_ms

        count, expiry = entry
        count += 1
        self._counters[key] = (count, expiry)
        return count, expiry - now

    async def delete(self, key: str) -> None:  # noqa: ASYNC910
        """Delete a counter.

        Args:
            key: Counter key.
        """
        self._counters.pop(key, None)

    async def flush(self) -> None:  # noqa: ASYNC910
        """Clear all counters."""
        self._counters.clear()
