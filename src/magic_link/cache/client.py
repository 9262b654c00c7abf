"""Cache client abstraction with Redis and in-memory backends.

The cache holds short-lived counters (rate-limit windows); nothing in it is
required for claim correctness.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from magic_link.config.settings import CacheConfig


class CacheClient:
    """Cache abstraction that delegates to Redis or the in-memory backend."""

    def __init__(self, config: CacheConfig) -> None:
        """Initialize cache client with configuration.

        Args:
            config: Cache configuration with engine type and connection params.
        """
        self._config = config
        self._backend: CacheBackend | None = None
        self._connected = False

    async def connect(self) -> None:
        """Connect to the cache backend.

        Raises:
            ValueError: If cache engine type is invalid.
        """
        from magic_link.cache.memory import MemoryCache
        from magic_link.cache.redis import RedisCache

        engine = self._config.engine.lower()

        if engine == "redis":
            self._backend = RedisCache(self._config)
        elif engine == "memory":
            self._backend = MemoryCache(self._config)
        else:
            msg = f"Unsupported cache engine: {engine}"
            raise ValueError(msg)

        await self._backend.connect()
        self._connected = True

    async def close(self) -> None:
        """Close the cache connection (idempotent)."""
        if self._backend is not None:
            await self._backend.close()
            self._backend = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        """Check if the cache is connected."""
        return self._connected and self._backend is not None

    async def incr_window(self, key: str, window_ms: int) -> tuple[int, int]:
        """Increment the counter at *key* inside a fixed window.

        The first increment creates the counter with value 1 and a lifetime of
        *window_ms*; later increments keep the original expiry.

        Args:
            key: Counter key (prefixed with ``config.key_prefix``).
            window_ms: Window length in milliseconds.

        Returns:
            Tuple of (count after increment, milliseconds until the window ends).

        Raises:
            RuntimeError: If not connected.
        """
        backend = self._ensure_connected()
        return await backend.incr_window(self._config.key_prefix + key, window_ms)

    async def delete(self, key: str) -> None:
        """Delete a counter.

        Raises:
            RuntimeError: If not connected.
        """
        backend = self._ensure_connected()
        await backend.delete(self._config.key_prefix + key)

    async def flush(self) -> None:
        """Flush all keys from the cache (development/testing only).

        Raises:
            RuntimeError: If not connected.
        """
        backend = self._ensure_connected()
        await backend.flush()

    def _ensure_connected(self) -> CacheBackend:
        """Return the backend, raising RuntimeError if not connected."""
        if not self._connected or self._backend is None:
            msg = "Cache not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._backend


class CacheBackend(Protocol):
    """Protocol for cache backend implementations."""

    async def connect(self) -> None: ...
    async def close(self) -> None: ...
    async def incr_window(self, key: str, window_ms: int) -> tuple[int, int]: ...
    async def delete(self, key: str) -> None: ...
    async def flush(self) -> None: ...
