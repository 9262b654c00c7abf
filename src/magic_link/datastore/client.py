"""Datastore client — whole-document key→record persistence.

Central store abstraction providing:
- Backend lifecycle (resolve on open, release on close)
- ``load`` / ``save`` of named documents (no partial updates)
- A write-through in-memory cache that keeps the intended state even when
  the backend rejects a write (read-only filesystems)

Callers are responsible for read-modify-write atomicity; the claim ledger
serializes mutations per key before calling ``save``.
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any, TypeVar

from magic_link.datastore.engines import create_backend

if TYPE_CHECKING:
    from magic_link.config.settings import StoreConfig
    from magic_link.datastore.engines import StoreBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DurableStore:
    """Best-effort durable document store.

    Usage::

        store = DurableStore(store_config)
        store.open()
        records = store.load("magic-links", {})
        records[key] = {...}
        store.save("magic-links", records)
        store.close()
    """

    def __init__(self, config: StoreConfig, *, backend: StoreBackend | None = None) -> None:
        self._config = config
        self._backend: StoreBackend | None = backend
        self._cache: dict[str, Any] = {}
        self._failed_writes = 0

    def open(self) -> None:
        """Resolve the backend (configured dir → temp dir → memory)."""
        if self._backend is None:
            self._backend = create_backend(self._config)

    def close(self) -> None:
        """Release the backend and drop the cache."""
        self._backend = None
        self._cache.clear()

    @property
    def is_open(self) -> bool:
        """Check if a backend has been resolved."""
        return self._backend is not None

    @property
    def backend_kind(self) -> str:
        """``file`` or ``memory``."""
        return self._ensure_open().kind

    @property
    def is_durable(self) -> bool:
        """Whether saved documents survive a process restart."""
        return self.backend_kind != "memory"

    @property
    def failed_writes(self) -> int:
        """Number of writes the backend rejected since open()."""
        return self._failed_writes

    def load(self, name: str, default: T) -> T:
        """Load document *name*, returning *default* on any failure.

        The returned object is a copy; mutating it does not change the store
        until it is passed to :meth:`save`.
        """
        backend = self._ensure_open()
        if name in self._cache:
            return copy.deepcopy(self._cache[name])

        try:
            document = backend.read(name)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to read document %s, using default: %s", name, exc)
            return default

        if document is None:
            return default
        if default is not None and not isinstance(document, type(default)):
            logger.warning(
                "Document %s has unexpected type %s, using default",
                name,
                type(document).__name__,
            )
            return default

        self._cache[name] = document
        return copy.deepcopy(document)

    def save(self, name: str, document: Any) -> None:
        """Fully replace document *name*.

        A backend write failure is logged and swallowed; the cached copy still
        reflects *document* for the rest of the process lifetime.
        """
        backend = self._ensure_open()
        self._cache[name] = copy.deepcopy(document)
        try:
            backend.write(name, document)
        except (OSError, TypeError, ValueError) as exc:
            self._failed_writes += 1
            logger.error("Failed to persist document %s (kept in memory): %s", name, exc)

    def _ensure_open(self) -> StoreBackend:
        if self._backend is None:
            msg = "Datastore is not open. Call open() first."
            raise RuntimeError(msg)
        return self._backend
