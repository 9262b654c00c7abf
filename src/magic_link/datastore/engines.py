"""Document store backends — JSON files on disk, or process memory.

Provides backend creation with a fallback chain:
- the configured data directory
- a ``magic-link`` directory under the OS temp dir
- in-process memory (non-durable, last resort)
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from magic_link.config.settings import StoreConfig

logger = logging.getLogger(__name__)

_PROBE_NAME = ".write-probe"
_TEMP_SUBDIR = "magic-link"


class StoreBackend(Protocol):
    """Protocol for whole-document storage backends."""

    kind: str

    def read(self, name: str) -> Any | None: ...
    def write(self, name: str, document: Any) -> None: ...


class FileBackend:
    """Stores each document as ``<name>.json`` inside a directory.

    Writes are crash-safe: the document is written to a temporary file in
    the same directory and moved over the target with ``os.replace``.
    """

    kind = "file"

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    @property
    def directory(self) -> Path:
        """The directory holding the documents."""
        return self._directory

    def path_for(self, name: str) -> Path:
        """Return the file path of document *name*."""
        return self._directory / f"{name}.json"

    def read(self, name: str) -> Any | None:
        """Read and parse a document; None if it does not exist.

        Raises:
            OSError: If the file exists but cannot be read.
            ValueError: If the file is not valid JSON.
        """
        path = self.path_for(name)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def write(self, name: str, document: Any) -> None:
        """Atomically replace document *name*.

        Raises:
            OSError: If the directory is not writable.
        """
        target = self.path_for(name)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=self._directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2, sort_keys=True)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, target)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise


class MemoryBackend:
    """Keeps documents in process memory. Nothing survives a restart."""

    kind = "memory"

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}

    def read(self, name: str) -> Any | None:
        """Return a fresh copy of document *name*, or None."""
        raw = self._documents.get(name)
        return None if raw is None else json.loads(raw)

    def write(self, name: str, document: Any) -> None:
        """Store a serialized copy of *document*."""
        self._documents[name] = json.dumps(document)


def _usable_directory(directory: Path) -> bool:
    """Create *directory* if needed and check that it accepts writes."""
    try:
        directory.mkdir(parents=True, exist_ok=True)
        probe = directory / _PROBE_NAME
        probe.write_text("ok", encoding="utf-8")
        probe.unlink()
    except OSError as exc:
        logger.warning("Data directory %s is not writable: %s", directory, exc)
        return False
    return True


def create_backend(config: StoreConfig) -> StoreBackend:
    """Resolve the storage backend from configuration.

    Args:
        config: Store configuration with data directory and fallback flags.

    Returns:
        A file backend on the first writable directory, else a memory backend.

    Raises:
        RuntimeError: If no directory is writable and the memory fallback
            is disabled.
    """
    candidates: list[Path] = []
    if config.data_dir:
        candidates.append(Path(config.data_dir).expanduser())
    if config.fallback_to_temp:
        candidates.append(Path(tempfile.gettempdir()) / _TEMP_SUBDIR)

    for directory in candidates:
        if _usable_directory(directory):
            logger.info("Durable store using directory %s", directory)
            return FileBackend(directory)

    if not config.fallback_to_memory:
        msg = "No writable data directory available and memory fallback is disabled"
        raise RuntimeError(msg)

    logger.warning("No writable data directory; falling back to NON-DURABLE memory storage")
    return MemoryBackend()
