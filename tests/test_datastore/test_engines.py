"""Tests for document store backends and the directory fallback chain."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from magic_link.config.settings import StoreConfig
from magic_link.datastore.engines import FileBackend, MemoryBackend, create_backend

if TYPE_CHECKING:
    from pathlib import Path


def _blocked_dir(tmp_path: Path) -> str:
    """A data_dir that can never be created (its parent is a regular file)."""
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")
    return str(blocker / "data")


class TestFileBackend:
    def test_missing_document_reads_none(self, tmp_path: Path) -> None:
        backend = FileBackend(tmp_path)
        assert backend.read("magic-links") is None

    def test_write_then_read(self, tmp_path: Path) -> None:
        backend = FileBackend(tmp_path)
        backend.write("magic-links", {"k": {"amount": "5"}})
        assert backend.path_for("magic-links") == tmp_path / "magic-links.json"
        assert backend.read("magic-links") == {"k": {"amount": "5"}}

    def test_write_leaves_no_temp_files(self, tmp_path: Path) -> None:
        backend = FileBackend(tmp_path)
        backend.write("transactions", {"a": 1})
        backend.write("transactions", {"a": 2})
        assert sorted(p.name for p in tmp_path.iterdir()) == ["transactions.json"]
        assert json.loads((tmp_path / "transactions.json").read_text()) == {"a": 2}

    def test_failed_write_keeps_previous_document(self, tmp_path: Path) -> None:
        backend = FileBackend(tmp_path)
        backend.write("doc", {"a": 1})
        with pytest.raises(TypeError):
            backend.write("doc", {"a": object()})
        assert backend.read("doc") == {"a": 1}
        assert sorted(p.name for p in tmp_path.iterdir()) == ["doc.json"]

    def test_invalid_json_raises_value_error(self, tmp_path: Path) -> None:
        (tmp_path / "doc.json").write_text("{not json")
        with pytest.raises(ValueError):
            FileBackend(tmp_path).read("doc")


class TestMemoryBackend:
    def test_roundtrip_returns_copies(self) -> None:
        backend = MemoryBackend()
        document = {"k": [1, 2]}
        backend.write("doc", document)
        document["k"].append(3)
        loaded = backend.read("doc")
        assert loaded == {"k": [1, 2]}
        loaded["k"].append(4)
        assert backend.read("doc") == {"k": [1, 2]}

    def test_missing(self) -> None:
        assert MemoryBackend().read("doc") is None


class TestCreateBackend:
    def test_configured_directory(self, tmp_path: Path) -> None:
        backend = create_backend(StoreConfig(data_dir=str(tmp_path / "data")))
        assert isinstance(backend, FileBackend)
        assert backend.directory == tmp_path / "data"
        assert (tmp_path / "data").is_dir()

    def test_falls_back_to_temp_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        temp_root = tmp_path / "tmp"
        temp_root.mkdir()
        monkeypatch.setattr(
            "magic_link.datastore.engines.tempfile.gettempdir", lambda: str(temp_root)
        )
        backend = create_backend(StoreConfig(data_dir=_blocked_dir(tmp_path)))
        assert isinstance(backend, FileBackend)
        assert backend.directory == temp_root / "magic-link"

    def test_falls_back_to_memory(self, tmp_path: Path) -> None:
        backend = create_backend(
            StoreConfig(data_dir=_blocked_dir(tmp_path), fallback_to_temp=False)
        )
        assert isinstance(backend, MemoryBackend)
        assert backend.kind == "memory"

    def test_no_fallback_raises(self, tmp_path: Path) -> None:
        config = StoreConfig(
            data_dir=_blocked_dir(tmp_path),
            fallback_to_temp=False,
            fallback_to_memory=False,
        )
        with pytest.raises(RuntimeError, match="memory fallback is disabled"):
            create_backend(config)
