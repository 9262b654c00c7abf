"""Tests for magic_link.main entry point."""

from __future__ import annotations

from unittest.mock import patch


def test_main_calls_uvicorn_run() -> None:
    """Verify that main() delegates to uvicorn.run with expected args."""
    with patch("magic_link.main.uvicorn.run") as mock_run:
        from magic_link.main import main

        main()
        mock_run.assert_called_once()
        call_kwargs = mock_run.call_args
        assert call_kwargs[0][0] == "magic_link.api.app:create_app"
        assert call_kwargs[1]["factory"] is True
        assert call_kwargs[1]["port"] == 3003


def test_main_reload_from_env(monkeypatch) -> None:
    """MAGICLINK_RELOAD turns on uvicorn's reloader."""
    monkeypatch.setenv("MAGICLINK_RELOAD", "true")
    with patch("magic_link.main.uvicorn.run") as mock_run:
        from magic_link.main import main

        main()
        assert mock_run.call_args[1]["reload"] is True
