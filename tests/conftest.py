"""Shared test fixtures for py-magiclink test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from magic_link.config.settings import CacheEngine, ExecutionMode

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

BASE_URL = "https://pay.example.com"


@pytest.fixture
def app_config(tmp_path):
    """Provide a test AppConfig with safe defaults.

    Documents go to a per-test directory, background jobs are off and the
    funds mover is simulated.
    """
    from magic_link.config.settings import (
        AppConfig,
        CacheConfig,
        ClaimConfig,
        MoverConfig,
        StoreConfig,
        TaskConfig,
    )

    return AppConfig(
        debug=True,
        store=StoreConfig(data_dir=str(tmp_path / "data"), fallback_to_temp=False),
        claims=ClaimConfig(base_url=BASE_URL),
        mover=MoverConfig(mode=ExecutionMode.SIMULATED, timeout_seconds=5.0),
        cache=CacheConfig(engine=CacheEngine.MEMORY),
        task=TaskConfig(enabled=False),
    )


@pytest.fixture
async def engine(app_config) -> AsyncIterator:
    """Provide an initialized ClaimEngine backed by the test data directory."""
    from magic_link.engine.client import ClaimEngine

    claim_engine = ClaimEngine(app_config)
    await claim_engine.initialize()
    yield claim_engine
    await claim_engine.close()


@pytest.fixture
def test_client(app_config) -> Iterator:
    """Provide a FastAPI TestClient with the lifespan running."""
    from fastapi.testclient import TestClient

    from magic_link.api.app import create_app

    app = create_app(config=app_config)
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
