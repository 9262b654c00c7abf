"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from magic_link import __version__
from magic_link.api.middleware.cors import setup_cors
from magic_link.api.v1 import v1_router
from magic_link.config.settings import AppConfig
from magic_link.engine.client import ClaimEngine
from magic_link.errors.claim_errors import ClaimError, RateLimitedError
from magic_link.metrics.collector import MetricsCollector
from magic_link.metrics.middleware import PrometheusMiddleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle hooks.

    Builds the claim engine (store, cache, mover, services) on startup and
    shuts it down on exit.
    """
    engine: ClaimEngine = app.state.engine_factory()
    try:
        await engine.initialize()
        app.state.engine = engine
        logger.info("Magic-link engine initialized (store=%s)", engine.store.backend_kind)
        yield
    finally:
        await engine.close()
        app.state.engine = None
        logger.info("Magic-link engine shut down")


def create_app(*, config: AppConfig | None = None, engine: ClaimEngine | None = None) -> FastAPI:
    """Build and return the FastAPI application.

    Args:
        config: Optional AppConfig. If *None*, a default config is created
            from environment variables.
        engine: Optional pre-built (uninitialized) engine; the lifespan
            initializes and closes it.
    """
    if config is None:
        config = engine.config if engine is not None else AppConfig()

    app = FastAPI(
        title="py-magiclink",
        version=__version__,
        description="Single-use magic-link payment claims",
        lifespan=_lifespan,
    )

    # Store config on app.state for lifespan access
    app.state.config = config

    def _engine_factory() -> ClaimEngine:
        return engine if engine is not None else ClaimEngine(config)

    app.state.engine_factory = _engine_factory

    # HTTP metrics live in their own registry; engine metrics are added
    # to the /metrics output once the engine is up.
    app.state.http_metrics = MetricsCollector()

    # -- Middleware --
    setup_cors(app)
    if config.metrics.enabled:
        app.add_middleware(PrometheusMiddleware, registry=app.state.http_metrics.registry)

    # -- Error handler --
    @app.exception_handler(ClaimError)
    async def _claim_error_handler(request: Request, exc: ClaimError) -> JSONResponse:
        headers: dict[str, str] = {}
        if isinstance(exc, RateLimitedError):
            headers["Retry-After"] = str(exc.retry_after_seconds)
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "message": exc.message},
            headers=headers,
        )

    # -- Base routes --
    @app.get("/health", tags=["base"])
    async def health() -> dict[str, Any]:
        engine_: ClaimEngine | None = getattr(app.state, "engine", None)
        if engine_ is None:
            return {"status": "ok", "components": {"engine": "not_initialized"}}
        return {"status": "ok", "components": await engine_.health_check()}

    @app.get("/metrics", tags=["base"], include_in_schema=False)
    async def metrics_endpoint() -> Response:
        """Prometheus metrics endpoint."""
        body = generate_latest(app.state.http_metrics.registry)
        engine_: ClaimEngine | None = getattr(app.state, "engine", None)
        if engine_ is not None and engine_.metrics is not None:
            body += generate_latest(engine_.metrics.registry)
        return Response(content=body, media_type=CONTENT_TYPE_LATEST)

    # -- Mount v1 API --
    app.include_router(v1_router)

    return app
