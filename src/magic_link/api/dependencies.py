"""FastAPI dependency injection helpers.

Provides ``Depends()``-compatible callables for engine access and per-route
rate limiting.

Usage in a route::

    @router.post("/claims/redeem", dependencies=[Depends(rate_limit("redeem"))])
    async def redeem(
        engine: Annotated[ClaimEngine, Depends(get_engine)],
        body: RedeemClaimRequest,
    ) -> ...:
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Request

from magic_link.engine.client import ClaimEngine  # noqa: TC001
from magic_link.errors.claim_errors import RateLimitedError
from magic_link.errors.definitions import ErrEngineUnavailable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_ANONYMOUS = "anonymous"

# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def get_engine(request: Request) -> ClaimEngine:
    """Retrieve the engine from ``app.state``.

    The engine is stored on ``app.state.engine`` during lifespan startup.

    Raises:
        ClaimError: ErrEngineUnavailable if the engine is not initialized.
    """
    engine: ClaimEngine | None = getattr(request.app.state, "engine", None)
    if engine is None:
        raise ErrEngineUnavailable
    return engine


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------


def client_identifier(request: Request) -> str:
    """Best-effort client address.

    Order: first ``x-forwarded-for`` entry, ``x-real-ip``,
    ``cf-connecting-ip``, the socket peer, then ``anonymous``.
    """
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header, "").strip()
        if value:
            return value
    if request.client is not None and request.client.host:
        return request.client.host
    return _ANONYMOUS


def rate_limit(bucket: str) -> Callable[..., Awaitable[None]]:
    """Build a dependency enforcing the ``<bucket>_limit`` / ``<bucket>_window_ms`` budget.

    Raises:
        RateLimitedError: When the caller's window budget is exhausted.
    """

    async def _check(
        request: Request,
        engine: Annotated[ClaimEngine, Depends(get_engine)],
    ) -> None:
        config = engine.config.rate_limit
        if not config.enabled:
            return
        limit: int = getattr(config, f"{bucket}_limit")
        window_ms: int = getattr(config, f"{bucket}_window_ms")
        identifier = f"{bucket}:{client_identifier(request)}"
        result = await engine.rate_limiter.check(identifier, limit, window_ms)
        if not result.allowed:
            msg = "too many requests, please try again later"
            raise RateLimitedError(msg, retry_after_ms=result.retry_after_ms)

    return _check
