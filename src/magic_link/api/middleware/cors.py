"""CORS middleware configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware

if TYPE_CHECKING:
    from fastapi import FastAPI

# Headers the browser may read from cross-origin responses.
_EXPOSED_HEADERS = ["Retry-After"]


def setup_cors(app: FastAPI) -> None:
    """Add CORS middleware allowing all origins.

    The claim page is served from a different origin than the API, and
    rate-limited clients need to read ``Retry-After``.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=_EXPOSED_HEADERS,
    )
