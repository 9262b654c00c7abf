"""V1 REST API routes.

Combines all sub-routers under the ``/api/v1`` prefix.
"""

from fastapi import APIRouter

from magic_link.api.v1.claims import router as claims_router
from magic_link.api.v1.system import router as system_router
from magic_link.api.v1.transactions import router as transactions_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(claims_router)
v1_router.include_router(transactions_router)
v1_router.include_router(system_router)

__all__ = ["v1_router"]
