"""V1 claim endpoints.

Sender and recipient operations on magic-link claims: create, verify,
redeem, forward, and record preference actions.  Every route is rate limited
per client under its own bucket.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from magic_link.api.dependencies import get_engine, rate_limit
from magic_link.api.v1.schemas import (
    ClaimActionRequest,
    ClaimViewResponse,
    CreateClaimRequest,
    CreateClaimResponse,
    ForwardClaimRequest,
    ForwardResponse,
    RedeemClaimRequest,
    RedemptionResponse,
    TokenRequest,
)
from magic_link.engine.client import ClaimEngine  # noqa: TC001

router = APIRouter(prefix="/claims", tags=["claims"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _view_resp(view: Any) -> dict:
    return ClaimViewResponse(**view.to_dict()).model_dump(mode="json")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("", status_code=201, dependencies=[Depends(rate_limit("send"))])
async def create_claim(
    engine: Annotated[ClaimEngine, Depends(get_engine)],
    body: CreateClaimRequest,
) -> dict:
    """Fund a new claim wallet and issue its magic link."""
    created = await engine.claims.create_claim(
        body.recipient,
        body.amount,
        body.currency,
        sender_name=body.sender_name,
        message=body.message,
    )
    return CreateClaimResponse(**created).model_dump(mode="json")


@router.post("/verify", dependencies=[Depends(rate_limit("verify"))])
async def verify_claim_body(
    engine: Annotated[ClaimEngine, Depends(get_engine)],
    body: TokenRequest,
) -> dict:
    """Verify a claim token passed in the request body."""
    return _view_resp(await engine.claims.verify_claim(body.token))


@router.post("/redeem", dependencies=[Depends(rate_limit("redeem"))])
async def redeem_claim(
    engine: Annotated[ClaimEngine, Depends(get_engine)],
    body: RedeemClaimRequest,
) -> dict:
    """Redeem a claim to the given destination (or its own wallet)."""
    result = await engine.claims.redeem_claim(body.token, body.destination)
    return RedemptionResponse(**result.to_dict()).model_dump(mode="json")


@router.post("/forward", dependencies=[Depends(rate_limit("forward"))])
async def forward_claim(
    engine: Annotated[ClaimEngine, Depends(get_engine)],
    body: ForwardClaimRequest,
) -> dict:
    """Forward a claim to a new recipient."""
    result = await engine.claims.forward_claim(
        body.token,
        body.recipient,
        message=body.message,
        sender_name=body.sender_name,
    )
    return ForwardResponse(**result.to_dict()).model_dump(mode="json")


@router.post("/actions", dependencies=[Depends(rate_limit("action"))])
async def record_claim_action(
    engine: Annotated[ClaimEngine, Depends(get_engine)],
    body: ClaimActionRequest,
) -> dict:
    """Record a recipient preference (keep, withdraw, cashout, forward)."""
    return await engine.claims.record_preference_action(body.token, body.action, body.payload)


@router.get("/{token}", dependencies=[Depends(rate_limit("verify"))])
async def verify_claim(
    token: str,
    engine: Annotated[ClaimEngine, Depends(get_engine)],
) -> dict:
    """Verify a claim token taken from the claim URL."""
    return _view_resp(await engine.claims.verify_claim(token))
