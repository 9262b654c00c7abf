"""V1 system endpoints — funds mover execution mode."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from magic_link.api.dependencies import get_engine
from magic_link.api.v1.schemas import PaymentModeRequest, PaymentModeResponse
from magic_link.config.settings import ExecutionMode
from magic_link.engine.client import ClaimEngine  # noqa: TC001
from magic_link.errors.claim_errors import ClaimValidationError

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/payment-mode")
async def get_payment_mode(
    engine: Annotated[ClaimEngine, Depends(get_engine)],
) -> dict:
    """Describe the active execution mode."""
    return PaymentModeResponse(**engine.movers.details()).model_dump(mode="json")


@router.post("/payment-mode")
async def set_payment_mode(
    engine: Annotated[ClaimEngine, Depends(get_engine)],
    body: PaymentModeRequest,
) -> dict:
    """Switch the execution mode (simulated, live-testnet, live-sandbox)."""
    mode = ExecutionMode.parse(body.mode)
    if mode is None:
        msg = f"unknown payment mode: {body.mode!r}"
        raise ClaimValidationError(msg)
    details = await engine.movers.switch_mode(mode)
    return PaymentModeResponse(**details).model_dump(mode="json")
