"""V1 transaction history endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from magic_link.api.dependencies import get_engine
from magic_link.api.v1.schemas import TransactionResponse
from magic_link.engine.client import ClaimEngine  # noqa: TC001
from magic_link.engine.models.transaction import TransactionHistoryEntry  # noqa: TC001

router = APIRouter(prefix="/transactions", tags=["transactions"])


def _tx_resp(entry: TransactionHistoryEntry) -> dict:
    return TransactionResponse(**entry.to_dict()).model_dump(mode="json")


@router.get("")
async def list_transactions(
    engine: Annotated[ClaimEngine, Depends(get_engine)],
    status: str | None = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> list[dict]:
    """List history entries, newest first."""
    entries = await engine.transactions.list()
    if status:
        entries = [e for e in entries if e.status == status]
    return [_tx_resp(e) for e in entries[:limit]]


@router.get("/{lookup_key}")
async def get_transaction(
    lookup_key: str,
    engine: Annotated[ClaimEngine, Depends(get_engine)],
) -> dict:
    """Get the history entry for a claim lookup key."""
    return _tx_resp(await engine.transactions.get(lookup_key))
