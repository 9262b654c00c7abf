"""Domain models for claims, history entries, action records and assets."""

from __future__ import annotations

from magic_link.engine.models.asset import Currency, SupportedAsset
from magic_link.engine.models.claim import (
    ClaimRecord,
    ClaimStatus,
    ClaimView,
    ForwardResult,
    IssuedClaim,
    RedemptionResult,
)
from magic_link.engine.models.claim_action import ClaimActionRecord, ClaimActionType
from magic_link.engine.models.transaction import (
    TransactionEventType,
    TransactionHistoryEntry,
    TransactionStatus,
)

__all__ = [
    "ClaimActionRecord",
    "ClaimActionType",
    "ClaimRecord",
    "ClaimStatus",
    "ClaimView",
    "Currency",
    "ForwardResult",
    "IssuedClaim",
    "RedemptionResult",
    "SupportedAsset",
    "TransactionEventType",
    "TransactionHistoryEntry",
    "TransactionStatus",
]
