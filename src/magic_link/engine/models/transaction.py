"""Transaction history entry — sender-side projection of a claim.

Entries are linked 1:1 to claim records by ``lookup_key`` and carry a
denormalized copy of amount, currency, recipient and mode so listings never
need the ledger.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class TransactionStatus(enum.StrEnum):
    """Lifecycle of a history entry: ``sent -> claimed``, or ``failed``."""

    SENT = "sent"
    CLAIMED = "claimed"
    FAILED = "failed"


class TransactionEventType(enum.StrEnum):
    """Timeline event types appended to an entry."""

    CLAIM_TRANSFER = "claim-transfer"
    FORWARD = "forward"
    ACKNOWLEDGED = "acknowledged"
    WITHDRAW_REQUEST = "withdraw-request"
    CASHOUT_REQUEST = "cashout-request"


@dataclass
class TransactionHistoryEntry:
    """One sender-initiated send or forward.

    Timestamps are ISO-8601 UTC strings.
    """

    id: str
    lookup_key: str
    recipient: str
    amount: str
    currency: str
    status: TransactionStatus
    payment_mode: str
    created_at: str
    updated_at: str
    wallet_address: str = ""
    transaction_id: str | None = None
    sender_name: str | None = None
    explorer_url: str | None = None
    claimed_at: str | None = None
    claim_transaction_id: str | None = None
    claimed_by: str | None = None
    failure_reason: str | None = None
    events: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionHistoryEntry:
        """Create an entry from its persisted form."""
        return cls(
            id=data["id"],
            lookup_key=data["lookup_key"],
            recipient=data.get("recipient", ""),
            amount=str(data.get("amount", "0")),
            currency=data.get("currency", ""),
            status=TransactionStatus(data.get("status", TransactionStatus.SENT)),
            payment_mode=data.get("payment_mode", ""),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", data.get("created_at", "")),
            wallet_address=data.get("wallet_address", ""),
            transaction_id=data.get("transaction_id"),
            sender_name=data.get("sender_name"),
            explorer_url=data.get("explorer_url"),
            claimed_at=data.get("claimed_at"),
            claim_transaction_id=data.get("claim_transaction_id"),
            claimed_by=data.get("claimed_by"),
            failure_reason=data.get("failure_reason"),
            events=list(data.get("events", [])),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "id": self.id,
            "lookup_key": self.lookup_key,
            "recipient": self.recipient,
            "amount": self.amount,
            "currency": self.currency,
            "status": str(self.status),
            "payment_mode": self.payment_mode,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "wallet_address": self.wallet_address,
            "transaction_id": self.transaction_id,
            "sender_name": self.sender_name,
            "explorer_url": self.explorer_url,
            "claimed_at": self.claimed_at,
            "claim_transaction_id": self.claim_transaction_id,
            "claimed_by": self.claimed_by,
            "failure_reason": self.failure_reason,
            "events": [dict(e) for e in self.events],
        }
