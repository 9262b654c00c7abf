"""Transaction history service — sender-side projection of claims.

Entries are keyed by claim lookup key.  The claim ledger is the only caller
of :meth:`TransactionService.mark_claimed`, so history and ledger never
disagree about which claims are terminal.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from magic_link.engine.models.transaction import (
    TransactionEventType,
    TransactionHistoryEntry,
    TransactionStatus,
)
from magic_link.errors.definitions import ErrTransactionNotFound

if TYPE_CHECKING:
    from magic_link.engine.client import ClaimEngine

logger = logging.getLogger(__name__)

DOCUMENT = "transactions"


def _now() -> str:
    return datetime.now(tz=UTC).isoformat()


class TransactionService:
    """Records sends and forwards and tracks their claim status."""

    def __init__(self, engine: ClaimEngine) -> None:
        self._engine = engine

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def record(
        self,
        *,
        lookup_key: str,
        recipient: str,
        amount: str,
        currency: str,
        payment_mode: str,
        status: TransactionStatus = TransactionStatus.SENT,
        wallet_address: str = "",
        transaction_id: str | None = None,
        sender_name: str | None = None,
        explorer_url: str | None = None,
        failure_reason: str | None = None,
    ) -> TransactionHistoryEntry:
        """Record a send or forward.

        Creation-time mover failures are recorded with ``status=failed``
        rather than dropped.

        Returns:
            The stored TransactionHistoryEntry.
        """
        now = _now()
        entry = TransactionHistoryEntry(
            id=uuid.uuid4().hex,
            lookup_key=lookup_key,
            recipient=recipient,
            amount=amount,
            currency=currency,
            status=status,
            payment_mode=payment_mode,
            created_at=now,
            updated_at=now,
            wallet_address=wallet_address,
            transaction_id=transaction_id,
            sender_name=sender_name,
            explorer_url=explorer_url,
            failure_reason=failure_reason,
        )
        entries = self._load()
        entries[lookup_key] = entry.to_dict()
        self._save(entries)
        return entry

    async def mark_claimed(
        self,
        lookup_key: str,
        claim_transaction_id: str,
        claimed_by: str,
    ) -> TransactionHistoryEntry:
        """Move an entry to ``claimed`` after a successful redemption.

        Args:
            lookup_key: Lookup key of the redeemed claim.
            claim_transaction_id: Transfer that paid out the claim.
            claimed_by: Destination address, or ``forward:<recipient>``.

        Raises:
            ClaimError: ErrTransactionNotFound if no entry exists.
        """
        entries = self._load()
        data = entries.get(lookup_key)
        if data is None:
            raise ErrTransactionNotFound

        entry = TransactionHistoryEntry.from_dict(data)
        now = _now()
        entry.status = TransactionStatus.CLAIMED
        entry.claimed_at = now
        entry.updated_at = now
        entry.claim_transaction_id = claim_transaction_id
        entry.claimed_by = claimed_by
        entry.events.append(
            {
                "type": str(TransactionEventType.CLAIM_TRANSFER),
                "timestamp": now,
                "data": {"transaction_id": claim_transaction_id, "claimed_by": claimed_by},
            }
        )
        entries[lookup_key] = entry.to_dict()
        self._save(entries)
        return entry

    async def append_event(
        self,
        lookup_key: str,
        event_type: TransactionEventType,
        data: dict[str, Any] | None = None,
    ) -> TransactionHistoryEntry | None:
        """Append a timeline event; returns None if the entry is unknown."""
        entries = self._load()
        raw = entries.get(lookup_key)
        if raw is None:
            logger.debug("No history entry for %s; dropping %s event", lookup_key[:12], event_type)
            return None

        entry = TransactionHistoryEntry.from_dict(raw)
        now = _now()
        entry.updated_at = now
        entry.events.append({"type": str(event_type), "timestamp": now, "data": data or {}})
        entries[lookup_key] = entry.to_dict()
        self._save(entries)
        return entry

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list(self) -> list[TransactionHistoryEntry]:
        """All entries, newest first."""
        entries = [TransactionHistoryEntry.from_dict(d) for d in self._load().values()]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries

    async def get(self, lookup_key: str) -> TransactionHistoryEntry:
        """Get the entry for *lookup_key*.

        Raises:
            ClaimError: ErrTransactionNotFound if no entry exists.
        """
        data = self._load().get(lookup_key)
        if data is None:
            raise ErrTransactionNotFound
        return TransactionHistoryEntry.from_dict(data)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load(self) -> dict[str, dict[str, Any]]:
        return self._engine.store.load(DOCUMENT, {})

    def _save(self, entries: dict[str, dict[str, Any]]) -> None:
        self._engine.store.save(DOCUMENT, entries)
