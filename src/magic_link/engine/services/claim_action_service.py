"""Claim action log — append-only audit of recipient actions.

Records intent (keep, withdraw, cash-out, forward, claim) independent of the
claim's redemption state.  Bank account numbers are masked before anything
is written.
"""

from __future__ import annotations

import re
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from magic_link.engine.models.claim_action import ClaimActionRecord, ClaimActionType

if TYPE_CHECKING:
    from magic_link.engine.client import ClaimEngine

DOCUMENT = "claim-actions"

_WHITESPACE = re.compile(r"\s+")


def mask_account_number(account_number: str) -> str:
    """Return ``****`` followed by the last four characters of *account_number*."""
    cleaned = _WHITESPACE.sub("", account_number)
    return "****" + cleaned[-4:]


def _sanitize(action: ClaimActionType, payload: dict[str, Any]) -> dict[str, Any]:
    clean = dict(payload)
    if action == ClaimActionType.WITHDRAW:
        raw = clean.pop("account_number", None)
        if raw is not None:
            clean["masked_account"] = mask_account_number(str(raw))
    return clean


class ClaimActionService:
    """Appends and lists action records."""

    def __init__(self, engine: ClaimEngine) -> None:
        self._engine = engine

    async def append(
        self,
        lookup_key: str,
        action: ClaimActionType,
        payload: dict[str, Any] | None = None,
        logs: list[str] | None = None,
    ) -> str:
        """Append an action record.

        Does not consult the ledger; intent is recorded even for actions that
        do not redeem the claim.

        Returns:
            The new action ID.
        """
        record = ClaimActionRecord(
            id=uuid.uuid4().hex,
            lookup_key=lookup_key,
            action=action,
            created_at=datetime.now(tz=UTC).isoformat(),
            payload=_sanitize(action, payload or {}),
            logs=list(logs or []),
        )
        actions = self._engine.store.load(DOCUMENT, {})
        actions[record.id] = record.to_dict()
        self._engine.store.save(DOCUMENT, actions)
        return record.id

    async def list_for(self, lookup_key: str) -> list[ClaimActionRecord]:
        """All actions recorded for *lookup_key*, oldest first."""
        actions = self._engine.store.load(DOCUMENT, {})
        records = [
            ClaimActionRecord.from_dict(data)
            for data in actions.values()
            if data.get("lookup_key") == lookup_key
        ]
        records.sort(key=lambda r: r.created_at)
        return records
