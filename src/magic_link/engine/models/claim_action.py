"""Claim action record — append-only audit of recipient intent."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class ClaimActionType(enum.StrEnum):
    """Recipient actions recorded in the action log."""

    CLAIM = "claim"
    KEEP = "keep"
    WITHDRAW = "withdraw"
    CASHOUT = "cashout"
    FORWARD = "forward"


@dataclass(frozen=True)
class ClaimActionRecord:
    """One recorded action.  Never mutated after creation.

    Attributes:
        id: Unique action ID (hex).
        lookup_key: Lookup key of the claim the action refers to.
        action: Action type.
        created_at: ISO-8601 UTC timestamp.
        payload: Action-specific data; account numbers are already masked.
        logs: Human-readable lines for support tooling.
    """

    id: str
    lookup_key: str
    action: ClaimActionType
    created_at: str
    payload: dict[str, Any] = field(default_factory=dict)
    logs: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClaimActionRecord:
        """Create a record from its persisted form."""
        return cls(
            id=data["id"],
            lookup_key=data["lookup_key"],
            action=ClaimActionType(data["action"]),
            created_at=data.get("created_at", ""),
            payload=dict(data.get("payload", {})),
            logs=list(data.get("logs", [])),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "id": self.id,
            "lookup_key": self.lookup_key,
            "action": str(self.action),
            "created_at": self.created_at,
            "payload": dict(self.payload),
            "logs": list(self.logs),
        }
