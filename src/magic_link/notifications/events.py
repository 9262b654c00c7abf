"""Event types for recipient notifications."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class ClaimNotificationEvent:
    """Tells a recipient that funds are waiting behind a claim link.

    ``kind`` is ``claim-created`` for a new send and ``claim-forwarded`` for a
    forwarded claim.
    """

    recipient: str
    claim_url: str
    amount: str
    currency: str
    kind: str = "claim-created"
    sender_name: str | None = None
    message: str | None = None
    expires_at: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict."""
        return asdict(self)
