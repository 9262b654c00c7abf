"""ClaimRecord model — one per issued magic link.

A record moves ``pending -> redeemed`` exactly once.  ``claimed_by`` is set
if and only if the record is redeemed; a forwarded record carries
``forward:<new recipient>`` there.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from magic_link.config.settings import ExecutionMode
from magic_link.engine.models.asset import Currency

FORWARD_MARKER = "forward:"


class ClaimStatus(enum.StrEnum):
    """Lifecycle state of a claim record."""

    PENDING = "pending"
    REDEEMED = "redeemed"


def _parse_dt(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _format_dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass
class ClaimRecord:
    """A token-addressed claim on funds held in a dedicated wallet.

    Attributes:
        lookup_key: Hex SHA-256 of the secret token (store key).
        secret_token: Raw token; kept in memory only, never persisted.
        wallet_address: Address of the wallet holding the funds.
        wallet_credential: Opaque credential for moving funds out of the wallet.
        recipient: Email or phone of the intended recipient.
        amount: Decimal amount as a string.
        currency: Currency of the funds.
        status: pending or redeemed.
        created_at: Creation time (UTC).
        expires_at: Time after which the record is unusable.
        redeemed_at: Redemption time, set with ``claimed_by``.
        funding_transaction_id: Transfer that funded the wallet.
        funding_mode: Execution mode of the funding transfer.
        explorer_url: Explorer link for the funding transfer, if any.
        sender_name: Optional sender display name.
        message: Optional free-text message.
        claimed_by: Final destination, or ``forward:<recipient>``.
        forward_history: Recipients this record was forwarded to.
        forwarded_from: Lookup key of the parent record, for forwarded claims.
        last_acknowledged_at: Last preference action on this record.
        asset_type: Asset type from the registry.
        asset_issuer: Asset issuer from the registry.
    """

    lookup_key: str
    wallet_address: str
    wallet_credential: str
    recipient: str
    amount: str
    currency: Currency
    created_at: datetime
    expires_at: datetime
    secret_token: str = ""
    status: ClaimStatus = ClaimStatus.PENDING
    redeemed_at: datetime | None = None
    funding_transaction_id: str | None = None
    funding_mode: ExecutionMode = ExecutionMode.SIMULATED
    explorer_url: str | None = None
    sender_name: str | None = None
    message: str | None = None
    claimed_by: str | None = None
    forward_history: list[str] = field(default_factory=list)
    forwarded_from: str | None = None
    last_acknowledged_at: datetime | None = None
    asset_type: str = ""
    asset_issuer: str = ""

    @property
    def is_pending(self) -> bool:
        """Whether the record has not been redeemed yet."""
        return self.status == ClaimStatus.PENDING

    def is_expired(self, now: datetime | None = None) -> bool:
        """Whether *now* is past ``expires_at``."""
        return (now or datetime.now(tz=UTC)) > self.expires_at

    def mark_redeemed(self, claimed_by: str, at: datetime | None = None) -> None:
        """Flip the record to redeemed.

        Raises:
            ValueError: If the record is already redeemed.
        """
        if self.status == ClaimStatus.REDEEMED:
            msg = f"claim {self.lookup_key[:12]} is already redeemed"
            raise ValueError(msg)
        self.status = ClaimStatus.REDEEMED
        self.claimed_by = claimed_by
        self.redeemed_at = at or datetime.now(tz=UTC)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClaimRecord:
        """Create a ClaimRecord from its persisted form."""
        return cls(
            lookup_key=data["lookup_key"],
            secret_token=data.get("secret_token", ""),
            wallet_address=data.get("wallet_address", ""),
            wallet_credential=data.get("wallet_credential", ""),
            recipient=data.get("recipient", ""),
            amount=str(data.get("amount", "0")),
            currency=Currency(data.get("currency", Currency.USDC)),
            status=ClaimStatus(data.get("status", ClaimStatus.PENDING)),
            created_at=_parse_dt(data["created_at"]),  # type: ignore[arg-type]
            expires_at=_parse_dt(data["expires_at"]),  # type: ignore[arg-type]
            redeemed_at=_parse_dt(data.get("redeemed_at")),
            funding_transaction_id=data.get("funding_transaction_id"),
            funding_mode=ExecutionMode(data.get("funding_mode", ExecutionMode.SIMULATED)),
            explorer_url=data.get("explorer_url"),
            sender_name=data.get("sender_name"),
            message=data.get("message"),
            claimed_by=data.get("claimed_by"),
            forward_history=list(data.get("forward_history", [])),
            forwarded_from=data.get("forwarded_from"),
            last_acknowledged_at=_parse_dt(data.get("last_acknowledged_at")),
            asset_type=data.get("asset_type", ""),
            asset_issuer=data.get("asset_issuer", ""),
        )

    def to_dict(self, *, include_secret: bool = False) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict.

        Args:
            include_secret: Include the raw token.  The persisted form never
                includes it.
        """
        data: dict[str, Any] = {
            "lookup_key": self.lookup_key,
            "wallet_address": self.wallet_address,
            "wallet_credential": self.wallet_credential,
            "recipient": self.recipient,
            "amount": self.amount,
            "currency": str(self.currency),
            "status": str(self.status),
            "created_at": _format_dt(self.created_at),
            "expires_at": _format_dt(self.expires_at),
            "redeemed_at": _format_dt(self.redeemed_at),
            "funding_transaction_id": self.funding_transaction_id,
            "funding_mode": str(self.funding_mode),
            "explorer_url": self.explorer_url,
            "sender_name": self.sender_name,
            "message": self.message,
            "claimed_by": self.claimed_by,
            "forward_history": list(self.forward_history),
            "forwarded_from": self.forwarded_from,
            "last_acknowledged_at": _format_dt(self.last_acknowledged_at),
            "asset_type": self.asset_type,
            "asset_issuer": self.asset_issuer,
        }
        if include_secret:
            data["secret_token"] = self.secret_token
        return data


# ---------------------------------------------------------------------------
# Views and results handed to callers outside the ledger
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClaimView:
    """Read-only projection of a claim record.

    Carries neither the secret token nor the wallet credential.
    """

    lookup_key: str
    recipient: str
    amount: str
    currency: Currency
    status: ClaimStatus
    wallet_address: str
    created_at: datetime
    expires_at: datetime
    funding_mode: ExecutionMode
    funding_transaction_id: str | None = None
    explorer_url: str | None = None
    sender_name: str | None = None
    message: str | None = None
    redeemed_at: datetime | None = None
    claimed_by: str | None = None
    forwarded_from: str | None = None
    last_acknowledged_at: datetime | None = None
    asset_type: str = ""
    asset_issuer: str = ""

    @classmethod
    def from_record(cls, record: ClaimRecord) -> ClaimView:
        """Project a record into a view."""
        return cls(
            lookup_key=record.lookup_key,
            recipient=record.recipient,
            amount=record.amount,
            currency=record.currency,
            status=record.status,
            wallet_address=record.wallet_address,
            created_at=record.created_at,
            expires_at=record.expires_at,
            funding_mode=record.funding_mode,
            funding_transaction_id=record.funding_transaction_id,
            explorer_url=record.explorer_url,
            sender_name=record.sender_name,
            message=record.message,
            redeemed_at=record.redeemed_at,
            claimed_by=record.claimed_by,
            forwarded_from=record.forwarded_from,
            last_acknowledged_at=record.last_acknowledged_at,
            asset_type=record.asset_type,
            asset_issuer=record.asset_issuer,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "lookup_key": self.lookup_key,
            "recipient": self.recipient,
            "amount": self.amount,
            "currency": str(self.currency),
            "status": str(self.status),
            "wallet_address": self.wallet_address,
            "created_at": _format_dt(self.created_at),
            "expires_at": _format_dt(self.expires_at),
            "funding_mode": str(self.funding_mode),
            "funding_transaction_id": self.funding_transaction_id,
            "explorer_url": self.explorer_url,
            "sender_name": self.sender_name,
            "message": self.message,
            "redeemed_at": _format_dt(self.redeemed_at),
            "claimed_by": self.claimed_by,
            "forwarded_from": self.forwarded_from,
            "last_acknowledged_at": _format_dt(self.last_acknowledged_at),
            "asset_type": self.asset_type,
            "asset_issuer": self.asset_issuer,
        }


@dataclass(frozen=True)
class IssuedClaim:
    """A freshly created claim, including the token shown once to the sender."""

    token: str
    lookup_key: str
    claim_url: str
    expires_at: datetime
    record: ClaimRecord


@dataclass(frozen=True)
class RedemptionResult:
    """Outcome of a successful redeem-to-self."""

    lookup_key: str
    transaction_id: str
    mode: ExecutionMode
    destination: str
    amount: str
    currency: Currency
    redeemed_at: datetime
    explorer_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "lookup_key": self.lookup_key,
            "transaction_id": self.transaction_id,
            "mode": str(self.mode),
            "destination": self.destination,
            "amount": self.amount,
            "currency": str(self.currency),
            "redeemed_at": _format_dt(self.redeemed_at),
            "explorer_url": self.explorer_url,
        }


@dataclass(frozen=True)
class ForwardResult:
    """Outcome of a successful forward: the new chained claim."""

    original_lookup_key: str
    token: str
    lookup_key: str
    claim_url: str
    expires_at: datetime
    recipient: str
    wallet_address: str
    amount: str
    currency: Currency
    transaction_id: str
    mode: ExecutionMode
    explorer_url: str | None = None
    action_id: str | None = None
    notification_sent: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict (includes the new claim URL)."""
        return {
            "original_lookup_key": self.original_lookup_key,
            "token": self.token,
            "lookup_key": self.lookup_key,
            "claim_url": self.claim_url,
            "expires_at": _format_dt(self.expires_at),
            "recipient": self.recipient,
            "wallet_address": self.wallet_address,
            "amount": self.amount,
            "currency": str(self.currency),
            "transaction_id": self.transaction_id,
            "mode": str(self.mode),
            "explorer_url": self.explorer_url,
            "action_id": self.action_id,
            "notification_sent": self.notification_sent,
        }
