"""V1 API request/response Pydantic schemas.

These are the *API-layer* schemas: thin wrappers that define the HTTP
contract.  Endpoint code maps between engine dataclasses and these schemas.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime
from typing import Any

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Generic
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error body: ``{"code": "...", "message": "..."}``."""

    code: str
    message: str


# ---------------------------------------------------------------------------
# Claims
# ---------------------------------------------------------------------------


class CreateClaimRequest(BaseModel):
    """POST /api/v1/claims — fund and issue a claim link."""

    recipient: str
    amount: str | int
    currency: str
    sender_name: str | None = None
    message: str | None = None


class CreateClaimResponse(BaseModel):
    """Issued claim; ``token`` and ``claim_url`` are shown only here."""

    token: str
    claim_url: str
    lookup_key: str
    wallet_address: str
    expires_at: datetime
    recipient: str
    amount: str
    currency: str
    transaction_id: str | None = None
    mode: str
    explorer_url: str | None = None
    notification_sent: bool


class TokenRequest(BaseModel):
    """Body carrying a claim token."""

    token: str = Field(min_length=1)


class RedeemClaimRequest(TokenRequest):
    """POST /api/v1/claims/redeem."""

    destination: str | None = None


class ForwardClaimRequest(TokenRequest):
    """POST /api/v1/claims/forward."""

    recipient: str
    message: str | None = None
    sender_name: str | None = None


class ClaimActionRequest(TokenRequest):
    """POST /api/v1/claims/actions."""

    action: str
    payload: dict[str, Any] = Field(default_factory=dict)


class ClaimViewResponse(BaseModel):
    """Public view of a claim (no token, no wallet credential)."""

    lookup_key: str
    recipient: str
    amount: str
    currency: str
    status: str
    wallet_address: str
    created_at: datetime
    expires_at: datetime
    funding_mode: str
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


class RedemptionResponse(BaseModel):
    """Result of redeeming a claim."""

    lookup_key: str
    transaction_id: str
    mode: str
    destination: str
    amount: str
    currency: str
    redeemed_at: datetime
    explorer_url: str | None = None


class ForwardResponse(BaseModel):
    """Result of forwarding a claim."""

    original_lookup_key: str
    token: str
    lookup_key: str
    claim_url: str
    expires_at: datetime
    recipient: str
    wallet_address: str
    amount: str
    currency: str
    transaction_id: str
    mode: str
    explorer_url: str | None = None
    action_id: str | None = None
    notification_sent: bool = False


# ---------------------------------------------------------------------------
# Transaction history
# ---------------------------------------------------------------------------


class TransactionEvent(BaseModel):
    """Timeline event on a history entry."""

    type: str
    timestamp: datetime
    data: dict[str, Any] = Field(default_factory=dict)


class TransactionResponse(BaseModel):
    """History entry for one send or forward."""

    id: str
    lookup_key: str
    recipient: str
    amount: str
    currency: str
    status: str
    payment_mode: str
    created_at: datetime
    updated_at: datetime
    wallet_address: str = ""
    transaction_id: str | None = None
    sender_name: str | None = None
    explorer_url: str | None = None
    claimed_at: datetime | None = None
    claim_transaction_id: str | None = None
    claimed_by: str | None = None
    failure_reason: str | None = None
    events: list[TransactionEvent] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------


class PaymentModeRequest(BaseModel):
    """POST /api/v1/system/payment-mode — switch the funds mover."""

    mode: str | bool


class PaymentModeResponse(BaseModel):
    """Active funds mover configuration."""

    mode: str
    is_simulated: bool
    treasury_configured: bool
    explorer_enabled: bool
    available_modes: list[str]
    updated_at: datetime | None = None
