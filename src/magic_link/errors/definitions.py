"""Predefined error instances for the claim lifecycle."""

from __future__ import annotations

from magic_link.errors.claim_errors import ClaimError

# -- Claim -----------------------------------------------------------------

ErrClaimNotFound = ClaimError(
    "invalid or expired claim link", status_code=404, code="claim-not-found"
)
ErrClaimAlreadyRedeemed = ClaimError(
    "this claim has already been redeemed", status_code=400, code="claim-already-redeemed"
)
ErrClaimExpired = ClaimError("this claim link has expired", status_code=400, code="claim-expired")

# -- Transaction history ---------------------------------------------------

ErrTransactionNotFound = ClaimError(
    "transaction not found", status_code=404, code="transaction-not-found"
)

# -- Engine ----------------------------------------------------------------

ErrEngineUnavailable = ClaimError(
    "claim engine is not available", status_code=503, code="engine-unavailable"
)
