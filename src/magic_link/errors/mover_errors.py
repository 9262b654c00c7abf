"""Funds mover errors."""

from __future__ import annotations

from magic_link.errors.claim_errors import ClaimError


class MoverError(ClaimError):
    """Error raised by a funds mover backend (transfer or wallet creation)."""

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message, status_code=status_code, code="mover-error")


class MoverUnavailableError(ClaimError):
    """The funds mover failed or timed out; the operation is safe to retry."""

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message, status_code=status_code, code="mover-unavailable")
