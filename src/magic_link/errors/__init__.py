"""Error types for the magic-link service."""

from __future__ import annotations

from magic_link.errors.claim_errors import (
    ClaimError,
    ClaimValidationError,
    NotificationError,
    RateLimitedError,
)
from magic_link.errors.mover_errors import MoverError, MoverUnavailableError

__all__ = [
    "ClaimError",
    "ClaimValidationError",
    "MoverError",
    "MoverUnavailableError",
    "NotificationError",
    "RateLimitedError",
]
