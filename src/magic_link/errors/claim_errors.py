"""ClaimError — base exception class for all magic-link errors."""

from __future__ import annotations


class ClaimError(Exception):
    """Base error for all claim operations.

    Attributes:
        message: Human-readable error description.
        status_code: Suggested HTTP status code.
        code: Machine-readable error code string.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 500,
        code: str = "claim-error",
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class ClaimValidationError(ClaimError):
    """Malformed recipient, amount, currency, or action payload."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400, code="validation-error")


class RateLimitedError(ClaimError):
    """Caller exceeded its fixed-window budget."""

    def __init__(self, message: str, *, retry_after_ms: int) -> None:
        super().__init__(message, status_code=429, code="rate-limited")
        self.retry_after_ms = retry_after_ms

    @property
    def retry_after_seconds(self) -> int:
        """Retry-After header value, rounded up to whole seconds."""
        return max(1, -(-self.retry_after_ms // 1000))


class NotificationError(ClaimError):
    """Recipient notification could not be delivered."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=502, code="notification-failed")
