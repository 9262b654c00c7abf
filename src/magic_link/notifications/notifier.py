"""Recipient notifiers — log-only and webhook relay.

Only email recipients are deliverable; anything else raises
:class:`~magic_link.errors.NotificationError`.  Callers treat every
notification failure as non-fatal.
"""

from __future__ import annotations

import asyncio
from collections import deque
import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from magic_link.errors.claim_errors import NotificationError
from magic_link.notifications.events import ClaimNotificationEvent

if TYPE_CHECKING:
    from magic_link.config.settings import NotifierConfig

logger = logging.getLogger(__name__)

MAX_RETRIES = 2
RETRY_DELAY = 1.0  # seconds
_RECENT_EVENTS = 100


def redact_claim_url(claim_url: str) -> str:
    """Replace the token at the end of *claim_url* with a short prefix."""
    base, sep, token = claim_url.rpartition("/")
    if not sep or not token:
        return claim_url
    return f"{base}/{token[:4]}..."


def _require_email(recipient: str) -> None:
    if "@" not in recipient:
        msg = f"cannot notify non-email recipient {recipient[:3]}***"
        raise NotificationError(msg)


class Notifier(Protocol):
    """Protocol for recipient notification channels."""

    async def start(self) -> None: ...
    async def stop(self) -> None: ...
    async def notify(
        self,
        recipient: str,
        claim_url: str,
        amount: str,
        currency: str,
        context: dict[str, Any] | None = None,
    ) -> None: ...


class LogNotifier:
    """Writes the notification to the log instead of delivering it."""

    def __init__(self) -> None:
        self.sent: deque[ClaimNotificationEvent] = deque(maxlen=_RECENT_EVENTS)

    async def start(self) -> None:  # noqa: ASYNC910
        """No-op."""

    async def stop(self) -> None:  # noqa: ASYNC910
        """No-op."""

    async def notify(  # noqa: ASYNC910
        self,
        recipient: str,
        claim_url: str,
        amount: str,
        currency: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log the notification with the token redacted."""
        _require_email(recipient)
        event = _build_event(recipient, claim_url, amount, currency, context)
        self.sent.append(event)
        logger.info(
            "Notify %s: %s %s waiting at %s",
            recipient,
            amount,
            currency,
            redact_claim_url(claim_url),
        )


class WebhookNotifier:
    """POSTs notification events to a mail relay with retries."""

    def __init__(self, config: NotifierConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None

    @property
    def url(self) -> str:
        """Return the relay URL."""
        return self._config.webhook_url

    async def start(self) -> None:  # noqa: ASYNC910
        """Create the HTTP client."""
        headers: dict[str, str] = {}
        if self._config.webhook_token:
            headers["Authorization"] = f"Bearer {self._config.webhook_token}"
        self._client = httpx.AsyncClient(timeout=self._config.timeout_seconds, headers=headers)

    async def stop(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def notify(
        self,
        recipient: str,
        claim_url: str,
        amount: str,
        currency: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Deliver the event to the relay.

        Raises:
            NotificationError: If the recipient is not an email address, the
                notifier is not started, or every attempt failed.
        """
        _require_email(recipient)
        if self._client is None:
            msg = "Webhook notifier not started"
            raise NotificationError(msg)

        event = _build_event(recipient, claim_url, amount, currency, context)
        for attempt in range(MAX_RETRIES + 1):
            try:
                resp = await self._client.post(self._config.webhook_url, json=event.to_dict())
                if resp.status_code < 400:
                    return
                logger.warning(
                    "Notification relay %s returned %d (attempt %d/%d)",
                    self._config.webhook_url,
                    resp.status_code,
                    attempt + 1,
                    MAX_RETRIES + 1,
                )
            except httpx.HTTPError as exc:
                logger.warning(
                    "Notification relay %s error: %s (attempt %d/%d)",
                    self._config.webhook_url,
                    exc,
                    attempt + 1,
                    MAX_RETRIES + 1,
                )
            if attempt < MAX_RETRIES:
                await asyncio.sleep(RETRY_DELAY)

        msg = f"notification relay unreachable after {MAX_RETRIES + 1} attempts"
        raise NotificationError(msg)


def _build_event(
    recipient: str,
    claim_url: str,
    amount: str,
    currency: str,
    context: dict[str, Any] | None,
) -> ClaimNotificationEvent:
    ctx = dict(context or {})
    return ClaimNotificationEvent(
        recipient=recipient,
        claim_url=claim_url,
        amount=amount,
        currency=currency,
        kind=ctx.pop("kind", "claim-created"),
        sender_name=ctx.pop("sender_name", None),
        message=ctx.pop("message", None),
        expires_at=ctx.pop("expires_at", None),
        context=ctx,
    )


def create_notifier(config: NotifierConfig) -> Notifier:
    """Build the notifier selected by ``config.engine``."""
    from magic_link.config.settings import NotifierEngine

    if config.engine == NotifierEngine.WEBHOOK:
        if not config.webhook_url:
            msg = "webhook notifier requires notifier.webhook_url"
            raise ValueError(msg)
        return WebhookNotifier(config)
    return LogNotifier()
