"""Claim service — validated public surface over the claim ledger.

Implements the operations the HTTP layer exposes:
1. Create claim — validate, fund via the ledger, notify the recipient
2. Verify / redeem / forward a claim
3. Record recipient preference actions (keep, withdraw, cash-out, forward)
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import TYPE_CHECKING, Any

from magic_link.engine.models.asset import Currency, normalize_amount
from magic_link.engine.models.claim import ClaimStatus
from magic_link.engine.models.claim_action import ClaimActionType
from magic_link.engine.models.transaction import TransactionEventType
from magic_link.engine.services.claim_action_service import mask_account_number
from magic_link.errors.claim_errors import ClaimValidationError, NotificationError
from magic_link.errors.definitions import ErrClaimAlreadyRedeemed

if TYPE_CHECKING:
    from magic_link.engine.client import ClaimEngine
    from magic_link.engine.models.claim import ClaimView, ForwardResult, RedemptionResult

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_PHONE_RE = re.compile(r"^\+?[0-9 ()-]{7,20}$")
_DESTINATION_RE = re.compile(r"^[A-Za-z0-9:._-]{1,128}$")

_WITHDRAW_REQUIRED = ("full_name", "bank_name", "account_number")
_WITHDRAW_OPTIONAL = ("routing_number", "notes")
_CASHOUT_REQUIRED = ("full_name", "country")
_CASHOUT_OPTIONAL = ("city", "contact")

_ACTION_EVENTS = {
    ClaimActionType.KEEP: TransactionEventType.ACKNOWLEDGED,
    ClaimActionType.WITHDRAW: TransactionEventType.WITHDRAW_REQUEST,
    ClaimActionType.CASHOUT: TransactionEventType.CASHOUT_REQUEST,
}


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class ClaimService:
    """Validation, notification and action bookkeeping around the ledger."""

    def __init__(self, engine: ClaimEngine) -> None:
        self._engine = engine
        self._config = engine.config.claims

    # ------------------------------------------------------------------
    # Sender side
    # ------------------------------------------------------------------

    async def create_claim(
        self,
        recipient: str,
        amount: Any,
        currency: str,
        sender_name: str | None = None,
        message: str | None = None,
    ) -> dict[str, Any]:
        """Fund and issue a new claim, then notify the recipient.

        Args:
            recipient: Email address or phone number.
            amount: Positive decimal amount (string preferred).
            currency: One of USDC, PYUSD, XLM.
            sender_name: Optional display name of the sender.
            message: Optional note for the recipient.

        Returns:
            Dict with the token, claim URL, wallet address and expiry.

        Raises:
            ClaimValidationError: On malformed input.
            MoverUnavailableError: If funding failed.
        """
        recipient = self._validate_recipient(recipient)
        code = Currency.parse(currency) if isinstance(currency, str) else None
        if code is None:
            msg = f"unsupported currency: {currency!r}"
            raise ClaimValidationError(msg)
        normalized = normalize_amount(amount, self._engine.assets[code])
        if normalized is None:
            precision = self._engine.assets[code].precision
            msg = f"amount must be a positive number with at most {precision} decimals"
            raise ClaimValidationError(msg)
        sender_name = self._validate_text(
            sender_name, "sender_name", self._config.max_sender_name_length
        )
        message = self._validate_text(message, "message", self._config.max_message_length)

        issued = await self._engine.ledger.issue(
            recipient, normalized, code, sender_name=sender_name, message=message
        )
        record = issued.record
        notification_sent = await self._notify(
            recipient,
            issued.claim_url,
            normalized,
            str(code),
            {
                "kind": "claim-created",
                "sender_name": sender_name,
                "message": message,
                "expires_at": issued.expires_at.isoformat(),
            },
        )
        return {
            "token": issued.token,
            "claim_url": issued.claim_url,
            "lookup_key": issued.lookup_key,
            "wallet_address": record.wallet_address,
            "expires_at": issued.expires_at.isoformat(),
            "recipient": recipient,
            "amount": normalized,
            "currency": str(code),
            "transaction_id": record.funding_transaction_id,
            "mode": str(record.funding_mode),
            "explorer_url": record.explorer_url,
            "notification_sent": notification_sent,
        }

    # ------------------------------------------------------------------
    # Recipient side
    # ------------------------------------------------------------------

    async def verify_claim(self, token: str) -> ClaimView:
        """Return the pending claim behind *token* (read-only)."""
        return await self._engine.ledger.verify(self._validate_token(token))

    async def redeem_claim(self, token: str, destination: str | None = None) -> RedemptionResult:
        """Redeem *token* to *destination* (default: the claim wallet)."""
        token = self._validate_token(token)
        target = _clean(destination) or None
        if target is not None and not _DESTINATION_RE.match(target):
            msg = "destination must be a wallet address"
            raise ClaimValidationError(msg)
        return await self._engine.ledger.redeem_to_self(token, target)

    async def forward_claim(
        self,
        token: str,
        new_recipient: str,
        message: str | None = None,
        sender_name: str | None = None,
    ) -> ForwardResult:
        """Forward *token* to *new_recipient* and notify them.

        A failed notification does not undo the forward; the result reports
        ``notification_sent=False`` instead.
        """
        token = self._validate_token(token)
        new_recipient = self._validate_recipient(new_recipient)
        message = self._validate_text(message, "message", self._config.max_message_length)
        sender_name = self._validate_text(
            sender_name, "sender_name", self._config.max_sender_name_length
        )

        result = await self._engine.ledger.forward(
            token, new_recipient, message=message, sender_name=sender_name
        )
        notification_sent = await self._notify(
            new_recipient,
            result.claim_url,
            result.amount,
            str(result.currency),
            {
                "kind": "claim-forwarded",
                "sender_name": sender_name,
                "message": message,
                "expires_at": result.expires_at.isoformat(),
            },
        )
        return dataclasses.replace(result, notification_sent=notification_sent)

    async def record_preference_action(
        self,
        token: str,
        action: str,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Record what the recipient wants to do with the claim.

        ``keep``, ``withdraw`` and ``cashout`` are intent records: they stamp
        the claim as acknowledged and never redeem it.  ``forward`` performs a
        real forward to ``payload["recipient"]``.

        Raises:
            ClaimValidationError: Unknown action or missing payload fields.
            ClaimError: ErrClaimNotFound or ErrClaimAlreadyRedeemed.
        """
        token = self._validate_token(token)
        action_type = self._parse_action(action)
        payload = payload if isinstance(payload, dict) else {}

        current = await self._engine.ledger.snapshot(token)
        if current.status != ClaimStatus.PENDING:
            raise ErrClaimAlreadyRedeemed

        if action_type == ClaimActionType.FORWARD:
            result = await self.forward_claim(
                token,
                _clean(payload.get("recipient")),
                message=_clean(payload.get("message")) or None,
            )
            self._count_action(action_type)
            return {
                "action": str(action_type),
                "action_id": result.action_id,
                "forward": result.to_dict(),
            }

        details = self._action_payload(action_type, payload)
        view = await self._engine.ledger.acknowledge(token)
        details.update({"amount": view.amount, "currency": str(view.currency)})

        action_id = await self._engine.actions.append(
            view.lookup_key, action_type, details, self._action_logs(action_type, view, details)
        )
        event_data: dict[str, Any] = {"action_id": action_id, "recipient": view.recipient}
        if action_type == ClaimActionType.WITHDRAW:
            event_data["bank_name"] = details["bank_name"]
            event_data["masked_account"] = mask_account_number(details["account_number"])
        elif action_type == ClaimActionType.CASHOUT:
            event_data["country"] = details["country"]
        await self._engine.transactions.append_event(
            view.lookup_key, _ACTION_EVENTS[action_type], event_data
        )
        self._count_action(action_type)

        return {
            "action": str(action_type),
            "action_id": action_id,
            "lookup_key": view.lookup_key,
            "status": str(view.status),
            "acknowledged_at": view.to_dict()["last_acknowledged_at"],
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _notify(
        self,
        recipient: str,
        claim_url: str,
        amount: str,
        currency: str,
        context: dict[str, Any],
    ) -> bool:
        try:
            await self._engine.notifier.notify(recipient, claim_url, amount, currency, context)
        except NotificationError as exc:
            logger.warning("Recipient notification not sent: %s", exc.message)
            return False
        return True

    def _count_action(self, action: ClaimActionType) -> None:
        if self._engine.metrics is not None:
            self._engine.metrics.record_action(str(action))

    @staticmethod
    def _parse_action(action: str) -> ClaimActionType:
        try:
            parsed = ClaimActionType(_clean(action).lower())
        except ValueError:
            parsed = None
        if parsed is None or parsed == ClaimActionType.CLAIM:
            msg = f"unsupported action: {action!r}"
            raise ClaimValidationError(msg)
        return parsed

    @staticmethod
    def _action_payload(action: ClaimActionType, payload: dict[str, Any]) -> dict[str, Any]:
        if action == ClaimActionType.KEEP:
            return {}
        if action == ClaimActionType.WITHDRAW:
            required, optional = _WITHDRAW_REQUIRED, _WITHDRAW_OPTIONAL
            msg = "full_name, bank_name and account_number are required"
        else:
            required, optional = _CASHOUT_REQUIRED, _CASHOUT_OPTIONAL
            msg = "full_name and country are required"

        details = {name: _clean(payload.get(name)) for name in required}
        if not all(details.values()):
            raise ClaimValidationError(msg)
        for name in optional:
            value = _clean(payload.get(name))
            if value:
                details[name] = value
        return details

    @staticmethod
    def _action_logs(
        action: ClaimActionType,
        view: ClaimView,
        details: dict[str, Any],
    ) -> list[str]:
        if action == ClaimActionType.KEEP:
            return [f"Recipient {view.recipient} acknowledged the claim without withdrawing."]
        if action == ClaimActionType.WITHDRAW:
            return [
                f"Bank withdrawal of {view.amount} {view.currency} requested to "
                f"{details['bank_name']} for {details['full_name']}.",
            ]
        return [
            f"Cash-out of {view.amount} {view.currency} requested in {details['country']} "
            f"for {details['full_name']}.",
        ]

    @staticmethod
    def _validate_token(token: Any) -> str:
        cleaned = _clean(token)
        if not cleaned:
            msg = "token is required"
            raise ClaimValidationError(msg)
        return cleaned

    @staticmethod
    def _validate_recipient(recipient: Any) -> str:
        cleaned = _clean(recipient)
        if not cleaned:
            msg = "recipient is required"
            raise ClaimValidationError(msg)
        if "@" in cleaned:
            if not _EMAIL_RE.match(cleaned):
                msg = "recipient email address is invalid"
                raise ClaimValidationError(msg)
            return cleaned.lower()
        if not _PHONE_RE.match(cleaned):
            msg = "recipient must be an email address or phone number"
            raise ClaimValidationError(msg)
        return cleaned

    @staticmethod
    def _validate_text(value: Any, field: str, max_length: int) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            msg = f"{field} must be a string"
            raise ClaimValidationError(msg)
        cleaned = value.strip()
        if len(cleaned) > max_length:
            msg = f"{field} must be at most {max_length} characters"
            raise ClaimValidationError(msg)
        return cleaned or None
