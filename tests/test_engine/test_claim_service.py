"""Tests for ClaimService — validation, notification and preference actions."""

from __future__ import annotations

import pytest

from magic_link.engine.client import ClaimEngine
from magic_link.engine.models import ClaimActionType, ClaimStatus, TransactionStatus
from magic_link.errors.claim_errors import ClaimError, ClaimValidationError
from magic_link.errors.definitions import ErrClaimAlreadyRedeemed, ErrClaimNotFound

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _create(engine: ClaimEngine, **overrides) -> dict:
    fields = {
        "recipient": "alice@example.com",
        "amount": "100",
        "currency": "USDC",
    }
    fields.update(overrides)
    return await engine.claims.create_claim(**fields)


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class TestCreateClaim:
    async def test_create_returns_link(self, engine: ClaimEngine) -> None:
        created = await _create(engine, sender_name="Sam", message="lunch")

        assert created["claim_url"] == f"https://pay.example.com/claim/{created['token']}"
        assert created["recipient"] == "alice@example.com"
        assert created["amount"] == "100"
        assert created["currency"] == "USDC"
        assert created["mode"] == "simulated"
        assert created["wallet_address"].startswith("G")
        assert created["transaction_id"]
        assert created["notification_sent"] is True

        view = await engine.claims.verify_claim(created["token"])
        assert view.sender_name == "Sam"
        assert view.message == "lunch"

    async def test_notification_carries_link(self, engine: ClaimEngine) -> None:
        created = await _create(engine, sender_name="Sam")
        [event] = engine.notifier.sent
        assert event.recipient == "alice@example.com"
        assert event.claim_url == created["claim_url"]
        assert event.kind == "claim-created"
        assert event.sender_name == "Sam"

    async def test_email_is_lowercased(self, engine: ClaimEngine) -> None:
        created = await _create(engine, recipient="  Alice@Example.COM ")
        assert created["recipient"] == "alice@example.com"

    async def test_phone_recipient_is_not_notified(self, engine: ClaimEngine) -> None:
        created = await _create(engine, recipient="+1 (555) 010-9999")
        assert created["recipient"] == "+1 (555) 010-9999"
        assert created["notification_sent"] is False

    async def test_currency_is_case_insensitive(self, engine: ClaimEngine) -> None:
        created = await _create(engine, currency="xlm", amount="0.1234567")
        assert created["currency"] == "XLM"
        assert created["amount"] == "0.1234567"

    async def test_metrics(self, engine: ClaimEngine) -> None:
        await _create(engine)
        value = engine.metrics.registry.get_sample_value(
            "magiclink_claims_created_total", {"currency": "USDC", "mode": "simulated"}
        )
        assert value == 1.0

    @pytest.mark.parametrize(
        ("overrides", "message"),
        [
            ({"recipient": ""}, "recipient is required"),
            ({"recipient": "not an address"}, "email address or phone"),
            ({"recipient": "bob@nowhere"}, "email address is invalid"),
            ({"currency": "BTC"}, "unsupported currency"),
            ({"amount": "0"}, "positive number"),
            ({"amount": "-3"}, "positive number"),
            ({"amount": "1.234"}, "at most 2 decimals"),
            ({"amount": "lots"}, "positive number"),
            ({"sender_name": "x" * 81}, "sender_name must be at most 80"),
            ({"message": "x" * 281}, "message must be at most 280"),
        ],
    )
    async def test_validation(self, engine: ClaimEngine, overrides: dict, message: str) -> None:
        with pytest.raises(ClaimValidationError, match=message):
            await _create(engine, **overrides)
        assert engine.ledger.counts() == (0, 0)
        assert await engine.transactions.list() == []


# ---------------------------------------------------------------------------
# Verify / redeem / forward
# ---------------------------------------------------------------------------


class TestRecipientOperations:
    async def test_blank_token_rejected(self, engine: ClaimEngine) -> None:
        with pytest.raises(ClaimValidationError, match="token is required"):
            await engine.claims.verify_claim("   ")

    async def test_redeem(self, engine: ClaimEngine) -> None:
        created = await _create(engine)
        result = await engine.claims.redeem_claim(created["token"], " GDEST ")
        assert result.destination == "GDEST"
        entry = await engine.transactions.get(created["lookup_key"])
        assert entry.status == TransactionStatus.CLAIMED

    async def test_redeem_without_destination(self, engine: ClaimEngine) -> None:
        created = await _create(engine)
        result = await engine.claims.redeem_claim(created["token"], "")
        assert result.destination == created["wallet_address"]

    async def test_redeem_rejects_bad_destination(self, engine: ClaimEngine) -> None:
        created = await _create(engine)
        with pytest.raises(ClaimValidationError, match="wallet address"):
            await engine.claims.redeem_claim(created["token"], "G DEST; rm -rf")
        assert (await engine.claims.verify_claim(created["token"])).status == ClaimStatus.PENDING

    async def test_forward_notifies_new_recipient(self, engine: ClaimEngine) -> None:
        created = await _create(engine, sender_name="Sam")
        result = await engine.claims.forward_claim(
            created["token"], "Bob@Example.com", message="for you"
        )

        assert result.recipient == "bob@example.com"
        assert result.notification_sent is True
        event = engine.notifier.sent[-1]
        assert event.kind == "claim-forwarded"
        assert event.recipient == "bob@example.com"
        assert event.claim_url == result.claim_url
        assert event.message == "for you"

    async def test_forward_to_phone_still_forwards(self, engine: ClaimEngine) -> None:
        created = await _create(engine)
        result = await engine.claims.forward_claim(created["token"], "+15550109999")
        assert result.notification_sent is False
        assert (await engine.claims.verify_claim(result.token)).recipient == "+15550109999"

    async def test_forward_validates_recipient(self, engine: ClaimEngine) -> None:
        created = await _create(engine)
        with pytest.raises(ClaimValidationError):
            await engine.claims.forward_claim(created["token"], "nobody")
        assert (await engine.claims.verify_claim(created["token"])).status == ClaimStatus.PENDING


# ---------------------------------------------------------------------------
# Preference actions
# ---------------------------------------------------------------------------


class TestPreferenceActions:
    async def test_keep(self, engine: ClaimEngine) -> None:
        created = await _create(engine)
        result = await engine.claims.record_preference_action(created["token"], "keep")

        assert result["action"] == "keep"
        assert result["status"] == "pending"
        assert result["acknowledged_at"] is not None
        assert result["lookup_key"] == created["lookup_key"]

        view = await engine.claims.verify_claim(created["token"])
        assert view.status == ClaimStatus.PENDING
        [action] = await engine.actions.list_for(created["lookup_key"])
        assert action.id == result["action_id"]
        assert action.action == ClaimActionType.KEEP
        entry = await engine.transactions.get(created["lookup_key"])
        assert entry.events[-1]["type"] == "acknowledged"

    async def test_withdraw_masks_account(self, engine: ClaimEngine) -> None:
        created = await _create(engine)
        payload = {
            "full_name": "Alice A",
            "bank_name": "First Bank",
            "account_number": "12 3456 7890",
            "routing_number": "021000021",
        }
        result = await engine.claims.record_preference_action(
            created["token"], "WITHDRAW", payload
        )

        [action] = await engine.actions.list_for(created["lookup_key"])
        assert action.id == result["action_id"]
        assert action.payload["masked_account"] == "****7890"
        assert "account_number" not in action.payload
        assert action.payload["routing_number"] == "021000021"
        assert action.payload["amount"] == "100"

        entry = await engine.transactions.get(created["lookup_key"])
        assert entry.events[-1]["type"] == "withdraw-request"
        assert entry.events[-1]["data"]["masked_account"] == "****7890"
        assert entry.events[-1]["data"]["bank_name"] == "First Bank"
        assert entry.status == TransactionStatus.SENT

    async def test_withdraw_requires_fields(self, engine: ClaimEngine) -> None:
        created = await _create(engine)
        with pytest.raises(ClaimValidationError, match="account_number are required"):
            await engine.claims.record_preference_action(
                created["token"], "withdraw", {"full_name": "Alice", "bank_name": "Bank"}
            )
        assert await engine.actions.list_for(created["lookup_key"]) == []

    async def test_cashout(self, engine: ClaimEngine) -> None:
        created = await _create(engine)
        await engine.claims.record_preference_action(
            created["token"], "cashout", {"full_name": "Alice", "country": "MX", "city": "CDMX"}
        )
        [action] = await engine.actions.list_for(created["lookup_key"])
        assert action.payload["city"] == "CDMX"
        entry = await engine.transactions.get(created["lookup_key"])
        assert entry.events[-1]["type"] == "cashout-request"
        assert entry.events[-1]["data"]["country"] == "MX"

    async def test_cashout_requires_country(self, engine: ClaimEngine) -> None:
        created = await _create(engine)
        with pytest.raises(ClaimValidationError, match="country are required"):
            await engine.claims.record_preference_action(
                created["token"], "cashout", {"full_name": "Alice"}
            )

    async def test_forward_action(self, engine: ClaimEngine) -> None:
        created = await _create(engine)
        result = await engine.claims.record_preference_action(
            created["token"], "forward", {"recipient": "bob@example.com", "message": "yours"}
        )

        assert result["action"] == "forward"
        forward = result["forward"]
        assert forward["recipient"] == "bob@example.com"
        assert forward["notification_sent"] is True
        assert result["action_id"] == forward["action_id"]
        with pytest.raises(ClaimError) as exc_info:
            await engine.claims.verify_claim(created["token"])
        assert exc_info.value is ErrClaimNotFound
        assert (await engine.claims.verify_claim(forward["token"])).message == "yours"

    @pytest.mark.parametrize("action", ["claim", "explode", ""])
    async def test_unsupported_action(self, engine: ClaimEngine, action: str) -> None:
        created = await _create(engine)
        with pytest.raises(ClaimValidationError, match="unsupported action"):
            await engine.claims.record_preference_action(created["token"], action)

    async def test_action_on_redeemed_claim(self, engine: ClaimEngine) -> None:
        created = await _create(engine)
        await engine.claims.redeem_claim(created["token"])
        with pytest.raises(ClaimError) as exc_info:
            await engine.claims.record_preference_action(
                created["token"], "withdraw", {"full_name": "x"}
            )
        assert exc_info.value is ErrClaimAlreadyRedeemed

    async def test_action_on_unknown_claim(self, engine: ClaimEngine) -> None:
        with pytest.raises(ClaimError) as exc_info:
            await engine.claims.record_preference_action("missing-token", "keep")
        assert exc_info.value is ErrClaimNotFound

    async def test_action_metrics(self, engine: ClaimEngine) -> None:
        created = await _create(engine)
        await engine.claims.record_preference_action(created["token"], "keep")
        value = engine.metrics.registry.get_sample_value(
            "magiclink_claim_actions_total", {"action": "keep"}
        )
        assert value == 1.0
