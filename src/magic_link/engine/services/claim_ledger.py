"""Claim ledger — the magic-link claim/redemption state machine.

The ledger owns every :class:`ClaimRecord` mutation.  Its in-memory index
(``lookup_key -> ClaimRecord``) is the source of truth; the durable store is
written synchronously inside each critical section.

Redemption protocol (redeem and forward):

1. Under the key lock, validate the record and reserve it.  A second caller
   that finds the key reserved is told it is already redeemed.
2. With the lock released, call the funds mover (bounded by its timeout).
3. Under the key lock again, re-check and commit.
4. Release the reservation.

Steps 2 to 4 run shielded from caller cancellation, so a disconnecting HTTP
client never aborts a commit whose transfer already went through.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from magic_link.engine.locks import KeyedLock
from magic_link.engine.models.claim import (
    FORWARD_MARKER,
    ClaimRecord,
    ClaimStatus,
    ClaimView,
    ForwardResult,
    IssuedClaim,
    RedemptionResult,
)
from magic_link.engine.models.claim_action import ClaimActionType
from magic_link.engine.models.transaction import TransactionEventType, TransactionStatus
from magic_link.errors.claim_errors import ClaimError
from magic_link.errors.definitions import (
    ErrClaimAlreadyRedeemed,
    ErrClaimExpired,
    ErrClaimNotFound,
)
from magic_link.errors.mover_errors import MoverUnavailableError
from magic_link.utils.crypto import generate_token, lookup_key

if TYPE_CHECKING:
    from magic_link.engine.client import ClaimEngine
    from magic_link.engine.models.asset import Currency
    from magic_link.mover.base import TransferResult

logger = logging.getLogger(__name__)

DOCUMENT = "magic-links"


def _now() -> datetime:
    return datetime.now(tz=UTC)


class ClaimLedger:
    """Creates, verifies and redeems magic-link claims exactly once."""

    def __init__(self, engine: ClaimEngine) -> None:
        self._engine = engine
        self._config = engine.config.claims
        self._records: dict[str, ClaimRecord] = {}
        self._locks = KeyedLock()
        self._in_flight: set[str] = set()

    # ------------------------------------------------------------------
    # Index lifecycle
    # ------------------------------------------------------------------

    def load(self) -> int:
        """Hydrate the index from the store.  Returns the number of records."""
        document = self._engine.store.load(DOCUMENT, {})
        records: dict[str, ClaimRecord] = {}
        for key, data in document.items():
            try:
                records[key] = ClaimRecord.from_dict(data)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable claim record %s: %s", key[:12], exc)
        self._records = records
        logger.info("Claim ledger loaded %d records", len(records))
        return len(records)

    def counts(self) -> tuple[int, int]:
        """Return (pending, redeemed) record counts."""
        pending = sum(1 for r in self._records.values() if r.is_pending)
        return pending, len(self._records) - pending

    def claim_url(self, token: str) -> str:
        """Public URL for *token*."""
        return f"{self._config.base_url.rstrip('/')}/claim/{token}"

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create(
        self,
        recipient: str,
        wallet_address: str,
        wallet_credential: str,
        amount: str,
        currency: Currency,
        *,
        funding: TransferResult | None = None,
        sender_name: str | None = None,
        message: str | None = None,
    ) -> IssuedClaim:
        """Persist a new pending claim for an already funded wallet.

        Returns:
            IssuedClaim with the token.  The token is shown to the caller once
            and never written to the store.
        """
        issued = self._build(
            recipient,
            wallet_address,
            wallet_credential,
            amount,
            currency,
            funding=funding,
            sender_name=sender_name,
            message=message,
        )
        async with self._locks.hold(issued.lookup_key):
            self._records[issued.lookup_key] = issued.record
            self._persist()
        logger.info("Claim %s created for %s %s", issued.lookup_key[:12], amount, currency)
        return issued

    async def issue(
        self,
        recipient: str,
        amount: str,
        currency: Currency,
        *,
        sender_name: str | None = None,
        message: str | None = None,
    ) -> IssuedClaim:
        """Fund a new claim wallet from the treasury and create the claim.

        Raises:
            MoverUnavailableError: If the wallet could not be created or
                funded.  A ``failed`` history entry is recorded and no claim
                exists afterwards.
        """
        movers = self._engine.movers
        try:
            wallet = await movers.create_wallet(recipient)
            funding = await movers.move(
                movers.treasury_credential, wallet.address, amount, currency
            )
        except MoverUnavailableError as exc:
            await self._engine.transactions.record(
                lookup_key=lookup_key(generate_token()),
                recipient=recipient,
                amount=amount,
                currency=str(currency),
                payment_mode=str(movers.mode),
                status=TransactionStatus.FAILED,
                sender_name=sender_name,
                failure_reason=exc.message,
            )
            raise

        issued = await self.create(
            recipient,
            wallet.address,
            wallet.credential,
            amount,
            currency,
            funding=funding,
            sender_name=sender_name,
            message=message,
        )
        await self._engine.transactions.record(
            lookup_key=issued.lookup_key,
            recipient=recipient,
            amount=amount,
            currency=str(currency),
            payment_mode=str(funding.mode),
            wallet_address=wallet.address,
            transaction_id=funding.transaction_id,
            sender_name=sender_name,
            explorer_url=funding.explorer_url,
        )
        if self._engine.metrics is not None:
            self._engine.metrics.record_claim_created(str(currency), str(funding.mode))
        return issued

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def verify(self, token: str) -> ClaimView:
        """Return the pending claim for *token*.

        Expired records are evicted as a side effect.

        Raises:
            ClaimError: ErrClaimNotFound if the token is unknown, redeemed or
                expired.
        """
        key = lookup_key(token)
        async with self._locks.hold(key):
            record = self._records.get(key)
            if record is None or not record.is_pending:
                raise ErrClaimNotFound
            if record.is_expired():
                if key not in self._in_flight:
                    self._evict(key)
                raise ErrClaimNotFound
            return ClaimView.from_record(record)

    async def snapshot(self, token: str) -> ClaimView:
        """Like :meth:`verify`, but also returns redeemed records.

        Raises:
            ClaimError: ErrClaimNotFound if the token is unknown or expired.
        """
        key = lookup_key(token)
        async with self._locks.hold(key):
            record = self._records.get(key)
            if record is None:
                raise ErrClaimNotFound
            if record.is_pending and record.is_expired():
                if key not in self._in_flight:
                    self._evict(key)
                raise ErrClaimNotFound
            return ClaimView.from_record(record)

    # ------------------------------------------------------------------
    # Redemption
    # ------------------------------------------------------------------

    async def redeem_to_self(self, token: str, destination: str | None = None) -> RedemptionResult:
        """Pay the claim out to *destination* (default: the claim wallet).

        Raises:
            ClaimError: ErrClaimNotFound, ErrClaimAlreadyRedeemed or
                ErrClaimExpired.
            MoverUnavailableError: If the transfer failed; the claim stays
                pending and the call can be retried.
        """
        key = lookup_key(token)
        record = await self._reserve(key)
        return await asyncio.shield(self._finish_redeem(key, record, destination))

    async def forward(
        self,
        token: str,
        new_recipient: str,
        *,
        message: str | None = None,
        sender_name: str | None = None,
    ) -> ForwardResult:
        """Move the claim's funds into a brand-new claim for *new_recipient*.

        The new claim gets a fresh full TTL.  It is persisted before the
        original is marked redeemed, so an interrupted forward leaves the
        original pending.

        Raises:
            ClaimError: ErrClaimNotFound, ErrClaimAlreadyRedeemed or
                ErrClaimExpired.
            MoverUnavailableError: If wallet creation or the transfer failed.
        """
        key = lookup_key(token)
        record = await self._reserve(key)
        return await asyncio.shield(
            self._finish_forward(key, record, new_recipient, message, sender_name)
        )

    async def acknowledge(self, token: str) -> ClaimView:
        """Stamp ``last_acknowledged_at`` on a pending claim.

        Raises:
            ClaimError: ErrClaimNotFound or ErrClaimAlreadyRedeemed.
        """
        key = lookup_key(token)
        async with self._locks.hold(key):
            record = self._records.get(key)
            if record is None:
                raise ErrClaimNotFound
            if not record.is_pending or key in self._in_flight:
                raise ErrClaimAlreadyRedeemed
            if record.is_expired():
                self._evict(key)
                raise ErrClaimNotFound
            record.last_acknowledged_at = _now()
            self._persist()
            return ClaimView.from_record(record)

    def evict_expired(self, now: datetime | None = None) -> int:
        """Drop every expired pending record that is not mid-redemption.

        Returns:
            Number of records evicted.
        """
        now = now or _now()
        expired = [
            key
            for key, record in self._records.items()
            if record.is_pending and record.is_expired(now) and key not in self._in_flight
        ]
        for key in expired:
            del self._records[key]
        if expired:
            self._persist()
            logger.info("Evicted %d expired claims", len(expired))
        return len(expired)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _build(
        self,
        recipient: str,
        wallet_address: str,
        wallet_credential: str,
        amount: str,
        currency: Currency,
        *,
        funding: TransferResult | None,
        sender_name: str | None,
        message: str | None,
        forwarded_from: str | None = None,
    ) -> IssuedClaim:
        token = generate_token()
        key = lookup_key(token)
        created_at = _now()
        expires_at = created_at + timedelta(seconds=self._config.ttl_seconds)
        asset = self._engine.assets[currency]
        record = ClaimRecord(
            lookup_key=key,
            secret_token=token,
            wallet_address=wallet_address,
            wallet_credential=wallet_credential,
            recipient=recipient,
            amount=amount,
            currency=currency,
            created_at=created_at,
            expires_at=expires_at,
            funding_transaction_id=funding.transaction_id if funding else None,
            funding_mode=funding.mode if funding else self._engine.movers.mode,
            explorer_url=funding.explorer_url if funding else None,
            sender_name=sender_name,
            message=message,
            forwarded_from=forwarded_from,
            asset_type=asset.type,
            asset_issuer=asset.issuer,
        )
        return IssuedClaim(
            token=token,
            lookup_key=key,
            claim_url=self.claim_url(token),
            expires_at=expires_at,
            record=record,
        )

    async def _reserve(self, key: str) -> ClaimRecord:
        async with self._locks.hold(key):
            record = self._records.get(key)
            if record is None:
                raise ErrClaimNotFound
            if not record.is_pending or key in self._in_flight:
                raise ErrClaimAlreadyRedeemed
            if record.is_expired():
                self._evict(key)
                raise ErrClaimExpired
            self._in_flight.add(key)
            return record

    def _check_still_reserved(self, key: str, record: ClaimRecord) -> None:
        if self._records.get(key) is not record or record.status != ClaimStatus.PENDING:
            logger.error("Claim %s changed while reserved", key[:12])
            raise ErrClaimAlreadyRedeemed

    async def _finish_redeem(
        self,
        key: str,
        record: ClaimRecord,
        destination: str | None,
    ) -> RedemptionResult:
        try:
            target = destination or record.wallet_address
            transfer = await self._engine.movers.move(
                record.wallet_credential, target, record.amount, record.currency
            )
            async with self._locks.hold(key):
                self._check_still_reserved(key, record)
                record.mark_redeemed(target)
                self._persist()
        finally:
            self._in_flight.discard(key)

        logger.info("Claim %s redeemed (%s)", key[:12], transfer.mode)
        await self._after_redeem(key, transfer.transaction_id, target, kind="self")
        await self._log_action(
            key,
            ClaimActionType.CLAIM,
            {"destination": target, "transaction_id": transfer.transaction_id},
            [f"Claimed {record.amount} {record.currency} to {target}"],
        )
        return RedemptionResult(
            lookup_key=key,
            transaction_id=transfer.transaction_id,
            mode=transfer.mode,
            destination=target,
            amount=record.amount,
            currency=record.currency,
            redeemed_at=record.redeemed_at or _now(),
            explorer_url=transfer.explorer_url,
        )

    async def _finish_forward(
        self,
        key: str,
        record: ClaimRecord,
        new_recipient: str,
        message: str | None,
        sender_name: str | None,
    ) -> ForwardResult:
        movers = self._engine.movers
        try:
            wallet = await movers.create_wallet(new_recipient)
            transfer = await movers.move(
                record.wallet_credential, wallet.address, record.amount, record.currency
            )
            async with self._locks.hold(key):
                self._check_still_reserved(key, record)
                issued = self._build(
                    new_recipient,
                    wallet.address,
                    wallet.credential,
                    record.amount,
                    record.currency,
                    funding=transfer,
                    sender_name=sender_name if sender_name is not None else record.sender_name,
                    message=message if message is not None else record.message,
                    forwarded_from=key,
                )
                self._records[issued.lookup_key] = issued.record
                self._persist()
                # Original is flipped only once the successor is stored.
                record.forward_history.append(new_recipient)
                record.mark_redeemed(FORWARD_MARKER + new_recipient)
                self._persist()
        finally:
            self._in_flight.discard(key)

        logger.info("Claim %s forwarded to %s", key[:12], issued.lookup_key[:12])
        await self._record_forward_history(key, record, issued, transfer)
        action_id = await self._log_action(
            key,
            ClaimActionType.FORWARD,
            {"recipient": new_recipient, "new_lookup_key": issued.lookup_key},
            [f"Forwarded {record.amount} {record.currency} to {new_recipient}"],
        )
        return ForwardResult(
            original_lookup_key=key,
            token=issued.token,
            lookup_key=issued.lookup_key,
            claim_url=issued.claim_url,
            expires_at=issued.expires_at,
            recipient=new_recipient,
            wallet_address=wallet.address,
            amount=record.amount,
            currency=record.currency,
            transaction_id=transfer.transaction_id,
            mode=transfer.mode,
            explorer_url=transfer.explorer_url,
            action_id=action_id,
        )

    async def _record_forward_history(
        self,
        key: str,
        record: ClaimRecord,
        issued: IssuedClaim,
        transfer: TransferResult,
    ) -> None:
        transactions = self._engine.transactions
        await transactions.record(
            lookup_key=issued.lookup_key,
            recipient=issued.record.recipient,
            amount=record.amount,
            currency=str(record.currency),
            payment_mode=str(transfer.mode),
            wallet_address=issued.record.wallet_address,
            transaction_id=transfer.transaction_id,
            sender_name=issued.record.sender_name,
            explorer_url=transfer.explorer_url,
        )
        await self._after_redeem(
            key,
            transfer.transaction_id,
            record.claimed_by or FORWARD_MARKER + issued.record.recipient,
            kind="forward",
        )
        await transactions.append_event(
            key,
            TransactionEventType.FORWARD,
            {"recipient": issued.record.recipient, "new_lookup_key": issued.lookup_key},
        )

    async def _after_redeem(
        self,
        key: str,
        transaction_id: str,
        claimed_by: str,
        *,
        kind: str,
    ) -> None:
        try:
            await self._engine.transactions.mark_claimed(key, transaction_id, claimed_by)
        except ClaimError:
            logger.warning("No history entry to mark claimed for %s", key[:12])
        if self._engine.metrics is not None:
            self._engine.metrics.record_claim_redeemed(kind)

    async def _log_action(
        self,
        key: str,
        action: ClaimActionType,
        payload: dict[str, Any],
        logs: list[str],
    ) -> str | None:
        try:
            return await self._engine.actions.append(key, action, payload, logs)
        except (OSError, ValueError, TypeError):
            logger.exception("Failed to append %s action for %s", action, key[:12])
            return None

    def _evict(self, key: str) -> None:
        del self._records[key]
        self._persist()
        logger.info("Evicted expired claim %s", key[:12])

    def _persist(self) -> None:
        self._engine.store.save(
            DOCUMENT,
            {key: record.to_dict() for key, record in self._records.items()},
        )
