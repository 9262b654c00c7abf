"""Simulated funds mover — deterministic-looking transfers, no network."""

from __future__ import annotations

import asyncio
import base64
import logging
import secrets
import time
from typing import TYPE_CHECKING

from magic_link.config.settings import ExecutionMode
from magic_link.mover.base import TransferResult, WalletInfo
from magic_link.utils.crypto import sha256

if TYPE_CHECKING:
    from magic_link.config.settings import MoverConfig
    from magic_link.engine.models.asset import Currency

logger = logging.getLogger(__name__)

# Stellar strkeys are 56 base32 characters with a one-letter version prefix.
_STRKEY_BODY_LEN = 55


def _random_strkey(prefix: str) -> str:
    body = base64.b32encode(secrets.token_bytes(35)).decode("ascii").rstrip("=")
    return prefix + body[:_STRKEY_BODY_LEN]


class SimulatedFundsMover:
    """Funds mover that pretends every transfer succeeds.

    Wallet addresses look like Stellar public keys (``G...``) and credentials
    like secret seeds (``S...``).  Transaction IDs are the SHA-256 of the
    transfer fields plus randomness, so they are unique per call.
    """

    mode = ExecutionMode.SIMULATED

    def __init__(self, config: MoverConfig) -> None:
        self._config = config
        self._transfers = 0

    @property
    def transfer_count(self) -> int:
        """Number of transfers executed since creation."""
        return self._transfers

    async def connect(self) -> None:  # noqa: ASYNC910
        """No-op; nothing to connect to."""

    async def close(self) -> None:  # noqa: ASYNC910
        """No-op."""

    async def create_wallet(self, owner_hint: str) -> WalletInfo:
        """Create a simulated wallet for *owner_hint*."""
        await self._delay()
        wallet = WalletInfo(address=_random_strkey("G"), credential=_random_strkey("S"))
        logger.debug("Simulated wallet %s created", wallet.address[:8])
        return wallet

    async def move(
        self,
        source_credential: str,
        destination: str,
        amount: str,
        currency: Currency,
    ) -> TransferResult:
        """Simulate a transfer of *amount* *currency* to *destination*."""
        await self._delay()
        seed = "|".join(
            (
                source_credential[-6:],
                destination,
                amount,
                str(currency),
                str(time.time_ns()),
                secrets.token_hex(8),
            )
        )
        self._transfers += 1
        return TransferResult(
            transaction_id=sha256(seed.encode("utf-8")).hex(),
            mode=self.mode,
            explorer_url=None,
        )

    async def _delay(self) -> None:
        if self._config.simulated_delay > 0:
            await asyncio.sleep(self._config.simulated_delay)
