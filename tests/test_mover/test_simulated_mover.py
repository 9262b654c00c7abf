"""Tests for the simulated funds mover."""

from __future__ import annotations

import re

from magic_link.config.settings import ExecutionMode, MoverConfig
from magic_link.engine.models.asset import Currency
from magic_link.mover.simulated import SimulatedFundsMover

_STRKEY = r"[A-Z2-7]{55}"


class TestSimulatedFundsMover:
    async def test_mode(self) -> None:
        mover = SimulatedFundsMover(MoverConfig())
        assert mover.mode == ExecutionMode.SIMULATED

    async def test_create_wallet_looks_like_stellar_keys(self) -> None:
        mover = SimulatedFundsMover(MoverConfig())
        await mover.connect()
        wallet = await mover.create_wallet("alice@example.com")
        assert re.fullmatch("G" + _STRKEY, wallet.address)
        assert re.fullmatch("S" + _STRKEY, wallet.credential)
        await mover.close()

    async def test_wallets_are_unique(self) -> None:
        mover = SimulatedFundsMover(MoverConfig())
        addresses = {(await mover.create_wallet("x")).address for _ in range(20)}
        assert len(addresses) == 20

    async def test_move(self) -> None:
        mover = SimulatedFundsMover(MoverConfig())
        result = await mover.move("SCRED", "GDEST", "5.00", Currency.USDC)
        assert re.fullmatch(r"[0-9a-f]{64}", result.transaction_id)
        assert result.mode == ExecutionMode.SIMULATED
        assert result.explorer_url is None
        assert mover.transfer_count == 1

    async def test_transaction_ids_are_unique(self) -> None:
        mover = SimulatedFundsMover(MoverConfig())
        ids = {
            (await mover.move("SCRED", "GDEST", "1", Currency.XLM)).transaction_id
            for _ in range(20)
        }
        assert len(ids) == 20
        assert mover.transfer_count == 20

    async def test_transfer_result_to_dict(self) -> None:
        mover = SimulatedFundsMover(MoverConfig())
        result = await mover.move("SCRED", "GDEST", "1", Currency.XLM)
        assert result.to_dict() == {
            "transaction_id": result.transaction_id,
            "mode": "simulated",
            "explorer_url": None,
        }
