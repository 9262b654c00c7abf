"""Tests for FundsMoverService — timeouts, error mapping, mode switching."""

from __future__ import annotations

import asyncio

import pytest

from magic_link.config.settings import ExecutionMode, MoverConfig, StoreConfig
from magic_link.datastore.client import DurableStore
from magic_link.datastore.engines import MemoryBackend
from magic_link.engine.models.asset import Currency
from magic_link.errors.claim_errors import ClaimValidationError
from magic_link.errors.mover_errors import MoverError, MoverUnavailableError
from magic_link.metrics.collector import ClaimMetrics
from magic_link.mover.base import TransferResult, WalletInfo
from magic_link.mover.gateway import GatewayFundsMover
from magic_link.mover.service import PAYMENT_MODE_DOCUMENT, FundsMoverService, build_backend
from magic_link.mover.simulated import SimulatedFundsMover

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _StubMover:
    """Backend whose calls can be made slow or failing."""

    mode = ExecutionMode.SIMULATED

    def __init__(self, *, delay: float = 0.0, error: Exception | None = None) -> None:
        self.delay = delay
        self.error = error
        self.connected = False

    async def connect(self) -> None:  # noqa: ASYNC910
        self.connected = True

    async def close(self) -> None:  # noqa: ASYNC910
        self.connected = False

    async def create_wallet(self, owner_hint: str) -> WalletInfo:
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return WalletInfo(address="GSTUB", credential="SSTUB")

    async def move(self, source_credential, destination, amount, currency) -> TransferResult:
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return TransferResult(transaction_id="tx-stub", mode=self.mode)


def _store() -> DurableStore:
    store = DurableStore(StoreConfig(), backend=MemoryBackend())
    store.open()
    return store


def _failures(metrics: ClaimMetrics, operation: str) -> float | None:
    return metrics.registry.get_sample_value(
        "magiclink_mover_failures_total", {"operation": operation}
    )


# ---------------------------------------------------------------------------
# Backend selection
# ---------------------------------------------------------------------------


class TestBackendSelection:
    def test_build_backend(self) -> None:
        config = MoverConfig()
        assert isinstance(build_backend(ExecutionMode.SIMULATED, config), SimulatedFundsMover)
        assert isinstance(build_backend(ExecutionMode.LIVE_TESTNET, config), GatewayFundsMover)
        assert build_backend(ExecutionMode.LIVE_SANDBOX, config).mode == (
            ExecutionMode.LIVE_SANDBOX
        )

    async def test_start_with_configured_mode(self) -> None:
        service = FundsMoverService(MoverConfig(), _store())
        await service.start()
        assert service.mode == ExecutionMode.SIMULATED
        assert isinstance(service.backend, SimulatedFundsMover)
        await service.stop()

    async def test_live_mode_without_treasury_falls_back(self) -> None:
        service = FundsMoverService(MoverConfig(mode=ExecutionMode.LIVE_TESTNET), _store())
        await service.start()
        assert service.mode == ExecutionMode.SIMULATED
        await service.stop()

    async def test_persisted_mode_wins_over_config(self) -> None:
        store = _store()
        store.save(PAYMENT_MODE_DOCUMENT, {"mode": "live-testnet", "updated_at": "2026-01-01"})
        service = FundsMoverService(MoverConfig(treasury_credential="STREASURY"), store)
        await service.start()
        assert service.mode == ExecutionMode.LIVE_TESTNET
        assert service.details()["updated_at"] == "2026-01-01"
        await service.stop()

    async def test_not_started_raises(self) -> None:
        service = FundsMoverService(MoverConfig(), _store())
        with pytest.raises(RuntimeError, match="not started"):
            _ = service.mode


# ---------------------------------------------------------------------------
# Bounded calls
# ---------------------------------------------------------------------------


class TestBoundedCalls:
    async def test_success_passes_through(self) -> None:
        service = FundsMoverService(MoverConfig(), _store(), backend=_StubMover())
        await service.start()
        wallet = await service.create_wallet("alice@example.com")
        result = await service.move("SSTUB", wallet.address, "5", Currency.XLM)
        assert wallet.address == "GSTUB"
        assert result.transaction_id == "tx-stub"

    async def test_timeout_maps_to_unavailable(self) -> None:
        metrics = ClaimMetrics()
        service = FundsMoverService(
            MoverConfig(timeout_seconds=0.05),
            _store(),
            metrics=metrics,
            backend=_StubMover(delay=1.0),
        )
        await service.start()
        with pytest.raises(MoverUnavailableError, match="timed out"):
            await service.move("S", "G", "1", Currency.XLM)
        assert _failures(metrics, "move") == 1.0

    async def test_mover_error_maps_to_unavailable(self) -> None:
        metrics = ClaimMetrics()
        service = FundsMoverService(
            MoverConfig(),
            _store(),
            metrics=metrics,
            backend=_StubMover(error=MoverError("insufficient funds")),
        )
        await service.start()
        with pytest.raises(MoverUnavailableError, match="insufficient funds"):
            await service.create_wallet("alice@example.com")
        assert _failures(metrics, "create_wallet") == 1.0

    async def test_os_error_maps_to_unavailable(self) -> None:
        service = FundsMoverService(
            MoverConfig(), _store(), backend=_StubMover(error=OSError("pipe broken"))
        )
        await service.start()
        with pytest.raises(MoverUnavailableError):
            await service.move("S", "G", "1", Currency.XLM)

    async def test_calls_are_timed(self) -> None:
        metrics = ClaimMetrics()
        service = FundsMoverService(
            MoverConfig(), _store(), metrics=metrics, backend=_StubMover()
        )
        await service.start()
        await service.move("S", "G", "1", Currency.XLM)
        count = metrics.registry.get_sample_value(
            "magiclink_mover_call_histogram_count", {"operation": "move"}
        )
        assert count == 1.0


# ---------------------------------------------------------------------------
# Mode switching
# ---------------------------------------------------------------------------


class TestSwitchMode:
    async def test_details(self) -> None:
        service = FundsMoverService(MoverConfig(), _store())
        await service.start()
        details = service.details()
        assert details["mode"] == "simulated"
        assert details["is_simulated"] is True
        assert details["treasury_configured"] is False
        assert details["explorer_enabled"] is False
        assert details["available_modes"] == ["simulated", "live-testnet", "live-sandbox"]
        await service.stop()

    async def test_live_mode_requires_treasury(self) -> None:
        service = FundsMoverService(MoverConfig(), _store())
        await service.start()
        with pytest.raises(ClaimValidationError, match="treasury credential"):
            await service.switch_mode(ExecutionMode.LIVE_TESTNET)
        assert service.mode == ExecutionMode.SIMULATED

    async def test_switch_persists_choice(self) -> None:
        store = _store()
        service = FundsMoverService(MoverConfig(treasury_credential="STREASURY"), store)
        await service.start()

        details = await service.switch_mode(ExecutionMode.LIVE_TESTNET)

        assert details["mode"] == "live-testnet"
        assert details["explorer_enabled"] is True
        assert details["updated_at"] is not None
        assert store.load(PAYMENT_MODE_DOCUMENT, {})["mode"] == "live-testnet"

        restarted = FundsMoverService(MoverConfig(treasury_credential="STREASURY"), store)
        await restarted.start()
        assert restarted.mode == ExecutionMode.LIVE_TESTNET
        await restarted.stop()
        await service.stop()

    async def test_switch_to_same_mode_is_noop(self) -> None:
        store = _store()
        service = FundsMoverService(MoverConfig(), store)
        await service.start()
        backend = service.backend
        await service.switch_mode(ExecutionMode.SIMULATED)
        assert service.backend is backend
        assert store.load(PAYMENT_MODE_DOCUMENT, {}) == {}

    async def test_failed_connect_keeps_previous_backend(self) -> None:
        config = MoverConfig(
            treasury_credential="STREASURY", sandbox_cli_path="no-such-sandbox-cli-xyz"
        )
        service = FundsMoverService(config, _store())
        await service.start()
        with pytest.raises(MoverUnavailableError, match="could not start"):
            await service.switch_mode(ExecutionMode.LIVE_SANDBOX)
        assert service.mode == ExecutionMode.SIMULATED

    async def test_fixed_backend_cannot_switch(self) -> None:
        service = FundsMoverService(MoverConfig(), _store(), backend=_StubMover())
        await service.start()
        with pytest.raises(ClaimValidationError, match="fixed"):
            await service.switch_mode(ExecutionMode.SIMULATED)
