"""Funds mover service — timeout, error mapping, and runtime mode switching.

The ledger talks only to :class:`FundsMoverService`.  It wraps whichever
backend the current execution mode selects, bounds every call with the
configured timeout, and turns backend failures into
:class:`~magic_link.errors.MoverUnavailableError` so callers can retry.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from magic_link.config.settings import ExecutionMode
from magic_link.errors.claim_errors import ClaimValidationError
from magic_link.errors.mover_errors import MoverError, MoverUnavailableError

if TYPE_CHECKING:
    from collections.abc import Awaitable

    from magic_link.config.settings import MoverConfig
    from magic_link.datastore.client import DurableStore
    from magic_link.engine.models.asset import Currency, SupportedAsset
    from magic_link.metrics.collector import ClaimMetrics
    from magic_link.mover.base import FundsMover, TransferResult, WalletInfo

logger = logging.getLogger(__name__)

PAYMENT_MODE_DOCUMENT = "payment-mode"


def build_backend(
    mode: ExecutionMode,
    config: MoverConfig,
    assets: dict[Currency, SupportedAsset] | None = None,
) -> FundsMover:
    """Instantiate the backend for *mode*."""
    from magic_link.mover.gateway import GatewayFundsMover
    from magic_link.mover.sandbox import SandboxFundsMover
    from magic_link.mover.simulated import SimulatedFundsMover

    if mode == ExecutionMode.LIVE_TESTNET:
        return GatewayFundsMover(config, assets=assets)
    if mode == ExecutionMode.LIVE_SANDBOX:
        return SandboxFundsMover(config)
    return SimulatedFundsMover(config)


class FundsMoverService:
    """Bounded, metered access to the active funds mover backend.

    Usage::

        movers = FundsMoverService(config.mover, store, metrics=metrics)
        await movers.start()
        wallet = await movers.create_wallet("bob@example.com")
        result = await movers.move(movers.treasury_credential, wallet.address, "5", Currency.XLM)
        await movers.stop()
    """

    def __init__(
        self,
        config: MoverConfig,
        store: DurableStore,
        *,
        metrics: ClaimMetrics | None = None,
        assets: dict[Currency, SupportedAsset] | None = None,
        backend: FundsMover | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Mover configuration.
            store: Store holding the persisted mode selection.
            metrics: Optional metrics sink.
            assets: Asset registry passed to backends that need issuers.
            backend: Fixed backend to use instead of the configured one.
        """
        self._config = config
        self._store = store
        self._metrics = metrics
        self._assets = assets
        self._backend = backend
        self._fixed_backend = backend is not None
        self._updated_at: str | None = None
        self._switch_lock = asyncio.Lock()

    async def start(self) -> None:
        """Select the mode (persisted choice wins over config) and connect."""
        if self._backend is None:
            mode = self._persisted_mode() or self._config.mode
            if mode != ExecutionMode.SIMULATED and not self._config.treasury_credential:
                logger.warning(
                    "Execution mode %s requires a treasury credential; using simulated", mode
                )
                mode = ExecutionMode.SIMULATED
            self._backend = build_backend(mode, self._config, self._assets)
        await self._backend.connect()
        logger.info("Funds mover started in %s mode", self._backend.mode)

    async def stop(self) -> None:
        """Disconnect the active backend."""
        if self._backend is not None:
            await self._backend.close()
            self._backend = None

    @property
    def mode(self) -> ExecutionMode:
        """Execution mode of the active backend."""
        return self._ensure_backend().mode

    @property
    def backend(self) -> FundsMover:
        """The active backend."""
        return self._ensure_backend()

    @property
    def treasury_credential(self) -> str:
        """Credential of the account that funds new claims."""
        return self._config.treasury_credential

    # ------------------------------------------------------------------
    # Bounded backend calls
    # ------------------------------------------------------------------

    async def create_wallet(self, owner_hint: str) -> WalletInfo:
        """Create a wallet through the active backend.

        Raises:
            MoverUnavailableError: If the backend fails or times out.
        """
        backend = self._ensure_backend()
        return await self._call("create_wallet", backend.create_wallet(owner_hint))

    async def move(
        self,
        source_credential: str,
        destination: str,
        amount: str,
        currency: Currency,
    ) -> TransferResult:
        """Move funds through the active backend.

        Raises:
            MoverUnavailableError: If the backend fails or times out.
        """
        backend = self._ensure_backend()
        return await self._call(
            "move",
            backend.move(source_credential, destination, amount, currency),
        )

    async def _call(self, operation: str, call: Awaitable[Any]) -> Any:
        try:
            if self._metrics is not None:
                with self._metrics.track_mover(operation):
                    return await asyncio.wait_for(call, timeout=self._config.timeout_seconds)
            return await asyncio.wait_for(call, timeout=self._config.timeout_seconds)
        except TimeoutError as exc:
            self._record_failure(operation)
            msg = f"funds mover {operation} timed out after {self._config.timeout_seconds}s"
            raise MoverUnavailableError(msg) from exc
        except (MoverError, OSError) as exc:
            self._record_failure(operation)
            msg = f"funds mover {operation} failed: {exc}"
            raise MoverUnavailableError(msg) from exc

    def _record_failure(self, operation: str) -> None:
        logger.warning("Funds mover %s failed in %s mode", operation, self.mode)
        if self._metrics is not None:
            self._metrics.record_mover_failure(operation)

    # ------------------------------------------------------------------
    # Runtime mode switching
    # ------------------------------------------------------------------

    def details(self) -> dict[str, Any]:
        """Describe the active execution mode."""
        mode = self.mode
        return {
            "mode": str(mode),
            "is_simulated": mode == ExecutionMode.SIMULATED,
            "treasury_configured": bool(self._config.treasury_credential),
            "explorer_enabled": mode == ExecutionMode.LIVE_TESTNET,
            "available_modes": [str(m) for m in ExecutionMode],
            "updated_at": self._updated_at,
        }

    async def switch_mode(self, mode: ExecutionMode) -> dict[str, Any]:
        """Switch the active backend and persist the choice.

        The previous backend stays active if the new one fails to connect.

        Raises:
            ClaimValidationError: If a live mode is requested without a
                treasury credential, or the backend is fixed.
            MoverUnavailableError: If the new backend cannot connect.
        """
        if mode != ExecutionMode.SIMULATED and not self._config.treasury_credential:
            msg = f"{mode} mode requires a treasury credential"
            raise ClaimValidationError(msg)
        if self._fixed_backend:
            msg = "execution mode is fixed for this engine"
            raise ClaimValidationError(msg)

        async with self._switch_lock:
            if self._backend is not None and self._backend.mode == mode:
                return self.details()

            candidate = build_backend(mode, self._config, self._assets)
            try:
                await candidate.connect()
            except (MoverError, OSError) as exc:
                msg = f"could not start {mode} funds mover: {exc}"
                raise MoverUnavailableError(msg) from exc

            previous, self._backend = self._backend, candidate
            if previous is not None:
                await previous.close()

            self._updated_at = datetime.now(tz=UTC).isoformat()
            self._store.save(
                PAYMENT_MODE_DOCUMENT,
                {"mode": str(mode), "updated_at": self._updated_at},
            )
            logger.info("Funds mover switched to %s mode", mode)
            return self.details()

    def _persisted_mode(self) -> ExecutionMode | None:
        document = self._store.load(PAYMENT_MODE_DOCUMENT, {})
        if not document:
            return None
        self._updated_at = document.get("updated_at")
        return ExecutionMode.parse(document.get("mode"))

    def _ensure_backend(self) -> FundsMover:
        if self._backend is None:
            msg = "Funds mover not started. Call start() first."
            raise RuntimeError(msg)
        return self._backend
