"""ClaimEngine — central engine client owning all services."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from magic_link.cache.client import CacheClient
    from magic_link.config.settings import AppConfig
    from magic_link.datastore.client import DurableStore
    from magic_link.datastore.engines import StoreBackend
    from magic_link.engine.models.asset import Currency, SupportedAsset
    from magic_link.engine.services.claim_action_service import ClaimActionService
    from magic_link.engine.services.claim_ledger import ClaimLedger
    from magic_link.engine.services.claim_service import ClaimService
    from magic_link.engine.services.transaction_service import TransactionService
    from magic_link.metrics.collector import ClaimMetrics
    from magic_link.mover.base import FundsMover
    from magic_link.mover.service import FundsMoverService
    from magic_link.notifications.notifier import Notifier
    from magic_link.ratelimit.limiter import RateLimiter
    from magic_link.taskmanager.manager import TaskManager

# Error messages
_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."


class ClaimEngine:
    """Central engine that owns all services and infrastructure.

    One engine is built per process and handed to the HTTP layer; nothing
    below it keeps module-level state.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        mover: FundsMover | None = None,
        notifier: Notifier | None = None,
        store_backend: StoreBackend | None = None,
    ) -> None:
        """Initialize engine with configuration.

        Args:
            config: Application configuration.
            mover: Fixed funds mover backend instead of the configured mode.
            notifier: Notifier instead of the configured one.
            store_backend: Store backend instead of the directory fallback chain.
        """
        self._config = config
        self._initialized = False
        self._mover_override = mover
        self._notifier_override = notifier
        self._store_backend = store_backend

        # Infrastructure components
        self._store: DurableStore | None = None
        self._cache: CacheClient | None = None
        self._rate_limiter: RateLimiter | None = None
        self._assets: dict[Currency, SupportedAsset] | None = None
        self._movers: FundsMoverService | None = None
        self._notifier: Notifier | None = None

        # Services
        self._transactions: TransactionService | None = None
        self._actions: ClaimActionService | None = None
        self._ledger: ClaimLedger | None = None
        self._claims: ClaimService | None = None
        self._task_manager: TaskManager | None = None
        self._metrics: ClaimMetrics | None = None

    async def initialize(self) -> None:
        """Open the store, connect collaborators, and start services.

        Raises:
            RuntimeError: If already initialized.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        # Import here to avoid circular deps
        from magic_link.cache.client import CacheClient
        from magic_link.datastore.client import DurableStore
        from magic_link.engine.models.asset import build_registry
        from magic_link.metrics.collector import ClaimMetrics
        from magic_link.mover.service import FundsMoverService
        from magic_link.notifications.notifier import create_notifier
        from magic_link.ratelimit.limiter import RateLimiter

        # Initialize store
        self._store = DurableStore(self._config.store, backend=self._store_backend)
        self._store.open()

        # Initialize cache and rate limiter
        self._cache = CacheClient(self._config.cache)
        await self._cache.connect()
        self._rate_limiter = RateLimiter(self._cache)

        # Initialize metrics
        self._metrics = ClaimMetrics()

        # Initialize collaborators
        self._assets = build_registry(self._config.assets)
        self._movers = FundsMoverService(
            self._config.mover,
            self._store,
            metrics=self._metrics,
            assets=self._assets,
            backend=self._mover_override,
        )
        await self._movers.start()

        self._notifier = self._notifier_override or create_notifier(self._config.notifier)
        await self._notifier.start()

        # Initialize services
        from magic_link.engine.services.claim_action_service import ClaimActionService
        from magic_link.engine.services.claim_ledger import ClaimLedger
        from magic_link.engine.services.claim_service import ClaimService
        from magic_link.engine.services.transaction_service import TransactionService

        self._transactions = TransactionService(self)
        self._actions = ClaimActionService(self)
        self._ledger = ClaimLedger(self)
        self._ledger.load()
        self._claims = ClaimService(self)

        # Initialize task manager and register cron jobs
        from functools import partial

        from magic_link.taskmanager.manager import CronJob, TaskManager
        from magic_link.taskmanager.tasks import (
            task_calculate_metrics,
            task_sweep_expired_claims,
        )

        if self._config.task.enabled:
            self._task_manager = TaskManager(metrics=self._metrics)
            self._task_manager.register(
                "expired_claim_sweep",
                CronJob(
                    handler=partial(task_sweep_expired_claims, self),
                    period=self._config.task.sweep_period,
                    run_on_start=True,
                ),
            )
            self._task_manager.register(
                "calculate_metrics",
                CronJob(
                    handler=partial(task_calculate_metrics, self, self._metrics),
                    period=self._config.task.metrics_period,
                ),
            )
            await self._task_manager.start()

        self._initialized = True

    async def close(self) -> None:
        """Gracefully shut down all services and connections.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return

        # Stop task manager first (depends on services)
        if self._task_manager is not None:
            await self._task_manager.stop()
            self._task_manager = None

        # Tear down services
        self._claims = None
        self._ledger = None
        self._actions = None
        self._transactions = None

        if self._notifier is not None:
            await self._notifier.stop()
            self._notifier = None

        if self._movers is not None:
            await self._movers.stop()
            self._movers = None

        self._metrics = None
        self._rate_limiter = None

        # Close cache
        if self._cache is not None:
            await self._cache.close()
            self._cache = None

        # Close store
        if self._store is not None:
            self._store.close()
            self._store = None

        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        """Check if the engine is initialized."""
        return self._initialized

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        return self._config

    @property
    def store(self) -> DurableStore:
        """Get the durable record store.

        Raises:
            RuntimeError: If engine not initialized.
        """
        if self._store is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._store

    @property
    def cache(self) -> CacheClient:
        """Get the cache client instance.

        Raises:
            RuntimeError: If engine not initialized.
        """
        if self._cache is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._cache

    @property
    def rate_limiter(self) -> RateLimiter:
        """Get the rate limiter."""
        if self._rate_limiter is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._rate_limiter

    @property
    def assets(self) -> dict[Currency, SupportedAsset]:
        """Get the asset registry."""
        if self._assets is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._assets

    @property
    def movers(self) -> FundsMoverService:
        """Get the funds mover service."""
        if self._movers is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._movers

    @property
    def notifier(self) -> Notifier:
        """Get the recipient notifier."""
        if self._notifier is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._notifier

    @property
    def transactions(self) -> TransactionService:
        """Get the transaction history service."""
        if self._transactions is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._transactions

    @property
    def actions(self) -> ClaimActionService:
        """Get the claim action log."""
        if self._actions is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._actions

    @property
    def ledger(self) -> ClaimLedger:
        """Get the claim ledger."""
        if self._ledger is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._ledger

    @property
    def claims(self) -> ClaimService:
        """Get the public claim service."""
        if self._claims is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._claims

    @property
    def metrics(self) -> ClaimMetrics | None:
        """Get the engine metrics (None if not initialized)."""
        return self._metrics

    @property
    def task_manager(self) -> TaskManager | None:
        """Get the task manager (None if not enabled)."""
        return self._task_manager

    async def health_check(self) -> dict[str, str]:
        """Check health status of all engine components.

        Returns:
            Dictionary with component statuses.  ``store`` is ``ok`` for a
            durable backend and ``degraded`` for the memory fallback.  ``tasks``
            appears when background jobs run, ``failing`` while any job's
            last run raised.
        """
        status = {
            "engine": "ok" if self._initialized else "not_initialized",
            "store": "unknown",
            "cache": "unknown",
            "mover": "unknown",
        }

        if self._initialized:
            if self._store and self._store.is_open:
                status["store"] = "ok" if self._store.is_durable else "degraded"
            else:
                status["store"] = "error"

            if self._cache and self._cache.is_connected:
                status["cache"] = "ok"
            else:
                status["cache"] = "error"

            if self._movers is not None:
                status["mover"] = str(self._movers.mode)

            if self._task_manager is not None:
                failing = any(
                    s["last_error"] for s in self._task_manager.status().values()
                )
                status["tasks"] = "failing" if failing else "ok"

        return status
