"""Background task definitions — cron job handlers.

- ``expired_claim_sweep``: evict pending claims past their TTL
- ``calculate_metrics``: claim counts and store health for Prometheus gauges
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from magic_link.engine.client import ClaimEngine
    from magic_link.metrics.collector import ClaimMetrics

logger = logging.getLogger(__name__)


async def task_sweep_expired_claims(engine: ClaimEngine) -> None:  # noqa: ASYNC910
    """Evict every expired, never-redeemed claim from the ledger."""
    evicted = engine.ledger.evict_expired()
    if evicted:
        logger.info("Swept %d expired claims", evicted)


async def task_calculate_metrics(engine: ClaimEngine, metrics: ClaimMetrics) -> None:  # noqa: ASYNC910
    """Push claim counts and store write failures to Prometheus gauges."""
    pending, redeemed = engine.ledger.counts()
    metrics.set_claim_counts(pending, redeemed)
    metrics.set_failed_writes(engine.store.failed_writes)
