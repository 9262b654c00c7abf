"""Tests for background task handlers."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from magic_link.engine.client import ClaimEngine
from magic_link.engine.models import Currency
from magic_link.metrics.collector import ClaimMetrics
from magic_link.taskmanager.tasks import task_calculate_metrics, task_sweep_expired_claims


class TestSweepExpiredClaims:
    async def test_sweep_evicts_expired(self, engine: ClaimEngine) -> None:
        stale = await engine.ledger.issue("a@example.com", "1", Currency.XLM)
        await engine.ledger.issue("b@example.com", "1", Currency.XLM)
        engine.ledger._records[stale.lookup_key].expires_at = datetime.now(
            tz=UTC
        ) - timedelta(minutes=1)

        await task_sweep_expired_claims(engine)

        assert engine.ledger.counts() == (1, 0)
        assert stale.lookup_key not in engine.store.load("magic-links", {})

    async def test_sweep_nothing_to_do(self, engine: ClaimEngine) -> None:
        await engine.ledger.issue("a@example.com", "1", Currency.XLM)
        await task_sweep_expired_claims(engine)
        assert engine.ledger.counts() == (1, 0)


class TestCalculateMetrics:
    async def test_sets_gauges(self, engine: ClaimEngine) -> None:
        first = await engine.ledger.issue("a@example.com", "1", Currency.XLM)
        await engine.ledger.issue("b@example.com", "1", Currency.XLM)
        await engine.ledger.redeem_to_self(first.token)
        metrics = ClaimMetrics()

        await task_calculate_metrics(engine, metrics)

        registry = metrics.registry
        assert registry.get_sample_value("magiclink_claims_gauge", {"state": "pending"}) == 1
        assert registry.get_sample_value("magiclink_claims_gauge", {"state": "redeemed"}) == 1
        assert registry.get_sample_value("magiclink_store_failed_writes_gauge") == 0
