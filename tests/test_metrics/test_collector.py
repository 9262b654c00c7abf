"""Tests for the claim metrics collector."""

from __future__ import annotations

import time

import pytest
from prometheus_client import CollectorRegistry

from magic_link.metrics.collector import ClaimMetrics, MetricsCollector


@pytest.fixture
def metrics() -> ClaimMetrics:
    return ClaimMetrics()


class TestMetricsCollector:
    def test_uses_given_registry(self) -> None:
        registry = CollectorRegistry()
        collector = MetricsCollector(registry)
        assert collector.registry is registry

    def test_creates_own_registry(self) -> None:
        assert isinstance(MetricsCollector().registry, CollectorRegistry)

    def test_separate_instances_do_not_clash(self) -> None:
        ClaimMetrics()
        ClaimMetrics()


class TestClaimMetrics:
    def test_claim_counters(self, metrics: ClaimMetrics) -> None:
        metrics.record_claim_created("XLM", "simulated")
        metrics.record_claim_created("XLM", "simulated")
        metrics.record_claim_redeemed("forward")
        registry = metrics.registry
        assert (
            registry.get_sample_value(
                "magiclink_claims_created_total", {"currency": "XLM", "mode": "simulated"}
            )
            == 2.0
        )
        assert registry.get_sample_value("magiclink_claims_redeemed_total", {"kind": "forward"}) == 1.0

    def test_action_and_failure_counters(self, metrics: ClaimMetrics) -> None:
        metrics.record_action("keep")
        metrics.record_mover_failure("move")
        registry = metrics.registry
        assert registry.get_sample_value("magiclink_claim_actions_total", {"action": "keep"}) == 1.0
        assert (
            registry.get_sample_value("magiclink_mover_failures_total", {"operation": "move"}) == 1.0
        )

    def test_gauges(self, metrics: ClaimMetrics) -> None:
        metrics.set_claim_counts(4, 2)
        metrics.set_failed_writes(3)
        registry = metrics.registry
        assert registry.get_sample_value("magiclink_claims_gauge", {"state": "pending"}) == 4.0
        assert registry.get_sample_value("magiclink_claims_gauge", {"state": "redeemed"}) == 2.0
        assert registry.get_sample_value("magiclink_store_failed_writes_gauge") == 3.0

    def test_track_mover_observes_on_error(self, metrics: ClaimMetrics) -> None:
        with pytest.raises(ValueError, match="boom"), metrics.track_mover("move"):
            raise ValueError("boom")
        count = metrics.registry.get_sample_value(
            "magiclink_mover_call_histogram_count", {"operation": "move"}
        )
        assert count == 1.0

    def test_track_cron_sets_last_execution(self, metrics: ClaimMetrics) -> None:
        before = time.time()
        with metrics.track_cron("sweep"):
            pass
        registry = metrics.registry
        assert registry.get_sample_value("magiclink_cron_histogram_count", {"job_name": "sweep"}) == 1.0
        last = registry.get_sample_value("magiclink_cron_last_execution_gauge", {"job_name": "sweep"})
        assert last is not None
        assert last >= before
