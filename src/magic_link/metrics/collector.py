"""Metrics collector — Prometheus counters, gauges, histograms.

Exposed series:
- ``magiclink_claims_created_total`` counter (currency, mode)
- ``magiclink_claims_redeemed_total`` counter (kind: self, forward)
- ``magiclink_claim_actions_total`` counter (action)
- ``magiclink_mover_failures_total`` counter (operation)
- ``magiclink_mover_call_histogram`` (operation)
- ``magiclink_claims_gauge`` (state: pending, redeemed)
- ``magiclink_store_failed_writes_gauge``
- ``magiclink_cron_histogram`` / ``magiclink_cron_last_execution_gauge``
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

if TYPE_CHECKING:
    from collections.abc import Iterator


_PREFIX = "magiclink"


class MetricsCollector:
    """Low-level Prometheus collector that owns the registry.

    Use :class:`ClaimMetrics` for the high-level tracking interface.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._registry

    def gauge(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Gauge:
        """Register and return a Gauge."""
        return Gauge(name, doc, labels, registry=self._registry)

    def histogram(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Histogram:
        """Register and return a Histogram."""
        return Histogram(name, doc, labels, registry=self._registry)

    def counter(self, name: str, doc: str, labels: tuple[str, ...] = ()) -> Counter:
        """Register and return a Counter."""
        return Counter(name, doc, labels, registry=self._registry)


class ClaimMetrics:
    """High-level metrics for the claim lifecycle and its collaborators.

    All histograms track durations in seconds.
    """

    def __init__(self, collector: MetricsCollector | None = None) -> None:
        self._collector = collector or MetricsCollector()

        self._created = self._collector.counter(
            f"{_PREFIX}_claims_created",
            "Claims issued",
            ("currency", "mode"),
        )
        self._redeemed = self._collector.counter(
            f"{_PREFIX}_claims_redeemed",
            "Claims redeemed, by redemption kind",
            ("kind",),
        )
        self._actions = self._collector.counter(
            f"{_PREFIX}_claim_actions",
            "Recipient actions recorded in the action log",
            ("action",),
        )
        self._mover_failures = self._collector.counter(
            f"{_PREFIX}_mover_failures",
            "Funds mover calls that failed or timed out",
            ("operation",),
        )
        self._mover_call = self._collector.histogram(
            f"{_PREFIX}_mover_call_histogram",
            "Duration of funds mover calls",
            ("operation",),
        )
        self._claims = self._collector.gauge(
            f"{_PREFIX}_claims_gauge",
            "Claim records currently held, by state",
            ("state",),
        )
        self._failed_writes = self._collector.gauge(
            f"{_PREFIX}_store_failed_writes_gauge",
            "Document writes rejected by the store backend since start",
        )

        # Cron metrics
        self._cron_histogram = self._collector.histogram(
            f"{_PREFIX}_cron_histogram",
            "Duration of cron job executions",
            ("job_name",),
        )
        self._cron_last = self._collector.gauge(
            f"{_PREFIX}_cron_last_execution_gauge",
            "Timestamp of last cron execution",
            ("job_name",),
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the underlying Prometheus registry."""
        return self._collector.registry

    # -- Counters --

    def record_claim_created(self, currency: str, mode: str) -> None:
        """Count an issued claim."""
        self._created.labels(currency=currency, mode=mode).inc()

    def record_claim_redeemed(self, kind: str) -> None:
        """Count a redemption (``self`` or ``forward``)."""
        self._redeemed.labels(kind=kind).inc()

    def record_action(self, action: str) -> None:
        """Count a recorded recipient action."""
        self._actions.labels(action=action).inc()

    def record_mover_failure(self, operation: str) -> None:
        """Count a failed funds mover call."""
        self._mover_failures.labels(operation=operation).inc()

    # -- Gauges --

    def set_claim_counts(self, pending: int, redeemed: int) -> None:
        """Set the number of pending and redeemed claim records."""
        self._claims.labels(state="pending").set(pending)
        self._claims.labels(state="redeemed").set(redeemed)

    def set_failed_writes(self, count: int) -> None:
        """Set the number of rejected store writes."""
        self._failed_writes.set(count)

    # -- Operation trackers (context managers) --

    @contextmanager
    def track_mover(self, operation: str) -> Iterator[None]:
        """Track the duration of a funds mover call."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._mover_call.labels(operation=operation).observe(time.monotonic() - start)

    @contextmanager
    def track_cron(self, job_name: str) -> Iterator[None]:
        """Track the duration of a cron job and record last execution time."""
        start = time.monotonic()
        try:
            yield
        finally:
            self._cron_histogram.labels(job_name=job_name).observe(time.monotonic() - start)
            self._cron_last.labels(job_name=job_name).set(time.time())
