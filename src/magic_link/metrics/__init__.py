"""Metrics — Prometheus metrics collection and exposure."""

from __future__ import annotations

from magic_link.metrics.collector import ClaimMetrics, MetricsCollector

__all__ = ["ClaimMetrics", "MetricsCollector"]
