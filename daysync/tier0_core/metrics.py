"""
daysync.tier0_core.metrics
───────────────────────────
Counters, gauges, and histograms with standard naming and labels.
Diagnostics only: nothing in the sync path branches on a metric value.

Minimal stack: prometheus-client
Configure via: APP_NAME, APP_ENV (label values)
"""
from __future__ import annotations

import os
from typing import Callable

from prometheus_client import Counter, Gauge, Histogram

# Standard labels applied to every metric
_DEFAULT_LABELS = ["service", "env"]
_SERVICE = os.getenv("APP_NAME", "daysync")
_ENV = os.getenv("APP_ENV", "development")
_DEFAULT_LABEL_VALUES = [_SERVICE, _ENV]
_DEFAULT_LABEL_MAP = dict(zip(_DEFAULT_LABELS, _DEFAULT_LABEL_VALUES))


def counter(name: str, description: str, labels: list[str] | None = None) -> Callable:
    """
    Create a counter with standard labels.

    Usage:
        sync_total = counter("daysync_sync_total", "Sync attempts", ["outcome"])
        sync_total(outcome="success").inc()
    """
    all_labels = _DEFAULT_LABELS + (labels or [])
    c = Counter(name, description, all_labels)

    def _counter(**extra_labels: str) -> Counter:
        return c.labels(**_DEFAULT_LABEL_MAP, **extra_labels)

    return _counter


def gauge(name: str, description: str, labels: list[str] | None = None) -> Callable:
    """
    Create a gauge with standard labels.

    Usage:
        errors = gauge("daysync_sync_consecutive_errors", "Consecutive sync failures")
        errors().set(2)
    """
    all_labels = _DEFAULT_LABELS + (labels or [])
    g = Gauge(name, description, all_labels)

    def _gauge(**extra_labels: str) -> Gauge:
        return g.labels(**_DEFAULT_LABEL_MAP, **extra_labels)

    return _gauge


def histogram(
    name: str,
    description: str,
    labels: list[str] | None = None,
    buckets: tuple = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
) -> Callable:
    """
    Create a histogram with standard labels.

    Usage:
        duration = histogram("daysync_sync_duration_seconds", "Sync round-trip")
        duration().observe(0.12)
    """
    all_labels = _DEFAULT_LABELS + (labels or [])
    h = Histogram(name, description, all_labels, buckets=buckets)

    def _histogram(**extra_labels: str) -> Histogram:
        return h.labels(**_DEFAULT_LABEL_MAP, **extra_labels)

    return _histogram


# ── Sync metrics ──────────────────────────────────────────────────────────────

sync_total = counter(
    "daysync_sync_total", "Time authority sync attempts by outcome", ["outcome"]
)
sync_consecutive_errors = gauge(
    "daysync_sync_consecutive_errors", "Consecutive counted sync failures"
)
sync_duration_seconds = histogram(
    "daysync_sync_duration_seconds", "Time authority round-trip duration"
)


__all__ = [
    "counter",
    "gauge",
    "histogram",
    "sync_total",
    "sync_consecutive_errors",
    "sync_duration_seconds",
]
