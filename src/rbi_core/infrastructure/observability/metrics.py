# src/rbi_core/infrastructure/observability/metrics.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Prometheus metrics for the registry core (registry-aware).

Accessor functions return collectors bound to the **current**
``prometheus_client.REGISTRY``. Caches reset automatically when the default
registry is swapped (tests do this), and re-registration of an existing
collector name reuses it instead of raising.

Example:
    get_mutations_total().labels(
        resource_type="resident", action="update", outcome="committed"
    ).inc()
"""

from __future__ import annotations

import logging
import threading
from contextlib import suppress
from typing import Final

import prometheus_client as prom
from prometheus_client import Counter, Histogram

_log = logging.getLogger(__name__)

_BUCKETS: Final[tuple[float, ...]] = (
    0.005,
    0.010,
    0.025,
    0.050,
    0.100,
    0.250,
    0.500,
    1.000,
    2.500,
    5.000,
)

_registry_id: int | None = None
_hist_cache: dict[str, Histogram] = {}
_counter_cache: dict[str, Counter] = {}
_lock = threading.RLock()


# ---------------------------------------------------------------------------
# Registry-handling primitives


def _ensure_registry() -> None:
    """Reset caches if the active registry changed."""
    global _registry_id
    with _lock:
        rid = id(prom.REGISTRY)
        if _registry_id != rid:
            _hist_cache.clear()
            _counter_cache.clear()
            _registry_id = rid


def _lookup_existing(
    name: str, kind: type[Counter] | type[Histogram]
) -> Counter | Histogram | None:
    """Return a collector already registered under ``name``, if of ``kind``."""
    with _lock, suppress(Exception):
        mapping = getattr(prom.REGISTRY, "_names_to_collectors", None)
        if isinstance(mapping, dict):
            col = mapping.get(name)
            if isinstance(col, kind):
                return col
    return None


def _get_or_create_hist(
    name: str,
    help_text: str,
    *,
    labelnames: tuple[str, ...] = (),
    buckets: tuple[float, ...] = _BUCKETS,
) -> Histogram:
    """Get or create a registry-bound ``Histogram`` with stable identity."""
    _ensure_registry()
    with _lock:
        cached = _hist_cache.get(name)
        if cached is not None:
            return cached

        existing = _lookup_existing(name, Histogram)
        if isinstance(existing, Histogram):
            _hist_cache[name] = existing
            return existing

        try:
            h = Histogram(name, help_text, labelnames, buckets=buckets, registry=prom.REGISTRY)
        except ValueError as exc:
            if "Duplicated timeseries" in str(exc):
                again = _lookup_existing(name, Histogram)
                if isinstance(again, Histogram):
                    _hist_cache[name] = again
                    return again
            _log.exception("Failed to register Prometheus histogram %s", name)
            raise
        _hist_cache[name] = h
        return h


def _get_or_create_counter(
    name: str,
    help_text: str,
    *,
    labelnames: tuple[str, ...] = (),
) -> Counter:
    """Get or create a registry-bound ``Counter`` with stable identity."""
    _ensure_registry()
    with _lock:
        cached = _counter_cache.get(name)
        if cached is not None:
            return cached

        # prometheus_client registers counters under their name without the
        # ``_total`` suffix.
        existing = _lookup_existing(name.removesuffix("_total"), Counter) or _lookup_existing(
            name, Counter
        )
        if isinstance(existing, Counter):
            _counter_cache[name] = existing
            return existing

        try:
            c = Counter(name, help_text, labelnames, registry=prom.REGISTRY)
        except ValueError as exc:
            if "Duplicated timeseries" in str(exc):
                again = _lookup_existing(name, Counter)
                if isinstance(again, Counter):
                    _counter_cache[name] = again
                    return again
            _log.exception("Failed to register Prometheus counter %s", name)
            raise
        _counter_cache[name] = c
        return c


# ---------------------------------------------------------------------------
# Registry metrics


def get_access_decisions_total() -> Counter:
    """Return counter of access policy decisions.

    Labels:
        role: Actor role (or ``unknown``).
        action: Attempted action.
        outcome: ``allow`` or ``deny``.
        reason: Deny reason, empty for allows.
    """
    return _get_or_create_counter(
        name="rbi_access_decisions_total",
        help_text="Access policy decisions",
        labelnames=("role", "action", "outcome", "reason"),
    )


def get_mutations_total() -> Counter:
    """Return counter of mutation requests by final outcome.

    Labels:
        resource_type: ``resident`` or ``household``.
        action: Mutation action.
        outcome: ``committed``, ``rejected`` or ``failed``.
    """
    return _get_or_create_counter(
        name="rbi_mutations_total",
        help_text="Mutation requests by outcome",
        labelnames=("resource_type", "action", "outcome"),
    )


def get_mutation_latency_seconds() -> Histogram:
    """Return histogram of end-to-end mutation latency.

    Labels:
        resource_type: ``resident`` or ``household``.
        action: Mutation action.
    """
    return _get_or_create_hist(
        name="rbi_mutation_latency_seconds",
        help_text="Latency (seconds) of mutation requests",
        labelnames=("resource_type", "action"),
    )


def get_derived_drift_total() -> Counter:
    """Return counter of detected derived-field drift.

    Labels:
        resource_type: ``resident`` or ``household``.
        source: ``read`` or ``reconciliation``.
    """
    return _get_or_create_counter(
        name="rbi_derived_drift_total",
        help_text="Stored derived fields that differ from a fresh recomputation",
        labelnames=("resource_type", "source"),
    )


def get_geographic_refresh_total() -> Counter:
    """Return counter of geographic tree refresh attempts.

    Labels:
        outcome: ``swapped``, ``unchanged`` or ``rejected``.
    """
    return _get_or_create_counter(
        name="rbi_geographic_refresh_total",
        help_text="Geographic hierarchy refresh attempts",
        labelnames=("outcome",),
    )


def get_db_operation_duration_seconds() -> Histogram:
    """Return histogram of repository operation latency.

    Labels:
        operation: Repository method name.
        model: Table name.
        outcome: ``success`` or ``error``.
    """
    return _get_or_create_hist(
        name="rbi_db_operation_duration_seconds",
        help_text="Latency (seconds) of repository operations",
        labelnames=("operation", "model", "outcome"),
    )


def get_db_errors_total() -> Counter:
    """Return counter of repository operation failures.

    Labels:
        operation: Repository method name.
        model: Table name.
        reason: Exception class name.
    """
    return _get_or_create_counter(
        name="rbi_db_errors_total",
        help_text="Repository operation failures",
        labelnames=("operation", "model", "reason"),
    )


__all__ = [
    "get_access_decisions_total",
    "get_db_errors_total",
    "get_db_operation_duration_seconds",
    "get_derived_drift_total",
    "get_geographic_refresh_total",
    "get_mutation_latency_seconds",
    "get_mutations_total",
]
