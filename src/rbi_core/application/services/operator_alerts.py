# src/rbi_core/application/services/operator_alerts.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Operator channel.

Purpose:
    Surface conditions that need a human: derived-field drift found on read
    or during reconciliation. Alerts go to the ``rbi_core.operator`` logger
    at ERROR level and are counted in metrics.

Layer:
    application/services
"""

from __future__ import annotations

import logging

from rbi_core.domain.exceptions.registry import ConsistencyError
from rbi_core.infrastructure.observability.metrics import get_derived_drift_total

OPERATOR_LOGGER_NAME = "rbi_core.operator"

operator_logger = logging.getLogger(OPERATOR_LOGGER_NAME)


def report_drift(error: ConsistencyError, *, source: str) -> None:
    """Log and count one drift finding.

    Args:
        error: Consistency error carrying the before/after diff.
        source: Where the drift was found (``read`` or ``reconciliation``).
    """
    get_derived_drift_total().labels(resource_type=error.resource_type, source=source).inc()
    operator_logger.error(
        "registry.derived.drift",
        extra={
            "code": error.code,
            "source": source,
            "resource_type": error.resource_type,
            "resource_id": error.resource_id,
            "diff": error.diff,
        },
    )


__all__ = ["OPERATOR_LOGGER_NAME", "report_drift"]
