# src/rbi_core/application/services/clock.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Registry clock helpers.

Purpose:
    One definition of "today" for derivation: the calendar date in the
    registry timezone, taken from an injectable UTC clock.

Layer:
    application/services
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime, tzinfo
from zoneinfo import ZoneInfo

DEFAULT_REGISTRY_TIMEZONE = "Asia/Manila"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current UTC time with timezone info."""
    return datetime.now(UTC)


def registry_timezone(name: str | None = None) -> tzinfo:
    """Return the registry timezone (defaults to Asia/Manila)."""
    return ZoneInfo(name or DEFAULT_REGISTRY_TIMEZONE)


def evaluation_date(clock: Clock, tz: tzinfo) -> date:
    """Return the calendar date of ``clock()`` in ``tz``.

    Naive datetimes from ``clock`` are taken as UTC.
    """
    now = clock()
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now.astimezone(tz).date()


__all__ = [
    "DEFAULT_REGISTRY_TIMEZONE",
    "Clock",
    "evaluation_date",
    "registry_timezone",
    "utc_now",
]
