# src/rbi_core/domain/entities/base.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Base Entity (Domain Layer).

Purpose:
    Mixin for immutable domain entities, plus the JSON snapshot helper used
    when entities are written to the audit trail.

Layer:
    domain/entities
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


def snapshot_value(value: Any) -> Any:
    """Convert a domain value into a JSON-compatible primitive.

    Args:
        value: Scalar, enum, date, decimal, UUID, dataclass or container.

    Returns:
        A structure made only of ``dict``/``list``/``str``/``int``/``float``/
        ``bool``/``None``.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: snapshot_value(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {str(k): snapshot_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [snapshot_value(v) for v in value]
    return str(value)


@dataclass(frozen=True, slots=True)
class BaseEntity:
    """Base mixin for domain entities.

    Concrete entities subclass this mixin, declare their own fields and
    override :meth:`__post_init__` for invariant checks.
    """

    def __post_init__(self) -> None:  # noqa: D401
        """Hook for subclasses to extend with invariant checks."""
        return

    def to_snapshot(self) -> dict[str, Any]:
        """Return a JSON-compatible mapping of every field."""
        return {
            f.name: snapshot_value(getattr(self, f.name)) for f in dataclasses.fields(self)
        }
