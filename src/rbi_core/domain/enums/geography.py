# src/rbi_core/domain/enums/geography.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Administrative hierarchy levels.

Layer:
    domain/enums
"""

from __future__ import annotations

from enum import Enum


class GeographicLevel(str, Enum):
    """Level of an administrative unit, ordered root to leaf."""

    REGION = "region"
    PROVINCE = "province"
    CITY = "city"
    LOCAL_UNIT = "local_unit"

    @property
    def depth(self) -> int:
        """Return the zero-based depth of this level (region is 0)."""
        return _DEPTHS[self]

    @property
    def parent(self) -> GeographicLevel | None:
        """Return the level directly above this one, or None for regions."""
        if self.depth == 0:
            return None
        return _ORDER[self.depth - 1]

    @property
    def is_leaf(self) -> bool:
        """Return True for the lowest level (the local unit)."""
        return self is GeographicLevel.LOCAL_UNIT


_ORDER: tuple[GeographicLevel, ...] = (
    GeographicLevel.REGION,
    GeographicLevel.PROVINCE,
    GeographicLevel.CITY,
    GeographicLevel.LOCAL_UNIT,
)
_DEPTHS: dict[GeographicLevel, int] = {level: i for i, level in enumerate(_ORDER)}

ANCESTOR_LEVELS: tuple[GeographicLevel, ...] = _ORDER[:-1]

__all__ = ["ANCESTOR_LEVELS", "GeographicLevel"]
