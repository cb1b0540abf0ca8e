# src/rbi_core/domain/entities/household.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""
Household Entity

Purpose:
    Immutable domain representation of a household and its cached member
    aggregates.

Layer: domain/entities
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from rbi_core.domain.value_objects.derived_fields import DerivedHouseholdFields

from .base import BaseEntity

HOUSEHOLD_CODE_SEPARATOR = "-"


def build_household_code(unit_code: str, household_number: str) -> str:
    """Return the hierarchical household code ``<unit_code>-<number>``.

    Args:
        unit_code: Leaf administrative unit code.
        household_number: Number unique within the unit; may itself contain
            separators (e.g. ``"0001-0002-0003"``).
    """
    return f"{unit_code}{HOUSEHOLD_CODE_SEPARATOR}{household_number}"


def unit_code_from_household_code(code: str) -> str | None:
    """Return the unit-code prefix of a hierarchical household code.

    Returns:
        The prefix before the first separator, or None if the code has no
        separator or an empty prefix.
    """
    prefix, sep, rest = code.partition(HOUSEHOLD_CODE_SEPARATOR)
    if not sep or not prefix or not rest:
        return None
    return prefix


@dataclass(frozen=True, slots=True)
class Household(BaseEntity):
    """Registered household.

    Args:
        id: Household identifier.
        code: Hierarchical household code (``<unit_code>-<household_number>``).
        household_number: Number unique within the unit.
        unit_code: Leaf administrative unit.
        head_resident_id: Active member heading the household, if any.
        region_code: Denormalized ancestor code.
        province_code: Denormalized ancestor code.
        city_code: Denormalized ancestor code.
        derived: Cached member aggregates.
        derived_as_of: Evaluation date ``derived`` was computed for.
        version: Optimistic concurrency counter.

    Raises:
        ValueError: If invariants are violated.
    """

    id: UUID
    code: str
    household_number: str
    unit_code: str
    head_resident_id: UUID | None = None
    region_code: str | None = None
    province_code: str | None = None
    city_code: str | None = None
    derived: DerivedHouseholdFields | None = None
    derived_as_of: date | None = None
    version: int = 0

    def __post_init__(self) -> None:
        if not self.household_number.strip():
            raise ValueError("household_number must be non-empty")
        if self.code != build_household_code(self.unit_code, self.household_number):
            raise ValueError("code must equal '<unit_code>-<household_number>'")
        if (self.derived is None) != (self.derived_as_of is None):
            raise ValueError("derived and derived_as_of must be set together")
        if self.version < 0:
            raise ValueError("version must be >= 0")
