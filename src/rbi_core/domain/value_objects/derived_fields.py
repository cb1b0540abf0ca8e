# src/rbi_core/domain/value_objects/derived_fields.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Derived field value objects.

Purpose:
    Immutable bundles of the values computed by the attribute derivation
    engine. Stored copies on residents/households are a cache; these objects
    are what a fresh recomputation produces and what drift checks compare.

Layer:
    domain/value_objects
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from rbi_core.domain.entities.base import snapshot_value
from rbi_core.domain.enums.resident import IncomeClass

__all__ = [
    "DERIVED_HOUSEHOLD_FIELD_NAMES",
    "DERIVED_RESIDENT_FIELD_NAMES",
    "DerivedHouseholdFields",
    "DerivedResidentFields",
    "diff_derived",
]


@dataclass(frozen=True, slots=True)
class DerivedResidentFields:
    """Sectoral classification of a single resident at an evaluation date."""

    age: int
    is_minor: bool
    is_senior_citizen: bool
    is_out_of_school_youth: bool
    is_unemployed: bool
    is_out_of_school_children: bool = False
    is_labor_force: bool = False
    is_employed: bool = False
    is_migrant: bool = False


@dataclass(frozen=True, slots=True)
class DerivedHouseholdFields:
    """Aggregates over the active members of a household."""

    total_members: int
    adult_count: int
    minor_count: int
    senior_count: int
    employed_count: int
    migrant_count: int = 0
    registered_senior_count: int = 0
    pwd_count: int = 0
    solo_parent_count: int = 0
    ofw_count: int = 0
    indigenous_count: int = 0
    monthly_income: Decimal = Decimal("0")
    income_class: IncomeClass = IncomeClass.POOR

    def __post_init__(self) -> None:
        if self.total_members < 0:
            raise ValueError("total_members must be >= 0")
        if self.adult_count + self.minor_count != self.total_members:
            raise ValueError("adult_count + minor_count must equal total_members")


DERIVED_RESIDENT_FIELD_NAMES: frozenset[str] = frozenset(
    f.name for f in dataclasses.fields(DerivedResidentFields)
)
DERIVED_HOUSEHOLD_FIELD_NAMES: frozenset[str] = frozenset(
    f.name for f in dataclasses.fields(DerivedHouseholdFields)
)


def diff_derived(
    stored: DerivedResidentFields | DerivedHouseholdFields | None,
    recomputed: DerivedResidentFields | DerivedHouseholdFields,
) -> dict[str, dict[str, Any]]:
    """Return the per-field differences between a stored and fresh value.

    Args:
        stored: Cached derived bundle, or None when nothing was stored.
        recomputed: Freshly derived bundle of the same type.

    Returns:
        Mapping ``field -> {"stored": ..., "recomputed": ...}`` with JSON
        compatible values; empty when both agree on every field.
    """
    out: dict[str, dict[str, Any]] = {}
    for f in dataclasses.fields(recomputed):
        fresh = getattr(recomputed, f.name)
        cached = getattr(stored, f.name) if stored is not None else None
        if cached != fresh:
            out[f.name] = {"stored": snapshot_value(cached), "recomputed": snapshot_value(fresh)}
    return out
