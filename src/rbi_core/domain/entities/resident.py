# src/rbi_core/domain/entities/resident.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""
Resident Entity

Purpose:
    Immutable domain representation of one registered inhabitant: the facts
    supplied by authorized actors plus the cached derived classification.

Layer: domain/entities

Notes:
    ``derived`` is a cache computed for ``derived_as_of``. It can always be
    rebuilt from the facts, so it is never a source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from rbi_core.domain.enums.resident import EducationStatus, EmploymentStatus, Sex
from rbi_core.domain.value_objects.derived_fields import DerivedResidentFields

from .base import BaseEntity

# Contact fields are the only ones a self-service actor may change.
CONTACT_FIELDS: frozenset[str] = frozenset({"mobile_number", "telephone_number", "email"})

# Fields a caller may never set directly.
SYSTEM_FIELDS: frozenset[str] = frozenset({"id", "version", "derived", "derived_as_of"})

# Sectoral facts declared by an administrator rather than derived.
DECLARED_SECTOR_FIELDS: tuple[str, ...] = (
    "is_ofw",
    "is_person_with_disability",
    "is_solo_parent",
    "is_indigenous_people",
    "is_registered_senior_citizen",
)


@dataclass(frozen=True, slots=True)
class Resident(BaseEntity):
    """Registered resident.

    Args:
        id: Resident identifier.
        first_name: Given name.
        last_name: Family name.
        birthdate: Date of birth.
        sex: Recorded sex.
        employment_status: Employment fact.
        education_status: Schooling fact.
        unit_code: Leaf administrative unit the resident is registered in.
        household_id: Household the resident belongs to, if any.
        middle_name: Optional middle name.
        monthly_income: Optional monthly income (non-negative).
        previous_unit_code: Unit of previous residence, used for the migrant
            flag.
        mobile_number: Contact field.
        telephone_number: Contact field.
        email: Contact field.
        is_ofw: Declared overseas worker.
        is_person_with_disability: Declared person with disability.
        is_solo_parent: Declared solo parent.
        is_indigenous_people: Declared member of an indigenous group.
        is_registered_senior_citizen: Registered with the senior citizens
            office. Only valid while the resident is a senior citizen.
        is_active: False once soft-deactivated.
        region_code: Denormalized ancestor code.
        province_code: Denormalized ancestor code.
        city_code: Denormalized ancestor code.
        derived: Cached derived fields.
        derived_as_of: Evaluation date ``derived`` was computed for.
        version: Optimistic concurrency counter.

    Raises:
        ValueError: If invariants are violated.
    """

    id: UUID
    first_name: str
    last_name: str
    birthdate: date
    sex: Sex
    employment_status: EmploymentStatus
    education_status: EducationStatus
    unit_code: str
    household_id: UUID | None = None
    middle_name: str | None = None
    monthly_income: Decimal | None = None
    previous_unit_code: str | None = None
    mobile_number: str | None = None
    telephone_number: str | None = None
    email: str | None = None
    is_ofw: bool = False
    is_person_with_disability: bool = False
    is_solo_parent: bool = False
    is_indigenous_people: bool = False
    is_registered_senior_citizen: bool = False
    is_active: bool = True
    region_code: str | None = None
    province_code: str | None = None
    city_code: str | None = None
    derived: DerivedResidentFields | None = None
    derived_as_of: date | None = None
    version: int = 0

    def __post_init__(self) -> None:
        if not self.first_name.strip() or not self.last_name.strip():
            raise ValueError("first_name and last_name must be non-empty")
        if not self.unit_code:
            raise ValueError("unit_code must be non-empty")
        if self.monthly_income is not None and self.monthly_income < 0:
            raise ValueError("monthly_income must be >= 0 when provided")
        if (self.derived is None) != (self.derived_as_of is None):
            raise ValueError("derived and derived_as_of must be set together")
        if self.version < 0:
            raise ValueError("version must be >= 0")

    @property
    def full_name(self) -> str:
        """Return ``"First [Middle] Last"``."""
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)
