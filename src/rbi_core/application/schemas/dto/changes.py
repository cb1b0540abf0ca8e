# src/rbi_core/application/schemas/dto/changes.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Change-set DTOs for resident and household mutations.

Purpose:
    Parse the raw ``{field: value}`` mapping of a mutation request into
    typed values, reporting problems per field.

Layer:
    application/schemas/dto

Notes:
    - Every field is optional; only keys present in the request count as
      changes (``exclude_unset``).
    - Derived and system-managed fields are refused before parsing so the
      caller gets a specific message instead of "extra field".
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import Field
from pydantic import ValidationError as PydanticValidationError

from rbi_core.application.schemas.dto.base import BaseDTO
from rbi_core.domain.entities.resident import DECLARED_SECTOR_FIELDS, SYSTEM_FIELDS
from rbi_core.domain.enums.resident import EducationStatus, EmploymentStatus, Sex
from rbi_core.domain.exceptions.registry import ValidationError
from rbi_core.domain.value_objects.derived_fields import (
    DERIVED_HOUSEHOLD_FIELD_NAMES,
    DERIVED_RESIDENT_FIELD_NAMES,
)

RESIDENT_REQUIRED_ON_CREATE: tuple[str, ...] = (
    "first_name",
    "last_name",
    "birthdate",
    "sex",
    "employment_status",
    "education_status",
    "unit_code",
)
HOUSEHOLD_REQUIRED_ON_CREATE: tuple[str, ...] = ("household_number", "unit_code")


class ResidentChanges(BaseDTO):
    """Fields a caller may set on a resident."""

    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    middle_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    birthdate: date | None = None
    sex: Sex | None = None
    employment_status: EmploymentStatus | None = None
    education_status: EducationStatus | None = None
    unit_code: str | None = Field(default=None, min_length=1, max_length=20)
    household_id: UUID | None = None
    monthly_income: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    previous_unit_code: str | None = Field(default=None, max_length=20)
    mobile_number: str | None = Field(default=None, max_length=20)
    telephone_number: str | None = Field(default=None, max_length=20)
    email: str | None = Field(default=None, max_length=255)
    is_ofw: bool | None = None
    is_person_with_disability: bool | None = None
    is_solo_parent: bool | None = None
    is_indigenous_people: bool | None = None
    is_registered_senior_citizen: bool | None = None
    region_code: str | None = Field(default=None, max_length=20)
    province_code: str | None = Field(default=None, max_length=20)
    city_code: str | None = Field(default=None, max_length=20)


class HouseholdChanges(BaseDTO):
    """Fields a caller may set on a household."""

    household_number: str | None = Field(default=None, min_length=1, max_length=50)
    unit_code: str | None = Field(default=None, min_length=1, max_length=20)
    head_resident_id: UUID | None = None
    region_code: str | None = Field(default=None, max_length=20)
    province_code: str | None = Field(default=None, max_length=20)
    city_code: str | None = Field(default=None, max_length=20)


# Fields that must not be null once set.
NON_NULLABLE_RESIDENT_FIELDS: frozenset[str] = frozenset(
    (*RESIDENT_REQUIRED_ON_CREATE, *DECLARED_SECTOR_FIELDS)
)
NON_NULLABLE_HOUSEHOLD_FIELDS: frozenset[str] = frozenset(HOUSEHOLD_REQUIRED_ON_CREATE)


def _parse(
    model: type[BaseDTO],
    raw: Mapping[str, Any],
    forbidden: frozenset[str],
    non_nullable: frozenset[str],
) -> dict[str, Any]:
    refused = {
        name: "derived or system-managed field cannot be set"
        for name in raw
        if name in forbidden
    }
    if refused:
        raise ValidationError("Change set contains read-only fields", details=refused)

    try:
        parsed = model.model_validate(dict(raw))
    except PydanticValidationError as exc:
        details: dict[str, Any] = {}
        for err in exc.errors():
            loc = ".".join(str(part) for part in err["loc"]) or "__root__"
            details.setdefault(loc, err["msg"])
        raise ValidationError("Change set is malformed", details=details) from exc

    values = parsed.model_dump(exclude_unset=True)
    nulls = {
        name: "may not be null"
        for name, value in values.items()
        if value is None and name in non_nullable
    }
    if nulls:
        raise ValidationError("Change set clears required fields", details=nulls)
    return values


def parse_resident_changes(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Return the typed resident changes present in ``raw``.

    Raises:
        ValidationError: For read-only, unknown, mistyped or nulled fields.
    """
    return _parse(
        ResidentChanges,
        raw,
        DERIVED_RESIDENT_FIELD_NAMES | SYSTEM_FIELDS | {"is_active"},
        NON_NULLABLE_RESIDENT_FIELDS,
    )


def parse_household_changes(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Return the typed household changes present in ``raw``.

    Raises:
        ValidationError: For read-only, unknown, mistyped or nulled fields.
    """
    return _parse(
        HouseholdChanges,
        raw,
        DERIVED_HOUSEHOLD_FIELD_NAMES | SYSTEM_FIELDS | {"code"},
        NON_NULLABLE_HOUSEHOLD_FIELDS,
    )


__all__ = [
    "HOUSEHOLD_REQUIRED_ON_CREATE",
    "RESIDENT_REQUIRED_ON_CREATE",
    "HouseholdChanges",
    "ResidentChanges",
    "parse_household_changes",
    "parse_resident_changes",
]
