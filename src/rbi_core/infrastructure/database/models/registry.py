# src/rbi_core/infrastructure/database/models/registry.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Resident and household ORM models.

Purpose:
    Persistence shape for residents and households, with their derived
    caches stored as plain columns so they can be indexed and reported on.

Design:
    - Derived columns are nullable: a row without ``derived_as_of`` has no
      cache yet.
    - ``version`` backs the optimistic check done by the repositories.
    - Households reference their head without a foreign key (the head is a
      resident that references the household, which would make the pair
      cyclic); the head invariant is enforced by the mutation coordinator.

Layer:
    infrastructure / database / models
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from rbi_core.infrastructure.database.models.base import (
    REGISTRY_SCHEMA,
    Base,
    OptimisticLockingMixin,
    ReprMixin,
    TimestampMixin,
)

_UNIT_FK = f"{REGISTRY_SCHEMA}.geographic_units.code"


class HouseholdModel(Base, TimestampMixin, OptimisticLockingMixin, ReprMixin):
    """Household (rbi.households)."""

    __tablename__ = "households"
    __table_args__ = (
        Index("ix_households_unit_code", "unit_code"),
        {"schema": REGISTRY_SCHEMA},
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    code: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    household_number: Mapped[str] = mapped_column(String(50), nullable=False)
    unit_code: Mapped[str] = mapped_column(String(20), ForeignKey(_UNIT_FK), nullable=False)
    region_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    province_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    city_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    head_resident_id: Mapped[UUID | None] = mapped_column(PG_UUID(as_uuid=True), nullable=True)

    # Derived cache.
    total_members: Mapped[int | None] = mapped_column(Integer, nullable=True)
    adult_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    minor_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    senior_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    employed_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    migrant_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    registered_senior_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pwd_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    solo_parent_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ofw_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    indigenous_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    monthly_income: Mapped[Decimal | None] = mapped_column(Numeric(16, 2), nullable=True)
    income_class: Mapped[str | None] = mapped_column(String(32), nullable=True)
    derived_as_of: Mapped[date | None] = mapped_column(Date, nullable=True)


class ResidentModel(Base, TimestampMixin, OptimisticLockingMixin, ReprMixin):
    """Resident (rbi.residents)."""

    __tablename__ = "residents"
    __table_args__ = (
        Index("ix_residents_unit_code", "unit_code"),
        Index("ix_residents_household_id", "household_id"),
        {"schema": REGISTRY_SCHEMA},
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    middle_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    birthdate: Mapped[date] = mapped_column(Date, nullable=False)
    sex: Mapped[str] = mapped_column(String(16), nullable=False)
    employment_status: Mapped[str] = mapped_column(String(32), nullable=False)
    education_status: Mapped[str] = mapped_column(String(32), nullable=False)
    monthly_income: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    previous_unit_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    mobile_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    telephone_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_ofw: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    is_person_with_disability: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    is_solo_parent: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    is_indigenous_people: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    is_registered_senior_citizen: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="true"
    )
    unit_code: Mapped[str] = mapped_column(String(20), ForeignKey(_UNIT_FK), nullable=False)
    household_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey(f"{REGISTRY_SCHEMA}.households.id"),
        nullable=True,
    )
    region_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    province_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    city_code: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Derived cache.
    age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_minor: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    is_senior_citizen: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    is_out_of_school_youth: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    is_unemployed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    is_out_of_school_children: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    is_labor_force: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    is_employed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    is_migrant: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    derived_as_of: Mapped[date | None] = mapped_column(Date, nullable=True)
