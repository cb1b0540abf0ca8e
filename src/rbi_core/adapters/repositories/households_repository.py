# src/rbi_core/adapters/repositories/households_repository.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Households repository (SQLAlchemy).

Purpose:
    Map :class:`Household` entities to ``rbi.households`` rows with their
    aggregate cache, enforcing the optimistic version check on writes.

Layer:
    adapters / repositories
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import Select, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rbi_core.adapters.repositories.base_repository import BaseRepository
from rbi_core.domain.entities.household import Household
from rbi_core.domain.enums.resident import IncomeClass
from rbi_core.domain.exceptions.registry import ConcurrentModificationError
from rbi_core.domain.value_objects.derived_fields import DerivedHouseholdFields
from rbi_core.infrastructure.database.models.registry import HouseholdModel

_COUNT_COLUMNS: tuple[str, ...] = (
    "total_members",
    "adult_count",
    "minor_count",
    "senior_count",
    "employed_count",
    "migrant_count",
    "registered_senior_count",
    "pwd_count",
    "solo_parent_count",
    "ofw_count",
    "indigenous_count",
)


def _to_values(household: Household) -> dict[str, Any]:
    derived = household.derived
    values: dict[str, Any] = {
        "id": household.id,
        "code": household.code,
        "household_number": household.household_number,
        "unit_code": household.unit_code,
        "head_resident_id": household.head_resident_id,
        "region_code": household.region_code,
        "province_code": household.province_code,
        "city_code": household.city_code,
        "monthly_income": derived.monthly_income if derived else None,
        "income_class": derived.income_class.value if derived else None,
        "derived_as_of": household.derived_as_of,
    }
    for name in _COUNT_COLUMNS:
        values[name] = getattr(derived, name) if derived else None
    return values


def _to_domain(row: HouseholdModel) -> Household:
    derived: DerivedHouseholdFields | None = None
    if row.derived_as_of is not None:
        derived = DerivedHouseholdFields(
            **{name: int(getattr(row, name) or 0) for name in _COUNT_COLUMNS},
            monthly_income=row.monthly_income if row.monthly_income is not None else Decimal("0"),
            income_class=IncomeClass(row.income_class or IncomeClass.POOR.value),
        )
    return Household(
        id=row.id,
        code=row.code,
        household_number=row.household_number,
        unit_code=row.unit_code,
        head_resident_id=row.head_resident_id,
        region_code=row.region_code,
        province_code=row.province_code,
        city_code=row.city_code,
        derived=derived,
        derived_as_of=row.derived_as_of if derived is not None else None,
        version=row.version,
    )


class SqlAlchemyHouseholdsRepository(BaseRepository[HouseholdModel]):
    """SQLAlchemy-backed households repository."""

    _MODEL_NAME = "households"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session)

    async def get_by_id(self, household_id: UUID, *, for_update: bool = False) -> Household | None:
        """Return a household by id, optionally locking the row."""
        async with self._instrumented("get_by_id"):
            stmt: Select[Any] = select(HouseholdModel).where(HouseholdModel.id == household_id)
            if for_update:
                stmt = stmt.with_for_update().execution_options(populate_existing=True)
            row = await self.fetch_optional(stmt)
            return _to_domain(row) if row is not None else None

    async def get_by_code(self, code: str) -> Household | None:
        """Return a household by hierarchical code."""
        async with self._instrumented("get_by_code"):
            row = await self.fetch_optional(
                select(HouseholdModel).where(HouseholdModel.code == code)
            )
            return _to_domain(row) if row is not None else None

    async def list_by_unit_code(
        self,
        unit_code: str,
        *,
        limit: int,
        offset: int = 0,
    ) -> Sequence[Household]:
        """Return one page of households in a local unit, ordered by id."""
        async with self._instrumented("list_by_unit_code"):
            stmt = self.paginate(
                self.order_by_pk(
                    select(HouseholdModel).where(HouseholdModel.unit_code == unit_code),
                    HouseholdModel.id,
                ),
                limit=limit,
                offset=offset,
            )
            return [_to_domain(row) for row in await self.fetch_all(stmt)]

    async def upsert(self, household: Household, *, expected_version: int | None) -> Household:
        """Insert or update a household with an optimistic version check."""
        async with self._instrumented("upsert"):
            values = _to_values(household)
            if expected_version is None:
                try:
                    await self._session.execute(insert(HouseholdModel).values(**values, version=1))
                except IntegrityError as exc:
                    raise ConcurrentModificationError(
                        "Household already exists or its code is taken.",
                        details={"resource_id": str(household.id), "code": household.code},
                    ) from exc
                return dataclasses.replace(household, version=1)

            values.pop("id")
            stmt = (
                update(HouseholdModel)
                .where(
                    HouseholdModel.id == household.id,
                    HouseholdModel.version == expected_version,
                )
                .values(**values, version=expected_version + 1)
                .returning(HouseholdModel.version)
            )
            try:
                new_version = (await self._session.execute(stmt)).scalar_one_or_none()
            except IntegrityError as exc:
                raise ConcurrentModificationError(
                    "Household code is taken.",
                    details={"resource_id": str(household.id), "code": household.code},
                ) from exc
            if new_version is None:
                raise ConcurrentModificationError(
                    "Household was modified by another transaction.",
                    details={
                        "resource_id": str(household.id),
                        "expected_version": expected_version,
                    },
                )
            return dataclasses.replace(household, version=new_version)
