# src/rbi_core/adapters/repositories/residents_repository.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Residents repository (SQLAlchemy).

Purpose:
    Map :class:`Resident` entities to ``rbi.residents`` rows, including the
    derived-field cache columns, and enforce the optimistic version check on
    every write.

Layer:
    adapters / repositories
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import Select, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rbi_core.adapters.repositories.base_repository import BaseRepository
from rbi_core.domain.entities.resident import DECLARED_SECTOR_FIELDS, Resident
from rbi_core.domain.enums.resident import EducationStatus, EmploymentStatus, Sex
from rbi_core.domain.exceptions.registry import ConcurrentModificationError
from rbi_core.domain.value_objects.derived_fields import DerivedResidentFields
from rbi_core.infrastructure.database.models.registry import ResidentModel

_DERIVED_COLUMNS: tuple[str, ...] = tuple(
    f.name for f in dataclasses.fields(DerivedResidentFields)
)


def _to_values(resident: Resident) -> dict[str, Any]:
    """Return the column values for a resident (without ``version``)."""
    values: dict[str, Any] = {
        "id": resident.id,
        "first_name": resident.first_name,
        "middle_name": resident.middle_name,
        "last_name": resident.last_name,
        "birthdate": resident.birthdate,
        "sex": resident.sex.value,
        "employment_status": resident.employment_status.value,
        "education_status": resident.education_status.value,
        "monthly_income": resident.monthly_income,
        "previous_unit_code": resident.previous_unit_code,
        "mobile_number": resident.mobile_number,
        "telephone_number": resident.telephone_number,
        "email": resident.email,
        **{name: getattr(resident, name) for name in DECLARED_SECTOR_FIELDS},
        "is_active": resident.is_active,
        "unit_code": resident.unit_code,
        "household_id": resident.household_id,
        "region_code": resident.region_code,
        "province_code": resident.province_code,
        "city_code": resident.city_code,
        "derived_as_of": resident.derived_as_of,
    }
    for name in _DERIVED_COLUMNS:
        values[name] = getattr(resident.derived, name) if resident.derived is not None else None
    return values


def _to_domain(row: ResidentModel) -> Resident:
    derived: DerivedResidentFields | None = None
    if row.derived_as_of is not None:
        derived = DerivedResidentFields(
            **{name: bool(getattr(row, name)) for name in _DERIVED_COLUMNS if name != "age"},
            age=int(row.age or 0),
        )
    return Resident(
        id=row.id,
        first_name=row.first_name,
        middle_name=row.middle_name,
        last_name=row.last_name,
        birthdate=row.birthdate,
        sex=Sex(row.sex),
        employment_status=EmploymentStatus(row.employment_status),
        education_status=EducationStatus(row.education_status),
        monthly_income=row.monthly_income,
        previous_unit_code=row.previous_unit_code,
        mobile_number=row.mobile_number,
        telephone_number=row.telephone_number,
        email=row.email,
        **{name: bool(getattr(row, name)) for name in DECLARED_SECTOR_FIELDS},
        is_active=row.is_active,
        unit_code=row.unit_code,
        household_id=row.household_id,
        region_code=row.region_code,
        province_code=row.province_code,
        city_code=row.city_code,
        derived=derived,
        derived_as_of=row.derived_as_of if derived is not None else None,
        version=row.version,
    )


class SqlAlchemyResidentsRepository(BaseRepository[ResidentModel]):
    """SQLAlchemy-backed residents repository."""

    _MODEL_NAME = "residents"

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session)

    @staticmethod
    def _locked(stmt: Select[Any], for_update: bool) -> Select[Any]:
        if not for_update:
            return stmt
        # Refresh identity-mapped rows so the locked read is the current one.
        return stmt.with_for_update().execution_options(populate_existing=True)

    # ------------------------------------------------------------------
    # QUERIES
    # ------------------------------------------------------------------

    async def get_by_id(self, resident_id: UUID, *, for_update: bool = False) -> Resident | None:
        """Return a resident by id, optionally locking the row."""
        async with self._instrumented("get_by_id"):
            stmt = self._locked(
                select(ResidentModel).where(ResidentModel.id == resident_id), for_update
            )
            row = await self.fetch_optional(stmt)
            return _to_domain(row) if row is not None else None

    async def list_by_unit_code(
        self,
        unit_code: str,
        *,
        limit: int,
        offset: int = 0,
        include_inactive: bool = True,
    ) -> Sequence[Resident]:
        """Return one page of residents in a local unit, ordered by id."""
        async with self._instrumented("list_by_unit_code"):
            stmt: Select[Any] = select(ResidentModel).where(ResidentModel.unit_code == unit_code)
            if not include_inactive:
                stmt = stmt.where(ResidentModel.is_active.is_(True))
            stmt = self.paginate(
                self.order_by_pk(stmt, ResidentModel.id), limit=limit, offset=offset
            )
            return [_to_domain(row) for row in await self.fetch_all(stmt)]

    async def list_by_household(
        self,
        household_id: UUID,
        *,
        for_update: bool = False,
    ) -> Sequence[Resident]:
        """Return every resident linked to a household, ordered by id."""
        async with self._instrumented("list_by_household"):
            stmt = self.order_by_pk(
                select(ResidentModel).where(ResidentModel.household_id == household_id),
                ResidentModel.id,
            )
            rows = await self.fetch_all(self._locked(stmt, for_update))
            return [_to_domain(row) for row in rows]

    # ------------------------------------------------------------------
    # UPSERT
    # ------------------------------------------------------------------

    async def upsert(self, resident: Resident, *, expected_version: int | None) -> Resident:
        """Insert or update a resident with an optimistic version check.

        Inserts store version 1. Updates only apply when the stored version
        equals ``expected_version`` and bump it by one.
        """
        async with self._instrumented("upsert"):
            values = _to_values(resident)
            if expected_version is None:
                try:
                    await self._session.execute(insert(ResidentModel).values(**values, version=1))
                except IntegrityError as exc:
                    raise ConcurrentModificationError(
                        "Resident already exists or violates a registry constraint.",
                        details={"resource_id": str(resident.id)},
                    ) from exc
                return dataclasses.replace(resident, version=1)

            values.pop("id")
            stmt = (
                update(ResidentModel)
                .where(
                    ResidentModel.id == resident.id,
                    ResidentModel.version == expected_version,
                )
                .values(**values, version=expected_version + 1)
                .returning(ResidentModel.version)
            )
            new_version = (await self._session.execute(stmt)).scalar_one_or_none()
            if new_version is None:
                raise ConcurrentModificationError(
                    "Resident was modified by another transaction.",
                    details={
                        "resource_id": str(resident.id),
                        "expected_version": expected_version,
                    },
                )
            return dataclasses.replace(resident, version=new_version)
