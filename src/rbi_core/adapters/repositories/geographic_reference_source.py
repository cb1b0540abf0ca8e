# src/rbi_core/adapters/repositories/geographic_reference_source.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Geographic reference data read from the registry database.

Purpose:
    Load the administrative-unit tree and its version label so the
    hierarchy resolver can be (re)built at startup or on refresh.

Layer:
    adapters / repositories

Notes:
    This source opens its own short-lived session per call. Reference data
    is read outside any mutation transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rbi_core.domain.entities.geographic_unit import GeographicUnit
from rbi_core.domain.enums.geography import GeographicLevel
from rbi_core.domain.exceptions.registry import StorageError
from rbi_core.domain.services.geographic_hierarchy import EMPTY_TREE_VERSION
from rbi_core.infrastructure.database.models.geography import (
    GeographicUnitModel,
    ReferenceDataVersionModel,
)

logger = logging.getLogger(__name__)

#: Dataset key of the administrative-unit tree in ``reference_data_versions``.
GEOGRAPHIC_DATASET = "geographic_units"


class SqlAlchemyGeographicReferenceSource:
    """Reference source backed by ``rbi.geographic_units``."""

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        dataset: str = GEOGRAPHIC_DATASET,
    ) -> None:
        self._session_factory = session_factory
        self._dataset = dataset

    async def current_version(self) -> str:
        """Return the stored version label, or ``"empty"`` if none is recorded."""
        try:
            async with self._session_factory() as session:
                res = await session.execute(
                    select(ReferenceDataVersionModel.version).where(
                        ReferenceDataVersionModel.dataset == self._dataset
                    )
                )
                version = res.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.exception("registry.geography.version_failed")
            raise StorageError(details={"dataset": self._dataset}) from exc
        return version or EMPTY_TREE_VERSION

    async def load_units(self) -> Sequence[GeographicUnit]:
        """Return every administrative unit, ordered by code."""
        try:
            async with self._session_factory() as session:
                res = await session.execute(
                    select(GeographicUnitModel).order_by(GeographicUnitModel.code.asc())
                )
                rows = list(res.scalars().all())
        except SQLAlchemyError as exc:
            logger.exception("registry.geography.load_failed")
            raise StorageError(details={"dataset": self._dataset}) from exc
        return [
            GeographicUnit(
                code=row.code,
                level=GeographicLevel(row.level),
                parent_code=row.parent_code,
                name=row.name,
            )
            for row in rows
        ]


__all__ = ["GEOGRAPHIC_DATASET", "SqlAlchemyGeographicReferenceSource"]
