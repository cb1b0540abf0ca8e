# src/rbi_core/domain/interfaces/repositories/households_repository.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Households repository interface.

Layer:
    domain/interfaces/repositories

Notes:
    Same transactional rules as the residents repository: no commits, driver
    errors surface as ``StorageError``.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol
from uuid import UUID

from rbi_core.domain.entities.household import Household


class HouseholdsRepository(Protocol):
    """Protocol for repositories managing households."""

    async def get_by_id(self, household_id: UUID, *, for_update: bool = False) -> Household | None:
        """Return a household by id, or None when absent."""
        raise NotImplementedError

    async def get_by_code(self, code: str) -> Household | None:
        """Return a household by hierarchical code, or None when absent."""
        raise NotImplementedError

    async def list_by_unit_code(
        self,
        unit_code: str,
        *,
        limit: int,
        offset: int = 0,
    ) -> Sequence[Household]:
        """Return one page of households in a local unit, ordered by id."""
        raise NotImplementedError

    async def upsert(self, household: Household, *, expected_version: int | None) -> Household:
        """Insert or update a household with an optimistic version check.

        Raises:
            ConcurrentModificationError: On a version or identity conflict.
            StorageError: On any other persistence failure.
        """
        raise NotImplementedError


__all__ = ["HouseholdsRepository"]
