# src/rbi_core/domain/interfaces/repositories/residents_repository.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Residents repository interface.

Purpose:
    Persistence operations for resident records, including their cached
    derived fields.

Layer:
    domain/interfaces/repositories

Notes:
    Implementations live in the adapters layer, participate in the caller's
    UnitOfWork transaction and never commit. Driver errors are translated
    into :class:`rbi_core.domain.exceptions.registry.StorageError`.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol
from uuid import UUID

from rbi_core.domain.entities.resident import Resident


class ResidentsRepository(Protocol):
    """Protocol for repositories managing residents."""

    async def get_by_id(self, resident_id: UUID, *, for_update: bool = False) -> Resident | None:
        """Return a resident by id, or None when absent.

        Args:
            resident_id: Resident identifier.
            for_update: Lock the row until the transaction ends.
        """
        raise NotImplementedError

    async def list_by_unit_code(
        self,
        unit_code: str,
        *,
        limit: int,
        offset: int = 0,
        include_inactive: bool = True,
    ) -> Sequence[Resident]:
        """Return one page of residents registered in a local unit.

        Results are ordered by ``id`` ascending so pagination is stable.
        """
        raise NotImplementedError

    async def list_by_household(
        self,
        household_id: UUID,
        *,
        for_update: bool = False,
    ) -> Sequence[Resident]:
        """Return every resident (active or not) linked to a household, ordered by id."""
        raise NotImplementedError

    async def upsert(self, resident: Resident, *, expected_version: int | None) -> Resident:
        """Insert or update a resident with an optimistic version check.

        Args:
            resident: Resident state to store.
            expected_version: Version the caller read, or None for inserts.

        Returns:
            Resident: Stored state with its version incremented.

        Raises:
            ConcurrentModificationError: If the stored version differs from
                ``expected_version`` or an insert collides with an existing id.
            StorageError: On any other persistence failure.
        """
        raise NotImplementedError


__all__ = ["ResidentsRepository"]
