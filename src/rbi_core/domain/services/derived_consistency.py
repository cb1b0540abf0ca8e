# src/rbi_core/domain/services/derived_consistency.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Derived-field consistency checks.

Purpose:
    Compare the derived cache stored on a resident or household with a
    fresh recomputation at the cache's own evaluation date, and describe
    any drift as a :class:`ConsistencyError`.

Layer:
    domain/services

Notes:
    - Read-only: drift is reported, never corrected. Correction is a manual
      or batch decision taken outside this module.
    - Recomputing at ``derived_as_of`` (not today) separates real drift from
      the natural ageing of a cache.
    - Facts that cannot be derived at ``derived_as_of`` (a birthdate after
      it) are reported as drift on the ``facts`` key.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from rbi_core.domain.entities.household import Household
from rbi_core.domain.entities.resident import Resident
from rbi_core.domain.enums.access import ResourceType
from rbi_core.domain.exceptions.registry import ConsistencyError, ValidationError
from rbi_core.domain.services.attribute_derivation import AttributeDerivationEngine
from rbi_core.domain.value_objects.derived_fields import diff_derived


class DerivedConsistencyChecker:
    """Detect drift between stored derived fields and their facts."""

    def __init__(self, engine: AttributeDerivationEngine | None = None) -> None:
        """Initialize the checker.

        Args:
            engine: Derivation engine used for recomputation.
        """
        self._engine = engine or AttributeDerivationEngine()

    def check_resident(self, resident: Resident) -> ConsistencyError | None:
        """Return a consistency error for a drifted resident, else None.

        Residents without a cache are not checked.
        """
        if resident.derived is None or resident.derived_as_of is None:
            return None
        try:
            fresh = self._engine.derive_resident(resident, resident.derived_as_of)
        except ValidationError as exc:
            return _unrecomputable(ResourceType.RESIDENT, resident.id, exc)
        diff = diff_derived(resident.derived, fresh)
        if not diff:
            return None
        return ConsistencyError(
            resource_type=ResourceType.RESIDENT.value,
            resource_id=str(resident.id),
            diff=diff,
        )

    def check_household(
        self,
        household: Household,
        members: Sequence[Resident],
    ) -> ConsistencyError | None:
        """Return a consistency error for drifted household aggregates, else None.

        Args:
            household: Household with a stored aggregate cache.
            members: All residents linked to the household (active or not).
        """
        if household.derived is None or household.derived_as_of is None:
            return None
        try:
            fresh = self._engine.derive_household(members, household.derived_as_of)
        except ValidationError as exc:
            return _unrecomputable(ResourceType.HOUSEHOLD, household.id, exc)
        diff = diff_derived(household.derived, fresh)
        if not diff:
            return None
        return ConsistencyError(
            resource_type=ResourceType.HOUSEHOLD.value,
            resource_id=str(household.id),
            diff=diff,
        )


def _unrecomputable(
    resource_type: ResourceType,
    resource_id: UUID,
    exc: ValidationError,
) -> ConsistencyError:
    """Describe a cache whose facts cannot be derived at its evaluation date."""
    return ConsistencyError(
        resource_type=resource_type.value,
        resource_id=str(resource_id),
        diff={"facts": {"stored": exc.details, "recomputed": None}},
    )


__all__ = ["DerivedConsistencyChecker"]
