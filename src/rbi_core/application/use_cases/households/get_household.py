# src/rbi_core/application/use_cases/households/get_household.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Get household (authorized read).

Purpose:
    Load a household and its members, authorize the read, check the stored
    aggregates for drift, and return aggregates refreshed for today.

Layer:
    application/use_cases
"""

from __future__ import annotations

from datetime import tzinfo
from typing import cast
from uuid import UUID

from rbi_core.application.schemas.dto.mutations import HouseholdView
from rbi_core.application.services.access_guard import AccessGuard
from rbi_core.application.services.clock import (
    Clock,
    evaluation_date,
    registry_timezone,
    utc_now,
)
from rbi_core.application.services.operator_alerts import report_drift
from rbi_core.application.uow import UnitOfWork
from rbi_core.domain.enums.access import AccessAction, ResourceType
from rbi_core.domain.exceptions.registry import ResourceNotFoundError
from rbi_core.domain.interfaces.repositories.households_repository import (
    HouseholdsRepository,
)
from rbi_core.domain.interfaces.repositories.residents_repository import ResidentsRepository
from rbi_core.domain.services.access_policy import (
    ResourceDescriptor,
    TenantAccessPolicyEvaluator,
)
from rbi_core.domain.services.attribute_derivation import AttributeDerivationEngine
from rbi_core.domain.services.derived_consistency import DerivedConsistencyChecker
from rbi_core.domain.value_objects.actor import ActorIdentity


class GetHouseholdUseCase:
    """Authorized household read with drift detection."""

    def __init__(
        self,
        *,
        uow: UnitOfWork,
        evaluator: TenantAccessPolicyEvaluator,
        engine: AttributeDerivationEngine | None = None,
        clock: Clock = utc_now,
        timezone: tzinfo | None = None,
    ) -> None:
        self._uow = uow
        self._guard = AccessGuard(evaluator)
        self._engine = engine or AttributeDerivationEngine()
        self._checker = DerivedConsistencyChecker(self._engine)
        self._clock = clock
        self._tz = timezone or registry_timezone()

    async def execute(self, *, actor: ActorIdentity, household_id: UUID) -> HouseholdView:
        """Return the household and its members if the actor may read it.

        Raises:
            ResourceNotFoundError: If the household does not exist.
            AuthorizationError: If the read is denied.
        """
        async with self._uow as tx:
            households = cast(HouseholdsRepository, tx.get_repository(HouseholdsRepository))
            residents = cast(ResidentsRepository, tx.get_repository(ResidentsRepository))
            household = await households.get_by_id(household_id)
            members = await residents.list_by_household(household_id) if household else ()

        if household is None:
            self._guard.require_for_missing(
                actor, AccessAction.READ, ResourceType.HOUSEHOLD, household_id
            )
            raise ResourceNotFoundError(ResourceType.HOUSEHOLD.value, str(household_id))

        self._guard.require(
            actor,
            AccessAction.READ,
            ResourceDescriptor(
                resource_type=ResourceType.HOUSEHOLD,
                id=household.id,
                unit_code=household.unit_code,
                household_id=household.id,
                household_code=household.code,
            ),
        )

        drift = self._checker.check_household(household, members)
        if drift is not None:
            report_drift(drift, source="read")

        as_of = evaluation_date(self._clock, self._tz)
        return HouseholdView(
            household=self._engine.refresh_household(household, members, as_of),
            members=tuple(m for m in members if m.is_active),
            drift=drift,
        )


__all__ = ["GetHouseholdUseCase"]
