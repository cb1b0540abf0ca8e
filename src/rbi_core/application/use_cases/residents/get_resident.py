# src/rbi_core/application/use_cases/residents/get_resident.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Get resident (authorized read).

Purpose:
    Load one resident, authorize the read, check the stored derived cache
    for drift, and return the record with derived fields refreshed for
    today.

Layer:
    application/use_cases

Notes:
    - Read-only: the refreshed view is not persisted and drift is reported
      on the operator channel, never corrected here.
    - Raises ``ResourceNotFoundError`` / ``AuthorizationError``; the API
      layer maps them to its own responses.
"""

from __future__ import annotations

import logging
from datetime import tzinfo
from typing import cast
from uuid import UUID

from rbi_core.application.schemas.dto.mutations import ResidentView
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
from rbi_core.domain.interfaces.repositories.residents_repository import ResidentsRepository
from rbi_core.domain.services.access_policy import (
    ResourceDescriptor,
    TenantAccessPolicyEvaluator,
)
from rbi_core.domain.services.attribute_derivation import AttributeDerivationEngine
from rbi_core.domain.services.derived_consistency import DerivedConsistencyChecker
from rbi_core.domain.value_objects.actor import ActorIdentity

logger = logging.getLogger(__name__)


class GetResidentUseCase:
    """Authorized single-resident read with drift detection."""

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

    async def execute(self, *, actor: ActorIdentity, resident_id: UUID) -> ResidentView:
        """Return the resident if the actor may read it.

        Args:
            actor: Authenticated actor.
            resident_id: Resident to read.

        Returns:
            ResidentView: Resident refreshed for today plus any drift found.

        Raises:
            ResourceNotFoundError: If the resident does not exist.
            AuthorizationError: If the read is denied.
        """
        async with self._uow as tx:
            repo = cast(ResidentsRepository, tx.get_repository(ResidentsRepository))
            resident = await repo.get_by_id(resident_id)

        if resident is None:
            self._guard.require_for_missing(
                actor, AccessAction.READ, ResourceType.RESIDENT, resident_id
            )
            raise ResourceNotFoundError(ResourceType.RESIDENT.value, str(resident_id))

        self._guard.require(
            actor,
            AccessAction.READ,
            ResourceDescriptor(
                resource_type=ResourceType.RESIDENT,
                id=resident.id,
                unit_code=resident.unit_code,
                household_id=resident.household_id,
            ),
        )

        drift = self._checker.check_resident(resident)
        if drift is not None:
            report_drift(drift, source="read")

        as_of = evaluation_date(self._clock, self._tz)
        logger.debug(
            "registry.get_resident.success",
            extra={"resident_id": str(resident_id), "drift": drift is not None},
        )
        return ResidentView(resident=self._engine.refresh_resident(resident, as_of), drift=drift)


__all__ = ["GetResidentUseCase"]
