# src/rbi_core/application/use_cases/reconciliation/reconcile_derived_fields.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Reconcile derived fields for one administrative unit.

Purpose:
    Batch pass that pages through every resident and household of a local
    unit and compares each stored derived cache with a recomputation at the
    cache's own evaluation date.

Layer:
    application/use_cases

Notes:
    - Never writes. Each drift is reported on the operator channel with its
      full before/after diff and returned in the report; correcting it is a
      separate, deliberate operation.
    - Operator task: there is no actor, callers are schedulers or admin
      tooling that have already been authorized.
"""

from __future__ import annotations

import logging
from typing import cast

from rbi_core.application.schemas.dto.mutations import ReconciliationReport
from rbi_core.application.services.operator_alerts import report_drift
from rbi_core.application.uow import UnitOfWork
from rbi_core.domain.exceptions.registry import ConsistencyError
from rbi_core.domain.interfaces.repositories.households_repository import (
    HouseholdsRepository,
)
from rbi_core.domain.interfaces.repositories.residents_repository import ResidentsRepository
from rbi_core.domain.services.attribute_derivation import AttributeDerivationEngine
from rbi_core.domain.services.derived_consistency import DerivedConsistencyChecker

logger = logging.getLogger(__name__)


class ReconcileDerivedFieldsUseCase:
    """Detect derived-field drift across one unit without correcting it."""

    def __init__(
        self,
        *,
        uow: UnitOfWork,
        engine: AttributeDerivationEngine | None = None,
        batch_size: int = 500,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._uow = uow
        self._checker = DerivedConsistencyChecker(engine)
        self._batch_size = batch_size

    async def execute(self, *, unit_code: str) -> ReconciliationReport:
        """Run the reconciliation pass.

        Args:
            unit_code: Local unit to scan.

        Returns:
            ReconciliationReport: Counts and every drift found.
        """
        logger.info("registry.reconcile.start", extra={"unit_code": unit_code})
        drifts: list[ConsistencyError] = []
        residents_checked = households_checked = 0

        async with self._uow as tx:
            residents = cast(ResidentsRepository, tx.get_repository(ResidentsRepository))
            households = cast(HouseholdsRepository, tx.get_repository(HouseholdsRepository))

            offset = 0
            while True:
                page = await residents.list_by_unit_code(
                    unit_code, limit=self._batch_size, offset=offset, include_inactive=True
                )
                for resident in page:
                    residents_checked += 1
                    drift = self._checker.check_resident(resident)
                    if drift is not None:
                        drifts.append(drift)
                if len(page) < self._batch_size:
                    break
                offset += self._batch_size

            offset = 0
            while True:
                hh_page = await households.list_by_unit_code(
                    unit_code, limit=self._batch_size, offset=offset
                )
                for household in hh_page:
                    households_checked += 1
                    members = await residents.list_by_household(household.id)
                    drift = self._checker.check_household(household, members)
                    if drift is not None:
                        drifts.append(drift)
                if len(hh_page) < self._batch_size:
                    break
                offset += self._batch_size

        for drift in drifts:
            report_drift(drift, source="reconciliation")

        logger.info(
            "registry.reconcile.done",
            extra={
                "unit_code": unit_code,
                "residents_checked": residents_checked,
                "households_checked": households_checked,
                "drift_count": len(drifts),
            },
        )
        return ReconciliationReport(
            unit_code=unit_code,
            residents_checked=residents_checked,
            households_checked=households_checked,
            drifts=tuple(drifts),
        )


__all__ = ["ReconcileDerivedFieldsUseCase"]
