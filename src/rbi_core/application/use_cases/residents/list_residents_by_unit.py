# src/rbi_core/application/use_cases/residents/list_residents_by_unit.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""List residents of one administrative unit (paginated).

Layer:
    application/use_cases
"""

from __future__ import annotations

from typing import cast

from rbi_core.application.schemas.dto.mutations import ResidentPage
from rbi_core.application.services.access_guard import AccessGuard
from rbi_core.application.uow import UnitOfWork
from rbi_core.domain.enums.access import AccessAction, ResourceType
from rbi_core.domain.exceptions.registry import ValidationError
from rbi_core.domain.interfaces.repositories.residents_repository import ResidentsRepository
from rbi_core.domain.services.access_policy import (
    ResourceDescriptor,
    TenantAccessPolicyEvaluator,
)
from rbi_core.domain.services.geographic_hierarchy import GeographicHierarchyResolver
from rbi_core.domain.value_objects.actor import ActorIdentity

MAX_PAGE_SIZE = 500


class ListResidentsByUnitUseCase:
    """Authorized, paginated listing of the residents in a local unit.

    Authorization is checked once against the unit itself, so self-service
    actors (who own single records, not units) are denied.
    """

    def __init__(
        self,
        *,
        uow: UnitOfWork,
        evaluator: TenantAccessPolicyEvaluator,
        resolver: GeographicHierarchyResolver,
        default_page_size: int = 100,
    ) -> None:
        self._uow = uow
        self._guard = AccessGuard(evaluator)
        self._resolver = resolver
        self._default_page_size = default_page_size

    async def execute(
        self,
        *,
        actor: ActorIdentity,
        unit_code: str,
        limit: int | None = None,
        offset: int = 0,
        include_inactive: bool = False,
    ) -> ResidentPage:
        """Return one page of residents.

        Raises:
            ValidationError: If the unit is unknown, not a local unit, or the
                paging arguments are out of range.
            AuthorizationError: If the actor may not read the unit.
        """
        page_size = limit if limit is not None else self._default_page_size
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError.for_field("limit", f"must be between 1 and {MAX_PAGE_SIZE}")
        if offset < 0:
            raise ValidationError.for_field("offset", "must be >= 0")
        self._resolver.require_leaf(unit_code)

        self._guard.require(
            actor,
            AccessAction.READ,
            ResourceDescriptor(resource_type=ResourceType.RESIDENT, id=None, unit_code=unit_code),
        )

        async with self._uow as tx:
            repo = cast(ResidentsRepository, tx.get_repository(ResidentsRepository))
            items = await repo.list_by_unit_code(
                unit_code,
                limit=page_size,
                offset=offset,
                include_inactive=include_inactive,
            )
        return ResidentPage(unit_code=unit_code, items=tuple(items), limit=page_size, offset=offset)


__all__ = ["MAX_PAGE_SIZE", "ListResidentsByUnitUseCase"]
