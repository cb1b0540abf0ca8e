# src/rbi_core/application/use_cases/geography/refresh_geographic_tree.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Refresh the geographic hierarchy from reference data.

Purpose:
    Compare the reference source's version with the resolver's and, when
    they differ, load the full unit set and swap the resolver snapshot.

Layer:
    application/use_cases

Notes:
    An invalid tree is rejected by the resolver and the previous snapshot
    keeps serving; the error propagates to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rbi_core.domain.exceptions.geography import GeographicTreeError
from rbi_core.domain.interfaces.repositories.geographic_reference_source import (
    GeographicReferenceSource,
)
from rbi_core.domain.services.geographic_hierarchy import GeographicHierarchyResolver
from rbi_core.infrastructure.observability.metrics import get_geographic_refresh_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RefreshResult:
    """Outcome of a refresh attempt."""

    swapped: bool
    previous_version: str
    current_version: str
    unit_count: int


class RefreshGeographicTreeUseCase:
    """Swap the resolver snapshot when reference data has a new version."""

    def __init__(
        self,
        *,
        source: GeographicReferenceSource,
        resolver: GeographicHierarchyResolver,
    ) -> None:
        self._source = source
        self._resolver = resolver

    async def execute(self, *, force: bool = False) -> RefreshResult:
        """Refresh if the reference version changed (or ``force`` is set).

        Raises:
            GeographicTreeError: If the new tree is structurally invalid.
        """
        previous = self._resolver.version
        latest = await self._source.current_version()
        if latest == previous and not force:
            get_geographic_refresh_total().labels(outcome="unchanged").inc()
            return RefreshResult(
                swapped=False,
                previous_version=previous,
                current_version=previous,
                unit_count=self._resolver.size,
            )

        units = await self._source.load_units()
        try:
            snapshot = self._resolver.refresh(units, latest)
        except GeographicTreeError as exc:
            get_geographic_refresh_total().labels(outcome="rejected").inc()
            logger.error(
                "registry.geography.refresh_rejected",
                extra={"version": latest, "serving_version": previous, "details": exc.details},
            )
            raise

        get_geographic_refresh_total().labels(outcome="swapped").inc()
        logger.info(
            "registry.geography.refreshed",
            extra={"previous_version": previous, "version": latest, "units": snapshot.size},
        )
        return RefreshResult(
            swapped=True,
            previous_version=previous,
            current_version=snapshot.version,
            unit_count=snapshot.size,
        )


__all__ = ["RefreshGeographicTreeUseCase", "RefreshResult"]
