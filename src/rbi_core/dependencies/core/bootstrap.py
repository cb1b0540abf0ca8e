# src/rbi_core/dependencies/core/bootstrap.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Core bootstrap for the registry (settings, logging, DB, geography).

This module owns the lifecycle of shared infrastructure. It is intentionally
thin: configuration is read from Settings, and all heavy lifting is delegated
to the infrastructure modules and use cases.

The single public surface is :func:`bootstrap`, an async context manager that
yields a :class:`BootstrapState`. The state exposes factories that build use
cases bound to a fresh Unit of Work, because a UnitOfWork scope is entered by
one task at a time.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import tzinfo

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rbi_core.adapters.repositories.geographic_reference_source import (
    SqlAlchemyGeographicReferenceSource,
)
from rbi_core.adapters.uow import SqlAlchemyUnitOfWork
from rbi_core.application.services.clock import registry_timezone
from rbi_core.application.use_cases.geography.refresh_geographic_tree import (
    RefreshGeographicTreeUseCase,
)
from rbi_core.application.use_cases.households.get_household import GetHouseholdUseCase
from rbi_core.application.use_cases.mutations.execute_mutation import MutationCoordinator
from rbi_core.application.use_cases.reconciliation.reconcile_derived_fields import (
    ReconcileDerivedFieldsUseCase,
)
from rbi_core.application.use_cases.residents.get_resident import GetResidentUseCase
from rbi_core.application.use_cases.residents.list_residents_by_unit import (
    ListResidentsByUnitUseCase,
)
from rbi_core.config.settings import Settings, get_settings
from rbi_core.domain.services.access_policy import TenantAccessPolicyEvaluator
from rbi_core.domain.services.attribute_derivation import AttributeDerivationEngine
from rbi_core.domain.services.geographic_hierarchy import GeographicHierarchyResolver
from rbi_core.infrastructure.logging.logger import configure_root_logging, get_json_logger

logger = get_json_logger(__name__)


@dataclass
class BootstrapState:
    """State yielded by the bootstrap context manager."""

    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    resolver: GeographicHierarchyResolver
    engine: AttributeDerivationEngine
    evaluator: TenantAccessPolicyEvaluator
    timezone: tzinfo

    def unit_of_work(self) -> SqlAlchemyUnitOfWork:
        """Return a new, not yet entered, Unit of Work."""
        return SqlAlchemyUnitOfWork(session_factory=self.session_factory)

    def mutation_coordinator(self) -> MutationCoordinator:
        return MutationCoordinator(
            uow=self.unit_of_work(),
            resolver=self.resolver,
            engine=self.engine,
            evaluator=self.evaluator,
            timezone=self.timezone,
        )

    def get_resident(self) -> GetResidentUseCase:
        return GetResidentUseCase(
            uow=self.unit_of_work(),
            evaluator=self.evaluator,
            engine=self.engine,
            timezone=self.timezone,
        )

    def get_household(self) -> GetHouseholdUseCase:
        return GetHouseholdUseCase(
            uow=self.unit_of_work(),
            evaluator=self.evaluator,
            engine=self.engine,
            timezone=self.timezone,
        )

    def list_residents_by_unit(self) -> ListResidentsByUnitUseCase:
        return ListResidentsByUnitUseCase(
            uow=self.unit_of_work(),
            evaluator=self.evaluator,
            resolver=self.resolver,
            default_page_size=self.settings.residents_page_size,
        )

    def reconcile_derived_fields(self) -> ReconcileDerivedFieldsUseCase:
        return ReconcileDerivedFieldsUseCase(
            uow=self.unit_of_work(),
            engine=self.engine,
            batch_size=self.settings.reconciliation_batch_size,
        )

    def refresh_geographic_tree(self) -> RefreshGeographicTreeUseCase:
        return RefreshGeographicTreeUseCase(
            source=SqlAlchemyGeographicReferenceSource(session_factory=self.session_factory),
            resolver=self.resolver,
        )


@asynccontextmanager
async def bootstrap(settings: Settings | None = None) -> AsyncGenerator[BootstrapState, None]:
    """Initialize and tear down shared infrastructure.

    Responsibilities:
        * Load application settings and configure JSON logging.
        * Initialize the DB engine/sessionmaker.
        * Build the sectoral policy engine and the access evaluator.
        * Load the geographic tree into the resolver.
        * Dispose the engine on exit, even on error.

    Args:
        settings: Explicit settings; defaults to :func:`get_settings`.

    Yields:
        BootstrapState: Wired services and use-case factories.
    """
    settings = settings or get_settings()
    configure_root_logging(settings.log_level, service_name=settings.service_name)
    logger.info("bootstrap.start", extra={"environment": settings.environment.value})

    # Imported here so tests can monkeypatch the module functions.
    import rbi_core.infrastructure.database.session as db_session

    session_factory = db_session.init_engine_and_sessionmaker(settings)
    try:
        resolver = GeographicHierarchyResolver()
        engine = AttributeDerivationEngine(settings.sectoral_policy())
        state = BootstrapState(
            settings=settings,
            session_factory=session_factory,
            resolver=resolver,
            engine=engine,
            evaluator=TenantAccessPolicyEvaluator(resolver),
            timezone=registry_timezone(settings.registry_timezone),
        )
        result = await state.refresh_geographic_tree().execute(force=True)
        logger.info(
            "bootstrap.geography_loaded",
            extra={"version": result.current_version, "unit_count": result.unit_count},
        )
        yield state
    finally:
        try:
            await db_session.dispose_engine()
        except Exception:
            logger.exception("bootstrap.db_dispose_failed")
        logger.info("bootstrap.stop")
