# src/rbi_core/adapters/repositories/base_repository.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""
BaseRepository: shared mechanics for the registry repositories.

Purpose:
    Shared mechanics for all repositories:
      * Deterministic ordering helpers (PK tie-breakers).
      * Safe fetch helpers (optional, all).
      * Instrumented operation scope: latency histogram, error counter and
        translation of driver errors into ``StorageError``.

Layer: adapters / repositories

Notes:
    * No business logic, no domain decisions.
    * Repositories never commit; use cases own transactions.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from typing import Any, ClassVar, Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rbi_core.domain.exceptions.registry import StorageError
from rbi_core.infrastructure.observability.metrics import (
    get_db_errors_total,
    get_db_operation_duration_seconds,
)

TModel = TypeVar("TModel")


class BaseRepository(Generic[TModel]):  # noqa: UP046
    """Abstract base class for all repositories."""

    #: Table name used as the ``model`` metric label.
    _MODEL_NAME: ClassVar[str] = "unknown"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: Async SQLAlchemy session bound to the target database.
        """
        self._session: AsyncSession = session
        self._metrics_hist = get_db_operation_duration_seconds()
        self._metrics_err = get_db_errors_total()

    # ------------------------------------------------------------------
    # Instrumentation
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _instrumented(self, operation: str) -> AsyncIterator[None]:
        """Time an operation and translate driver failures.

        Domain errors raised inside the block propagate unchanged. Any
        ``SQLAlchemyError`` is re-raised as :class:`StorageError` so the
        application layer never sees driver types.

        Args:
            operation: Repository method name used as the metric label.
        """
        start = time.perf_counter()
        outcome = "success"
        try:
            yield
        except SQLAlchemyError as exc:
            outcome = "error"
            self._count_error(operation, exc)
            raise StorageError(
                details={"operation": operation, "model": self._MODEL_NAME},
            ) from exc
        except Exception as exc:
            outcome = "error"
            self._count_error(operation, exc)
            raise
        finally:
            with suppress(Exception):
                self._metrics_hist.labels(
                    operation=operation,
                    model=self._MODEL_NAME,
                    outcome=outcome,
                ).observe(time.perf_counter() - start)

    def _count_error(self, operation: str, exc: BaseException) -> None:
        with suppress(Exception):
            self._metrics_err.labels(
                operation=operation,
                model=self._MODEL_NAME,
                reason=type(exc).__name__,
            ).inc()

    # ------------------------------------------------------------------
    # Deterministic ordering utilities
    # ------------------------------------------------------------------

    @staticmethod
    def order_by_pk(
        stmt: Select[Any],
        pk_col: Any,
        *,
        ascending: bool = True,
    ) -> Select[Any]:
        """Apply ordering by primary key only."""
        return stmt.order_by(pk_col.asc() if ascending else pk_col.desc())

    @staticmethod
    def paginate(stmt: Select[Any], *, limit: int, offset: int) -> Select[Any]:
        """Apply a limit/offset window to an already ordered statement."""
        return stmt.limit(limit).offset(offset)

    # ------------------------------------------------------------------
    # Fetch helpers
    # ------------------------------------------------------------------

    async def fetch_optional(self, stmt: Select[Any]) -> TModel | None:
        """Execute a statement and return zero or one row."""
        res = await self._session.execute(stmt)
        return res.scalars().first()

    async def fetch_all(self, stmt: Select[Any]) -> list[TModel]:
        """Execute a statement and return all rows as a list."""
        res = await self._session.execute(stmt)
        return list(res.scalars().all())
