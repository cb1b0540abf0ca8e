# src/rbi_core/application/uow.py
# Copyright (c) RBI.
# SPDX-License-Identifier: MIT
"""Unit of Work (Application Layer).

Purpose:
    Define the transactional boundary the registry use cases run in. One
    mutation is one UnitOfWork scope: facts, derived fields and the audit
    record are committed together or not at all.

    This module is infrastructure-agnostic:
        * No SQLAlchemy / DB imports.
        * No concrete repository implementations.

    Concrete implementations live in the adapters/ layer and must satisfy
    this protocol.

Layer:
    application
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from types import TracebackType
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class UnitOfWork(Protocol, AbstractAsyncContextManager["UnitOfWork"]):
    """Abstract Unit-of-Work contract for application use cases.

    Entering the context begins a transaction. Leaving it without an explicit
    :meth:`commit` discards pending work.
    """

    async def __aenter__(self) -> UnitOfWork:
        """Enter the transactional scope and return the active UoW."""
        raise NotImplementedError

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None:
        """Exit the transactional scope, rolling back uncommitted work."""
        raise NotImplementedError

    async def commit(self) -> None:
        """Commit all pending changes for this UnitOfWork."""
        raise NotImplementedError

    async def rollback(self) -> None:
        """Roll back any pending changes for this UnitOfWork."""
        raise NotImplementedError

    def get_repository(self, repo_type: type[Any]) -> Any:
        """Return a repository instance for the given key/type.

        Args:
            repo_type:
                Repository port (Protocol) or concrete class used as the
                lookup key.

        Raises:
            KeyError: If nothing is registered for ``repo_type``.
        """
        raise NotImplementedError
