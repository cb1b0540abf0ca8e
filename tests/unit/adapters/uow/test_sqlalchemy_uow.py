# tests/unit/adapters/uow/test_sqlalchemy_uow.py
from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from rbi_core.adapters.repositories.audit_log_repository import SqlAlchemyAuditLogRepository
from rbi_core.adapters.repositories.households_repository import SqlAlchemyHouseholdsRepository
from rbi_core.adapters.repositories.residents_repository import SqlAlchemyResidentsRepository
from rbi_core.adapters.uow import SqlAlchemyUnitOfWork
from rbi_core.domain.exceptions.registry import ConcurrentModificationError, StorageError
from rbi_core.domain.interfaces.repositories.audit_log_repository import AuditLogRepository
from rbi_core.domain.interfaces.repositories.households_repository import HouseholdsRepository
from rbi_core.domain.interfaces.repositories.residents_repository import ResidentsRepository


class _DriverError(Exception):
    def __init__(self, sqlstate: str | None) -> None:
        super().__init__("driver failure")
        self.sqlstate = sqlstate


class _FakeAsyncSession:
    """Async-session stand-in exposing only commit, rollback and close."""

    def __init__(self, commit_error: Exception | None = None) -> None:
        self.commit_error = commit_error
        self.committed = False
        self.rolled_back = False
        self.closed = False

    async def commit(self) -> None:
        if self.commit_error is not None:
            raise self.commit_error
        self.committed = True

    async def rollback(self) -> None:
        self.rolled_back = True

    async def close(self) -> None:
        self.closed = True


class _Factory:
    def __init__(self, commit_error: Exception | None = None) -> None:
        self.commit_error = commit_error
        self.sessions: list[_FakeAsyncSession] = []

    def __call__(self) -> _FakeAsyncSession:
        session = _FakeAsyncSession(self.commit_error)
        self.sessions.append(session)
        return session


@pytest.mark.asyncio
async def test_uow_resolves_registry_repositories() -> None:
    uow = SqlAlchemyUnitOfWork(session_factory=_Factory())  # type: ignore[arg-type]

    async with uow as tx:
        residents = tx.get_repository(ResidentsRepository)
        assert isinstance(residents, SqlAlchemyResidentsRepository)
        assert tx.get_repository(ResidentsRepository) is residents
        assert isinstance(tx.get_repository(HouseholdsRepository), SqlAlchemyHouseholdsRepository)
        assert isinstance(tx.get_repository(AuditLogRepository), SqlAlchemyAuditLogRepository)
        with pytest.raises(KeyError):
            tx.get_repository(dict)


@pytest.mark.asyncio
async def test_uow_commits_and_closes() -> None:
    factory = _Factory()
    uow = SqlAlchemyUnitOfWork(session_factory=factory)  # type: ignore[arg-type]

    async with uow as tx:
        await tx.commit()

    [session] = factory.sessions
    assert session.committed
    assert not session.rolled_back
    assert session.closed


@pytest.mark.asyncio
async def test_uow_rolls_back_when_not_committed() -> None:
    factory = _Factory()
    uow = SqlAlchemyUnitOfWork(session_factory=factory)  # type: ignore[arg-type]

    async with uow:
        pass
    with pytest.raises(RuntimeError):
        async with uow:
            raise RuntimeError("boom")

    assert all(s.rolled_back and s.closed for s in factory.sessions)
    assert len(factory.sessions) == 2


@pytest.mark.asyncio
async def test_uow_guards_usage_outside_scope() -> None:
    uow = SqlAlchemyUnitOfWork(session_factory=_Factory())  # type: ignore[arg-type]

    with pytest.raises(RuntimeError):
        uow.get_repository(ResidentsRepository)
    with pytest.raises(RuntimeError):
        await uow.commit()

    async with uow:
        with pytest.raises(RuntimeError):
            await uow.__aenter__()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("sqlstate", "expected"),
    [
        ("40001", ConcurrentModificationError),
        ("40P01", ConcurrentModificationError),
        ("23505", StorageError),
        (None, StorageError),
    ],
)
async def test_commit_failures_are_translated(
    sqlstate: str | None, expected: type[StorageError]
) -> None:
    factory = _Factory(OperationalError("COMMIT", {}, _DriverError(sqlstate)))
    uow = SqlAlchemyUnitOfWork(session_factory=factory)  # type: ignore[arg-type]

    with pytest.raises(expected) as ei:
        async with uow as tx:
            await tx.commit()

    assert type(ei.value) is expected
    assert factory.sessions[0].rolled_back
    assert factory.sessions[0].closed
