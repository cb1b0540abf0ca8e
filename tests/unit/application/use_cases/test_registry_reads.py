# tests/unit/application/use_cases/test_registry_reads.py
from __future__ import annotations

import dataclasses
import uuid
from datetime import date

import pytest

from rbi_core.application.use_cases.households.get_household import GetHouseholdUseCase
from rbi_core.application.use_cases.residents.get_resident import GetResidentUseCase
from rbi_core.application.use_cases.residents.list_residents_by_unit import (
    ListResidentsByUnitUseCase,
)
from rbi_core.domain.enums.resident import EmploymentStatus
from rbi_core.domain.exceptions.registry import (
    AuthorizationError,
    ResourceNotFoundError,
    ValidationError,
)
from rbi_core.domain.services.access_policy import TenantAccessPolicyEvaluator
from rbi_core.domain.services.attribute_derivation import AttributeDerivationEngine
from tests.fixtures.registry_testkit import (
    LOCAL_A,
    LOCAL_B,
    TODAY,
    FakeUnitOfWork,
    RegistryStore,
    fixed_clock,
    global_admin,
    make_household,
    make_resident,
    sample_resolver,
    self_service,
    unit_admin,
)


def _evaluator() -> TenantAccessPolicyEvaluator:
    return TenantAccessPolicyEvaluator(sample_resolver())


def _get_resident(store: RegistryStore) -> GetResidentUseCase:
    return GetResidentUseCase(
        uow=FakeUnitOfWork(store), evaluator=_evaluator(), clock=fixed_clock()
    )


@pytest.mark.asyncio
async def test_get_resident_refreshes_derived_for_today() -> None:
    engine = AttributeDerivationEngine()
    resident = engine.refresh_resident(make_resident(birthdate=date(2008, 2, 1)), date(2025, 6, 1))
    store = RegistryStore()
    store.add(resident)

    view = await _get_resident(store).execute(actor=unit_admin(LOCAL_A), resident_id=resident.id)

    assert view.drift is None
    assert view.resident.derived is not None
    assert view.resident.derived.age == 18
    assert view.resident.derived_as_of == TODAY
    # The refreshed cache is not written back.
    assert store.residents[resident.id].derived_as_of == date(2025, 6, 1)


@pytest.mark.asyncio
async def test_get_resident_reports_drift() -> None:
    engine = AttributeDerivationEngine()
    cached = engine.refresh_resident(make_resident(), TODAY)
    drifted = dataclasses.replace(cached, employment_status=EmploymentStatus.NOT_EMPLOYED)
    store = RegistryStore()
    store.add(drifted)

    view = await _get_resident(store).execute(actor=global_admin(), resident_id=drifted.id)

    assert view.drift is not None
    assert "is_employed" in view.drift.diff
    assert view.resident.derived is not None and view.resident.derived.is_unemployed


@pytest.mark.asyncio
async def test_get_resident_errors() -> None:
    resident = make_resident(unit_code=LOCAL_B)
    store = RegistryStore()
    store.add(resident)
    use_case = _get_resident(store)

    with pytest.raises(ResourceNotFoundError):
        await use_case.execute(actor=global_admin(), resident_id=uuid.uuid4())
    with pytest.raises(AuthorizationError) as ei:
        await use_case.execute(actor=unit_admin(LOCAL_A), resident_id=resident.id)
    assert ei.value.reason == "out_of_scope"


@pytest.mark.asyncio
async def test_self_service_reads_household_members() -> None:
    household = make_household()
    me = make_resident(household_id=household.id)
    sibling = make_resident(first_name="Ana", household_id=household.id)
    gone = make_resident(first_name="Pia", household_id=household.id, is_active=False)
    store = RegistryStore()
    store.add(household, me, sibling, gone)
    actor = self_service(me.id, household_id=household.id)

    use_case = GetHouseholdUseCase(
        uow=FakeUnitOfWork(store), evaluator=_evaluator(), clock=fixed_clock()
    )
    view = await use_case.execute(actor=actor, household_id=household.id)

    assert {m.id for m in view.members} == {me.id, sibling.id}
    assert view.household.derived is not None
    assert view.household.derived.total_members == 2
    assert view.drift is None

    resident_view = await _get_resident(store).execute(actor=actor, resident_id=sibling.id)
    assert resident_view.resident.id == sibling.id


@pytest.mark.asyncio
async def test_get_household_not_found() -> None:
    use_case = GetHouseholdUseCase(uow=FakeUnitOfWork(), evaluator=_evaluator())
    with pytest.raises(ResourceNotFoundError):
        await use_case.execute(actor=global_admin(), household_id=uuid.uuid4())


@pytest.mark.asyncio
async def test_missing_records_are_denied_like_foreign_ones() -> None:
    store = RegistryStore()
    residents = _get_resident(store)
    households = GetHouseholdUseCase(uow=FakeUnitOfWork(store), evaluator=_evaluator())

    with pytest.raises(AuthorizationError) as resident_err:
        await residents.execute(actor=unit_admin(LOCAL_A), resident_id=uuid.uuid4())
    with pytest.raises(AuthorizationError) as household_err:
        await households.execute(actor=unit_admin(LOCAL_A), household_id=uuid.uuid4())
    with pytest.raises(AuthorizationError) as self_err:
        await residents.execute(actor=self_service(uuid.uuid4()), resident_id=uuid.uuid4())

    assert resident_err.value.reason == "out_of_scope"
    assert household_err.value.reason == "out_of_scope"
    assert self_err.value.reason == "not_owner"


@pytest.mark.asyncio
async def test_list_residents_pages_within_unit() -> None:
    store = RegistryStore()
    store.add(*(make_resident(first_name=f"R{i}") for i in range(5)))
    store.add(make_resident(is_active=False), make_resident(unit_code=LOCAL_B))
    use_case = ListResidentsByUnitUseCase(
        uow=FakeUnitOfWork(store), evaluator=_evaluator(), resolver=sample_resolver()
    )

    first = await use_case.execute(actor=unit_admin(LOCAL_A), unit_code=LOCAL_A, limit=3)
    assert len(first.items) == 3
    assert first.next_offset == 3

    second = await use_case.execute(
        actor=unit_admin(LOCAL_A), unit_code=LOCAL_A, limit=3, offset=first.next_offset
    )
    assert len(second.items) == 2
    assert second.next_offset is None

    everyone = await use_case.execute(
        actor=global_admin(), unit_code=LOCAL_A, include_inactive=True
    )
    assert len(everyone.items) == 6


@pytest.mark.asyncio
async def test_list_residents_rejections() -> None:
    use_case = ListResidentsByUnitUseCase(
        uow=FakeUnitOfWork(), evaluator=_evaluator(), resolver=sample_resolver()
    )

    with pytest.raises(AuthorizationError):
        await use_case.execute(actor=unit_admin(LOCAL_B), unit_code=LOCAL_A)
    with pytest.raises(AuthorizationError):
        await use_case.execute(actor=self_service(uuid.uuid4()), unit_code=LOCAL_A)
    with pytest.raises(ValidationError):
        await use_case.execute(actor=global_admin(), unit_code="0128")
    with pytest.raises(ValidationError):
        await use_case.execute(actor=global_admin(), unit_code=LOCAL_A, limit=0)
    with pytest.raises(ValidationError):
        await use_case.execute(actor=global_admin(), unit_code=LOCAL_A, offset=-1)
