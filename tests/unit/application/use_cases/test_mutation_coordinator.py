# tests/unit/application/use_cases/test_mutation_coordinator.py
from __future__ import annotations

import dataclasses
import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

import pytest

from rbi_core.application.schemas.dto.mutations import MutationRequest
from rbi_core.application.use_cases.mutations.execute_mutation import MutationCoordinator
from rbi_core.domain.entities.household import Household
from rbi_core.domain.entities.resident import Resident
from rbi_core.domain.enums.access import AccessAction, ResourceType
from rbi_core.domain.enums.mutation import MutationState
from rbi_core.domain.enums.resident import EmploymentStatus
from rbi_core.domain.exceptions.registry import ConcurrentModificationError, StorageError
from rbi_core.domain.services.attribute_derivation import AttributeDerivationEngine
from rbi_core.domain.services.derived_consistency import DerivedConsistencyChecker
from rbi_core.domain.value_objects.actor import ActorIdentity
from tests.fixtures.registry_testkit import (
    LOCAL_A,
    LOCAL_B,
    LOCAL_OTHER_REGION,
    TODAY,
    FakeUnitOfWork,
    RegistryStore,
    fixed_clock,
    global_admin,
    make_household,
    make_resident,
    members_of,
    sample_resolver,
    self_service,
    unit_admin,
)

FULL_LIFECYCLE = (
    MutationState.RECEIVED,
    MutationState.AUTHORIZED,
    MutationState.VALIDATED,
    MutationState.DERIVED,
    MutationState.PERSISTED,
    MutationState.AUDITED,
    MutationState.COMMITTED,
)

NEW_RESIDENT: dict[str, Any] = {
    "first_name": "Maria",
    "last_name": "Santos",
    "birthdate": "1995-02-14",
    "sex": "female",
    "employment_status": "employed",
    "education_status": "graduated",
    "unit_code": LOCAL_A,
}


def _coordinator(uow: FakeUnitOfWork, **kw: Any) -> MutationCoordinator:
    ids = iter(UUID(int=n) for n in range(1, 1000))
    kw.setdefault("clock", fixed_clock())
    return MutationCoordinator(
        uow=uow,
        resolver=sample_resolver(),
        id_factory=lambda: next(ids),
        **kw,
    )


def _request(
    actor: ActorIdentity,
    action: AccessAction,
    resource_id: UUID | None = None,
    resource_type: ResourceType = ResourceType.RESIDENT,
    **changes: Any,
) -> MutationRequest:
    return MutationRequest(
        actor=actor,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        changes=changes,
    )


@pytest.fixture
def household_store() -> tuple[RegistryStore, Household, Resident, Resident]:
    """Household in LOCAL_A with two employed members and fresh caches."""
    engine = AttributeDerivationEngine()
    household = make_household()
    first = engine.refresh_resident(
        make_resident(household_id=household.id, monthly_income=Decimal("15000.00")), TODAY
    )
    second = engine.refresh_resident(
        make_resident(
            first_name="Ana",
            household_id=household.id,
            monthly_income=Decimal("10000.00"),
        ),
        TODAY,
    )
    household = engine.refresh_household(household, [first, second], TODAY)
    store = RegistryStore()
    store.add(household, first, second)
    return store, household, first, second


# --------------------------------------------------------------------------
# Creates


@pytest.mark.asyncio
async def test_create_resident_commits_with_derived_fields_and_audit() -> None:
    uow = FakeUnitOfWork()

    outcome = await _coordinator(uow).execute(
        _request(global_admin(), AccessAction.CREATE, **NEW_RESIDENT)
    )

    assert outcome.committed
    assert outcome.trail == FULL_LIFECYCLE
    assert outcome.resource_id == UUID(int=1)

    stored = uow.store.residents[UUID(int=1)]
    assert stored.version == 1
    assert (stored.region_code, stored.province_code, stored.city_code) == (
        "01",
        "0128",
        "012801",
    )
    assert stored.derived is not None and stored.derived.age == 31
    assert stored.derived_as_of == TODAY

    assert len(uow.store.audit) == 1
    audit = uow.store.audit[0]
    assert audit == outcome.audit_record
    assert audit.action is AccessAction.CREATE
    assert audit.before is None
    assert audit.after is not None and audit.after["first_name"] == "Maria"
    assert audit.timestamp == datetime(2026, 3, 1, 2, 0, tzinfo=UTC)
    assert audit.unit_code == LOCAL_A


@pytest.mark.asyncio
async def test_create_into_household_recomputes_aggregates_with_one_audit(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, household, *_ = household_store
    uow = FakeUnitOfWork(store)

    outcome = await _coordinator(uow).execute(
        _request(
            unit_admin(LOCAL_A),
            AccessAction.CREATE,
            household_id=str(household.id),
            birthdate="2020-01-01",
            **{k: v for k, v in NEW_RESIDENT.items() if k != "birthdate"},
        )
    )

    assert outcome.committed
    updated = uow.store.households[household.id]
    assert updated.version == 2
    assert updated.derived is not None
    assert updated.derived.total_members == 3
    assert updated.derived.minor_count == 1
    assert len(uow.store.audit) == 1


@pytest.mark.asyncio
async def test_create_rejects_missing_required_fields() -> None:
    uow = FakeUnitOfWork()

    outcome = await _coordinator(uow).execute(
        _request(global_admin(), AccessAction.CREATE, first_name="Maria")
    )

    assert outcome.state is MutationState.REJECTED
    assert outcome.trail == (MutationState.RECEIVED, MutationState.REJECTED)
    assert outcome.rejection is not None
    assert outcome.rejection.code == "VALIDATION_ERROR"
    assert "birthdate" in outcome.rejection.details
    assert uow.store.residents == {}
    assert uow.store.audit == []
    assert uow.commits == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("overrides", "code", "field"),
    [
        ({"region_code": "13"}, "GEOGRAPHIC_CHAIN_MISMATCH", "region_code"),
        ({"unit_code": "999999999"}, "GEOGRAPHIC_NOT_FOUND", "unit_code"),
        ({"unit_code": "012801"}, "VALIDATION_ERROR", "unit_code"),
        ({"birthdate": "2026-03-02"}, "VALIDATION_ERROR", "birthdate"),
        ({"previous_unit_code": "0128"}, "VALIDATION_ERROR", "previous_unit_code"),
        (
            {"is_registered_senior_citizen": True},
            "VALIDATION_ERROR",
            "is_registered_senior_citizen",
        ),
        ({"household_id": str(uuid.UUID(int=999))}, "RESOURCE_NOT_FOUND", "resource_type"),
    ],
)
async def test_create_rejects_invalid_records(
    overrides: dict[str, Any], code: str, field: str
) -> None:
    uow = FakeUnitOfWork()

    outcome = await _coordinator(uow).execute(
        _request(global_admin(), AccessAction.CREATE, **{**NEW_RESIDENT, **overrides})
    )

    assert outcome.state is MutationState.REJECTED
    assert outcome.rejection is not None
    assert outcome.rejection.code == code
    assert field in outcome.rejection.details
    assert MutationState.PERSISTED not in outcome.trail
    assert uow.store.residents == {}
    assert uow.store.audit == []


@pytest.mark.asyncio
async def test_create_rejects_household_from_another_unit() -> None:
    store = RegistryStore()
    foreign = make_household(unit_code=LOCAL_B)
    store.add(foreign)
    uow = FakeUnitOfWork(store)

    outcome = await _coordinator(uow).execute(
        _request(
            global_admin(), AccessAction.CREATE, household_id=str(foreign.id), **NEW_RESIDENT
        )
    )

    assert outcome.rejection is not None
    assert "household_id" in outcome.rejection.details


@pytest.mark.asyncio
async def test_create_refuses_derived_fields() -> None:
    uow = FakeUnitOfWork()

    outcome = await _coordinator(uow).execute(
        _request(global_admin(), AccessAction.CREATE, is_senior_citizen=True, **NEW_RESIDENT)
    )

    assert outcome.rejection is not None
    assert outcome.rejection.details == {
        "is_senior_citizen": "derived or system-managed field cannot be set"
    }


# --------------------------------------------------------------------------
# Authorization


@pytest.mark.asyncio
async def test_unit_admin_out_of_scope_is_rejected_without_writes() -> None:
    uow = FakeUnitOfWork()

    outcome = await _coordinator(uow).execute(
        _request(unit_admin(LOCAL_B), AccessAction.CREATE, **NEW_RESIDENT)
    )

    assert outcome.state is MutationState.REJECTED
    assert outcome.rejection is not None
    assert outcome.rejection.code == "AUTHORIZATION_DENIED"
    assert outcome.rejection.reason == "out_of_scope"
    assert outcome.rejection.details == {}
    assert uow.store.audit == []


@pytest.mark.asyncio
async def test_moving_a_resident_requires_scope_over_both_units() -> None:
    store = RegistryStore()
    resident = make_resident()
    store.add(resident)
    uow = FakeUnitOfWork(store)

    outcome = await _coordinator(uow).execute(
        _request(unit_admin(LOCAL_A), AccessAction.UPDATE, resident.id, unit_code=LOCAL_B)
    )

    assert outcome.rejection is not None
    assert outcome.rejection.reason == "out_of_scope"
    assert uow.store.residents[resident.id].unit_code == LOCAL_A


@pytest.mark.asyncio
async def test_move_rewrites_denormalized_ancestors() -> None:
    store = RegistryStore()
    resident = make_resident()
    store.add(resident)
    uow = FakeUnitOfWork(store)

    outcome = await _coordinator(uow).execute(
        _request(global_admin(), AccessAction.UPDATE, resident.id, unit_code=LOCAL_OTHER_REGION)
    )

    assert outcome.committed
    moved = uow.store.residents[resident.id]
    assert (moved.region_code, moved.province_code, moved.city_code) == ("13", "1339", "133901")
    assert moved.version == 2


@pytest.mark.asyncio
async def test_self_service_updates_own_contact_fields(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, household, first, _ = household_store
    uow = FakeUnitOfWork(store)
    actor = self_service(first.id, household_id=household.id)

    outcome = await _coordinator(uow).execute(
        _request(actor, AccessAction.UPDATE, first.id, email="juan@example.org")
    )

    assert outcome.committed
    assert uow.store.residents[first.id].email == "juan@example.org"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("target", "changes", "reason"),
    [
        ("self", {"birthdate": "1991-01-01"}, "field_not_self_editable"),
        ("self", {"email": "x@example.org", "first_name": "Jun"}, "field_not_self_editable"),
        ("self", {"is_ofw": True}, "field_not_self_editable"),
        ("sibling", {"email": "ana@example.org"}, "not_owner"),
    ],
)
async def test_self_service_write_denials(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
    target: str,
    changes: dict[str, Any],
    reason: str,
) -> None:
    store, household, first, second = household_store
    uow = FakeUnitOfWork(store)
    actor = self_service(first.id, household_id=household.id)
    resource_id = first.id if target == "self" else second.id

    outcome = await _coordinator(uow).execute(
        _request(actor, AccessAction.UPDATE, resource_id, **changes)
    )

    assert outcome.rejection is not None
    assert outcome.rejection.reason == reason
    assert outcome.trail == (MutationState.RECEIVED, MutationState.REJECTED)
    assert uow.store.audit == []
    assert uow.commits == 0


# --------------------------------------------------------------------------
# Updates and household recompute


@pytest.mark.asyncio
async def test_update_recomputes_household_and_skips_unchanged_members(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, household, first, second = household_store
    assert household.derived is not None and household.derived.employed_count == 2
    uow = FakeUnitOfWork(store)

    outcome = await _coordinator(uow).execute(
        _request(
            unit_admin(LOCAL_A),
            AccessAction.UPDATE,
            first.id,
            employment_status="not_employed",
        )
    )

    assert outcome.committed
    updated = uow.store.residents[first.id]
    assert updated.employment_status is EmploymentStatus.NOT_EMPLOYED
    assert updated.derived is not None and updated.derived.is_unemployed
    assert updated.version == 2

    recomputed = uow.store.households[household.id]
    assert recomputed.derived is not None
    assert recomputed.derived.employed_count == 1
    assert recomputed.version == 2
    assert uow.store.residents[second.id].version == 1

    audit = uow.store.audit[-1]
    assert audit.before is not None and audit.before["employment_status"] == "employed"
    assert audit.after is not None and audit.after["employment_status"] == "not_employed"


@pytest.mark.asyncio
async def test_locks_households_before_residents(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, household, first, _ = household_store
    uow = FakeUnitOfWork(store)

    await _coordinator(uow).execute(
        _request(global_admin(), AccessAction.UPDATE, first.id, monthly_income="20000")
    )

    kinds = [kind for kind, _ in uow.locks]
    assert kinds[0] == "household"
    assert uow.locks[0][1] == household.id
    assert "household" not in kinds[kinds.index("resident") :]


@pytest.mark.asyncio
async def test_unchanged_update_still_audits_once(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, _, first, _ = household_store
    uow = FakeUnitOfWork(store)

    outcome = await _coordinator(uow).execute(
        _request(global_admin(), AccessAction.UPDATE, first.id, first_name="Juan")
    )

    assert outcome.committed
    assert len(uow.store.audit) == 1


@pytest.mark.asyncio
async def test_update_of_unknown_resident_is_rejected() -> None:
    uow = FakeUnitOfWork()

    outcome = await _coordinator(uow).execute(
        _request(global_admin(), AccessAction.UPDATE, uuid.uuid4(), first_name="X")
    )

    assert outcome.rejection is not None
    assert outcome.rejection.code == "RESOURCE_NOT_FOUND"


@pytest.mark.asyncio
async def test_moving_into_another_household_recomputes_both(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, household, first, second = household_store
    target = make_household("0002")
    store.add(target)
    uow = FakeUnitOfWork(store)

    outcome = await _coordinator(uow).execute(
        _request(global_admin(), AccessAction.UPDATE, second.id, household_id=str(target.id))
    )

    assert outcome.committed
    old = uow.store.households[household.id]
    new = uow.store.households[target.id]
    assert old.derived is not None and old.derived.total_members == 1
    assert new.derived is not None and new.derived.total_members == 1
    assert members_of(uow.store, target.id) == [uow.store.residents[second.id]]


@pytest.mark.asyncio
async def test_fact_change_with_same_aggregates_restamps_every_cache() -> None:
    engine = AttributeDerivationEngine()
    cached_on = date(2026, 1, 1)
    household = make_household()
    child = engine.refresh_resident(
        make_resident(first_name="Bea", household_id=household.id, birthdate=date(2020, 1, 1)),
        cached_on,
    )
    parent = engine.refresh_resident(make_resident(household_id=household.id), cached_on)
    household = engine.refresh_household(household, [child, parent], cached_on)
    store = RegistryStore()
    store.add(household, child, parent)
    uow = FakeUnitOfWork(store)

    outcome = await _coordinator(uow).execute(
        _request(global_admin(), AccessAction.UPDATE, child.id, birthdate="2026-02-01")
    )

    assert outcome.committed
    stored = uow.store.households[household.id]
    assert stored.derived == household.derived
    assert stored.derived_as_of == TODAY
    assert stored.version == 2
    assert uow.store.residents[parent.id].derived_as_of == TODAY

    checker = DerivedConsistencyChecker(engine)
    assert checker.check_household(stored, members_of(uow.store, household.id)) is None
    assert checker.check_resident(uow.store.residents[parent.id]) is None


@pytest.mark.asyncio
async def test_declared_sector_facts_update_household_counts(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, household, first, _ = household_store
    uow = FakeUnitOfWork(store)

    outcome = await _coordinator(uow).execute(
        _request(
            unit_admin(LOCAL_A),
            AccessAction.UPDATE,
            first.id,
            is_ofw=True,
            is_person_with_disability=True,
        )
    )

    assert outcome.committed
    assert uow.store.residents[first.id].is_ofw
    derived = uow.store.households[household.id].derived
    assert derived is not None
    assert (derived.ofw_count, derived.pwd_count) == (1, 1)


@pytest.mark.asyncio
async def test_senior_can_be_marked_registered() -> None:
    store = RegistryStore()
    senior = make_resident(first_name="Lola", birthdate=date(1950, 6, 1))
    store.add(senior)
    uow = FakeUnitOfWork(store)

    outcome = await _coordinator(uow).execute(
        _request(global_admin(), AccessAction.UPDATE, senior.id, is_registered_senior_citizen=True)
    )

    assert outcome.committed
    stored = uow.store.residents[senior.id]
    assert stored.is_registered_senior_citizen
    assert stored.derived is not None and stored.derived.is_senior_citizen


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("actor", "expected_reason"),
    [
        (unit_admin(LOCAL_B), "out_of_scope"),
        (unit_admin(LOCAL_A), "out_of_scope"),
        (self_service(uuid.UUID(int=42)), "not_owner"),
    ],
)
async def test_missing_resident_is_indistinguishable_for_scoped_actors(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
    actor: ActorIdentity,
    expected_reason: str,
) -> None:
    store, _, first, _ = household_store
    uow = FakeUnitOfWork(store)
    coordinator = _coordinator(uow)
    actor_b = unit_admin(LOCAL_B)

    foreign = await coordinator.execute(
        _request(actor_b, AccessAction.UPDATE, first.id, first_name="X")
    )
    missing = await coordinator.execute(
        _request(actor, AccessAction.UPDATE, uuid.uuid4(), first_name="X")
    )

    assert foreign.rejection is not None and foreign.rejection.reason == "out_of_scope"
    assert missing.rejection is not None
    assert missing.rejection.code == "AUTHORIZATION_DENIED"
    assert missing.rejection.reason == expected_reason


@pytest.mark.asyncio
async def test_missing_household_is_denied_for_unit_admins() -> None:
    uow = FakeUnitOfWork()

    outcome = await _coordinator(uow).execute(
        _request(
            unit_admin(LOCAL_A),
            AccessAction.UPDATE,
            uuid.uuid4(),
            ResourceType.HOUSEHOLD,
            household_number="9",
        )
    )

    assert outcome.rejection is not None
    assert outcome.rejection.reason == "out_of_scope"


# --------------------------------------------------------------------------
# Deactivate / reactivate


@pytest.mark.asyncio
async def test_deactivate_and_reactivate(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, household, _, second = household_store
    uow = FakeUnitOfWork(store)
    coordinator = _coordinator(uow)

    off = await coordinator.execute(_request(global_admin(), AccessAction.DEACTIVATE, second.id))
    assert off.committed
    assert uow.store.residents[second.id].is_active is False
    derived = uow.store.households[household.id].derived
    assert derived is not None and derived.total_members == 1

    again = await coordinator.execute(_request(global_admin(), AccessAction.DEACTIVATE, second.id))
    assert again.rejection is not None
    assert again.rejection.details == {"is_active": "resident is already inactive"}

    on = await coordinator.execute(_request(global_admin(), AccessAction.REACTIVATE, second.id))
    assert on.committed
    derived = uow.store.households[household.id].derived
    assert derived is not None and derived.total_members == 2
    assert [a.action for a in uow.store.audit] == [
        AccessAction.DEACTIVATE,
        AccessAction.REACTIVATE,
    ]


@pytest.mark.asyncio
async def test_deactivate_rejects_field_changes(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, _, first, _ = household_store
    uow = FakeUnitOfWork(store)

    outcome = await _coordinator(uow).execute(
        _request(global_admin(), AccessAction.DEACTIVATE, first.id, first_name="X")
    )

    assert outcome.rejection is not None
    assert outcome.rejection.details == {"first_name": "not allowed with this action"}


@pytest.mark.asyncio
async def test_household_head_cannot_leave(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, household, first, _ = household_store
    store.add(dataclasses.replace(household, head_resident_id=first.id))
    uow = FakeUnitOfWork(store)
    coordinator = _coordinator(uow)

    deactivate = await coordinator.execute(
        _request(global_admin(), AccessAction.DEACTIVATE, first.id)
    )
    leave = await coordinator.execute(
        _request(global_admin(), AccessAction.UPDATE, first.id, household_id=None)
    )

    assert deactivate.rejection is not None
    assert "is_active" in deactivate.rejection.details
    assert leave.rejection is not None
    assert "household_id" in leave.rejection.details
    assert uow.store.audit == []


# --------------------------------------------------------------------------
# Households


@pytest.mark.asyncio
async def test_create_household_builds_code_and_empty_aggregates() -> None:
    uow = FakeUnitOfWork()

    outcome = await _coordinator(uow).execute(
        _request(
            unit_admin(LOCAL_A),
            AccessAction.CREATE,
            resource_type=ResourceType.HOUSEHOLD,
            household_number="0002",
            unit_code=LOCAL_A,
        )
    )

    assert outcome.committed
    stored = uow.store.households[UUID(int=1)]
    assert stored.code == f"{LOCAL_A}-0002"
    assert stored.city_code == "012801"
    assert stored.derived is not None and stored.derived.total_members == 0
    assert uow.store.audit[0].resource_type is ResourceType.HOUSEHOLD


@pytest.mark.asyncio
async def test_create_household_rejects_code_clash(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, household, *_ = household_store
    uow = FakeUnitOfWork(store)

    outcome = await _coordinator(uow).execute(
        _request(
            global_admin(),
            AccessAction.CREATE,
            resource_type=ResourceType.HOUSEHOLD,
            household_number=household.household_number,
            unit_code=LOCAL_A,
        )
    )

    assert outcome.rejection is not None
    assert "household_number" in outcome.rejection.details


@pytest.mark.asyncio
async def test_create_household_rejects_head() -> None:
    uow = FakeUnitOfWork()

    outcome = await _coordinator(uow).execute(
        _request(
            global_admin(),
            AccessAction.CREATE,
            resource_type=ResourceType.HOUSEHOLD,
            household_number="0003",
            unit_code=LOCAL_A,
            head_resident_id=str(uuid.uuid4()),
        )
    )

    assert outcome.rejection is not None
    assert "head_resident_id" in outcome.rejection.details


@pytest.mark.asyncio
async def test_household_head_must_be_active_member(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, household, first, _ = household_store
    outsider = make_resident(first_name="Pedro")
    store.add(outsider)
    uow = FakeUnitOfWork(store)
    coordinator = _coordinator(uow)

    rejected = await coordinator.execute(
        _request(
            global_admin(),
            AccessAction.UPDATE,
            household.id,
            ResourceType.HOUSEHOLD,
            head_resident_id=str(outsider.id),
        )
    )
    accepted = await coordinator.execute(
        _request(
            global_admin(),
            AccessAction.UPDATE,
            household.id,
            ResourceType.HOUSEHOLD,
            head_resident_id=str(first.id),
        )
    )

    assert rejected.rejection is not None
    assert "head_resident_id" in rejected.rejection.details
    assert accepted.committed
    assert uow.store.households[household.id].head_resident_id == first.id
    assert uow.store.households[household.id].version == 2


@pytest.mark.asyncio
async def test_household_with_active_members_cannot_move(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, household, *_ = household_store
    uow = FakeUnitOfWork(store)

    outcome = await _coordinator(uow).execute(
        _request(
            global_admin(),
            AccessAction.UPDATE,
            household.id,
            ResourceType.HOUSEHOLD,
            unit_code=LOCAL_B,
        )
    )

    assert outcome.rejection is not None
    assert "unit_code" in outcome.rejection.details


@pytest.mark.asyncio
async def test_households_cannot_be_deactivated(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, household, *_ = household_store
    uow = FakeUnitOfWork(store)

    outcome = await _coordinator(uow).execute(
        _request(global_admin(), AccessAction.DEACTIVATE, household.id, ResourceType.HOUSEHOLD)
    )

    assert outcome.rejection is not None
    assert "action" in outcome.rejection.details


# --------------------------------------------------------------------------
# Failures


@pytest.mark.asyncio
async def test_audit_failure_rolls_back_everything() -> None:
    uow = FakeUnitOfWork(fail_audit=True)

    with pytest.raises(StorageError):
        await _coordinator(uow).execute(
            _request(global_admin(), AccessAction.CREATE, **NEW_RESIDENT)
        )

    assert uow.store.residents == {}
    assert uow.store.audit == []
    assert uow.commits == 0
    assert uow.rollbacks == 1


@pytest.mark.asyncio
async def test_commit_failure_propagates() -> None:
    uow = FakeUnitOfWork(fail_commit=True)

    with pytest.raises(StorageError):
        await _coordinator(uow).execute(
            _request(global_admin(), AccessAction.CREATE, **NEW_RESIDENT)
        )

    assert uow.store.residents == {}


@pytest.mark.asyncio
async def test_version_conflict_is_raised_not_retried(
    household_store: tuple[RegistryStore, Household, Resident, Resident],
) -> None:
    store, household, first, _ = household_store
    uow = FakeUnitOfWork(store)
    uow.conflict_on_resident_upsert = first.id

    with pytest.raises(ConcurrentModificationError):
        await _coordinator(uow).execute(
            _request(global_admin(), AccessAction.UPDATE, first.id, first_name="Jun")
        )

    assert uow.store.residents[first.id] == first
    assert uow.store.households[household.id] == household
    assert uow.store.audit == []
    assert uow.commits == 0


# --------------------------------------------------------------------------
# Evaluation date


def test_evaluation_date_uses_registry_timezone() -> None:
    late_utc = fixed_clock(datetime(2026, 2, 28, 20, 0, tzinfo=UTC))
    uow = FakeUnitOfWork()

    assert _coordinator(uow, clock=late_utc).evaluation_date() == date(2026, 3, 1)
    assert _coordinator(uow, clock=late_utc, timezone=UTC).evaluation_date() == date(2026, 2, 28)


@pytest.mark.asyncio
async def test_birthday_is_reached_on_the_local_date() -> None:
    late_utc = fixed_clock(datetime(2026, 2, 28, 20, 0, tzinfo=UTC))
    uow = FakeUnitOfWork()

    outcome = await _coordinator(uow, clock=late_utc).execute(
        _request(
            global_admin(),
            AccessAction.CREATE,
            **{**NEW_RESIDENT, "birthdate": "2008-03-01"},
        )
    )

    assert outcome.record is not None
    assert isinstance(outcome.record, Resident)
    assert outcome.record.derived is not None
    assert outcome.record.derived.age == 18
    assert outcome.record.derived.is_minor is False
