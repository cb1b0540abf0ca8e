# tests/unit/domain/services/test_derived_consistency.py
from __future__ import annotations

import dataclasses
from datetime import date
from decimal import Decimal

from rbi_core.domain.enums.resident import EmploymentStatus
from rbi_core.domain.services.attribute_derivation import AttributeDerivationEngine
from rbi_core.domain.services.derived_consistency import DerivedConsistencyChecker
from tests.fixtures.registry_testkit import make_household, make_resident

CACHED_ON = date(2025, 6, 1)


def _cached(engine: AttributeDerivationEngine, **facts: object):
    return engine.refresh_resident(make_resident(**facts), CACHED_ON)


def test_fresh_cache_has_no_drift() -> None:
    engine = AttributeDerivationEngine()
    checker = DerivedConsistencyChecker(engine)
    assert checker.check_resident(_cached(engine)) is None


def test_ageing_cache_is_not_drift() -> None:
    """Recomputation happens at derived_as_of, not today."""
    engine = AttributeDerivationEngine()
    resident = _cached(engine, birthdate=date(2007, 12, 1))
    assert resident.derived is not None and resident.derived.is_minor
    assert DerivedConsistencyChecker(engine).check_resident(resident) is None


def test_fact_edit_without_rederive_is_drift() -> None:
    engine = AttributeDerivationEngine()
    resident = _cached(engine)
    tampered = dataclasses.replace(resident, employment_status=EmploymentStatus.NOT_EMPLOYED)

    error = DerivedConsistencyChecker(engine).check_resident(tampered)

    assert error is not None
    assert error.code == "CONSISTENCY_ERROR"
    assert error.resource_type == "resident"
    assert error.diff["is_employed"] == {"stored": True, "recomputed": False}
    assert error.diff["is_unemployed"] == {"stored": False, "recomputed": True}


def test_resident_without_cache_is_skipped() -> None:
    assert DerivedConsistencyChecker().check_resident(make_resident()) is None


def test_household_drift_reports_aggregate_diff() -> None:
    engine = AttributeDerivationEngine()
    household = make_household()
    members = [make_resident(household_id=household.id, monthly_income=Decimal("5000.00"))]
    cached = engine.refresh_household(household, members, CACHED_ON)
    checker = DerivedConsistencyChecker(engine)

    assert checker.check_household(cached, members) is None

    members.append(make_resident(household_id=household.id, monthly_income=Decimal("6000.00")))
    error = checker.check_household(cached, members)

    assert error is not None
    assert error.diff["total_members"] == {"stored": 1, "recomputed": 2}
    assert error.diff["monthly_income"] == {"stored": "5000.00", "recomputed": "11000.00"}
    assert error.diff["income_class"] == {"stored": "poor", "recomputed": "low_income"}


def test_member_born_after_household_cache_date_is_reported_not_raised() -> None:
    engine = AttributeDerivationEngine()
    household = make_household()
    cached = engine.refresh_household(household, [], CACHED_ON)
    members = [make_resident(household_id=household.id, birthdate=date(2025, 7, 1))]

    error = DerivedConsistencyChecker(engine).check_household(cached, members)

    assert error is not None
    assert error.resource_type == "household"
    assert set(error.diff) == {"facts"}
    assert error.diff["facts"]["stored"] == {
        "birthdate": "2025-07-01 is after the evaluation date 2025-06-01"
    }
    assert error.diff["facts"]["recomputed"] is None
