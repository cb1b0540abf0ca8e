# tests/unit/domain/services/test_geographic_hierarchy.py
from __future__ import annotations

import threading

import pytest

from rbi_core.domain.entities.geographic_unit import GeographicUnit
from rbi_core.domain.enums.geography import GeographicLevel
from rbi_core.domain.exceptions.geography import (
    GeographicChainMismatchError,
    GeographicNotFoundError,
    GeographicTreeError,
)
from rbi_core.domain.exceptions.registry import ValidationError
from rbi_core.domain.services.geographic_hierarchy import (
    EMPTY_TREE_VERSION,
    GeographicHierarchyResolver,
    declared_ancestors,
)
from tests.fixtures.registry_testkit import LOCAL_A, sample_resolver, sample_units


def test_resolve_returns_root_to_leaf_chain() -> None:
    resolver = sample_resolver()

    chain = resolver.resolve(LOCAL_A)

    assert [u.code for u in chain] == ["01", "0128", "012801", LOCAL_A]
    assert [u.level for u in chain] == [
        GeographicLevel.REGION,
        GeographicLevel.PROVINCE,
        GeographicLevel.CITY,
        GeographicLevel.LOCAL_UNIT,
    ]


def test_resolve_is_stable_between_refreshes() -> None:
    resolver = sample_resolver()
    assert resolver.resolve(LOCAL_A) is resolver.resolve(LOCAL_A)


def test_resolve_region_is_single_element_chain() -> None:
    chain = sample_resolver().resolve("01")
    assert len(chain) == 1
    assert chain[0].parent_code is None


def test_unknown_code_raises_not_found() -> None:
    with pytest.raises(GeographicNotFoundError) as excinfo:
        sample_resolver().resolve("999999999")
    assert excinfo.value.code == "GEOGRAPHIC_NOT_FOUND"
    assert excinfo.value.details["unit_code"] == "999999999"


def test_require_leaf_rejects_non_leaf_units() -> None:
    with pytest.raises(ValidationError) as excinfo:
        sample_resolver().require_leaf("012801")
    assert "unit_code" in excinfo.value.details
    assert not isinstance(excinfo.value, GeographicNotFoundError)


def test_require_leaf_reports_custom_field() -> None:
    with pytest.raises(GeographicNotFoundError) as excinfo:
        sample_resolver().require_leaf("nope", field="previous_unit_code")
    assert "previous_unit_code" in excinfo.value.details


def test_validate_chain_accepts_matching_and_partial_declarations() -> None:
    resolver = sample_resolver()
    resolver.validate_chain(
        LOCAL_A,
        declared_ancestors(region_code="01", province_code="0128", city_code="012801"),
    )
    resolver.validate_chain(
        LOCAL_A, declared_ancestors(region_code=None, province_code=None, city_code="012801")
    )


def test_validate_chain_reports_each_mismatched_level() -> None:
    resolver = sample_resolver()
    with pytest.raises(GeographicChainMismatchError) as excinfo:
        resolver.validate_chain(
            LOCAL_A,
            declared_ancestors(region_code="13", province_code="0128", city_code="012802"),
        )
    assert set(excinfo.value.details) == {"region_code", "city_code"}
    # Chain mismatches are input errors.
    assert isinstance(excinfo.value, ValidationError)


def test_ancestor_codes_maps_levels_to_codes() -> None:
    assert sample_resolver().ancestor_codes(LOCAL_A) == {
        GeographicLevel.REGION: "01",
        GeographicLevel.PROVINCE: "0128",
        GeographicLevel.CITY: "012801",
    }


def test_owning_unit_code_parses_household_code() -> None:
    resolver = sample_resolver()
    assert resolver.owning_unit_code(f"{LOCAL_A}-0007") == LOCAL_A
    with pytest.raises(GeographicNotFoundError):
        resolver.owning_unit_code("no-separator-unknown")
    with pytest.raises(GeographicNotFoundError):
        resolver.owning_unit_code("0007")


def test_build_rejects_duplicate_codes() -> None:
    units = [
        *sample_units(),
        GeographicUnit(code="01", level=GeographicLevel.REGION, parent_code=None, name="dup"),
    ]
    with pytest.raises(GeographicTreeError) as excinfo:
        GeographicHierarchyResolver(units)
    assert excinfo.value.details["duplicate_codes"] == ["01"]


def test_build_rejects_missing_and_misleveled_parents() -> None:
    units = [
        GeographicUnit(code="01", level=GeographicLevel.REGION, parent_code=None, name="R"),
        GeographicUnit(code="0101", level=GeographicLevel.CITY, parent_code="01", name="skip"),
        GeographicUnit(code="0199", level=GeographicLevel.PROVINCE, parent_code="77", name="o"),
    ]
    with pytest.raises(GeographicTreeError) as excinfo:
        GeographicHierarchyResolver(units)
    assert set(excinfo.value.details["units"]) == {"0101", "0199"}


def test_refresh_swaps_snapshot_and_version() -> None:
    resolver = GeographicHierarchyResolver()
    assert resolver.version == EMPTY_TREE_VERSION
    assert resolver.size == 0

    snapshot = resolver.refresh(sample_units(), "2026.2")

    assert resolver.snapshot is snapshot
    assert resolver.version == "2026.2"
    assert resolver.resolve(LOCAL_A)[-1].code == LOCAL_A


def test_failed_refresh_keeps_previous_tree() -> None:
    resolver = sample_resolver("2026.1")
    before = resolver.snapshot
    broken = [
        GeographicUnit(code="0128", level=GeographicLevel.PROVINCE, parent_code="99", name="x")
    ]

    with pytest.raises(GeographicTreeError):
        resolver.refresh(broken, "2026.2")

    assert resolver.snapshot is before
    assert resolver.version == "2026.1"
    assert resolver.resolve(LOCAL_A)


def test_readers_never_observe_a_mixed_tree() -> None:
    """Concurrent readers see either the old or the new chain, never a mix."""
    old_units = sample_units()
    renamed = [
        GeographicUnit(code=u.code, level=u.level, parent_code=u.parent_code, name=f"{u.name} v2")
        for u in old_units
    ]
    resolver = GeographicHierarchyResolver(old_units, version="v1")
    stop = threading.Event()
    mixed: list[tuple[str, ...]] = []

    def reader() -> None:
        while not stop.is_set():
            names = tuple(u.name for u in resolver.resolve(LOCAL_A))
            suffixes = {name.endswith(" v2") for name in names}
            if len(suffixes) != 1:
                mixed.append(names)

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for t in threads:
        t.start()
    for i in range(200):
        resolver.refresh(renamed if i % 2 == 0 else old_units, f"v{i}")
    stop.set()
    for t in threads:
        t.join()

    assert mixed == []
