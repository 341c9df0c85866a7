import pytest

from exoatlas.enrich import build_record
from exoatlas.models import RecordKey
from exoatlas.store import RecordStore

from conftest import exoplanet


def _store_with(*raws) -> RecordStore:
    store = RecordStore()
    for raw in raws:
        record = build_record(raw)
        store.insert(record.key, record)
    return store


def test_insert_and_lookup() -> None:
    record = build_record(exoplanet("Kepler-22 b", host="Kepler-22"))
    store = RecordStore()
    assert store.insert(record.key, record) is True
    assert store.get(RecordKey("Kepler-22 b", "Kepler-22")) is record
    assert store.get(RecordKey("Kepler-22 b", "Other")) is None
    assert store.count() == len(store) == 1
    assert record.key in store


def test_second_insert_is_ignored_not_overwritten() -> None:
    first = build_record(exoplanet("Kepler-22 b", host="Kepler-22", pl_eqt=262))
    second = build_record(exoplanet("Kepler-22 b", host="Kepler-22", pl_eqt=999))
    store = RecordStore()
    store.insert(first.key, first)
    assert store.insert(second.key, second) is False
    assert store.insert(first.key, first) is False
    assert store.count() == 1
    assert store.get(first.key).physical.equilibrium_temp_k == 262


def test_all_is_a_snapshot() -> None:
    store = _store_with(exoplanet("A b", host="A"))
    snapshot = store.all()
    late = build_record(exoplanet("B b", host="B"))
    store.insert(late.key, late)
    assert len(snapshot) == 1
    assert [r.name for r in store] == ["A b", "B b"]
    assert [r.name for r in store.records_since(1)] == ["B b"]


def test_filter_matches_navigator_rules() -> None:
    store = _store_with(
        exoplanet("Kepler-442 b", host="Kepler-442", sy_dist=10.0, pl_rade=1.3, pl_eqt=255),
        exoplanet("Kepler-7 b", host="Kepler-7", sy_dist=900.0, pl_rade=16.0, pl_eqt=1500),
        exoplanet("GJ 1214 b", host="GJ 1214", sy_dist=None, pl_eqt=550),
    )
    assert [r.name for r in store.filter(name="kepler")] == ["Kepler-442 b", "Kepler-7 b"]
    assert [r.name for r in store.filter(max_distance_ly=100.0)] == ["Kepler-442 b"]
    assert [r.name for r in store.filter_by_habitability(50)] == ["Kepler-442 b"]
    assert len(store.filter()) == 3
    assert store.get_by_name("GJ 1214 b").host == "GJ 1214"
    assert store.get_by_name("missing") is None


def test_handles_registered_by_identity() -> None:
    store = _store_with(exoplanet("A b", host="A"))
    key = RecordKey("A b", "A")
    assert store.handle(key) is None
    mesh = object()
    store.register_handle(key, mesh)
    assert store.handle(key) is mesh
    with pytest.raises(KeyError):
        store.register_handle(RecordKey("B b", "B"), object())


def test_solar_names_are_tracked_on_insert() -> None:
    store = RecordStore()
    assert not store.has_solar_name("Earth")
    earth = build_record(exoplanet("Earth", host="Sun", isSolar=True))
    store.insert(earth.key, earth)
    lookalike = build_record(exoplanet("Mars", host="Mars Catalog", isSolar=False))
    store.insert(lookalike.key, lookalike)

    assert store.has_solar_name("earth")
    assert store.has_solar_name("EARTH")
    assert not store.has_solar_name("Mars")
