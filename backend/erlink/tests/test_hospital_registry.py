# tests/test_hospital_registry.py
import random

import pandas as pd
import pytest

from erlink.exceptions import CapacityError, NotFound
from erlink.models.schemas import BedCount, HospitalCreate


def test_get_unknown_hospital(registry):
    with pytest.raises(NotFound):
        registry.get("missing")


def test_provision_and_get(provision, registry):
    provision("h1", beds={"ICU": (4, 1), "General": (10, 3)})
    h = registry.get("h1")
    assert h.er_available is True
    assert h.location.latitude == pytest.approx(34.673)
    assert h.bed_categories["ICU"] == BedCount(total=4, occupied=1)
    assert h.bed_categories["General"].free == 7


def test_provision_replaces_categories(provision, registry):
    provision("h1", beds={"ICU": (4, 1), "General": (10, 3)})
    provision("h1", beds={"ICU": (6, 2)}, er_available=False)
    h = registry.get("h1")
    assert h.er_available is False
    assert list(h.bed_categories) == ["ICU"]
    assert h.bed_categories["ICU"] == BedCount(total=6, occupied=2)


def test_provision_rejects_invalid_counts(registry):
    bad = HospitalCreate(id="h1", name="Bad", bed_categories={"ICU": BedCount(total=2, occupied=3)})
    with pytest.raises(CapacityError):
        registry.provision(bad)
    with pytest.raises(NotFound):
        registry.get("h1")


def test_readiness_is_visible_immediately(provision, registry):
    provision("h1")
    registry.set_emergency_readiness("h1", False)
    assert registry.get("h1").er_available is False
    assert registry.list()[0].er_available is False
    registry.set_emergency_readiness("h1", True)
    assert registry.get("h1").er_available is True


def test_readiness_unknown_hospital(registry):
    with pytest.raises(NotFound):
        registry.set_emergency_readiness("missing", True)


def test_adjust_beds_within_bounds(provision, registry):
    provision("h1", beds={"ICU": (2, 0)})
    assert registry.adjust_beds("h1", "ICU", 1).bed_categories["ICU"].occupied == 1
    assert registry.adjust_beds("h1", "ICU", 1).bed_categories["ICU"].occupied == 2
    assert registry.adjust_beds("h1", "ICU", -2).bed_categories["ICU"].occupied == 0


@pytest.mark.parametrize("start,delta", [(2, 1), (0, -1), (1, 5), (1, -2)])
def test_adjust_beds_out_of_range_leaves_counts(provision, registry, start, delta):
    provision("h1", beds={"ICU": (2, start)})
    with pytest.raises(CapacityError):
        registry.adjust_beds("h1", "ICU", delta)
    assert registry.get("h1").bed_categories["ICU"] == BedCount(total=2, occupied=start)


def test_adjust_beds_unknown_category_or_hospital(provision, registry):
    provision("h1", beds={"ICU": (2, 0)})
    with pytest.raises(NotFound):
        registry.adjust_beds("h1", "Burns", 1)
    with pytest.raises(NotFound):
        registry.adjust_beds("missing", "ICU", 1)


def test_set_bed_totals(provision, registry):
    provision("h1", beds={"ICU": (2, 2)})
    assert registry.set_bed_totals("h1", "ICU", 5).bed_categories["ICU"] == BedCount(total=5, occupied=2)
    assert registry.set_bed_totals("h1", "ICU", 2).bed_categories["ICU"] == BedCount(total=2, occupied=2)

    with pytest.raises(CapacityError):
        registry.set_bed_totals("h1", "ICU", 1)
    with pytest.raises(CapacityError):
        registry.set_bed_totals("h1", "ICU", -1)
    assert registry.get("h1").bed_categories["ICU"] == BedCount(total=2, occupied=2)


def test_set_bed_totals_creates_category(provision, registry):
    provision("h1", beds={})
    h = registry.set_bed_totals("h1", "General", 12)
    assert h.bed_categories["General"] == BedCount(total=12, occupied=0)


def test_deactivated_hospitals_leave_the_list(provision, registry):
    provision("h1")
    provision("h2")
    registry.deactivate("h1")
    assert [h.id for h in registry.list()] == ["h2"]
    assert {h.id for h in registry.list(include_inactive=True)} == {"h1", "h2"}
    assert registry.get("h1").active is False


def test_invariant_holds_after_random_mutations(provision, registry):
    provision("h1", beds={"ICU": (3, 0), "General": (6, 2)})
    rng = random.Random(7)
    for _ in range(120):
        category = rng.choice(["ICU", "General"])
        try:
            if rng.random() < 0.8:
                registry.adjust_beds("h1", category, rng.choice([-2, -1, 1, 2]))
            else:
                registry.set_bed_totals("h1", category, rng.randint(0, 8))
        except CapacityError:
            pass
        for count in registry.get("h1").bed_categories.values():
            assert count.total >= 0
            assert 0 <= count.occupied <= count.total


def test_provision_from_frame(registry):
    df = pd.DataFrame([
        {"hospital_id": "a", "name": "Alpha", "latitude": 34.67, "longitude": 3.26, "er_available": "true",
         "category": "ICU", "total": 4, "occupied": 1},
        {"hospital_id": "a", "name": "Alpha", "latitude": 34.67, "longitude": 3.26, "er_available": "true",
         "category": "General", "total": 9, "occupied": None},
        {"hospital_id": "b", "name": "Beta", "latitude": None, "longitude": None, "er_available": False,
         "category": "Emergency", "total": 3, "occupied": 0},
    ])
    records = registry.provision_from_frame(df)
    assert [r.id for r in records] == ["a", "b"]
    a = registry.get("a")
    assert a.er_available is True
    assert a.bed_categories["General"] == BedCount(total=9, occupied=0)
    b = registry.get("b")
    assert b.location is None
    assert b.er_available is False


def test_provision_from_frame_requires_columns(registry):
    with pytest.raises(ValueError):
        registry.provision_from_frame(pd.DataFrame([{"hospital_id": "a", "name": "Alpha"}]))


def test_provision_from_frame_is_all_or_nothing(provision, registry):
    provision("a", beds={"ICU": (3, 1)})
    df = pd.DataFrame([
        {"hospital_id": "a", "name": "Alpha", "latitude": 34.67, "longitude": 3.26, "er_available": True,
         "category": "ICU", "total": 8, "occupied": 0},
        {"hospital_id": "b", "name": "Beta", "latitude": 34.68, "longitude": 3.27, "er_available": True,
         "category": "ICU", "total": 1, "occupied": 5},
    ])
    with pytest.raises(CapacityError):
        registry.provision_from_frame(df)

    assert [h.id for h in registry.list(include_inactive=True)] == ["a"]
    assert registry.get("a").bed_categories["ICU"] == BedCount(total=3, occupied=1)


def test_provision_from_frame_rejects_missing_total(registry):
    df = pd.DataFrame([
        {"hospital_id": "a", "name": "Alpha", "latitude": 34.67, "longitude": 3.26, "er_available": True,
         "category": "ICU", "total": 4, "occupied": 0},
        {"hospital_id": "b", "name": "Beta", "latitude": 34.68, "longitude": 3.27, "er_available": True,
         "category": "ICU", "total": None, "occupied": 0},
    ])
    with pytest.raises(ValueError):
        registry.provision_from_frame(df)
    assert registry.list(include_inactive=True) == []
