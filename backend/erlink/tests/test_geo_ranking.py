# tests/test_geo_ranking.py
import math

import pytest

from erlink.models.schemas import BedCount, HospitalRecord, Location
from erlink.services.geo_ranking import availability_label, haversine_km, rank

ORIGIN = Location(latitude=34.673, longitude=3.263)


def hospital(hid, lat, lng, er_available=True, active=True, beds=None):
    return HospitalRecord(
        id=hid,
        name=f"Hospital {hid}",
        location=Location(latitude=lat, longitude=lng) if lat is not None else None,
        er_available=er_available,
        active=active,
        bed_categories=beds if beds is not None else {"Emergency": BedCount(total=10, occupied=0)},
    )


def test_same_point_is_zero_distance():
    ranked = rank(ORIGIN, [hospital("h1", 34.673, 3.263)])
    assert len(ranked) == 1
    assert ranked[0].distance_km == 0.0
    assert ranked[0].to_out().distance_km == 0.0


def test_haversine_uses_6371_km_earth():
    # one degree of latitude along a meridian
    assert haversine_km(0, 0, 1, 0) == pytest.approx(6371 * math.pi / 180)


def test_paramedic_scenario_order_and_filter():
    hospitals = [
        hospital("h3", 34.685, 3.263),
        hospital("h1", 34.673, 3.263),
        hospital("h2", 34.681, 3.263),
    ]
    ranked = rank(ORIGIN, hospitals, only_available=False)
    assert [r.hospital.id for r in ranked] == ["h1", "h2", "h3"]
    assert [r.to_out().distance_km for r in ranked] == [0.0, 0.9, 1.3]

    hospitals[2] = hospital("h2", 34.681, 3.263, er_available=False)
    available = rank(ORIGIN, hospitals, only_available=True)
    assert [r.hospital.id for r in available] == ["h1", "h3"]

    everything = rank(ORIGIN, hospitals, only_available=False)
    assert [r.hospital.id for r in everything] == ["h1", "h2", "h3"]
    assert [r.is_eligible for r in everything] == [True, False, True]


def test_only_available_never_returns_unready_and_is_sorted():
    hospitals = [
        hospital(f"h{i}", 34.6 + i * 0.013, 3.2 + (i % 5) * 0.02, er_available=i % 3 != 0)
        for i in range(20)
    ]
    ranked = rank(ORIGIN, hospitals, only_available=True)
    assert ranked
    assert all(r.hospital.er_available for r in ranked)
    distances = [r.distance_km for r in ranked]
    assert distances == sorted(distances)


def test_inactive_hospitals_are_not_eligible():
    ranked = rank(ORIGIN, [hospital("h1", 34.673, 3.263, active=False)], only_available=True)
    assert ranked == []


def test_ties_broken_by_hospital_id():
    ranked = rank(ORIGIN, [hospital("b", 34.68, 3.27), hospital("a", 34.68, 3.27)])
    assert [r.hospital.id for r in ranked] == ["a", "b"]


def test_unrankable_hospitals_are_skipped():
    hospitals = [
        hospital("no-location", None, None),
        hospital("out-of-range", 123.0, 3.2),
        hospital("nan", float("nan"), 3.2),
        hospital("ok", 34.67, 3.26),
    ]
    assert [r.hospital.id for r in rank(ORIGIN, hospitals)] == ["ok"]


def test_ordering_uses_unrounded_distance():
    # both round to 0.9 km, the nearer one must still come first
    near = hospital("z-near", 34.6808, 3.263)
    far = hospital("a-far", 34.6812, 3.263)
    ranked = rank(ORIGIN, [far, near])
    assert [r.hospital.id for r in ranked] == ["z-near", "a-far"]
    assert ranked[0].to_out().distance_km == ranked[1].to_out().distance_km


def test_invalid_origin_rejected():
    with pytest.raises(ValueError):
        rank(Location(latitude=95, longitude=0), [])


@pytest.mark.parametrize(
    "er_available,beds,expected",
    [
        (False, {"Emergency": BedCount(total=10, occupied=0)}, "unavailable"),
        (True, {"Emergency": BedCount(total=10, occupied=2)}, "available"),
        (True, {"Emergency": BedCount(total=10, occupied=9), "ICU": BedCount(total=2, occupied=2)}, "limited"),
        (True, {}, "limited"),
    ],
)
def test_availability_label(er_available, beds, expected):
    assert availability_label(hospital("h", 34.67, 3.26, er_available=er_available, beds=beds)) == expected
