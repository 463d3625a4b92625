# erlink/services/geo_ranking.py
import math
from dataclasses import dataclass
from math import asin, cos, radians, sin, sqrt
from typing import Iterable, List, Optional

from erlink.config import LIMITED_FREE_RATIO
from erlink.models.schemas import HospitalRecord, Location, RankedHospitalOut

EARTH_RADIUS_KM = 6371


@dataclass(frozen=True)
class DistanceRankedHospital:
    hospital: HospitalRecord
    distance_km: float  # unrounded, used for ordering
    is_eligible: bool

    def to_out(self) -> RankedHospitalOut:
        return RankedHospitalOut(
            hospital_id=self.hospital.id,
            name=self.hospital.name,
            distance_km=round(self.distance_km, 1),
            er_available=self.hospital.er_available,
            is_eligible=self.is_eligible,
            availability=availability_label(self.hospital),
            bed_categories=self.hospital.bed_categories,
        )


def haversine_km(lat1, lon1, lat2, lon2) -> float:
    """Calculate great-circle distance (km) between two lat/lng points."""
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
    c = 2 * asin(sqrt(min(1.0, a)))
    return EARTH_RADIUS_KM * c


def is_valid_location(location: Optional[Location]) -> bool:
    if location is None:
        return False
    lat, lng = location.latitude, location.longitude
    if not (math.isfinite(lat) and math.isfinite(lng)):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def is_eligible(hospital: HospitalRecord) -> bool:
    return hospital.active and hospital.er_available


def availability_label(hospital: HospitalRecord) -> str:
    """Colour-coded status shown on the paramedic map."""
    if not is_eligible(hospital):
        return "unavailable"
    total = sum(c.total for c in hospital.bed_categories.values())
    free = sum(c.free for c in hospital.bed_categories.values())
    if total == 0 or free / total < LIMITED_FREE_RATIO:
        return "limited"
    return "available"


def rank(origin: Location, hospitals: Iterable[HospitalRecord], only_available: bool = False) -> List[DistanceRankedHospital]:
    """Order hospitals by distance from origin, nearest first.

    Hospitals without a usable location are dropped. With only_available,
    hospitals that cannot take a case right now are dropped too.
    """
    if not is_valid_location(origin):
        raise ValueError(f"Invalid origin: {origin}")

    ranked = []
    for hospital in hospitals:
        if not is_valid_location(hospital.location):
            continue
        eligible = is_eligible(hospital)
        if only_available and not eligible:
            continue
        distance = haversine_km(
            origin.latitude, origin.longitude,
            hospital.location.latitude, hospital.location.longitude,
        )
        ranked.append(DistanceRankedHospital(hospital=hospital, distance_km=distance, is_eligible=eligible))

    ranked.sort(key=lambda r: (r.distance_km, r.hospital.id))
    return ranked
