# erlink/services/hospital_registry.py
import logging
from contextlib import ExitStack, contextmanager
from typing import List

import pandas as pd
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from erlink.exceptions import CapacityError, NotFound
from erlink.models.hospital import BedCategory, Hospital
from erlink.models.schemas import BedCount, HospitalCreate, HospitalRecord, Location
from erlink.utils.locks import hospital_locks

logger = logging.getLogger(__name__)

CSV_COLUMNS = {"hospital_id", "name", "latitude", "longitude", "er_available", "category", "total", "occupied"}


class HospitalRegistry:
    """Single source of truth for hospital readiness and bed capacity.

    Every mutation of one hospital runs under that hospital's lock and inside
    a transaction that re-reads the rows with SELECT ... FOR UPDATE, so two
    callers can never both commit against the same stale counts.
    """

    def __init__(self, db: Session):
        self.db = db

    # ---------------- Reads ----------------
    def get(self, hospital_id: str) -> HospitalRecord:
        return HospitalRecord.from_orm_hospital(self._load(hospital_id))

    def list(self, include_inactive: bool = False) -> List[HospitalRecord]:
        stmt = (
            select(Hospital)
            .options(selectinload(Hospital.bed_categories))
            .order_by(Hospital.id)
            .execution_options(populate_existing=True)
        )
        if not include_inactive:
            stmt = stmt.where(Hospital.active.is_(True))
        return [HospitalRecord.from_orm_hospital(h) for h in self.db.execute(stmt).scalars()]

    # ---------------- Mutations ----------------
    def set_emergency_readiness(self, hospital_id: str, available: bool) -> HospitalRecord:
        with self._locked(hospital_id):
            hospital = self._load(hospital_id, for_update=True)
            hospital.er_available = available
        logger.info(f"🏥 {hospital_id} ER readiness -> {available}")
        return self.get(hospital_id)

    def adjust_beds(self, hospital_id: str, category: str, delta: int) -> HospitalRecord:
        with self._locked(hospital_id):
            self._load(hospital_id, for_update=True)
            bed = self._load_category(hospital_id, category)
            occupied = bed.occupied + delta
            if not 0 <= occupied <= bed.total:
                logger.warning(
                    f"⚠️ Rejected {category} adjustment {delta:+d} at {hospital_id} "
                    f"(occupied {bed.occupied}/{bed.total})"
                )
                raise CapacityError(
                    f"{category} at {hospital_id} would have {occupied} occupied of {bed.total} beds"
                )
            bed.occupied = occupied
            total = bed.total
        logger.info(f"🛏️ {hospital_id} {category} {delta:+d} -> {occupied}/{total}")
        return self.get(hospital_id)

    def set_bed_totals(self, hospital_id: str, category: str, total: int) -> HospitalRecord:
        with self._locked(hospital_id):
            hospital = self._load(hospital_id, for_update=True)
            if total < 0:
                raise CapacityError(f"Bed total for {category} cannot be negative")
            bed = self._find_category(hospital_id, category)
            if bed is None:
                hospital.bed_categories.append(BedCategory(name=category, total=total, occupied=0))
            elif total < bed.occupied:
                logger.warning(f"⚠️ Rejected {category} total {total} at {hospital_id} ({bed.occupied} occupied)")
                raise CapacityError(f"{bed.occupied} {category} beds are occupied at {hospital_id}, cannot shrink to {total}")
            else:
                bed.total = total
        logger.info(f"🛏️ {hospital_id} {category} total -> {total}")
        return self.get(hospital_id)

    # ---------------- Provisioning ----------------
    def provision(self, data: HospitalCreate) -> HospitalRecord:
        """Create or replace a hospital account's registry entry."""
        for name, count in data.bed_categories.items():
            _check_counts(name, count)

        with self._locked(data.id):
            self._upsert(data)
        logger.info(f"✅ Provisioned hospital {data.id} ({data.name}) with {len(data.bed_categories)} bed categories")
        return self.get(data.id)

    def provision_from_frame(self, df: pd.DataFrame) -> List[HospitalRecord]:
        """Bulk provisioning, one row per (hospital, bed category).

        Every row is parsed and checked before anything is written, and the
        whole frame is applied in one transaction: a bad row leaves the
        registry untouched.
        """
        missing = CSV_COLUMNS - set(df.columns)
        if missing:
            raise ValueError(f"CSV must contain columns: {sorted(missing)}")

        hospitals = [_hospital_from_rows(hospital_id, rows) for hospital_id, rows in df.groupby("hospital_id", sort=True)]
        for data in hospitals:
            for name, count in data.bed_categories.items():
                _check_counts(name, count)

        with ExitStack() as stack:
            # sorted ids keep the lock order stable across concurrent uploads
            for data in hospitals:
                stack.enter_context(hospital_locks.hold(data.id))
            try:
                for data in hospitals:
                    self._upsert(data)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
        logger.info(f"✅ Provisioned {len(hospitals)} hospitals from upload")
        return [self.get(data.id) for data in hospitals]

    def deactivate(self, hospital_id: str) -> HospitalRecord:
        with self._locked(hospital_id):
            hospital = self._load(hospital_id, for_update=True)
            hospital.active = False
        logger.info(f"🚫 Hospital {hospital_id} deactivated")
        return self.get(hospital_id)

    # ---------------- Helpers ----------------
    @contextmanager
    def _locked(self, hospital_id: str):
        with hospital_locks.hold(hospital_id):
            try:
                yield
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

    def _upsert(self, data: HospitalCreate):
        hospital = self.db.execute(
            select(Hospital).where(Hospital.id == data.id).with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if hospital is None:
            hospital = Hospital(id=data.id)
            self.db.add(hospital)
        hospital.name = data.name
        hospital.latitude = data.location.latitude if data.location else None
        hospital.longitude = data.location.longitude if data.location else None
        hospital.er_available = data.er_available
        hospital.active = True

        existing = {c.name: c for c in hospital.bed_categories}
        for name, count in data.bed_categories.items():
            bed = existing.pop(name, None)
            if bed is None:
                hospital.bed_categories.append(BedCategory(name=name, total=count.total, occupied=count.occupied))
            else:
                bed.total, bed.occupied = count.total, count.occupied
        for stale in existing.values():
            hospital.bed_categories.remove(stale)

    def _load(self, hospital_id: str, for_update: bool = False) -> Hospital:
        stmt = select(Hospital).where(Hospital.id == hospital_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        hospital = self.db.execute(stmt).scalar_one_or_none()
        if hospital is None:
            raise NotFound(f"Hospital {hospital_id} not found")
        return hospital

    def _find_category(self, hospital_id: str, category: str):
        return self.db.execute(
            select(BedCategory)
            .where(BedCategory.hospital_id == hospital_id, BedCategory.name == category)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _load_category(self, hospital_id: str, category: str) -> BedCategory:
        bed = self._find_category(hospital_id, category)
        if bed is None:
            raise NotFound(f"Hospital {hospital_id} has no {category} beds")
        return bed


def _check_counts(name: str, count: BedCount):
    if count.total < 0:
        raise CapacityError(f"Bed total for {name} cannot be negative")
    if not 0 <= count.occupied <= count.total:
        raise CapacityError(f"{name} occupied count {count.occupied} is outside 0..{count.total}")


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    if pd.isna(value):
        return False
    return bool(value)


def _hospital_from_rows(hospital_id, rows: pd.DataFrame) -> HospitalCreate:
    first = rows.iloc[0]
    location = None
    if pd.notna(first["latitude"]) and pd.notna(first["longitude"]):
        location = Location(latitude=float(first["latitude"]), longitude=float(first["longitude"]))
    beds = {}
    for _, row in rows.iterrows():
        if pd.isna(row["category"]):
            continue
        if pd.isna(row["total"]):
            raise ValueError(f"Row for {hospital_id} {row['category']} has no bed total")
        occupied = 0 if pd.isna(row["occupied"]) else int(row["occupied"])
        beds[str(row["category"]).strip()] = BedCount(total=int(row["total"]), occupied=occupied)
    return HospitalCreate(
        id=str(hospital_id),
        name=str(first["name"]),
        location=location,
        er_available=_as_bool(first["er_available"]),
        bed_categories=beds,
    )
