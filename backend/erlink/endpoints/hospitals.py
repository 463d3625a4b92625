# erlink/endpoints/hospitals.py
from typing import List

import pandas as pd
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session

from erlink.database import get_db
from erlink.models.schemas import (
    BedAdjustment,
    BedTotalUpdate,
    HospitalCreate,
    HospitalRecord,
    Location,
    RankedHospitalOut,
    ReadinessUpdate,
)
from erlink.services.dispatch_service import DispatchService
from erlink.services.hospital_registry import HospitalRegistry
from erlink.utils.auth import Actor, get_actor, require_hospital_owner, require_role

router = APIRouter(prefix="/hospitals", tags=["Hospitals"])


@router.get("/ranked", response_model=List[RankedHospitalOut])
def list_ranked_hospitals(
    lat: float = Query(..., ge=-90, le=90, description="Paramedic latitude"),
    lng: float = Query(..., ge=-180, le=180, description="Paramedic longitude"),
    only_available: bool = Query(False),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Hospitals nearest first, distances in km rounded to one decimal."""
    ranked = DispatchService(db).list_candidate_hospitals(
        Location(latitude=lat, longitude=lng), only_available=only_available
    )
    return [r.to_out() for r in ranked]


@router.get("", response_model=List[HospitalRecord])
def list_hospitals(
    include_inactive: bool = False,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    return HospitalRegistry(db).list(include_inactive=include_inactive)


@router.post("", response_model=HospitalRecord, status_code=201)
def provision_hospital(payload: HospitalCreate, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require_role(actor, "admin")
    return HospitalRegistry(db).provision(payload)


@router.post("/upload-csv", response_model=List[HospitalRecord])
def upload_hospitals_csv(
    file: UploadFile = File(...),
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Bulk provisioning, one CSV row per hospital bed category."""
    require_role(actor, "admin")
    if not file.filename.endswith(".csv"):
        raise HTTPException(status_code=400, detail="Only CSV files are allowed.")
    try:
        df = pd.read_csv(file.file)
    except (ValueError, pd.errors.ParserError) as e:
        raise HTTPException(status_code=400, detail=f"Failed to parse CSV: {e}")
    try:
        return HospitalRegistry(db).provision_from_frame(df)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{hospital_id}", response_model=HospitalRecord)
def get_hospital(hospital_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    return HospitalRegistry(db).get(hospital_id)


@router.put("/{hospital_id}/readiness", response_model=HospitalRecord)
def set_readiness(
    hospital_id: str,
    payload: ReadinessUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    require_hospital_owner(actor, hospital_id)
    return HospitalRegistry(db).set_emergency_readiness(hospital_id, payload.available)


@router.post("/{hospital_id}/beds/{category}/adjust", response_model=HospitalRecord)
def adjust_beds(
    hospital_id: str,
    category: str,
    payload: BedAdjustment,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    require_hospital_owner(actor, hospital_id)
    return HospitalRegistry(db).adjust_beds(hospital_id, category, payload.delta)


@router.put("/{hospital_id}/beds/{category}", response_model=HospitalRecord)
def set_bed_total(
    hospital_id: str,
    category: str,
    payload: BedTotalUpdate,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    require_hospital_owner(actor, hospital_id)
    return HospitalRegistry(db).set_bed_totals(hospital_id, category, payload.total)


@router.post("/{hospital_id}/deactivate", response_model=HospitalRecord)
def deactivate_hospital(hospital_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require_role(actor, "admin")
    return HospitalRegistry(db).deactivate(hospital_id)
