# erlink/endpoints/cases.py
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from erlink.database import get_db
from erlink.models.schemas import CaseRecord, CaseResolve, CaseSubmit, CaseTransitionRecord
from erlink.services.case_store import CaseStore
from erlink.services.dispatch_service import DispatchService
from erlink.utils.auth import Actor, get_actor, require_case_reader, require_role, scope_case_filters

router = APIRouter(prefix="/cases", tags=["Cases"])


@router.post("", response_model=CaseRecord, status_code=201)
def submit_case(payload: CaseSubmit, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    """Paramedic hands a patient over to the hospital they picked."""
    require_role(actor, "paramedic")
    return DispatchService(db).submit_case(
        paramedic_id=actor.id,
        patient_info=payload.patient_info,
        hospital_id=payload.hospital_id,
        bed_category=payload.bed_category,
        origin=payload.origin,
    )


@router.get("", response_model=List[CaseRecord])
def patient_log(
    status: Optional[Literal["pending", "accepted", "rejected", "completed"]] = None,
    hospital_id: Optional[str] = None,
    paramedic_id: Optional[str] = None,
    q: Optional[str] = Query(None, description="Patient name, fuzzy matched"),
    sort: Literal["newest", "oldest"] = "newest",
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
):
    """Paramedics see their own cases, hospitals their assigned ones, admins all."""
    hospital_id, paramedic_id = scope_case_filters(actor, hospital_id, paramedic_id)
    return CaseStore(db).search(status=status, hospital_id=hospital_id, paramedic_id=paramedic_id, query=q, sort=sort)


@router.get("/{case_id}", response_model=CaseRecord)
def get_case(case_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    case = CaseStore(db).get(case_id)
    require_case_reader(actor, case)
    return case


@router.get("/{case_id}/history", response_model=List[CaseTransitionRecord])
def case_history(case_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    store = CaseStore(db)
    require_case_reader(actor, store.get(case_id))
    return store.history(case_id)


@router.post("/{case_id}/resolve", response_model=CaseRecord)
def resolve_case(case_id: str, payload: CaseResolve, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require_role(actor, "hospital")
    return DispatchService(db).resolve_case(actor.id, case_id, payload.outcome, bed_category=payload.bed_category)


@router.post("/{case_id}/cancel", response_model=CaseRecord)
def cancel_case(case_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require_role(actor, "paramedic")
    return DispatchService(db).cancel_case(actor.id, case_id)


@router.post("/{case_id}/complete", response_model=CaseRecord)
def complete_case(case_id: str, actor: Actor = Depends(get_actor), db: Session = Depends(get_db)):
    require_role(actor, "hospital")
    return DispatchService(db).complete_case(actor.id, case_id)
