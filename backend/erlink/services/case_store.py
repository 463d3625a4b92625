# erlink/services/case_store.py
import logging
import uuid
from contextlib import contextmanager
from typing import List, Optional, Tuple

from rapidfuzz import fuzz
from sqlalchemy import select
from sqlalchemy.orm import Session

from erlink.config import SEARCH_SCORE_CUTOFF
from erlink.exceptions import Forbidden, HospitalUnavailable, InvalidTransition, NotFound
from erlink.models.case import ACCEPTED, COMPLETED, PENDING, REJECTED, CaseTransition, PatientCase, utcnow
from erlink.models.hospital import Hospital
from erlink.models.schemas import CaseRecord, CaseTransitionRecord, PatientInfo
from erlink.utils.auth import Actor
from erlink.utils.locks import case_locks, hospital_locks

logger = logging.getLogger(__name__)

# pending -> accepted | rejected, accepted -> completed
_ALLOWED = {
    PENDING: {ACCEPTED, REJECTED},
    ACCEPTED: {COMPLETED},
    REJECTED: set(),
    COMPLETED: set(),
}


def can_transition(current: str, target: str) -> bool:
    return target in _ALLOWED.get(current, set())


class CaseStore:
    """Patient cases and their lifecycle.

    Transitions return ``(record, changed)``; ``changed`` is False for an
    idempotent replay so callers can skip side effects.
    """

    def __init__(self, db: Session):
        self.db = db

    # ---------------- Reads ----------------
    def get(self, case_id: str) -> CaseRecord:
        return CaseRecord.from_orm_case(self._load(case_id))

    def history(self, case_id: str) -> List[CaseTransitionRecord]:
        self._load(case_id)
        rows = self.db.execute(
            select(CaseTransition).where(CaseTransition.case_id == case_id).order_by(CaseTransition.id)
        ).scalars()
        return [CaseTransitionRecord.model_validate(r) for r in rows]

    def search(
        self,
        status: Optional[str] = None,
        hospital_id: Optional[str] = None,
        paramedic_id: Optional[str] = None,
        query: Optional[str] = None,
        sort: str = "newest",
    ) -> List[CaseRecord]:
        """Patient log: filter by status and owner, fuzzy match on patient name."""
        stmt = select(PatientCase).execution_options(populate_existing=True)
        if status:
            stmt = stmt.where(PatientCase.status == status)
        if hospital_id:
            stmt = stmt.where(PatientCase.assigned_hospital_id == hospital_id)
        if paramedic_id:
            stmt = stmt.where(PatientCase.paramedic_id == paramedic_id)
        order = PatientCase.created_at.asc() if sort == "oldest" else PatientCase.created_at.desc()
        stmt = stmt.order_by(order, PatientCase.id)

        cases = list(self.db.execute(stmt).scalars())
        if query and query.strip():
            needle = query.strip().lower()
            cases = [
                c for c in cases
                if fuzz.partial_ratio(needle, f"{c.first_name} {c.last_name}".lower()) >= SEARCH_SCORE_CUTOFF
            ]
        return [CaseRecord.from_orm_case(c) for c in cases]

    # ---------------- Lifecycle ----------------
    def create(self, paramedic_id: str, patient_info: PatientInfo, hospital_id: str, bed_category: str) -> CaseRecord:
        # readiness is checked under the hospital lock so a concurrent
        # readiness toggle cannot slip between the check and the insert
        with hospital_locks.hold(hospital_id), self._transaction():
            hospital = self.db.execute(
                select(Hospital).where(Hospital.id == hospital_id).with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if hospital is None:
                raise NotFound(f"Hospital {hospital_id} not found")
            if not (hospital.active and hospital.er_available):
                raise HospitalUnavailable(f"Hospital {hospital_id} is not accepting emergency cases")

            case = PatientCase(
                id=uuid.uuid4().hex,
                paramedic_id=paramedic_id,
                assigned_hospital_id=hospital_id,
                bed_category=bed_category,
                first_name=patient_info.first_name,
                last_name=patient_info.last_name,
                blood_type=patient_info.blood_type.value,
                medical_history=patient_info.medical_history,
                current_condition=patient_info.current_condition,
                status=PENDING,
                created_at=utcnow(),
            )
            self.db.add(case)
            self.db.add(CaseTransition(case_id=case.id, from_status=None, to_status=PENDING, actor_id=paramedic_id))
            case_id = case.id
        logger.info(f"📝 Case {case_id} created by {paramedic_id} for {hospital_id}")
        return self.get(case_id)

    def resolve(self, case_id: str, outcome: str, actor: Actor, bed_category: Optional[str] = None) -> Tuple[CaseRecord, bool]:
        if outcome not in (ACCEPTED, REJECTED):
            raise InvalidTransition(f"Cannot resolve a case as {outcome!r}")

        with case_locks.hold(case_id), self._transaction():
            case = self._load(case_id, for_update=True)
            self._check_resolver(case, outcome, actor)

            if case.status == outcome and case.resolved_by == actor.id:
                logger.info(f"🔁 Replayed resolve({outcome}) on case {case_id} by {actor.id}")
                return CaseRecord.from_orm_case(case), False
            if case.status != PENDING:
                raise InvalidTransition(f"Case {case_id} is {case.status}, cannot become {outcome}")

            case.status = outcome
            case.resolved_at = utcnow()
            case.resolved_by = actor.id
            if outcome == ACCEPTED and bed_category:
                case.bed_category = bed_category
            reason = "self-cancelled" if actor.role == "paramedic" else None
            self.db.add(CaseTransition(case_id=case_id, from_status=PENDING, to_status=outcome, actor_id=actor.id, reason=reason))
        logger.info(f"✅ Case {case_id} {outcome} by {actor.role} {actor.id}")
        return self.get(case_id), True

    def complete(self, case_id: str, actor: Actor) -> Tuple[CaseRecord, bool]:
        with case_locks.hold(case_id), self._transaction():
            case = self._load(case_id, for_update=True)
            if actor.role != "hospital" or actor.id != case.assigned_hospital_id:
                raise Forbidden(f"{actor.id} does not own case {case_id}")
            if case.status == COMPLETED:
                logger.info(f"🔁 Replayed complete on case {case_id} by {actor.id}")
                return CaseRecord.from_orm_case(case), False
            if not can_transition(case.status, COMPLETED):
                raise InvalidTransition(f"Case {case_id} is {case.status}, only accepted cases can be completed")

            case.status = COMPLETED
            case.completed_at = utcnow()
            self.db.add(CaseTransition(case_id=case_id, from_status=ACCEPTED, to_status=COMPLETED, actor_id=actor.id))
        logger.info(f"🏁 Case {case_id} completed by {actor.id}")
        return self.get(case_id), True

    def revert_resolution(
        self,
        case_id: str,
        expected_status: str,
        actor_id: str,
        reason: str = "compensated",
        restore_bed_category: Optional[str] = None,
    ) -> CaseRecord:
        """Compensating action: put a just-resolved case back to pending."""
        with case_locks.hold(case_id), self._transaction():
            case = self._load(case_id, for_update=True)
            if case.status != expected_status:
                raise InvalidTransition(f"Case {case_id} is {case.status}, expected {expected_status} to revert")
            case.status = PENDING
            case.resolved_at = None
            case.resolved_by = None
            if restore_bed_category:
                case.bed_category = restore_bed_category
            self.db.add(CaseTransition(case_id=case_id, from_status=expected_status, to_status=PENDING, actor_id=actor_id, reason=reason))
        logger.warning(f"↩️ Case {case_id} reverted {expected_status} -> pending ({reason})")
        return self.get(case_id)

    # ---------------- Helpers ----------------
    @staticmethod
    def _check_resolver(case: PatientCase, outcome: str, actor: Actor):
        if actor.role == "hospital" and actor.id == case.assigned_hospital_id:
            return
        if actor.role == "paramedic" and actor.id == case.paramedic_id:
            if outcome != REJECTED:
                raise Forbidden("Paramedics can only cancel their own pending cases")
            return
        raise Forbidden(f"{actor.id} does not own case {case.id}")

    @contextmanager
    def _transaction(self):
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _load(self, case_id: str, for_update: bool = False) -> PatientCase:
        stmt = select(PatientCase).where(PatientCase.id == case_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        case = self.db.execute(stmt).scalar_one_or_none()
        if case is None:
            raise NotFound(f"Case {case_id} not found")
        return case
