# erlink/services/dispatch_service.py
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from erlink.config import DEFAULT_BED_CATEGORY
from erlink.exceptions import HospitalUnavailable, NotFound
from erlink.models.case import ACCEPTED, REJECTED
from erlink.models.schemas import CaseRecord, HospitalRecord, Location, PatientInfo
from erlink.services.case_store import CaseStore
from erlink.services.events import get_event_publisher
from erlink.services.geo_ranking import DistanceRankedHospital, is_eligible, rank
from erlink.services.hospital_registry import HospitalRegistry
from erlink.utils.auth import Actor
from erlink.utils.locks import case_locks

logger = logging.getLogger(__name__)


class DispatchService:
    """Coordinates the hospital registry and the case store.

    Owns no state. Cross-store steps (accepting a case reserves a bed,
    completing it releases one) are applied case transition first, registry
    second; if the registry step fails on accept, the case is put back to
    pending before the error is returned.
    """

    def __init__(self, db: Session, publisher=None):
        self.registry = HospitalRegistry(db)
        self.cases = CaseStore(db)
        self.events = publisher or get_event_publisher()

    def list_candidate_hospitals(self, origin: Location, only_available: bool = False) -> List[DistanceRankedHospital]:
        return rank(origin, self.registry.list(), only_available=only_available)

    def submit_case(
        self,
        paramedic_id: str,
        patient_info: PatientInfo,
        hospital_id: str,
        bed_category: Optional[str] = None,
        origin: Optional[Location] = None,
    ) -> CaseRecord:
        # the client's ranking may be seconds old, look again before creating
        hospital = self.registry.get(hospital_id)
        if not is_eligible(hospital):
            raise self._unavailable(hospital_id, origin)
        bed_category = _pick_bed_category(hospital, bed_category)

        try:
            case = self.cases.create(paramedic_id, patient_info, hospital_id, bed_category)
        except HospitalUnavailable:
            # readiness flipped between the re-check and the insert
            raise self._unavailable(hospital_id, origin)
        self.events.publish("case.created", case)
        return case

    def resolve_case(self, hospital_id: str, case_id: str, outcome: str, bed_category: Optional[str] = None) -> CaseRecord:
        actor = Actor(id=hospital_id, role="hospital")
        with case_locks.hold(case_id):
            original = self.cases.get(case_id)
            case, changed = self.cases.resolve(case_id, outcome, actor, bed_category=bed_category)
            if not changed:
                return case

            if outcome == ACCEPTED:
                try:
                    self.registry.adjust_beds(hospital_id, case.bed_category, +1)
                except Exception as e:
                    logger.warning(f"⚠️ Bed reservation failed for case {case_id}, rolling back: {e}")
                    self.cases.revert_resolution(case_id, ACCEPTED, hospital_id, restore_bed_category=original.bed_category)
                    raise

        self.events.publish(f"case.{outcome}", case)
        return case

    def cancel_case(self, paramedic_id: str, case_id: str) -> CaseRecord:
        """A paramedic abandons a pending case through the regular reject path."""
        actor = Actor(id=paramedic_id, role="paramedic")
        with case_locks.hold(case_id):
            case, changed = self.cases.resolve(case_id, REJECTED, actor)
        if changed:
            self.events.publish("case.cancelled", case)
        return case

    def complete_case(self, hospital_id: str, case_id: str) -> CaseRecord:
        actor = Actor(id=hospital_id, role="hospital")
        with case_locks.hold(case_id):
            case, changed = self.cases.complete(case_id, actor)
            if not changed:
                return case

            # over-reporting occupancy is the safe side, so completion stands
            try:
                self.registry.adjust_beds(hospital_id, case.bed_category, -1)
            except Exception as e:
                logger.exception(f"❌ Bed release failed for completed case {case_id}")
                case.warnings.append(f"Bed release failed for {case.bed_category}: {e}")

        self.events.publish("case.completed", case, bed_released=not case.warnings)
        return case

    def _unavailable(self, hospital_id: str, origin: Optional[Location]) -> HospitalUnavailable:
        candidates = []
        if origin is not None:
            candidates = [
                r.to_out().model_dump(mode="json")
                for r in self.list_candidate_hospitals(origin, only_available=True)
            ]
        logger.info(f"🚑 Hospital {hospital_id} unavailable at submission, offering {len(candidates)} alternatives")
        return HospitalUnavailable(f"Hospital {hospital_id} is not accepting emergency cases", candidates=candidates)


def _pick_bed_category(hospital: HospitalRecord, requested: Optional[str]) -> str:
    """Requested category, else the default one, else the hospital's first by name."""
    if requested:
        if requested not in hospital.bed_categories:
            raise NotFound(f"Hospital {hospital.id} has no {requested} beds")
        return requested
    if DEFAULT_BED_CATEGORY in hospital.bed_categories:
        return DEFAULT_BED_CATEGORY
    if not hospital.bed_categories:
        raise NotFound(f"Hospital {hospital.id} has no bed categories")
    return min(hospital.bed_categories)
