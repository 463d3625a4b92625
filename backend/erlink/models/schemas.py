# erlink/models/schemas.py
from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class BloodType(str, Enum):
    A_POS = "A+"
    A_NEG = "A-"
    B_POS = "B+"
    B_NEG = "B-"
    O_POS = "O+"
    O_NEG = "O-"
    AB_POS = "AB+"
    AB_NEG = "AB-"
    UNKNOWN = "unknown"


class Location(BaseModel):
    latitude: float
    longitude: float


# ---------------- Hospitals ----------------
class BedCount(BaseModel):
    total: int
    occupied: int = 0

    @property
    def free(self) -> int:
        return self.total - self.occupied


class HospitalRecord(BaseModel):
    """Detached snapshot of a hospital, safe to use after the session is gone."""

    id: str
    name: str
    location: Optional[Location] = None
    er_available: bool
    active: bool = True
    bed_categories: Dict[str, BedCount] = Field(default_factory=dict)

    @classmethod
    def from_orm_hospital(cls, hospital) -> "HospitalRecord":
        location = None
        if hospital.latitude is not None and hospital.longitude is not None:
            location = Location(latitude=hospital.latitude, longitude=hospital.longitude)
        return cls(
            id=hospital.id,
            name=hospital.name,
            location=location,
            er_available=hospital.er_available,
            active=hospital.active,
            bed_categories={
                c.name: BedCount(total=c.total, occupied=c.occupied) for c in hospital.bed_categories
            },
        )


class HospitalCreate(BaseModel):
    id: NonBlank
    name: NonBlank
    location: Optional[Location] = None
    er_available: bool = False
    bed_categories: Dict[str, BedCount] = Field(default_factory=dict)


class ReadinessUpdate(BaseModel):
    available: bool


class BedAdjustment(BaseModel):
    delta: int


class BedTotalUpdate(BaseModel):
    total: int


class RankedHospitalOut(BaseModel):
    hospital_id: str
    name: str
    distance_km: float  # rounded to one decimal for display
    er_available: bool
    is_eligible: bool
    availability: Literal["available", "limited", "unavailable"]
    bed_categories: Dict[str, BedCount]


# ---------------- Cases ----------------
class PatientInfo(BaseModel):
    first_name: NonBlank
    last_name: str = ""
    blood_type: BloodType = BloodType.UNKNOWN
    medical_history: Optional[str] = None
    current_condition: NonBlank


class CaseSubmit(BaseModel):
    hospital_id: NonBlank
    patient_info: PatientInfo
    bed_category: Optional[str] = None
    origin: Optional[Location] = None  # lets a rejection carry a fresh ranking


class CaseResolve(BaseModel):
    outcome: Literal["accepted", "rejected"]
    bed_category: Optional[str] = None


class CaseRecord(BaseModel):
    id: str
    paramedic_id: str
    assigned_hospital_id: str
    bed_category: str
    patient_info: PatientInfo
    status: Literal["pending", "accepted", "rejected", "completed"]
    created_at: datetime
    resolved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_orm_case(cls, case) -> "CaseRecord":
        return cls(
            id=case.id,
            paramedic_id=case.paramedic_id,
            assigned_hospital_id=case.assigned_hospital_id,
            bed_category=case.bed_category,
            patient_info=PatientInfo(
                first_name=case.first_name,
                last_name=case.last_name or "",
                blood_type=case.blood_type,
                medical_history=case.medical_history,
                current_condition=case.current_condition,
            ),
            status=case.status,
            created_at=case.created_at,
            resolved_at=case.resolved_at,
            completed_at=case.completed_at,
            resolved_by=case.resolved_by,
        )


class CaseTransitionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    from_status: Optional[str] = None
    to_status: str
    actor_id: str
    reason: Optional[str] = None
    created_at: datetime
