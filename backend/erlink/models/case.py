# erlink/models/case.py
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from erlink.database import Base

PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"
COMPLETED = "completed"

CASE_STATUSES = (PENDING, ACCEPTED, REJECTED, COMPLETED)


def utcnow():
    return datetime.now(timezone.utc)


class PatientCase(Base):
    __tablename__ = "patient_cases"

    id = Column(String(32), primary_key=True)
    paramedic_id = Column(String(64), nullable=False, index=True)
    assigned_hospital_id = Column(String(64), ForeignKey("hospitals.id"), nullable=False, index=True)
    bed_category = Column(String(64), nullable=False)

    # patient info
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False, default="")
    blood_type = Column(String(8), nullable=False, default="unknown")
    medical_history = Column(Text, nullable=True)
    current_condition = Column(Text, nullable=False)

    status = Column(String(16), nullable=False, default=PENDING, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(String(64), nullable=True)

    hospital = relationship("Hospital", back_populates="cases")
    transitions = relationship(
        "CaseTransition",
        back_populates="case",
        order_by="CaseTransition.id",
    )


class CaseTransition(Base):
    """One row per applied status change, kept for the patient log view."""

    __tablename__ = "case_transitions"

    id = Column(Integer, primary_key=True, index=True)
    case_id = Column(String(32), ForeignKey("patient_cases.id"), nullable=False, index=True)
    from_status = Column(String(16), nullable=True)  # None for creation
    to_status = Column(String(16), nullable=False)
    actor_id = Column(String(64), nullable=False)
    reason = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    case = relationship("PatientCase", back_populates="transitions")
