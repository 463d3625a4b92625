# erlink/models/hospital.py
from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from erlink.database import Base


class Hospital(Base):
    __tablename__ = "hospitals"

    id = Column(String(64), primary_key=True)
    name = Column(String, nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    er_available = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)  # soft-deactivation, rows are never deleted
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    bed_categories = relationship(
        "BedCategory",
        back_populates="hospital",
        cascade="all, delete-orphan",
        order_by="BedCategory.name",
    )
    cases = relationship("PatientCase", back_populates="hospital")


class BedCategory(Base):
    __tablename__ = "bed_categories"
    __table_args__ = (
        UniqueConstraint("hospital_id", "name", name="uq_bed_category_hospital_name"),
        CheckConstraint("total >= 0", name="ck_bed_total_non_negative"),
        CheckConstraint("occupied >= 0 AND occupied <= total", name="ck_bed_occupied_in_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    hospital_id = Column(String(64), ForeignKey("hospitals.id"), nullable=False, index=True)
    name = Column(String(64), nullable=False)  # "ICU", "Emergency", "General", ...
    total = Column(Integer, nullable=False, default=0)
    occupied = Column(Integer, nullable=False, default=0)

    hospital = relationship("Hospital", back_populates="bed_categories")
