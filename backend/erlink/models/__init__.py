# Import ORM models so they register with Base.metadata
from erlink.models.hospital import BedCategory, Hospital
from erlink.models.case import CaseTransition, PatientCase

__all__ = ["BedCategory", "Hospital", "CaseTransition", "PatientCase"]
