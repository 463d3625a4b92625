# seed_hospitals.py
import logging
import sys
from pathlib import Path

import pandas as pd

import erlink.models  # noqa: F401  registers tables with Base
from erlink.database import Base, SessionLocal, engine
from erlink.services.hospital_registry import HospitalRegistry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Djelfa demo hospitals, one row per bed category
SEED_FILE = Path(__file__).parent / "backend" / "data" / "hospitals.csv"


def seed(path: Path = SEED_FILE):
    Base.metadata.create_all(bind=engine)
    df = pd.read_csv(path)
    db = SessionLocal()
    try:
        records = HospitalRegistry(db).provision_from_frame(df)
    finally:
        db.close()
    for r in records:
        beds = ", ".join(f"{name} {c.occupied}/{c.total}" for name, c in r.bed_categories.items())
        logger.info(f"✅ {r.id} ({r.name}) ER={'on' if r.er_available else 'off'} beds: {beds}")
    return records


if __name__ == "__main__":
    seed(Path(sys.argv[1]) if len(sys.argv) > 1 else SEED_FILE)
