# tests/conftest.py
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import erlink.models  # noqa: F401  register models with Base
from erlink.database import Base, build_engine, get_db
from erlink.models.schemas import BedCount, HospitalCreate, Location, PatientInfo
from erlink.services.dispatch_service import DispatchService
from erlink.services.hospital_registry import HospitalRegistry


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish(self, event_type, case, **extra):
        self.events.append((event_type, case.id, extra))

    @property
    def types(self):
        return [e[0] for e in self.events]


@pytest.fixture
def engine(tmp_path):
    # file-backed so worker threads can each open their own connection
    engine = build_engine(f"sqlite:///{tmp_path / 'erlink.db'}")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def registry(db_session):
    return HospitalRegistry(db_session)


@pytest.fixture
def dispatch(db_session, publisher):
    return DispatchService(db_session, publisher=publisher)


@pytest.fixture
def provision(registry):
    """Provision a hospital; beds given as {"ICU": (total, occupied)}."""

    def _provision(hospital_id, lat=34.673, lng=3.263, er_available=True, beds=None, name=None):
        beds = beds if beds is not None else {"Emergency": (5, 0), "ICU": (2, 0)}
        return registry.provision(HospitalCreate(
            id=hospital_id,
            name=name or f"Hospital {hospital_id}",
            location=Location(latitude=lat, longitude=lng) if lat is not None else None,
            er_available=er_available,
            bed_categories={k: BedCount(total=t, occupied=o) for k, (t, o) in beds.items()},
        ))

    return _provision


@pytest.fixture
def patient():
    return PatientInfo(
        first_name="Ahmed",
        last_name="Ali",
        blood_type="O+",
        medical_history="Penicillin allergy",
        current_condition="Chest pain, suspected myocardial infarction",
    )


@pytest.fixture
def client(session_factory, publisher, monkeypatch):
    from erlink.main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    monkeypatch.setattr("erlink.services.dispatch_service.get_event_publisher", lambda: publisher)
    yield TestClient(app)
    app.dependency_overrides.clear()
