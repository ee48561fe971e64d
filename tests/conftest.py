"""Shared fixtures: a throwaway SQLite database per test, a pinned clock, and seeded users."""
import os
from datetime import datetime
from itertools import count

import pytest
from fastapi.testclient import TestClient

os.environ["TESTING"] = "1"

from app.core.clock import FixedClock
from app.core.config import Settings
from app.core.database import create_db_engine, create_session_factory, init_db
from app.core.locks import LocalLockRegistry
from app.core.runtime import Runtime
from app.core.security import UserRole
from app.models.user import User
from app.services.appointment_state import AppointmentStateMachine
from app.services.attachment_store import LocalAttachmentStore
from app.services.audit_service import AuditDispatcher
from app.services.booking_service import BookingEngine
from app.services.chat_service import ChatService
from app.services.prescription_service import PrescriptionService
from app.services.video_service import JWTSignalingTokenIssuer, VideoService

# Every test runs on 2025-01-01 09:00 UTC
NOW = datetime(2025, 1, 1, 9, 0)

_emails = count(1)


class RecordingAuditSink:
    """AuditSink that keeps events in memory."""

    def __init__(self):
        self.events = []

    def record(self, actor_id, action, entity_type, entity_id, metadata=None):
        self.events.append((actor_id, action, entity_type, str(entity_id), metadata or {}))

    def actions(self):
        return [event[1] for event in self.events]


def make_user(db, role: UserRole, name: str = "") -> User:
    user = User(
        email=f"{role.value}{next(_emails)}@example.com",
        password_hash="unused-in-core-tests",
        role=role,
        name=name or role.value.title(),
        is_active=True,
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def locks():
    return LocalLockRegistry(timeout=30)


@pytest.fixture
def audit():
    return RecordingAuditSink()


@pytest.fixture
def doctor(db):
    return make_user(db, UserRole.DOCTOR, "Dr. House")


@pytest.fixture
def patient(db):
    return make_user(db, UserRole.PATIENT, "Pat Patient")


@pytest.fixture
def outsider(db):
    return make_user(db, UserRole.PATIENT, "Somebody Else")


@pytest.fixture
def booking(db, clock, locks, audit):
    return BookingEngine(db, clock=clock, locks=locks, audit=audit)


@pytest.fixture
def state_machine(db, locks, audit):
    return AppointmentStateMachine(db, locks=locks, audit=audit)


@pytest.fixture
def appointment(booking, patient, doctor):
    return booking.create_appointment(
        patient.id, doctor.id,
        datetime(2025, 1, 10, 10, 0), datetime(2025, 1, 10, 10, 30),
    )


@pytest.fixture
def chat(db, clock, audit, tmp_path):
    return ChatService(db, clock=clock, audit=audit, attachments=LocalAttachmentStore(str(tmp_path / "uploads")))


@pytest.fixture
def prescriptions(db, audit):
    return PrescriptionService(db, audit=audit)


@pytest.fixture
def video(db, clock, locks, audit):
    return VideoService(db, clock=clock, locks=locks, audit=audit, ice_servers=["stun:stun.example.org:3478"])


@pytest.fixture
def runtime(engine, session_factory, clock, tmp_path):
    settings = Settings(
        TESTING=True,
        TEST_DATABASE_URL=str(engine.url),
        UPLOAD_PATH=str(tmp_path / "uploads"),
        AUDIT_WORKERS=1,
    )
    return Runtime(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        clock=clock,
        locks=LocalLockRegistry(timeout=30),
        audit=AuditDispatcher(session_factory, clock=clock, workers=1),
        attachments=LocalAttachmentStore(settings.UPLOAD_PATH),
        token_issuer=JWTSignalingTokenIssuer(clock, settings.VIDEO_TOKEN_EXPIRE_MINUTES),
    )


@pytest.fixture
def client(runtime):
    from app.main import create_app

    app = create_app(runtime.settings, runtime=runtime)
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client


def register_and_login(client, role: str, email: str, password: str = "TestPassword123"):
    """Create an account over HTTP; returns (user_id, auth headers)."""
    response = client.post("/api/v1/auth/register", json={
        "email": email, "password": password, "role": role, "name": email.split("@")[0],
    })
    assert response.status_code == 201, response.text
    login = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert login.status_code == 200, login.text
    return response.json()["id"], {"Authorization": f"Bearer {login.json()['access_token']}"}
