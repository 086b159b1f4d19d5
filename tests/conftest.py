"""Shared test fixtures for the back-office API tests."""

import os

# Must be set before anything under app/ is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["FIREBASE_PROJECT_ID"] = "testra-test"
os.environ["FIREBASE_API_KEY"] = "test-api-key"
os.environ["SESSION_COOKIE_SECURE"] = "false"
os.environ["SECURITY_HEADERS_ENABLED"] = "true"
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from datetime import date, datetime  # noqa: E402
from typing import Generator, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app import models  # noqa: E402
from app.auth import get_token_claims, get_websocket_claims  # noqa: E402
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.domain.appointments.schemas import AppointmentResponse, DrugTesting  # noqa: E402
from app.main import app  # noqa: E402

ADMIN_UID = "admin-uid-0000000000000000000"
USER_UID = "user-uid-00000000000000000000"


class AuthState:
    """Which uid the overridden auth dependencies report"""

    def __init__(self):
        self.uid: Optional[str] = ADMIN_UID

    def claims(self) -> dict:
        return {"uid": self.uid, "email": f"{self.uid}@example.com"}


@pytest.fixture(autouse=True)
def reset_database() -> Generator[None, None, None]:
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _make_user(db, uid: str, email: str, role: str) -> models.User:
    user = models.User(
        uid=uid,
        email=email,
        display_name=email.split("@")[0].title(),
        role=role,
        status="active",
        email_verified=True,
        auth_provider="email",
        account_type="free",
        settings={"notifications": True, "newsletter": True},
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db) -> models.User:
    return _make_user(db, ADMIN_UID, "admin@testra.example", "admin")


@pytest.fixture
def regular_user(db) -> models.User:
    return _make_user(db, USER_UID, "staff@testra.example", "user")


@pytest.fixture
def auth_state() -> Generator[AuthState, None, None]:
    """Bypass Firebase verification; tests pick the signed-in uid."""
    state = AuthState()

    async def claims_override():
        if state.uid is None:
            from fastapi import HTTPException

            raise HTTPException(status_code=401, detail="Not authenticated")
        return state.claims()

    app.dependency_overrides[get_token_claims] = claims_override
    app.dependency_overrides[get_websocket_claims] = claims_override
    yield state
    app.dependency_overrides.pop(get_token_claims, None)
    app.dependency_overrides.pop(get_websocket_claims, None)


@pytest.fixture
def client(auth_state, admin_user, regular_user) -> TestClient:
    """API client signed in as the admin by default."""
    return TestClient(app)


@pytest.fixture
def make_appointment():
    """Factory for in-memory appointment records."""

    def factory(
        id: str = "a1",
        day: date = date(2024, 3, 13),
        start_time: str = "09:00",
        title: Optional[str] = None,
        status: str = "scheduled",
        service_type: str = "other",
        version: int = 1,
        last_mutation_id: Optional[str] = None,
        company_id: Optional[str] = None,
        drug_testing: Optional[DrugTesting] = None,
    ) -> AppointmentResponse:
        return AppointmentResponse(
            id=id,
            title=title or f"Appointment {id}",
            companyId=company_id,
            appointmentDate=datetime(day.year, day.month, day.day, 12, 0),
            startTime=start_time,
            duration=30,
            endTime=None,
            serviceType=service_type,
            status=status,
            drugTesting=drug_testing,
            version=version,
            lastMutationId=last_mutation_id,
        )

    return factory


@pytest.fixture
def as_regular_user(auth_state) -> AuthState:
    """Sign the API client in as the non-admin staff user."""
    auth_state.uid = USER_UID
    return auth_state
