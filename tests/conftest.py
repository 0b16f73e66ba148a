# tests/conftest.py
"""
Fixtures: a throwaway SQLite database per test, a controllable clock for the
OTP module, seeded users, bearer tokens and a TestClient bound to the test DB.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["OTP_CLEANUP_INTERVAL_SECONDS"] = "0"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from otpgate.crud import crud
from otpgate.database import database
from otpgate.database.database import Base, get_db
from otpgate.main import app
from otpgate.models.models import User
from otpgate.schemas.enums import UserRole
from otpgate.utils.security import issue_access_token


class Clock:
    """Callable stand-in for crud._utcnow."""

    def __init__(self):
        self.now = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def session_factory(tmp_path, monkeypatch):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'otpgate-test.db'}",
        # threaded tests queue their writers on the file lock
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    monkeypatch.setattr(database, "SessionLocal", factory)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    # Own patcher, so a test's monkeypatch.undo() leaves the clock in place
    c = Clock()
    mp = pytest.MonkeyPatch()
    mp.setattr(crud, "_utcnow", c)
    yield c
    mp.undo()


def _add_user(db, name, email, phone=None, role=UserRole.USER):
    user = User(name=name, email=email, phone=phone, hashed_password="not-a-real-hash", role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def account_holder(db):
    return _add_user(db, "Jane Holder", "jane@example.com", phone="+27830000001")


@pytest.fixture
def other_holder(db):
    return _add_user(db, "Sam Other", "sam@example.com", phone="+27830000002")


@pytest.fixture
def admin_user(db):
    return _add_user(db, "Admin", "admin@example.com", role=UserRole.ADMIN)


def bearer(user) -> dict:
    token = issue_access_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user):
    return bearer(admin_user)


@pytest.fixture
def holder_headers(account_holder):
    return bearer(account_holder)


@pytest.fixture
def sent_codes(monkeypatch):
    """Capture what the routers hand to the dispatcher instead of sending it."""
    sent = []

    def _fake_dispatch(email, phone, code, expires_minutes=5):
        sent.append({"email": email, "phone": phone, "code": code})
        return {"email": bool(email), "sms": bool(phone)}

    monkeypatch.setattr("otpgate.routers.otp.dispatch_otp", _fake_dispatch)
    monkeypatch.setattr("otpgate.routers.admin_otp.dispatch_otp", _fake_dispatch)
    return sent


@pytest.fixture
def client(session_factory):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    # No context manager: the lifespan (table creation, admin bootstrap, sweep timer) stays off
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()
