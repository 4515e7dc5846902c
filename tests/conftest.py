import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone

# settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STORAGE_DIR", tempfile.mkdtemp(prefix="hrportal-storage-"))
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hrportal.core.realtime import realtime_hub
from hrportal.core.security import create_access_token, hash_password
from hrportal.database.base import Base
from hrportal.database.session import get_db
from hrportal.main import app
from hrportal.models.user import User
from hrportal.models.user_session import UserSession

PASSWORD = "Secret123"
PASSWORD_HASH = hash_password(PASSWORD)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(role="employee", name=None, department="Web Designer", **fields):
        counter["n"] += 1
        user = User(
            name=name or f"{role.title()} {counter['n']}",
            email=fields.pop("email", f"{role}{counter['n']}@example.com"),
            role=role,
            department=department,
            password_hash=PASSWORD_HASH,
            is_active=fields.pop("is_active", True),
            **fields
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def auth_headers(db_session):
    """Bearer headers backed by a live server-side session for ``user``."""

    def _auth_headers(user):
        now = datetime.now(timezone.utc)
        session = UserSession(
            session_id=f"{user.id}_{uuid.uuid4().hex}",
            user_id=user.id,
            last_seen_at=now,
            expires_at=now + timedelta(days=1),
        )
        db_session.add(session)
        db_session.commit()
        token = create_access_token({"sub": str(user.id), "role": user.role, "sid": session.session_id})
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
def sent_emails(monkeypatch):
    outbox = []

    def _capture(**kwargs):
        outbox.append(kwargs)

    monkeypatch.setattr("hrportal.routes.auth.send_password_reset_link", _capture)
    monkeypatch.setattr("hrportal.routes.employees.send_employee_credentials", _capture)
    return outbox


@pytest.fixture
def password():
    return PASSWORD


@pytest.fixture(autouse=True)
def reset_realtime_hub():
    yield
    realtime_hub.channels.clear()
    realtime_hub._loop = None
