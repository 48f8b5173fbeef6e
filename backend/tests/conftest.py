"""Shared test fixtures for API, client and CLI tests."""
import os

# Must be set before vesseltrack.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vesseltrack.client.api import BackendClient
from vesseltrack.database import get_db
from vesseltrack.main import app
from vesseltrack.models import Base
from vesseltrack.modules import auth_service

DEFAULT_PASSWORD = "secret123"


@pytest.fixture
def mock_db():
    """MagicMock database session: returns None for all queries by default."""
    session = MagicMock()
    session.query.return_value.filter.return_value.first.return_value = None
    session.query.return_value.filter.return_value.all.return_value = []
    session.get.return_value = None
    return session


@pytest.fixture
def api_client(mock_db):
    """TestClient with DB dependency overridden to use a MagicMock session."""
    def override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


# ── In-memory SQLite ─────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    """One in-memory database per test, shared by every session through StaticPool."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def live_client(engine):
    """TestClient backed by the in-memory database."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def backend(live_client):
    """BackendClient talking to the app in-process."""
    return BackendClient(base_url="http://testserver/api/v1", http=live_client)


@pytest.fixture
def make_account(db):
    """Factory: create a committed account (optionally admin) and return its AuthUser."""
    def _make(email, username, password=DEFAULT_PASSWORD, name=None, admin=False):
        user = auth_service.sign_up(db, email, password, username, name)
        if admin:
            auth_service.grant_admin(db, user.id)
        db.commit()
        return user
    return _make


@pytest.fixture
def auth_headers(live_client):
    """Factory: sign in over HTTP and return the bearer header."""
    def _headers(email, password=DEFAULT_PASSWORD):
        resp = live_client.post("/api/v1/auth/token", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}
    return _headers
