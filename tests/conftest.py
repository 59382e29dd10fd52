"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Callable
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tests.test_constants import TEST_SECRET_KEY

# Force a throw-away SQLite database; don't inherit DATABASE_URL from .env
_TEST_DB_PATH = Path(tempfile.gettempdir()) / f"flatshare_test_{os.getpid()}.sqlite3"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_DB_PATH}"
os.environ["FLAT_DELETE_POLICY"] = "creator"
os.environ.setdefault("SECRET_KEY", TEST_SECRET_KEY)
os.environ.setdefault("DB_CONNECT_TIMEOUT", "30")


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Drop cached settings so monkeypatched env vars take effect per test."""
    from app.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def _schema():
    """Create all tables before the test and drop them afterwards."""
    import app.models  # noqa: F401
    from app.db.session import Base, engine

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture
def db(_schema) -> Session:
    """Database session on a fresh schema."""
    from app.db.session import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client."""
    from app.main import app

    return TestClient(app)


@pytest.fixture
def client_with_db(db: Session) -> TestClient:
    """TestClient with get_db overridden to use the test db session."""
    from app.db.session import get_db
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    c = TestClient(app)
    yield c
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def make_user(db: Session) -> Callable:
    """Factory for persisted users. Skips bcrypt; these users never log in with a password."""
    from app.models import User

    def _make(username: str) -> User:
        user = User(username=username, password_hash="!")
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers() -> Callable:
    """Build an Authorization header for a user."""
    from app.services.auth import create_access_token

    def _headers(user) -> dict[str, str]:
        token = create_access_token(data={"sub": user.username})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def alice(make_user):
    return make_user("alice")


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def carol(make_user):
    return make_user("carol")
