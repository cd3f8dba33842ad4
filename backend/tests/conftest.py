"""
Shared fixtures: an isolated in-memory database and application per test.

The environment is set before anything under `app` is imported, because
`app.core.config` builds its settings singleton (and refuses to start
without a signing secret) at import time.
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any, Callable, Dict, Optional

import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.database import build_engine, build_session_factory, create_tables
from app.core.security import PasswordHasher, TokenService
from app.main import create_app
from app.models.user import User

TEST_SECRET = "test-secret-key"
TEST_PASSWORD = "password123"


@pytest.fixture
def settings() -> Settings:
    # bcrypt's minimum cost keeps the suite fast; production costs are covered in test_security.py
    return Settings(
        JWT_SECRET_KEY=TEST_SECRET,
        DATABASE_URL="sqlite://",
        PASSWORD_HASH_ROUNDS=4,
        RESET_TOKEN_HASH_ROUNDS=4,
        ENVIRONMENT="test",
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def app(settings, session_factory):
    return create_app(settings=settings, session_factory=session_factory)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def token_service(settings) -> TokenService:
    return TokenService(secret_key=settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


@pytest.fixture
def password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=4)


@pytest.fixture
def register_user(client) -> Callable[..., Dict[str, Any]]:
    """POST /auth/register and return the JSON body (asserts 201)."""

    def _register(email: str = "user@example.com", password: str = TEST_PASSWORD, name: Optional[str] = None):
        body = {"email": email, "password": password}
        if name is not None:
            body["name"] = name
        response = client.post("/auth/register", json=body)
        assert response.status_code == 201, response.text
        return response.json()

    return _register


@pytest.fixture
def fetch_user(session_factory) -> Callable[[str], Optional[User]]:
    """Read a user in a fresh session so the result reflects what the app committed."""

    def _fetch(email: str) -> Optional[User]:
        with session_factory() as session:
            user = session.query(User).filter(User.email == email).one_or_none()
            if user is not None:
                session.expunge(user)
            return user

    return _fetch


def auth_header(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
