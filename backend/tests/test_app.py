"""
Tests for main.py: application assembly, root and health endpoints.
"""

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.core.config import Settings
from app.main import create_app


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "message": "Todo backend running"}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["timestamp"]


def test_health_reports_database_failure(app, monkeypatch):
    from sqlalchemy.orm import Session

    def _fail(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(Session, "execute", _fail)
    response = TestClient(app).get("/health")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "unhealthy"
    assert body["error"] == "Database connection failed"
    assert "connection refused" not in response.text


def test_collaborators_built_from_settings(app, settings):
    assert app.state.settings is settings
    assert app.state.password_hasher.rounds == settings.PASSWORD_HASH_ROUNDS
    assert app.state.reset_token_hasher.rounds == settings.RESET_TOKEN_HASH_ROUNDS
    assert app.state.token_service.expire_minutes == settings.JWT_EXPIRE_MINUTES


def test_production_cost_factors(session_factory):
    app = create_app(settings=Settings(JWT_SECRET_KEY="k", _env_file=None), session_factory=session_factory)

    assert app.state.password_hasher.rounds == 12
    assert app.state.reset_token_hasher.rounds == 10


def test_routes_mounted_under_prefix(settings, session_factory):
    prefixed = settings.model_copy(update={"API_PREFIX": "/api"})
    client = TestClient(create_app(settings=prefixed, session_factory=session_factory))

    response = client.post("/api/auth/register", json={"email": "a@b.com", "password": "password123"})

    assert response.status_code == 201
    assert client.post("/auth/register", json={"email": "c@d.com", "password": "password123"}).status_code == 404
    assert client.get("/health").status_code == 200


def test_builds_its_own_database(settings, tmp_path):
    on_disk = settings.model_copy(update={"DATABASE_URL": f"sqlite:///{tmp_path / 'todo.db'}"})
    client = TestClient(create_app(settings=on_disk))

    response = client.post("/auth/register", json={"email": "a@b.com", "password": "password123"})

    assert response.status_code == 201
    assert (tmp_path / "todo.db").exists()
