"""Fixtures partagées: base SQLite temporaire par test, client HTTP."""

import pytest
from fastapi.testclient import TestClient

from app.config import settings
from app.database import get_session_local, init_db, reset_engine


@pytest.fixture(autouse=True)
def base_sqlite(tmp_path, monkeypatch):
    """Chaque test travaille sur sa propre base SQLite."""
    monkeypatch.setattr(settings, "DB_URL", f"sqlite:///{tmp_path / 'devis.db'}")
    reset_engine()
    init_db()
    yield
    reset_engine()


@pytest.fixture
def db():
    session = get_session_local()()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client() -> TestClient:
    """Create a TestClient instance for the FastAPI app."""
    from main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def nouveau_devis(client):
    """Créer un devis via l'API et retourner sa représentation JSON."""

    def _creer(**champs):
        payload = {
            "client": "Dupont",
            "typeTravaux": "Peinture",
            "dateDevis": "2024-03-01",
        }
        payload.update(champs)
        response = client.post("/api/devis", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _creer
