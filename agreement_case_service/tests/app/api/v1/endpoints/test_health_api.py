import pytest
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient
from agreement_case_service.app.main import app
from agreement_case_service.app.config import settings
from agreement_case_service.infrastructure.database.connection import get_db

# --- Fixtures ---

@pytest.fixture
def client():
    app.dependency_overrides = {}
    yield TestClient(app)
    app.dependency_overrides = {}


@pytest.fixture
def mock_db_session():
    db = MagicMock()
    db.command = AsyncMock()
    return db

# --- Tests for GET /health ---

def test_health_check_db_connected(client: TestClient, mock_db_session: MagicMock):
    mock_db_session.command.return_value = {"ok": 1}
    app.dependency_overrides[get_db] = lambda: mock_db_session

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "components": {"mongodb": "connected"},
        "service_name": settings.SERVICE_NAME_API
    }
    mock_db_session.command.assert_called_once_with('ping')


def test_health_check_db_disconnected(client: TestClient, mock_db_session: MagicMock):
    mock_db_session.command.side_effect = Exception("Connection failed")
    app.dependency_overrides[get_db] = lambda: mock_db_session

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "degraded",
        "components": {"mongodb": "disconnected"},
        "service_name": settings.SERVICE_NAME_API
    }
