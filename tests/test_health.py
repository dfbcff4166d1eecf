from fastapi.testclient import TestClient
from travel_desk.main import app


def test_health_ok():
    """Test health check endpoint"""
    client = TestClient(app)
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"
    assert body["storage"] in ("ok", "empty")
    assert body["dashboard_cache_entries"] == 0


def test_root_endpoint():
    client = TestClient(app)
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Travel Desk"
    assert data["status"] == "ok"
    assert "docs" in data
    assert "dashboard" in data
