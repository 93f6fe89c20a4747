import pytest
from fastapi.testclient import TestClient

# Import the FastAPI app object from your api module
from backend.services.api import app


# -------------------------
# Test client fixture
# -------------------------

@pytest.fixture
def client():
    return TestClient(app)


# ═══════════════════════════════════════════════════════════════════════════════
# Basic endpoints
# ═══════════════════════════════════════════════════════════════════════════════

class TestBasicEndpoints:

    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert r.json() == {"message": "Bike Parking Tariff API is running"}

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json() == {"status": "healthy"}

    def test_unknown_route(self, client):
        r = client.get("/optimize")
        assert r.status_code == 404


class TestAppWiring:

    def test_tariff_routes_registered(self):
        paths = set(app.openapi()["paths"])
        assert "/facilities/{facility_id}/tariffs" in paths
        assert "/facilities/{facility_id}/sections" in paths
        assert "/bike-types" in paths

    def test_cors_allows_dev_frontend(self, client):
        r = client.options(
            "/health",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert r.headers.get("access-control-allow-origin") == "http://localhost:3000"

    def test_lifespan_initializes_database(self):
        with TestClient(app) as c:
            assert c.get("/health").status_code == 200
