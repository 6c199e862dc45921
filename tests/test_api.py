"""
CellSight API Integration Tests
"""
import pytest
from fastapi.testclient import TestClient

from src.config import get_settings
from src.main import app

client = TestClient(app)


class TestHealth:
    """Health endpoint tests"""

    def test_health(self):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "cellsight" in data["app_name"].lower()

    def test_live(self):
        response = client.get("/live")
        assert response.status_code == 200
        assert response.json() == {"alive": True}

    def test_ready(self):
        response = client.get("/ready")
        assert response.status_code == 200

    def test_root(self):
        response = client.get("/")
        assert response.status_code == 200
        assert "analyze" in response.json()["endpoints"]


class TestBatteries:
    """Analysis, report and forecast endpoints"""

    @pytest.fixture
    def records(self, cycler_records):
        return cycler_records([2500.0 - 3 * i for i in range(10)])

    def test_analyze(self, records):
        response = client.post(
            "/api/v1/batteries/api-cell-1/analyze",
            json={"records": records, "horizon": 12},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["battery_id"] == "api-cell-1"
        assert data["field_bindings"]["voltage"] == "Volt"
        assert data["field_bindings"]["cycle"] == "Cycle_Number"
        assert data["units"]["capacity"] == "mAh"
        assert len(data["soh_history"]) == 10
        assert data["assessment"]["status"] == "Healthy"
        assert data["assessment"]["grade"] in ["A", "B", "C", "D"]
        assert data["assessment"]["rul_provenance"] == "computed"
        assert len(data["forecast"]["predictions"]) == 12
        assert data["metrics"]["chemistry"] == "NMC"
        assert data["metrics"]["temperature_profile"]["mean"] == pytest.approx(25.0)

    def test_report_after_analyze(self, records):
        client.post("/api/v1/batteries/api-cell-2/analyze", json={"records": records})

        response = client.get("/api/v1/batteries/api-cell-2/report")
        assert response.status_code == 200
        assert response.json()["battery_id"] == "api-cell-2"

    def test_missing_field_is_422(self):
        response = client.post(
            "/api/v1/batteries/api-cell-3/analyze",
            json={"records": [{"Cycle": 1, "Amp": 1.0, "Cap_mAh": 1000.0}]},
        )
        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["missing"] == ["voltage"]
        assert "Amp" in detail["columns"]

    def test_unknown_battery_is_404(self):
        assert client.get("/api/v1/batteries/nope/report").status_code == 404
        assert client.get("/api/v1/batteries/nope/forecast").status_code == 404
        assert client.post("/api/v1/batteries/nope/forecast").status_code == 404

    def test_regenerate_replaces_forecast(self, records):
        client.post(
            "/api/v1/batteries/api-cell-4/analyze",
            json={"records": records, "horizon": 30},
        )
        assert len(client.get("/api/v1/batteries/api-cell-4/forecast").json()["predictions"]) == 30

        response = client.post("/api/v1/batteries/api-cell-4/forecast?horizon=4")
        assert response.status_code == 201
        assert len(response.json()["predictions"]) == 4

        active = client.get("/api/v1/batteries/api-cell-4/forecast").json()
        assert len(active["predictions"]) == 4
        report = client.get("/api/v1/batteries/api-cell-4/report").json()
        assert len(report["forecast"]["predictions"]) == 4

    def test_regenerate_defaults_to_configured_horizon(self, records):
        client.post(
            "/api/v1/batteries/api-cell-6/analyze",
            json={"records": records, "horizon": 3},
        )

        response = client.post("/api/v1/batteries/api-cell-6/forecast")
        assert response.status_code == 201
        assert len(response.json()["predictions"]) == get_settings().forecast_horizon

    def test_invalid_horizon_rejected(self, records):
        response = client.post(
            "/api/v1/batteries/api-cell-5/analyze",
            json={"records": records, "horizon": -1},
        )
        assert response.status_code == 422
