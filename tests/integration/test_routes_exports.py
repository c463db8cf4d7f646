"""
Integration tests for health and export routes.

Tests GET /health, POST /sync/{data_type}/{item_id},
POST /exports/{data_type}/launch and GET /exports/status against
in-memory engines wired through dependency overrides.
Version: 1.0.0
"""
import pytest

from fastapi import HTTPException
from fastapi.testclient import TestClient

from crm_sync.core.constants.export import DATA_TYPES, NOTICE_EXPORT_IN_PROGRESS


@pytest.fixture
def engines(make_data_sync):
    return {
        data_type: make_data_sync(data_type, items=[{"id": i} for i in range(1, 4)])
        for data_type in DATA_TYPES
    }


@pytest.fixture
def client(engines, handler, notices):
    from crm_sync.container import get_notice_store, get_response_handler
    from crm_sync.main import app
    from crm_sync.routes.exports import resolve_data_sync

    def _resolve(data_type: str):
        if data_type not in engines:
            raise HTTPException(status_code=404, detail=f"Unknown data type '{data_type}'")
        return engines[data_type]

    app.dependency_overrides[resolve_data_sync] = _resolve
    app.dependency_overrides[get_response_handler] = lambda: handler
    app.dependency_overrides[get_notice_store] = lambda: notices
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.mark.integration
class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


@pytest.mark.integration
class TestItemSync:

    def test_schedules_once(self, client, job_queue):
        first = client.post("/sync/product/42")
        second = client.post("/sync/product/42")

        assert first.status_code == 200
        assert first.json() == {"data_type": "product", "item_id": "42", "scheduled": True}
        assert second.json()["scheduled"] is False
        assert len(job_queue.pending("product_sync")) == 1

    def test_force_schedules_again(self, client, job_queue):
        client.post("/sync/customer/7")
        response = client.post("/sync/customer/7", params={"force": "true"})

        assert response.json()["scheduled"] is True
        assert len(job_queue.pending("customer_sync")) == 2

    def test_unknown_data_type(self, client):
        response = client.post("/sync/coupon/1")
        assert response.status_code == 404


@pytest.mark.integration
class TestLaunchExport:

    def test_launch(self, client, job_queue):
        response = client.post("/exports/sale/launch", json={"launch_id": "abc"})

        assert response.status_code == 200
        body = response.json()
        assert body["launched"] is True
        assert body["run_id"] == "abc"
        assert job_queue.pending("sale_export")[0].args == {"data_type": "sale", "offset": 0, "run_id": "abc"}

    def test_launch_without_body(self, client):
        response = client.post("/exports/customer/launch")
        assert response.status_code == 200
        assert response.json()["launched"] is True

    def test_reload_is_not_a_relaunch(self, client, job_queue):
        client.post("/exports/sale/launch", json={"launch_id": "abc"})
        response = client.post("/exports/sale/launch", json={"launch_id": "abc"})

        assert response.json()["launched"] is False
        assert len(job_queue.pending("sale_export")) == 1

    def test_unknown_data_type(self, client):
        response = client.post("/exports/coupon/launch", json={})
        assert response.status_code == 404


@pytest.mark.integration
class TestExportStatus:

    def test_idle_status(self, client):
        response = client.get("/exports/status")

        assert response.status_code == 200
        body = response.json()
        assert body["export_in_progress"] is False
        assert set(body["data_types"]) == set(DATA_TYPES)
        assert body["data_types"]["product"]["status"] == "idle"
        assert body["notices"] == []

    def test_status_after_launch(self, client):
        client.post("/exports/product/launch", json={"launch_id": "run-9"})

        body = client.get("/exports/status").json()

        assert body["export_in_progress"] is True
        assert body["data_types"]["product"]["status"] == "in_progress"
        assert body["data_types"]["product"]["run_id"] == "run-9"
        assert body["notices"] == [NOTICE_EXPORT_IN_PROGRESS]
