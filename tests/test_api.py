"""
HTTP tests for the FastAPI app.

The routers get fake vendor services through set_services(), and the
database dependency is pointed at the in-memory SQLite.
"""

import asyncio
import uuid

import pytest
from fastapi.testclient import TestClient

from agritech.database import get_db
from agritech.errors import VendorAPIError
from agritech.main import app
from agritech.routers import set_services
from agritech.routers.dependencies import get_report_exporter
from agritech.services import ComparisonService, ReportExporter, ReportService

from conftest import REALTIME_RESPONSE, ok_result


@pytest.fixture()
def client(session_factory, fake_ecowitt, fake_weather, tmp_path):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    set_services(
        ecowitt=fake_ecowitt,
        weather=fake_weather,
        reports=ReportService(fake_ecowitt, fake_weather, session_factory),
        comparison=ComparisonService(fake_ecowitt, session_factory),
        exporter=ReportExporter(str(tmp_path)),
    )
    # Not used as a context manager, so the real startup (and real clients) never run
    yield TestClient(app)
    app.dependency_overrides.clear()
    set_services()


def device_body(user_id, **overrides):
    body = {
        "user_id": user_id,
        "name": "Greenhouse North",
        "mac": "aa:bb:cc:dd:ee:01",
        "application_key": "app-key",
        "api_key": "api-key",
        "device_type": "Soil",
    }
    body.update(overrides)
    return body


class TestRoot:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root_lists_endpoints(self, client):
        assert "reports" in client.get("/").json()["endpoints"]

    def test_missing_services(self, client, make_device):
        set_services()
        response = client.get(f"/api/devices/{make_device().id}/realtime")
        assert response.status_code == 500


class TestDevicesApi:

    def test_create_and_fetch(self, client, user_id):
        response = client.post("/api/devices", json=device_body(user_id))

        assert response.status_code == 201
        created = response.json()
        assert created["mac"] == "AA:BB:CC:DD:EE:01"
        assert "api_key" not in created

        fetched = client.get(f"/api/devices/{created['id']}").json()
        assert fetched["name"] == "Greenhouse North"

    def test_duplicate_mac(self, client, user_id):
        client.post("/api/devices", json=device_body(user_id))
        response = client.post("/api/devices", json=device_body(user_id, application_key="other"))

        assert response.status_code == 400
        assert "MAC" in response.json()["detail"]

    def test_bad_mac(self, client, user_id):
        response = client.post("/api/devices", json=device_body(user_id, mac="not-a-mac"))
        assert response.status_code == 422

    def test_list_by_user(self, client, make_device, user_id):
        make_device()
        make_device(owner=str(uuid.uuid4()))

        response = client.get("/api/devices", params={"user_id": user_id})

        assert response.json()["total"] == 1

    def test_update(self, client, make_device):
        device = make_device()
        response = client.put(f"/api/devices/{device.id}", json={"name": "Orchard"})

        assert response.status_code == 200
        assert response.json()["name"] == "Orchard"

    def test_delete(self, client, make_device):
        device = make_device()
        device_id = device.id

        assert client.delete(f"/api/devices/{device_id}").status_code == 200
        assert client.get(f"/api/devices/{device_id}").status_code == 404

    def test_unknown_device(self, client):
        assert client.get(f"/api/devices/{uuid.uuid4()}").status_code == 404

    def test_realtime(self, client, make_device):
        response = client.get(f"/api/devices/{make_device().id}/realtime")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_realtime_vendor_failure_is_502(self, client, fake_ecowitt, make_device):
        fake_ecowitt.realtime = VendorAPIError("ecowitt", "Ecowitt API Error: HTTP 500", status_code=500)

        response = client.get(f"/api/devices/{make_device().id}/realtime")

        assert response.status_code == 502
        assert response.json()["detail"] == "Ecowitt API Error: HTTP 500"

    def test_history_includes_series(self, client, make_device):
        response = client.get(f"/api/devices/{make_device().id}/history", params={"range_type": "day"})

        body = response.json()
        assert response.status_code == 200
        assert body["time_range"]["description"] == "last day"
        assert body["series"]["temperature"]["has_data"] is True

    def test_history_needs_a_range(self, client, make_device):
        response = client.get(f"/api/devices/{make_device().id}/history")
        assert response.status_code == 400

    def test_characteristics(self, client, make_device):
        body = client.get(f"/api/devices/{make_device().id}/characteristics").json()

        assert body["device"]["device_type"] == "Soil"
        assert body["ecowitt_info"]["data"]["stationtype"] == "GW2000A_V3.1.0"


class TestGroupsApi:

    def test_create_with_members(self, client, make_device, user_id):
        devices = [make_device(), make_device()]
        response = client.post("/api/groups", json={
            "user_id": user_id,
            "name": "North field",
            "device_ids": [device.id for device in devices],
        })

        assert response.status_code == 201
        group = response.json()
        assert len(group["devices"]) == 2

        listed = client.get("/api/groups", params={"user_id": user_id}).json()
        assert listed["total"] == 1

    def test_cannot_add_someone_elses_device(self, client, make_device, make_group):
        group = make_group()
        foreign = make_device(owner=str(uuid.uuid4()))

        response = client.post(f"/api/groups/{group.id}/members/{foreign.id}")

        assert response.status_code == 400

    def test_remove_member(self, client, make_device, make_group):
        device = make_device()
        group = make_group([device])

        response = client.delete(f"/api/groups/{group.id}/members/{device.id}")

        assert response.status_code == 200
        assert response.json()["devices"] == []

    def test_group_realtime_keyed_by_mac(self, client, fake_ecowitt, make_device, make_group):
        good, bad = make_device(), make_device()
        group = make_group([good, bad])
        fake_ecowitt.realtime = lambda mac: VendorAPIError("ecowitt", "offline") if mac == bad.mac else ok_result(REALTIME_RESPONSE)

        body = client.get(f"/api/groups/{group.id}/realtime").json()

        assert body["devices"][good.mac]["status"] == "ok"
        assert body["devices"][bad.mac]["error"] == "offline"


class TestReportsApi:

    def test_device_report(self, client, make_device, user_id):
        device = make_device()
        response = client.post("/api/reports/device", json={
            "device_id": device.id,
            "user_id": user_id,
            "include_history": True,
            "history_range": {"type": "day"},
        })

        body = response.json()
        assert response.status_code == 200
        assert body["device"]["id"] == device.id
        assert body["metadata"]["has_historical_data"] is True
        assert body["time_range"]["description"] == "last day"

    def test_pdf_is_rejected(self, client, make_device, user_id):
        response = client.post("/api/reports/device", json={
            "device_id": make_device().id,
            "user_id": user_id,
            "format": "pdf",
        })

        assert response.status_code == 400

    def test_not_your_device(self, client, make_device):
        response = client.post("/api/reports/device", json={
            "device_id": make_device().id,
            "user_id": str(uuid.uuid4()),
        })

        assert response.status_code == 404

    def test_bad_uuid(self, client, user_id):
        response = client.post("/api/reports/device", json={"device_id": "nope", "user_id": user_id})
        assert response.status_code == 400

    def test_export_then_list(self, client, make_device, user_id, tmp_path):
        response = client.post("/api/reports/device", json={
            "device_id": make_device().id,
            "user_id": user_id,
            "export": True,
        })

        body = response.json()
        assert response.status_code == 200
        assert body["report"]["metadata"]["has_realtime_data"] is True
        assert (tmp_path / body["file"]["file_name"]).exists()

        saved = client.get(f"/api/reports/user/{user_id}").json()
        assert saved["total"] == 1
        assert saved["files"][0]["file_name"] == body["file"]["file_name"]

    def test_export_runs_off_the_event_loop(self, client, make_device, user_id, tmp_path):
        class LoopCheckingExporter(ReportExporter):
            def export(self, db, report, user_id):
                try:
                    asyncio.get_running_loop()
                    self.ran_in_loop = True
                except RuntimeError:
                    self.ran_in_loop = False
                return super().export(db, report, user_id)

        exporter = LoopCheckingExporter(str(tmp_path))
        app.dependency_overrides[get_report_exporter] = lambda: exporter

        response = client.post("/api/reports/device", json={
            "device_id": make_device().id,
            "user_id": user_id,
            "export": True,
        })

        assert response.status_code == 200
        assert exporter.ran_in_loop is False

    def test_group_report(self, client, make_device, make_group, user_id):
        group = make_group([make_device(), make_device()])

        response = client.post("/api/reports/group", json={"group_id": group.id, "user_id": user_id})

        body = response.json()
        assert response.status_code == 200
        assert len(body["devices"]) == 2
        assert body["metadata"]["success_rate"] == 100


class TestCompareApi:

    def test_too_many_devices(self, client, make_device, user_id):
        ids = [make_device().id for _ in range(5)]

        response = client.post("/api/compare/history", json={"user_id": user_id, "device_ids": ids, "range_type": "day"})

        assert response.status_code == 400

    def test_realtime(self, client, make_device, user_id):
        ids = [make_device().id, make_device().id]

        response = client.post("/api/compare/realtime", json={"user_id": user_id, "device_ids": ids})

        assert response.status_code == 200
        assert len(response.json()["devices"]) == 2


class TestWeatherApi:

    def test_overview(self, client):
        response = client.get("/api/weather/overview", params={"lat": 52.52, "lon": 13.405})

        assert response.status_code == 200
        assert len(response.json()["hourly"]) == 24

    def test_latitude_out_of_range(self, client):
        response = client.get("/api/weather/overview", params={"lat": 100, "lon": 0})
        assert response.status_code == 422
