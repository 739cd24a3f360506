"""Tests for the ward REST API.

The record service is overridden with one built over real in-memory DuckDB
stores, so requests exercise the full write path.
"""

from unittest.mock import MagicMock, Mock

import pytest
from fastapi.testclient import TestClient

from wardtrack.api.dependencies import get_record_service
from wardtrack.api.main import app
from wardtrack.domain.guardrails import MirrorMonitor, MirrorMonitorConfig
from wardtrack.domain.ports import DependencyError, MirrorPort, RecordStorePort, Result
from wardtrack.domain.services import RecordService


@pytest.fixture
def client(service):
    """Create a test client with the record service overridden."""
    app.dependency_overrides[get_record_service] = lambda: service
    try:
        with TestClient(app, raise_server_exceptions=False) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admitted_via_api(client, patient_payload):
    response = client.post("/patients", json=patient_payload())
    assert response.status_code == 201
    return response.json()


class TestRootEndpoint:
    def test_root_endpoint_returns_info(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["docs"] == "/api/docs"
        assert data["health"] == "/health"

    def test_process_time_header(self, client):
        response = client.get("/")
        assert "X-Process-Time" in response.headers


class TestPatientsEndpoints:
    def test_create_patient_returns_201_and_active(self, client, patient_payload):
        response = client.post("/patients", json=patient_payload())

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "Active"
        assert data["dischargeDate"] is None
        assert data["assignedDoctor"] == "Dr. Mensah"

    def test_create_ignores_client_status(self, client, patient_payload):
        response = client.post("/patients", json=patient_payload(status="Discharged"))
        assert response.json()["status"] == "Active"

    def test_missing_field_is_400(self, client, patient_payload):
        payload = patient_payload()
        del payload["diagnosis"]

        response = client.post("/patients", json=payload)

        assert response.status_code == 400
        assert response.json()["error"] == "Bad Request"
        assert "diagnosis" in response.json()["detail"]

    def test_duplicate_mrn_is_409(self, client, admitted_via_api, patient_payload):
        response = client.post("/patients", json=patient_payload())

        assert response.status_code == 409
        assert response.json() == {
            "error": "Conflict",
            "detail": "Patient with MRN MRN001 already exists",
        }

    def test_list_contains_created_patient(self, client, admitted_via_api):
        response = client.get("/patients")

        assert response.status_code == 200
        assert response.json() == [admitted_via_api]

    def test_update_patient(self, client, admitted_via_api):
        response = client.put("/patients/MRN001", json={"age": 55, "status": "Discharged"})

        assert response.status_code == 200
        assert response.json()["age"] == 55
        assert response.json()["status"] == "Active"

    def test_update_unknown_patient_is_404(self, client):
        response = client.put("/patients/NOPE", json={"age": 55})

        assert response.status_code == 404
        assert response.json()["error"] == "Not Found"


class TestNotesEndpoints:
    def test_add_and_list_notes(self, client, admitted_via_api, note_payload):
        created = client.post("/notes", json=note_payload)

        assert created.status_code == 201
        assert created.json()["id"] >= 1
        notes = client.get("/patients/MRN001/notes").json()
        assert [n["note"] for n in notes] == ["Started IV antibiotics"]
        assert notes[0]["patientMrn"] == "MRN001"

    def test_note_for_unknown_patient_is_400(self, client, note_payload):
        response = client.post("/notes", json={**note_payload, "patientMrn": "GHOST"})

        assert response.status_code == 400
        assert client.get("/patients/GHOST/notes").json() == []


class TestDischargeEndpoint:
    def test_discharge(self, client, admitted_via_api):
        response = client.post("/patients/MRN001/discharge", json={"dischargeNotes": "Home"})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "Discharged"
        assert data["dischargeDate"] is not None
        notes = client.get("/patients/MRN001/notes").json()
        assert notes[-1]["note"] == "Discharge notes: Home"
        assert notes[-1]["user"] == "System"

    def test_second_discharge_is_409(self, client, admitted_via_api):
        client.post("/patients/MRN001/discharge", json={"dischargeNotes": "Home"})

        response = client.post("/patients/MRN001/discharge", json={"dischargeNotes": "Again"})

        assert response.status_code == 409
        assert len(client.get("/patients/MRN001/notes").json()) == 1

    def test_blank_notes_is_400(self, client, admitted_via_api):
        response = client.post("/patients/MRN001/discharge", json={"dischargeNotes": " "})
        assert response.status_code == 400

    def test_unknown_patient_is_404(self, client):
        response = client.post("/patients/NOPE/discharge", json={"dischargeNotes": "Home"})
        assert response.status_code == 404


class TestSpecialtiesEndpoint:
    def test_distinct_sorted(self, client, patient_payload):
        for i, specialty in enumerate(["Neurology", "Hematology", "Neurology"]):
            client.post("/patients", json=patient_payload(f"MRN{i}", specialty=specialty))

        assert client.get("/specialties").json() == ["Hematology", "Neurology"]


class TestRouting:
    def test_unknown_route_is_404_json(self, client):
        response = client.get("/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    def test_wrong_method_is_404(self, client):
        response = client.delete("/patients")

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    @pytest.mark.parametrize("method, path", [
        ("get", "/patients/a.b/notes"),
        ("post", "/patients/a.b/discharge"),
    ])
    def test_malformed_mrn_segment_is_404(self, client, method, path):
        kwargs = {"json": {"dischargeNotes": "Home"}} if method == "post" else {}

        response = client.request(method.upper(), path, **kwargs)

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    def test_overlong_mrn_on_update_is_404(self, client):
        response = client.put(f"/patients/{'A' * 60}", json={"age": 40})

        assert response.status_code == 404
        assert response.json() == {"error": "Not Found"}

    def test_invalid_body_is_still_400(self, client, admitted_via_api):
        response = client.put("/patients/MRN001", json={"age": -1})

        assert response.status_code == 400
        assert response.json()["error"] == "Bad Request"


class TestErrorHandling:
    def test_unhandled_exception_is_500(self, patient_payload):
        service = Mock(spec=RecordService)
        service.list_patients.side_effect = RuntimeError("boom")
        app.dependency_overrides[get_record_service] = lambda: service
        try:
            with TestClient(app, raise_server_exceptions=False) as test_client:
                response = test_client.get("/patients")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}

    def test_store_outage_is_503(self, patient_payload):
        store = Mock(spec=RecordStorePort)
        store.list_patients.return_value = Result.failure_result(
            DependencyError("Failed to list_patients: connection refused", operation="list_patients")
        )
        app.dependency_overrides[get_record_service] = lambda: RecordService(store=store)
        try:
            with TestClient(app, raise_server_exceptions=False) as test_client:
                response = test_client.get("/patients")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 503
        assert response.json()["error"] == "Service Unavailable"


class TestHealthEndpoint:
    def test_healthy(self, client):
        data = client.get("/health").json()

        assert data["status"] == "healthy"
        assert data["database"]["status"] == "connected"
        assert data["database"]["type"] == "duckdb"
        assert data["mirror"]["status"] == "ok"

    def test_mirror_failure_keeps_result_and_shows_in_health(self, store, patient_payload):
        failing_mirror = MagicMock(spec=MirrorPort)
        failing_mirror.enabled = True
        failing_mirror.create_document.return_value = Result.failure_result(
            DependencyError("mirror unreachable", operation="create_document")
        )
        monitor = MirrorMonitor(MirrorMonitorConfig(min_writes_before_check=1))
        service = RecordService(store=store, mirror=failing_mirror, monitor=monitor)
        app.dependency_overrides[get_record_service] = lambda: service
        try:
            with TestClient(app, raise_server_exceptions=False) as test_client:
                created = test_client.post("/patients", json=patient_payload())
                health = test_client.get("/health").json()
        finally:
            app.dependency_overrides.clear()

        assert created.status_code == 201
        assert created.json()["status"] == "Active"
        assert health["mirror"]["status"] == "degraded"
        assert health["mirror"]["total_failures"] == 1
        assert "mirror unreachable" in health["mirror"]["last_error"]

    def test_disabled_mirror(self, store):
        app.dependency_overrides[get_record_service] = lambda: RecordService(store=store)
        try:
            with TestClient(app) as test_client:
                data = test_client.get("/health").json()
        finally:
            app.dependency_overrides.clear()

        assert data["mirror"]["status"] == "disabled"

    def test_unreachable_store_is_unhealthy(self):
        store = Mock(spec=RecordStorePort)
        store.db_config = Mock(db_type="postgresql")
        store.ping.return_value = Result.failure_result(DependencyError("connection refused"))
        app.dependency_overrides[get_record_service] = lambda: RecordService(store=store)
        try:
            with TestClient(app) as test_client:
                response = test_client.get("/health")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        assert response.json()["status"] == "unhealthy"
