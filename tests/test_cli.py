"""Tests for the wardtrack command line."""

from unittest.mock import patch

import pandas as pd
import pytest
from fastapi.testclient import TestClient
from typer.testing import CliRunner

from wardtrack.api.dependencies import get_record_service
from wardtrack.api.main import app as api_app
from wardtrack.cli import app
from wardtrack.client import WardApiClient

runner = CliRunner()


@pytest.fixture
def seeded_api(service, patient_payload):
    """Route CLI HTTP calls to an in-process API holding three patients."""
    service.create_patient(patient_payload("MRN001", admissionDate="2024-01-05T08:00:00"))
    service.create_patient(patient_payload("MRN002", specialty="Neurology", admissionDate="2024-01-05T23:59:00"))
    service.create_patient(patient_payload("MRN003", admissionDate="2024-01-06T00:01:00"))
    service.add_note({"patientMrn": "MRN001", "date": "2024-01-05T09:00:00", "note": "Seen", "user": "Dr. A"})

    api_app.dependency_overrides[get_record_service] = lambda: service
    try:
        with TestClient(api_app) as test_client:
            with patch("wardtrack.cli.WardApiClient", lambda base_url=None: WardApiClient(client=test_client)):
                yield service
    finally:
        api_app.dependency_overrides.clear()


def test_daily_report_by_specialty(seeded_api):
    result = runner.invoke(app, ["daily-report", "--date", "2024-01-05"])

    assert result.exit_code == 0
    assert "Daily Report - 2024-01-05" in result.output
    assert "MRN001" in result.output
    assert "MRN002" in result.output
    assert "MRN003" not in result.output


def test_daily_report_writes_text_by_specialty(seeded_api, tmp_path):
    output = tmp_path / "report.txt"

    result = runner.invoke(app, ["daily-report", "--date", "2024-01-05", "--output", str(output)])

    assert result.exit_code == 0
    text = output.read_text(encoding="utf-8")
    assert text.startswith("Daily Report - 2024-01-05")
    assert "Neurology" in text
    assert "MRN: MRN001" in text
    assert "MRN: MRN002" in text
    assert "MRN003" not in text


def test_daily_report_writes_text_for_day_view(seeded_api, tmp_path):
    output = tmp_path / "report.txt"

    result = runner.invoke(app, ["daily-report", "--date", "2024-01-05", "--view", "day", "-o", str(output)])

    assert result.exit_code == 0
    text = output.read_text(encoding="utf-8")
    assert "Specialty: Pulmonology" in text
    assert "Specialty: Neurology" in text
    assert "Admitted: 2024-01-05 08:00" in text


def test_daily_report_rejects_unknown_view(seeded_api):
    result = runner.invoke(app, ["daily-report", "--view", "week"])
    assert result.exit_code == 1


def test_discharges(seeded_api):
    seeded_api.discharge_patient("MRN002", "Home")

    result = runner.invoke(app, ["discharges"])

    assert result.exit_code == 0
    assert "MRN002" in result.output
    assert "1 patient(s)" in result.output


def test_extract_writes_csv(seeded_api, tmp_path):
    output = tmp_path / "extract.csv"

    result = runner.invoke(app, ["extract", "--start", "2024-01-05", "--end", "2024-01-05", "--output", str(output)])

    assert result.exit_code == 0
    frame = pd.read_csv(output)
    assert sorted(frame["mrn"].unique()) == ["MRN001", "MRN002"]
    assert frame.loc[frame["mrn"] == "MRN001", "note"].tolist() == ["Seen"]


def test_extract_rejects_reversed_range(seeded_api):
    result = runner.invoke(app, ["extract", "--start", "2024-01-06", "--end", "2024-01-05"])
    assert result.exit_code == 1


def test_init_db_in_memory():
    with patch.dict("os.environ", {"WT_DB_TYPE": "duckdb", "WT_MIRROR_ENABLED": "true"}):
        result = runner.invoke(app, ["init-db"])

    assert result.exit_code == 0
    assert "Primary store initialized" in result.output
