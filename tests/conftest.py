"""Shared fixtures for the ward test suite."""

import json
from datetime import datetime

import pytest

from wardtrack.adapters.mirror import DuckDBDocumentMirror
from wardtrack.adapters.storage import DuckDBRecordStore
from wardtrack.domain.guardrails import MirrorMonitor
from wardtrack.domain.services import RecordService


def make_patient_payload(mrn: str = "MRN001", **overrides) -> dict:
    """Admission form payload with camelCase keys, as the API receives it."""
    payload = {
        "mrn": mrn,
        "name": "Ada Obi",
        "age": 54,
        "gender": "Female",
        "diagnosis": "Community-acquired pneumonia",
        "specialty": "Pulmonology",
        "assignedDoctor": "Dr. Mensah",
        "admissionDate": "2024-01-05T08:00:00",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def store():
    """Real in-memory DuckDB record store."""
    record_store = DuckDBRecordStore(db_path=":memory:")
    yield record_store
    record_store.close()


@pytest.fixture
def mirror():
    """Real in-memory document mirror."""
    document_mirror = DuckDBDocumentMirror(db_path=":memory:")
    yield document_mirror
    document_mirror.close()


@pytest.fixture
def mirror_documents(mirror):
    """Read mirrored documents back for assertions, oldest first."""
    def read(collection: str, mrn: str) -> list[dict]:
        rows = mirror._get_connection().execute(
            f"SELECT data FROM docs_{collection} WHERE mrn = ? ORDER BY written_at, rowid",
            [mrn]
        ).fetchall()
        return [json.loads(row[0]) for row in rows]
    return read


@pytest.fixture
def monitor():
    return MirrorMonitor()


@pytest.fixture
def service(store, mirror, monitor):
    return RecordService(store=store, mirror=mirror, monitor=monitor)


@pytest.fixture
def admitted(service):
    """A patient admitted on 2024-01-05 08:00."""
    return service.create_patient(make_patient_payload())


@pytest.fixture
def note_payload():
    return {
        "patientMrn": "MRN001",
        "date": datetime(2024, 1, 5, 12, 30).isoformat(),
        "note": "Started IV antibiotics",
        "user": "Dr. Mensah",
    }


@pytest.fixture
def patient_payload():
    """Factory for admission payloads: patient_payload("MRN002", age=70)."""
    return make_patient_payload
