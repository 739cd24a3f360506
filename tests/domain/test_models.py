"""Tests for the ward record models."""

from datetime import datetime

import pytest
from pydantic import ValidationError as PydanticValidationError

from wardtrack.domain.enums import PatientStatus, Specialty
from wardtrack.domain.models import (
    DischargeRequest,
    NoteCreate,
    Patient,
    PatientCreate,
    PatientUpdate,
)


class TestPatientCreate:
    def test_accepts_camel_case_and_snake_case(self, patient_payload):
        camel = PatientCreate.model_validate(patient_payload())
        snake = PatientCreate(
            mrn="MRN001", name="Ada Obi", age=54, gender="Female",
            diagnosis="Community-acquired pneumonia", specialty="Pulmonology",
            assigned_doctor="Dr. Mensah", admission_date=datetime(2024, 1, 5, 8, 0),
        )
        assert camel == snake

    def test_status_and_discharge_date_are_ignored(self, patient_payload):
        patient = PatientCreate.model_validate(
            patient_payload(status="Discharged", dischargeDate="2024-01-06T10:00:00")
        )
        assert not hasattr(patient, "status")

    @pytest.mark.parametrize("field", ["mrn", "name", "diagnosis", "specialty", "admissionDate"])
    def test_required_fields(self, patient_payload, field):
        payload = patient_payload()
        del payload[field]
        with pytest.raises(PydanticValidationError):
            PatientCreate.model_validate(payload)

    def test_blank_name_rejected(self, patient_payload):
        with pytest.raises(PydanticValidationError):
            PatientCreate.model_validate(patient_payload(name="   "))

    def test_unknown_specialty_rejected(self, patient_payload):
        with pytest.raises(PydanticValidationError):
            PatientCreate.model_validate(patient_payload(specialty="Cardiology"))

    def test_mrn_must_be_path_safe(self, patient_payload):
        with pytest.raises(PydanticValidationError):
            PatientCreate.model_validate(patient_payload(mrn="MRN/001"))

    def test_blank_doctor_becomes_none(self, patient_payload):
        patient = PatientCreate.model_validate(patient_payload(assignedDoctor=""))
        assert patient.assigned_doctor is None


class TestPatient:
    def _row(self, **overrides):
        row = {
            "mrn": "MRN001", "name": "Ada Obi", "age": 54, "gender": "Female",
            "diagnosis": "Asthma", "specialty": "Pulmonology", "assigned_doctor": None,
            "admission_date": datetime(2024, 1, 5, 8, 0), "discharge_date": None,
            "status": "Active",
        }
        row.update(overrides)
        return row

    def test_active_patient(self):
        patient = Patient.model_validate(self._row())
        assert patient.is_active
        assert patient.specialty == Specialty.PULMONOLOGY

    def test_discharged_requires_discharge_date(self):
        with pytest.raises(PydanticValidationError):
            Patient.model_validate(self._row(status="Discharged"))

    def test_active_cannot_have_discharge_date(self):
        with pytest.raises(PydanticValidationError):
            Patient.model_validate(self._row(discharge_date=datetime(2024, 1, 6)))

    def test_discharge_cannot_precede_admission(self):
        with pytest.raises(PydanticValidationError):
            Patient.model_validate(self._row(status="Discharged", discharge_date=datetime(2024, 1, 4)))

    def test_serializes_with_camel_case_aliases(self):
        data = Patient.model_validate(self._row()).model_dump(by_alias=True, mode="json")
        assert data["assignedDoctor"] is None
        assert data["admissionDate"] == "2024-01-05T08:00:00"
        assert data["status"] == PatientStatus.ACTIVE.value


class TestPatientUpdate:
    def test_changes_only_contains_sent_mutable_fields(self):
        update = PatientUpdate.model_validate({"age": 55, "mrn": "OTHER", "status": "Discharged"})
        assert update.changes() == {"age": 55}

    def test_empty_update_has_no_changes(self):
        assert PatientUpdate.model_validate({}).changes() == {}

    def test_doctor_can_be_cleared(self):
        update = PatientUpdate.model_validate({"assignedDoctor": None})
        assert update.changes() == {"assigned_doctor": None}

    def test_required_field_cannot_be_nulled(self):
        with pytest.raises(PydanticValidationError):
            PatientUpdate.model_validate({"name": None})


class TestNotes:
    def test_note_requires_text(self):
        with pytest.raises(PydanticValidationError):
            NoteCreate.model_validate({
                "patientMrn": "MRN001", "date": "2024-01-05T12:00:00", "note": " ", "user": "Dr. A",
            })

    def test_discharge_request_requires_notes(self):
        with pytest.raises(PydanticValidationError):
            DischargeRequest.model_validate({"dischargeNotes": ""})
        assert DischargeRequest.model_validate({"dischargeNotes": " Home "}).discharge_notes == "Home"
