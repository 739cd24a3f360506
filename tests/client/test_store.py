"""Tests for the reducer-driven patient store and WardSession."""

from datetime import date, datetime
from unittest.mock import Mock

import pytest

from wardtrack.client.api_client import WardApiClient
from wardtrack.client.store import (
    PatientAdmitted,
    PatientDischarged,
    PatientsLoaded,
    PatientStore,
    PatientUpdated,
    WardSession,
    WardState,
    find_patient,
    reduce,
    select_active,
    select_by_specialty,
    select_discharged,
)
from wardtrack.domain.models import MedicalNote, Patient


def _patient(mrn, specialty="Pulmonology", discharged=None, **overrides) -> Patient:
    data = {
        "mrn": mrn, "name": f"Patient {mrn}", "age": 40, "gender": "Male",
        "diagnosis": "Observation", "specialty": specialty, "assigned_doctor": None,
        "admission_date": datetime(2024, 1, 5, 8, 0), "discharge_date": discharged,
        "status": "Discharged" if discharged else "Active",
    }
    data.update(overrides)
    return Patient.model_validate(data)


class TestReducer:
    def test_loaded_replaces_state(self):
        state = reduce(WardState(patients=(_patient("OLD"),)), PatientsLoaded((_patient("A"), _patient("B"))))
        assert [p.mrn for p in state.patients] == ["A", "B"]

    def test_admitted_appends(self):
        state = reduce(WardState(patients=(_patient("A"),)), PatientAdmitted(_patient("B")))
        assert [p.mrn for p in state.patients] == ["A", "B"]

    def test_updated_replaces_in_place(self):
        initial = WardState(patients=(_patient("A"), _patient("B")))

        state = reduce(initial, PatientUpdated(_patient("A", age=41)))

        assert [p.mrn for p in state.patients] == ["A", "B"]
        assert state.patients[0].age == 41
        assert initial.patients[0].age == 40

    def test_discharged_replaces(self):
        initial = WardState(patients=(_patient("A"),))
        state = reduce(initial, PatientDischarged(_patient("A", discharged=datetime(2024, 1, 6, 9, 0))))
        assert not state.patients[0].is_active

    def test_unknown_action(self):
        with pytest.raises(TypeError):
            reduce(WardState(), "refresh")


class TestSelectors:
    @pytest.fixture
    def state(self):
        return WardState(patients=(
            _patient("A", specialty="Neurology"),
            _patient("B"),
            _patient("C", discharged=datetime(2024, 1, 6, 9, 0)),
        ))

    def test_by_specialty(self, state):
        assert [p.mrn for p in select_by_specialty(state, "Neurology")] == ["A"]

    def test_active_and_discharged(self, state):
        assert [p.mrn for p in select_active(state)] == ["A", "B"]
        assert [p.mrn for p in select_discharged(state)] == ["C"]

    def test_find(self, state):
        assert find_patient(state, "B").mrn == "B"
        assert find_patient(state, "Z") is None


def test_store_notifies_subscribers():
    store = PatientStore()
    seen = []
    unsubscribe = store.subscribe(lambda state: seen.append(len(state.patients)))

    store.dispatch(PatientAdmitted(_patient("A")))
    unsubscribe()
    store.dispatch(PatientAdmitted(_patient("B")))

    assert seen == [1]
    assert len(store.state.patients) == 2


class TestWardSession:
    @pytest.fixture
    def api(self):
        return Mock(spec=WardApiClient)

    def test_refresh_and_discharge_update_state(self, api):
        api.get_patients.return_value = [_patient("A"), _patient("B")]
        api.discharge_patient.return_value = _patient("A", discharged=datetime(2024, 1, 5, 15, 0))
        session = WardSession(api)

        session.refresh()
        session.discharge("A", "Home")

        assert [p.mrn for p in select_discharged(session.store.state)] == ["A"]
        assert [p.mrn for p in session.discharges(date(2024, 1, 5))] == ["A"]

    def test_failed_call_dispatches_nothing(self, api):
        api.add_patient.side_effect = RuntimeError("offline")
        session = WardSession(api)

        with pytest.raises(RuntimeError):
            session.admit({"mrn": "A"})

        assert session.patients == ()

    def test_daily_report_uses_specialties_from_api(self, api):
        api.get_patients.return_value = [_patient("A", specialty="Neurology")]
        api.get_specialties.return_value = ["Neurology"]
        session = WardSession(api)
        session.refresh()

        report = session.daily_report(date(2024, 1, 5))

        assert [p.mrn for p in report.specialties["Neurology"].active_patients] == ["A"]

    def test_extract_fetches_notes(self, api):
        api.get_patients.return_value = [_patient("A")]
        api.get_medical_notes.return_value = [
            MedicalNote(id=1, patient_mrn="A", date=datetime(2024, 1, 5, 9, 0), note="Seen", user="Dr. A")
        ]
        session = WardSession(api)
        session.refresh()

        extracted = session.extract(date(2024, 1, 5), date(2024, 1, 5))

        api.get_medical_notes.assert_called_once_with("A")
        assert extracted[0].notes[0].note == "Seen"
