"""Client-side patient state.

A single store object holds the patient list the reports are built from. The
list changes only through explicit actions passed to a pure reducer, so every
view over it (reports, selectors) sees the same state.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Optional, Union

from wardtrack.client.api_client import WardApiClient
from wardtrack.domain import reports
from wardtrack.domain.enums import PatientStatus
from wardtrack.domain.models import MedicalNote, Patient, PatientCreate, PatientUpdate

logger = logging.getLogger(__name__)


# ============================================================================
# Actions
# ============================================================================

@dataclass(frozen=True)
class PatientsLoaded:
    patients: tuple[Patient, ...]


@dataclass(frozen=True)
class PatientAdmitted:
    patient: Patient


@dataclass(frozen=True)
class PatientUpdated:
    patient: Patient


@dataclass(frozen=True)
class PatientDischarged:
    patient: Patient


Action = Union[PatientsLoaded, PatientAdmitted, PatientUpdated, PatientDischarged]


@dataclass(frozen=True)
class WardState:
    patients: tuple[Patient, ...] = field(default_factory=tuple)


def _replace(patients: tuple[Patient, ...], updated: Patient) -> tuple[Patient, ...]:
    """Swap in the record with the same MRN, appending it if absent."""
    if not any(p.mrn == updated.mrn for p in patients):
        return patients + (updated,)
    return tuple(updated if p.mrn == updated.mrn else p for p in patients)


def reduce(state: WardState, action: Action) -> WardState:
    """Return the state after applying an action. The input is not modified."""
    if isinstance(action, PatientsLoaded):
        return WardState(patients=tuple(action.patients))
    if isinstance(action, (PatientAdmitted, PatientUpdated, PatientDischarged)):
        return WardState(patients=_replace(state.patients, action.patient))
    raise TypeError(f"Unknown action: {type(action).__name__}")


# ============================================================================
# Selectors
# ============================================================================

def select_by_specialty(state: WardState, specialty: str) -> list[Patient]:
    return [p for p in state.patients if p.specialty.value == specialty]


def select_active(state: WardState) -> list[Patient]:
    return [p for p in state.patients if p.status == PatientStatus.ACTIVE]


def select_discharged(state: WardState) -> list[Patient]:
    return [p for p in state.patients if p.status == PatientStatus.DISCHARGED]


def find_patient(state: WardState, mrn: str) -> Optional[Patient]:
    return next((p for p in state.patients if p.mrn == mrn), None)


class PatientStore:
    """Holds the current WardState and notifies subscribers on change."""

    def __init__(self, initial: Optional[WardState] = None):
        self._state = initial or WardState()
        self._lock = threading.Lock()
        self._subscribers: list[Callable[[WardState], None]] = []

    @property
    def state(self) -> WardState:
        return self._state

    def dispatch(self, action: Action) -> WardState:
        with self._lock:
            self._state = reduce(self._state, action)
            state = self._state
        logger.debug(f"Dispatched {type(action).__name__}: {len(state.patients)} patients")
        for subscriber in list(self._subscribers):
            subscriber(state)
        return state

    def subscribe(self, callback: Callable[[WardState], None]) -> Callable[[], None]:
        """Register a change callback; returns a function that unregisters it."""
        self._subscribers.append(callback)
        return lambda: self._subscribers.remove(callback)


class WardSession:
    """API client plus store: each successful call dispatches its action.

    Example Usage:
        ```python
        session = WardSession(WardApiClient("http://localhost:8000"))
        session.refresh()
        report = session.daily_report(date(2024, 1, 5))
        ```
    """

    def __init__(self, api: WardApiClient, store: Optional[PatientStore] = None):
        self.api = api
        self.store = store or PatientStore()

    @property
    def patients(self) -> tuple[Patient, ...]:
        return self.store.state.patients

    def refresh(self) -> list[Patient]:
        patients = self.api.get_patients()
        self.store.dispatch(PatientsLoaded(tuple(patients)))
        return patients

    def admit(self, patient: Union[PatientCreate, dict]) -> Patient:
        created = self.api.add_patient(patient)
        self.store.dispatch(PatientAdmitted(created))
        return created

    def update(self, mrn: str, update: Union[PatientUpdate, dict]) -> Patient:
        updated = self.api.update_patient(mrn, update)
        self.store.dispatch(PatientUpdated(updated))
        return updated

    def discharge(self, mrn: str, discharge_notes: str) -> Patient:
        discharged = self.api.discharge_patient(mrn, discharge_notes)
        self.store.dispatch(PatientDischarged(discharged))
        return discharged

    def notes(self, mrn: str) -> list[MedicalNote]:
        return self.api.get_medical_notes(mrn)

    # ------------------------------------------------------------------
    # Reports over the current state
    # ------------------------------------------------------------------

    def daily_report(self, day: date) -> reports.DailyReport:
        return reports.build_daily_report(list(self.patients), self.api.get_specialties(), day)

    def day_overview(self, day: date) -> reports.DayOverview:
        return reports.build_day_overview(list(self.patients), day)

    def discharges(self, day: date) -> list[Patient]:
        return reports.discharged_on(self.patients, day)

    def extract(self, start: date, end: date) -> list[reports.ExtractedPatient]:
        return reports.extract_patients(self.patients, start, end, self.api.get_medical_notes)
