"""Ward reports: daily report, discharge listing and patient data extract.

All filtering happens over a patient list already held in memory (the API
has no server-side filtering). A record is "on" a date when the local
calendar year/month/day of its timestamp equals the date; this is a
calendar-day equality, not an interval comparison.
"""

import logging
from datetime import date, datetime
from typing import Callable, Iterable, Optional

import pandas as pd
from pydantic import Field

from wardtrack.domain.enums import PatientStatus
from wardtrack.domain.models import MedicalNote, Patient, WardModel
from wardtrack.domain.ports import ValidationError

logger = logging.getLogger(__name__)

ADMISSION = "admission_date"
DISCHARGE = "discharge_date"

EXTRACT_COLUMNS = [
    "mrn", "name", "age", "gender", "specialty", "diagnosis", "assigned_doctor",
    "status", "admission_date", "discharge_date",
    "note_id", "note_date", "note_user", "note",
]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"


def local_day(moment: datetime) -> date:
    """Calendar day of a timestamp in local time.

    Naive timestamps are taken as already local; aware ones are converted.
    """
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.date()


def format_timestamp(moment: Optional[datetime]) -> str:
    """Local wall-clock rendering used by the report views; "-" when unset."""
    if moment is None:
        return "-"
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.strftime(TIMESTAMP_FORMAT)


def on_calendar_day(moment: Optional[datetime], day: date) -> bool:
    """True when the timestamp falls on the given local calendar day."""
    if moment is None:
        return False
    return local_day(moment) == day


def filter_by_date(patients: Iterable[Patient], day: date, field: str = ADMISSION) -> list[Patient]:
    """Patients whose admission (or discharge) timestamp falls on the day.

    Parameters:
        patients: In-memory patient list
        day: Target calendar day
        field: ADMISSION or DISCHARGE
    """
    if field not in (ADMISSION, DISCHARGE):
        raise ValueError(f"Unsupported date field: {field}")
    return [p for p in patients if on_calendar_day(getattr(p, field), day)]


def discharged_on(patients: Iterable[Patient], day: date) -> list[Patient]:
    """Discharge listing: patients discharged on the day."""
    return [
        p for p in filter_by_date(patients, day, field=DISCHARGE)
        if p.status == PatientStatus.DISCHARGED
    ]


# ============================================================================
# Daily report
# ============================================================================

class SpecialtySection(WardModel):
    """Patients of one specialty on the report day."""
    active_patients: list[Patient] = Field(default_factory=list)
    discharged_patients: list[Patient] = Field(default_factory=list)


class DailyReport(WardModel):
    """Daily report grouped by specialty."""
    report_date: date
    specialties: dict[str, SpecialtySection] = Field(default_factory=dict)


class DayOverview(WardModel):
    """Daily report without specialty grouping."""
    report_date: date
    active_patients: list[Patient] = Field(default_factory=list)
    discharged_patients: list[Patient] = Field(default_factory=list)


def _partition(patients: list[Patient], day: date) -> tuple[list[Patient], list[Patient]]:
    active = [
        p for p in patients
        if p.status == PatientStatus.ACTIVE and on_calendar_day(p.admission_date, day)
    ]
    return active, discharged_on(patients, day)


def build_daily_report(patients: list[Patient], specialties: Iterable[str], day: date) -> DailyReport:
    """Build the by-specialty daily report.

    Active patients are listed when admitted on the day, discharged patients
    when discharged on the day.
    """
    sections = {}
    for specialty in specialties:
        specialty_patients = [p for p in patients if p.specialty.value == specialty]
        active, discharged = _partition(specialty_patients, day)
        sections[specialty] = SpecialtySection(active_patients=active, discharged_patients=discharged)
    return DailyReport(report_date=day, specialties=sections)


def build_day_overview(patients: list[Patient], day: date) -> DayOverview:
    """Build the ungrouped daily overview."""
    active, discharged = _partition(patients, day)
    return DayOverview(report_date=day, active_patients=active, discharged_patients=discharged)


def render_daily_report(report: DailyReport) -> str:
    """Plain-text rendering of the by-specialty report."""
    lines = [f"Daily Report - {report.report_date.isoformat()}", ""]
    for specialty, section in report.specialties.items():
        lines.append(specialty)
        lines.append("Active Patients:")
        for p in section.active_patients:
            lines.append(f"- {p.name} (MRN: {p.mrn}, Age: {p.age}, Admitted: {format_timestamp(p.admission_date)})")
        lines.append("Discharged Patients:")
        for p in section.discharged_patients:
            lines.append(f"- {p.name} (MRN: {p.mrn}, Age: {p.age}, Discharged: {format_timestamp(p.discharge_date)})")
        lines.append("")
    return "\n".join(lines)


def render_day_overview(overview: DayOverview) -> str:
    """Plain-text rendering of the ungrouped overview."""
    lines = [f"Daily Report - {overview.report_date.isoformat()}", "", "Active Patients:"]
    for p in overview.active_patients:
        lines.append(
            f"- {p.name} (MRN: {p.mrn}, Age: {p.age}, Specialty: {p.specialty.value}, "
            f"Admitted: {format_timestamp(p.admission_date)})"
        )
    lines.extend(["", "Discharged Patients:"])
    for p in overview.discharged_patients:
        lines.append(
            f"- {p.name} (MRN: {p.mrn}, Age: {p.age}, Specialty: {p.specialty.value}, "
            f"Discharged: {format_timestamp(p.discharge_date)})"
        )
    return "\n".join(lines)


# ============================================================================
# Patient data extract
# ============================================================================

class ExtractedPatient(Patient):
    """A patient together with its full note list."""
    notes: list[MedicalNote] = Field(default_factory=list)


def extract_patients(
    patients: Iterable[Patient],
    start: date,
    end: date,
    fetch_notes: Callable[[str], list[MedicalNote]]
) -> list[ExtractedPatient]:
    """Select patients admitted within [start, end] and attach their notes.

    Notes are fetched one patient at a time through fetch_notes.

    Raises:
        ValidationError: If start is after end
    """
    if start > end:
        raise ValidationError(f"Extract start {start.isoformat()} is after end {end.isoformat()}")

    selected = [p for p in patients if start <= local_day(p.admission_date) <= end]
    logger.info(f"Extracting {len(selected)} patients admitted {start.isoformat()}..{end.isoformat()}")

    return [
        ExtractedPatient(**p.model_dump(), notes=fetch_notes(p.mrn))
        for p in selected
    ]


def extract_to_dataframe(extracted: list[ExtractedPatient]) -> pd.DataFrame:
    """Flatten an extract into one row per note.

    Patients without notes still get one row, with empty note columns.
    """
    rows = []
    for patient in extracted:
        base = {
            "mrn": patient.mrn,
            "name": patient.name,
            "age": patient.age,
            "gender": patient.gender.value,
            "specialty": patient.specialty.value,
            "diagnosis": patient.diagnosis,
            "assigned_doctor": patient.assigned_doctor,
            "status": patient.status.value,
            "admission_date": patient.admission_date,
            "discharge_date": patient.discharge_date,
        }
        if not patient.notes:
            rows.append({**base, "note_id": None, "note_date": None, "note_user": None, "note": None})
        for note in patient.notes:
            rows.append({
                **base,
                "note_id": note.id,
                "note_date": note.date,
                "note_user": note.user,
                "note": note.note,
            })
    return pd.DataFrame(rows, columns=EXTRACT_COLUMNS)
