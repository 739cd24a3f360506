"""Domain layer for Ward Tracker.

This module contains the ward record models, storage ports and the record
service. Domain models depend on nothing beyond Pydantic.
"""

from .models import (
    DischargeRequest,
    MedicalNote,
    NoteCreate,
    Patient,
    PatientCreate,
    PatientUpdate,
)

__all__ = [
    "DischargeRequest",
    "MedicalNote",
    "NoteCreate",
    "Patient",
    "PatientCreate",
    "PatientUpdate",
]
