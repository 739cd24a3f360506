"""Medical note endpoints."""

from fastapi import APIRouter, status

from wardtrack.api.dependencies import ServiceDep
from wardtrack.api.routes.patients import MrnPath
from wardtrack.domain.models import MedicalNote, NoteCreate

router = APIRouter(tags=["notes"])


@router.get("/patients/{mrn}/notes", response_model=list[MedicalNote])
def list_notes(mrn: MrnPath, service: ServiceDep) -> list[MedicalNote]:
    """Notes of a patient by date; empty for an unknown MRN."""
    return service.list_notes_for_patient(mrn)


@router.post("/notes", response_model=MedicalNote, status_code=status.HTTP_201_CREATED)
def add_note(note: NoteCreate, service: ServiceDep) -> MedicalNote:
    return service.add_note(note)
