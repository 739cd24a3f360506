"""Patient endpoints: admission, listing, update and discharge."""

import logging
from typing import Annotated

from fastapi import APIRouter, Path, status

from wardtrack.api.dependencies import ServiceDep
from wardtrack.domain.models import (
    MRN_PATTERN,
    DischargeRequest,
    Patient,
    PatientCreate,
    PatientUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["patients"])

MrnPath = Annotated[str, Path(min_length=1, max_length=50, pattern=MRN_PATTERN, description="Medical Record Number")]


@router.get("/patients", response_model=list[Patient])
def list_patients(service: ServiceDep) -> list[Patient]:
    """All patients, ordered by admission date then MRN."""
    return service.list_patients()


@router.post("/patients", response_model=Patient, status_code=status.HTTP_201_CREATED)
def create_patient(patient: PatientCreate, service: ServiceDep) -> Patient:
    """Admit a patient. Status is always Active on admission.

    Returns 400 on invalid fields and 409 when the MRN already exists.
    """
    return service.create_patient(patient)


@router.put("/patients/{mrn}", response_model=Patient)
def update_patient(mrn: MrnPath, update: PatientUpdate, service: ServiceDep) -> Patient:
    """Update the editable fields of a patient.

    MRN, status and dates are ignored if sent.
    """
    return service.update_patient(mrn, update)


@router.post("/patients/{mrn}/discharge", response_model=Patient)
def discharge_patient(mrn: MrnPath, request: DischargeRequest, service: ServiceDep) -> Patient:
    """Discharge an active patient and record the discharge note."""
    return service.discharge_patient(mrn, request.discharge_notes)
