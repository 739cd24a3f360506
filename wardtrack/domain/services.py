"""Record Service - Ward write path and dual-write propagation.

The RecordService is the application-layer component that executes writes
against the primary store and, once they succeed, propagates the same logical
record to the secondary document mirror.

Consistency contract:
    - The client-visible result is decided by the primary store alone
    - Primary-store failures abort the operation and raise a RecordError
    - Mirror writes happen after the primary commit, outside its transaction.
      Their failures are logged and recorded in the MirrorMonitor, never raised
    - Reads go to the primary store only; the mirror is never read back
"""

import logging
from typing import Callable, Optional, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from wardtrack.domain.guardrails import MirrorMonitor
from wardtrack.domain.models import (
    DISCHARGE_NOTE_PREFIX,
    DischargeRequest,
    MedicalNote,
    NoteCreate,
    Patient,
    PatientCreate,
    PatientUpdate,
)
from wardtrack.domain.ports import (
    DependencyError,
    MirrorPort,
    RecordStorePort,
    Result,
    ValidationError,
    raise_for_failure,
)

logger = logging.getLogger(__name__)

PATIENTS_COLLECTION = "patients"
NOTES_COLLECTION = "notes"

DEFAULT_SYSTEM_ACTOR = "System"

M = TypeVar('M', bound=BaseModel)


def validate_payload(model_cls: Type[M], data: Union[M, dict]) -> M:
    """Validate a raw payload into a domain model before any write.

    Raises:
        ValidationError: If required fields are missing or malformed
    """
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        errors = [
            {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
            for err in e.errors()
        ]
        fields = ", ".join(err["loc"] or "body" for err in errors)
        raise ValidationError(
            f"Invalid {model_cls.__name__}: {fields}",
            details={"errors": errors}
        )


class RecordService:
    """Ward record service over a primary store and an optional mirror.

    Parameters:
        store: Primary (authoritative) relational store
        mirror: Secondary document mirror; None or a disabled mirror skips propagation
        monitor: Mirror outcome monitor (a fresh one is created if None)
        system_actor: Author label of the synthetic discharge note

    Example Usage:
        ```python
        service = RecordService(store=DuckDBRecordStore(), mirror=DuckDBDocumentMirror())
        patient = service.create_patient({"mrn": "MRN001", ...})
        service.add_note({"patientMrn": "MRN001", "date": ..., "note": "Stable", "user": "Dr. Ade"})
        service.discharge_patient("MRN001", "Home with follow-up")
        ```
    """

    def __init__(
        self,
        store: RecordStorePort,
        mirror: Optional[MirrorPort] = None,
        monitor: Optional[MirrorMonitor] = None,
        system_actor: str = DEFAULT_SYSTEM_ACTOR
    ):
        self.store = store
        self.mirror = mirror
        self.monitor = monitor or MirrorMonitor()
        self.system_actor = system_actor

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def create_patient(self, data: Union[PatientCreate, dict]) -> Patient:
        """Admit a patient.

        Returns:
            Patient: The inserted row, status Active and no discharge date

        Raises:
            ValidationError: Missing or malformed required fields
            ConflictError: MRN already exists
            DependencyError: Primary store failure
        """
        payload = validate_payload(PatientCreate, data)
        patient = raise_for_failure(self.store.insert_patient(payload))
        logger.info(f"Admitted patient {patient.mrn} to {patient.specialty.value}")

        self._propagate(
            "create_patient",
            patient.mrn,
            lambda mirror: mirror.create_document(PATIENTS_COLLECTION, patient.mrn, self._document(patient))
        )
        return patient

    def update_patient(self, mrn: str, data: Union[PatientUpdate, dict]) -> Patient:
        """Update the mutable fields of a patient.

        Raises:
            ValidationError: A provided field is malformed or nulled
            NotFoundError: MRN does not exist
            DependencyError: Primary store failure
        """
        payload = validate_payload(PatientUpdate, data)
        changes = payload.changes()
        patient = raise_for_failure(self.store.update_patient(mrn, changes))
        logger.info(f"Updated patient {mrn}: {sorted(changes)}")

        if changes:
            self._propagate(
                "update_patient",
                mrn,
                lambda mirror: mirror.replace_by_mrn(PATIENTS_COLLECTION, mrn, self._document(patient))
            )
        return patient

    def add_note(self, data: Union[NoteCreate, dict]) -> MedicalNote:
        """Record a medical note.

        Raises:
            ValidationError: Missing fields, or the patient does not exist
            DependencyError: Primary store failure
        """
        payload = validate_payload(NoteCreate, data)
        note = raise_for_failure(self.store.insert_note(payload))
        logger.info(f"Added note {note.id} for patient {note.patient_mrn}")

        self._propagate(
            "add_note",
            note.patient_mrn,
            lambda mirror: mirror.create_document(NOTES_COLLECTION, note.patient_mrn, self._document(note))
        )
        return note

    def discharge_patient(self, mrn: str, discharge_notes: str) -> Patient:
        """Discharge a patient and write the synthetic discharge note atomically.

        Raises:
            ValidationError: Discharge notes are blank
            NotFoundError: MRN does not exist
            ConflictError: Patient is already discharged
            DependencyError: Primary store failure (nothing was committed)
        """
        request = validate_payload(DischargeRequest, {"discharge_notes": discharge_notes})
        note_text = f"{DISCHARGE_NOTE_PREFIX}{request.discharge_notes}"

        patient = raise_for_failure(self.store.discharge_patient(mrn, note_text, self.system_actor))
        logger.info(f"Discharged patient {mrn} at {patient.discharge_date.isoformat()}")

        self._propagate(
            "discharge_patient",
            mrn,
            lambda mirror: mirror.replace_by_mrn(PATIENTS_COLLECTION, mrn, self._document(patient))
        )
        return patient

    # ------------------------------------------------------------------
    # Read path (primary store only)
    # ------------------------------------------------------------------

    def get_patient(self, mrn: str) -> Patient:
        return raise_for_failure(self.store.get_patient(mrn))

    def list_patients(self) -> list[Patient]:
        return raise_for_failure(self.store.list_patients())

    def list_notes_for_patient(self, mrn: str) -> list[MedicalNote]:
        return raise_for_failure(self.store.list_notes(mrn))

    def list_specialties(self) -> list[str]:
        return raise_for_failure(self.store.list_specialties())

    # ------------------------------------------------------------------
    # Mirror propagation
    # ------------------------------------------------------------------

    @property
    def mirror_enabled(self) -> bool:
        return self.mirror is not None and self.mirror.enabled

    @staticmethod
    def _document(record: BaseModel) -> dict:
        """Mirror documents carry the stored row verbatim (storage field names)."""
        return record.model_dump(mode="json")

    def _propagate(self, operation: str, mrn: str, write: Callable[[MirrorPort], Result]) -> None:
        """Attempt a mirror write after a successful primary write.

        The outcome is recorded in the monitor. Failures are logged and not
        raised: the primary result has already been decided.
        """
        if not self.mirror_enabled:
            return

        try:
            result = write(self.mirror)
        except Exception as e:
            result = Result.failure_result(
                DependencyError(f"Mirror write raised: {str(e)}", operation=operation, mrn=mrn)
            )

        self.monitor.record_result(result, operation=operation, mrn=mrn)

        if result.is_failure():
            logger.error(
                f"Mirror write failed after {operation} (mrn={mrn}); "
                f"primary store is authoritative, mirror is now stale: "
                f"{result.error_type}: {result.error}"
            )
        else:
            logger.debug(f"Mirrored {operation} for {mrn} (ref={result.value})")
