"""Domain Ports - Abstract Contracts for Ward Record Storage.

This module defines the Port interfaces (abstract contracts) that Adapters must implement.
Following Hexagonal Architecture, the Domain Core defines what it needs, not how it's provided.

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - RecordStorePort is the authoritative (primary) relational store
    - MirrorPort is the best-effort secondary document store
    - Adapters communicate outcomes through Result so the record service
      decides which failures abort an operation and which are only recorded
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

from wardtrack.domain.models import (
    MedicalNote,
    NoteCreate,
    Patient,
    PatientCreate,
)

# Type variable for Result generic
T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Storage adapters return Result objects instead of raising, which lets the
    record service treat primary-store failures as fatal and mirror failures
    as recordable events (see MirrorMonitor).

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The successful result value (only present if success=True)
        error: Error message (only present if success=False)
        error_type: Name of the error class (ValidationError, ConflictError, etc.)
        error_details: Additional error context (mrn, operation, etc.)

    Example:
        ```python
        result = store.insert_patient(patient)
        if result.is_success():
            return result.value

        result = Result.failure_result(
            ConflictError("Patient already exists", mrn="MRN001"),
            error_details={"mrn": "MRN001"}
        )
        ```
    """

    success: bool
    value: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result.

        Parameters:
            value: The successful result value

        Returns:
            Result: Success result with the value
        """
        return cls(
            success=True,
            value=value,
            error=None,
            error_type=None,
            error_details=None
        )

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception
            error_type: Type of error; defaults to the exception class name
            error_details: Additional context (mrn, operation, etc.)

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        details = dict(error_details or {})
        if isinstance(error, RecordError):
            details = {**error.details, **details}

        return cls(
            success=False,
            value=None,
            error=error_message,
            error_type=error_type_name,
            error_details=details
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class RecordError(Exception):
    """Base exception for all ward record errors.

    Attributes:
        mrn: MRN of the patient the failed operation concerned (if any)
        details: Additional error details
    """

    def __init__(self, message: str, mrn: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.mrn = mrn
        self.details = details or {}
        if mrn is not None:
            self.details.setdefault("mrn", mrn)


class ValidationError(RecordError):
    """Raised when a payload is missing or has malformed required fields.

    Also raised when a note references a patient that does not exist, since
    that is a foreign-key violation on client-supplied data.
    """
    pass


class ConflictError(RecordError):
    """Raised on a unique-key violation or a discharge of an already discharged patient."""
    pass


class NotFoundError(RecordError):
    """Raised when the referenced MRN does not exist."""
    pass


class DependencyError(RecordError):
    """Raised when a store is unreachable or fails unexpectedly.

    Attributes:
        operation: Store operation that failed (connect, insert_patient, etc.)
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        mrn: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(message, mrn=mrn, details=details)
        self.operation = operation
        if operation is not None:
            self.details.setdefault("operation", operation)


ERROR_TYPES = {
    "ValidationError": ValidationError,
    "ConflictError": ConflictError,
    "NotFoundError": NotFoundError,
    "DependencyError": DependencyError,
}


def raise_for_failure(result: Result[T]) -> T:
    """Return the value of a successful result or raise the matching domain error.

    Unknown error types are treated as DependencyError: the store failed in a
    way the domain does not classify.
    """
    if result.is_success():
        return result.value

    error_cls = ERROR_TYPES.get(result.error_type or "", DependencyError)
    details = dict(result.error_details or {})
    mrn = details.pop("mrn", None)
    raise error_cls(result.error or "Unknown storage failure", mrn=mrn, details=details)


# ============================================================================
# Storage Ports
# ============================================================================

class RecordStorePort(ABC):
    """Abstract contract for the primary (authoritative) relational store.

    Key Principles:
        - Every write returns the stored row, including store defaults and
          generated identifiers
        - MRN uniqueness and note referential integrity are enforced by the store
        - discharge_patient is a single transaction: status update and synthetic
          note commit together or not at all

    Failures are returned as Result.failure_result() with error_type set to one
    of ValidationError, ConflictError, NotFoundError or DependencyError.
    """

    @abstractmethod
    def initialize_schema(self) -> Result[None]:
        """Create the patients and medical_notes tables if they do not exist."""
        pass

    @abstractmethod
    def insert_patient(self, patient: PatientCreate) -> Result[Patient]:
        """Insert a new Active patient and return the stored row."""
        pass

    @abstractmethod
    def update_patient(self, mrn: str, fields: dict) -> Result[Patient]:
        """Update mutable patient columns and return the stored row.

        Parameters:
            mrn: Patient MRN
            fields: Column name to value mapping, restricted to mutable columns.
                   An empty mapping returns the current row.
        """
        pass

    @abstractmethod
    def insert_note(self, note: NoteCreate) -> Result[MedicalNote]:
        """Insert a medical note and return the stored row (with generated id)."""
        pass

    @abstractmethod
    def discharge_patient(self, mrn: str, note_text: str, actor: str) -> Result[Patient]:
        """Discharge an Active patient and write the synthetic note atomically.

        Parameters:
            mrn: Patient MRN
            note_text: Full text of the synthetic discharge note
            actor: Author label written on the synthetic note

        Returns:
            Result[Patient]: The discharged patient row, NotFoundError if the
            MRN is unknown, ConflictError if the patient is not Active
        """
        pass

    @abstractmethod
    def get_patient(self, mrn: str) -> Result[Patient]:
        """Fetch a single patient or NotFoundError."""
        pass

    @abstractmethod
    def list_patients(self) -> Result[list[Patient]]:
        """List every patient."""
        pass

    @abstractmethod
    def list_notes(self, mrn: str) -> Result[list[MedicalNote]]:
        """List the notes of one patient (empty for an unknown MRN)."""
        pass

    @abstractmethod
    def list_specialties(self) -> Result[list[str]]:
        """List the distinct specialties present among patients."""
        pass

    def ping(self) -> Result[float]:
        """Check connectivity, returning round-trip time in milliseconds.

        Note:
            Default implementation reports success without checking.
            Adapters override to run a real round-trip query.
        """
        return Result.success_result(0.0)

    def close(self) -> None:
        """Release connections held by the store."""
        pass


class MirrorPort(ABC):
    """Abstract contract for the secondary document mirror.

    The mirror is written after the primary commit and never read back by
    the application. Documents are addressed by their MRN index.
    """

    enabled: bool = True

    @abstractmethod
    def initialize_schema(self) -> Result[None]:
        """Create the collections and MRN indexes if they do not exist."""
        pass

    @abstractmethod
    def create_document(self, collection: str, mrn: str, data: dict) -> Result[str]:
        """Insert a new document and return its generated ref."""
        pass

    @abstractmethod
    def replace_by_mrn(self, collection: str, mrn: str, data: dict) -> Result[str]:
        """Look up a document via the MRN index and overwrite its data.

        Returns:
            Result[str]: The ref of the overwritten document, or NotFoundError
            when no document carries the MRN
        """
        pass

    def close(self) -> None:
        """Release connections held by the mirror."""
        pass
