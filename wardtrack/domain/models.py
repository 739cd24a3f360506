"""Ward Record Schema Definitions.

This module defines the canonical data models for ward entities: patients and
their medical notes, plus the payloads accepted by the write operations.

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Type safety enforced at runtime via Pydantic V2
    - Field names match storage columns (snake_case); JSON uses camelCase
      aliases, and input accepts either spelling
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from wardtrack.domain.enums import Gender, PatientStatus, Specialty

# Columns that PUT /patients/{mrn} may change. MRN, status and dates are
# owned by admission and discharge.
MUTABLE_PATIENT_FIELDS = ("name", "age", "gender", "diagnosis", "specialty", "assigned_doctor")

# MRNs travel in URL paths, so they are restricted to word characters and dashes
MRN_PATTERN = r"^[\w-]+$"

DISCHARGE_NOTE_PREFIX = "Discharge notes: "


class WardModel(BaseModel):
    """Base model: camelCase JSON aliases, snake_case attribute names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class PatientBase(WardModel):
    """Fields captured on the admission form.

    Parameters:
        mrn: Medical Record Number, the natural unique key
        name: Patient name
        age: Age in years
        gender: Male, Female or Other
        diagnosis: Admission diagnosis
        specialty: Ward specialty the patient is admitted under
        assigned_doctor: Responsible doctor (optional)
        admission_date: Admission timestamp
    """

    mrn: str = Field(..., min_length=1, max_length=50, pattern=MRN_PATTERN, description="Medical Record Number")
    name: str = Field(..., min_length=1, max_length=255, description="Patient name")
    age: int = Field(..., ge=0, le=150, description="Age in years")
    gender: Gender = Field(..., description="Patient gender")
    diagnosis: str = Field(..., min_length=1, description="Admission diagnosis")
    specialty: Specialty = Field(..., description="Ward specialty")
    assigned_doctor: Optional[str] = Field(None, max_length=255, description="Assigned doctor")
    admission_date: datetime = Field(..., description="Admission timestamp")

    @field_validator("mrn", "name", "diagnosis", mode="before")
    @classmethod
    def strip_text(cls, v):
        """Trim surrounding whitespace so blank strings fail min_length."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("assigned_doctor", mode="before")
    @classmethod
    def blank_doctor_is_none(cls, v):
        """An empty doctor field on the form means no doctor assigned."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


class PatientCreate(PatientBase):
    """Admission payload (Patient minus status and discharge date).

    Any status or dischargeDate sent by the client is ignored; the store
    always inserts Active patients.
    """

    model_config = ConfigDict(extra="ignore")


class Patient(PatientBase):
    """A patient row as stored in the primary store."""

    status: PatientStatus = Field(..., description="Active or Discharged")
    discharge_date: Optional[datetime] = Field(None, description="Set exactly once, on discharge")

    @property
    def is_active(self) -> bool:
        return self.status == PatientStatus.ACTIVE

    @model_validator(mode="after")
    def check_discharge_consistency(self) -> 'Patient':
        """Discharged iff discharge_date is set, and never before admission."""
        if self.status == PatientStatus.DISCHARGED:
            if self.discharge_date is None:
                raise ValueError("Discharged patient must have a discharge date")
            if self.discharge_date < self.admission_date:
                raise ValueError("Discharge date precedes admission date")
        elif self.discharge_date is not None:
            raise ValueError("Active patient cannot have a discharge date")
        return self


class PatientUpdate(WardModel):
    """Partial update of the mutable patient fields.

    Only fields present in the payload are written. Keys outside
    MUTABLE_PATIENT_FIELDS (mrn, status, dates) are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    age: Optional[int] = Field(None, ge=0, le=150)
    gender: Optional[Gender] = None
    diagnosis: Optional[str] = Field(None, min_length=1)
    specialty: Optional[Specialty] = None
    assigned_doctor: Optional[str] = Field(None, max_length=255)

    @field_validator("name", "diagnosis", mode="before")
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("assigned_doctor", mode="before")
    @classmethod
    def blank_doctor_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def reject_null_required_fields(self) -> 'PatientUpdate':
        """Only assigned_doctor may be cleared with an explicit null."""
        for field_name in self.model_fields_set:
            if field_name != "assigned_doctor" and getattr(self, field_name) is None:
                raise ValueError(f"{field_name} cannot be null")
        return self

    def changes(self) -> dict:
        """Column to value mapping of the fields the client actually sent."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if key in MUTABLE_PATIENT_FIELDS
        }


class NoteCreate(WardModel):
    """Medical note payload (MedicalNote minus id).

    Parameters:
        patient_mrn: MRN of the patient the note belongs to
        date: Note timestamp
        note: Free text
        user: Author label (no identity system backs this field)
    """

    model_config = ConfigDict(extra="ignore")

    patient_mrn: str = Field(..., min_length=1, max_length=50, pattern=MRN_PATTERN)
    date: datetime
    note: str = Field(..., min_length=1)
    user: str = Field(..., min_length=1, max_length=255)

    @field_validator("note", "user", "patient_mrn", mode="before")
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class MedicalNote(NoteCreate):
    """A medical note row as stored in the primary store."""

    id: int = Field(..., description="Surrogate key generated by the primary store")


class DischargeRequest(WardModel):
    """Body of POST /patients/{mrn}/discharge."""

    discharge_notes: str = Field(..., min_length=1, description="Free-text discharge summary")

    @field_validator("discharge_notes", mode="before")
    @classmethod
    def strip_text(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v
