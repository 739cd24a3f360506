"""Enumerations shared by the ward domain models."""

from enum import Enum


class Gender(str, Enum):
    """Patient gender as captured on the admission form."""
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class Specialty(str, Enum):
    """Ward specialties a patient can be admitted under."""
    HEMATOLOGY = "Hematology"
    RHEUMATOLOGY = "Rheumatology"
    PULMONOLOGY = "Pulmonology"
    INFECTIOUS_DISEASES = "Infectious Diseases"
    GENERAL_INTERNAL_MEDICINE = "General Internal Medicine"
    NEUROLOGY = "Neurology"
    ENDOCRINOLOGY = "Endocrinology"


class PatientStatus(str, Enum):
    """Stay status. Active transitions once to Discharged and never back."""
    ACTIVE = "Active"
    DISCHARGED = "Discharged"
