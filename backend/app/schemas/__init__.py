"""Pydantic schemas."""

from app.schemas.narrative import Block, BlockKind, Span
from app.schemas.patient import (
    AppointmentCreate,
    CancelRequest,
    CancelResponse,
    CreatedResource,
    PatientCreate,
    PatientSearchResponse,
    PractitionerCreate,
    SummaryRequest,
)
from app.schemas.records import (
    AllergyRecord,
    AppointmentBundle,
    AppointmentRecord,
    ConditionRecord,
    IdentifierRecord,
    ImmunizationRecord,
    MedicationRecord,
    PatientRecord,
    PractitionerRecord,
    ProcedureRecord,
    ReactionRecord,
)
from app.schemas.sections import CacheStatus, Category, SectionResponse, SummaryResponse

__all__ = [
    # Narrative rendering
    "Block",
    "BlockKind",
    "Span",
    # Forms and API payloads
    "AppointmentCreate",
    "CancelRequest",
    "CancelResponse",
    "CreatedResource",
    "PatientCreate",
    "PatientSearchResponse",
    "PractitionerCreate",
    "SummaryRequest",
    # Display records
    "AllergyRecord",
    "AppointmentBundle",
    "AppointmentRecord",
    "ConditionRecord",
    "IdentifierRecord",
    "ImmunizationRecord",
    "MedicationRecord",
    "PatientRecord",
    "PractitionerRecord",
    "ProcedureRecord",
    "ReactionRecord",
    # Sections
    "CacheStatus",
    "Category",
    "SectionResponse",
    "SummaryResponse",
]
