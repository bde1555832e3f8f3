"""Request schemas for the create, search and cancel flows."""

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from app.schemas.records import AppointmentRecord, PatientRecord


class PatientCreate(BaseModel):
    """New patient form."""

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    gender: Literal["male", "female", "other", "unknown"] = "unknown"
    birth_date: date


class PractitionerCreate(BaseModel):
    """New practitioner form."""

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    prefix: str | None = "Dr."
    phone: str | None = None


class AppointmentCreate(BaseModel):
    """New appointment form linking a patient and a practitioner."""

    patient_id: str = Field(min_length=1)
    practitioner_id: str = Field(min_length=1)
    start: datetime
    end: datetime
    description: str | None = None
    status: Literal["proposed", "pending", "booked"] = "booked"


class CancelRequest(BaseModel):
    """Cancellation body; the reason is validated by the coordinator."""

    reason: str = ""


class CreatedResource(BaseModel):
    """Raw resource echoed back by the FHIR server after a create."""

    id: str | None = None
    resource: dict[str, Any]


class PatientSearchResponse(BaseModel):
    """Search results: display cards plus the raw resources for JSON export."""

    items: list[PatientRecord]
    resources: list[dict[str, Any]]
    total: int


class CancelResponse(BaseModel):
    appointment: AppointmentRecord
    cache_updated: bool


class SummaryRequest(BaseModel):
    """Body of the stand-alone summary endpoint."""

    bundle: dict[str, Any] | None = None
