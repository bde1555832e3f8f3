"""Display records produced by the resource normalizers.

Each record is a flat, human-readable projection of one raw FHIR resource.
Records hold no reference back to the raw resource.
"""

from pydantic import BaseModel, Field


class IdentifierRecord(BaseModel):
    """A labelled patient identifier (MRN, SSN, license...)."""

    label: str
    value: str


class PatientRecord(BaseModel):
    """Patient card shown in search results."""

    id: str
    name: str
    gender: str
    birth_date: str
    address: str
    telecom: str | None = None
    identifiers: list[IdentifierRecord] = Field(default_factory=list)


class ImmunizationRecord(BaseModel):
    id: str
    name: str
    date: str
    status: str


class MedicationRecord(BaseModel):
    id: str
    name: str
    dosage: str | None = None
    reason: str | None = None
    status: str
    authored_on: str


class ReactionRecord(BaseModel):
    """One AllergyIntolerance.reaction entry."""

    manifestation: str
    severity: str = ""


class AllergyRecord(BaseModel):
    id: str
    name: str
    clinical_status: str
    type: str
    category: str
    criticality: str
    reactions: list[ReactionRecord] = Field(default_factory=list)
    recorded_date: str | None = None
    onset: str | None = None


class ProcedureRecord(BaseModel):
    id: str
    name: str
    status: str
    date: str
    reason: str | None = None


class ConditionRecord(BaseModel):
    id: str
    name: str
    clinical_status: str
    verification_status: str
    category: str | None = None
    onset: str
    recorded_date: str | None = None


class PractitionerRecord(BaseModel):
    id: str
    name: str
    qualification: str | None = None
    telecom: str | None = None


class AppointmentRecord(BaseModel):
    """Appointment row; the practitioner is joined through practitioner_id."""

    id: str
    description: str
    status: str
    start: str
    end: str
    practitioner_id: str | None = None
    cancellation_reason: str | None = None


class AppointmentBundle(BaseModel):
    """Appointments plus the practitioners they reference, keyed by id."""

    appointments: list[AppointmentRecord] = Field(default_factory=list)
    practitioners: dict[str, PractitionerRecord] = Field(default_factory=dict)

    def practitioner_for(self, appointment: AppointmentRecord) -> PractitionerRecord | None:
        """Resolve the practitioner joined to an appointment, if fetched."""
        if appointment.practitioner_id is None:
            return None
        return self.practitioners.get(appointment.practitioner_id)
