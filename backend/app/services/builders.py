"""Build FHIR R4 resources from the create forms."""

from typing import Any

from app.schemas.patient import AppointmentCreate, PatientCreate, PractitionerCreate


def build_patient(form: PatientCreate) -> dict[str, Any]:
    """Patient resource with one official name."""
    return {
        "resourceType": "Patient",
        "active": True,
        "name": [
            {
                "use": "official",
                "family": form.last_name,
                "given": [form.first_name],
            }
        ],
        "gender": form.gender,
        "birthDate": form.birth_date.isoformat(),
    }


def build_practitioner(form: PractitionerCreate) -> dict[str, Any]:
    """Practitioner resource; the phone becomes a work telecom."""
    name: dict[str, Any] = {
        "use": "official",
        "family": form.last_name,
        "given": [form.first_name],
    }
    if form.prefix:
        name["prefix"] = [form.prefix]

    resource: dict[str, Any] = {
        "resourceType": "Practitioner",
        "active": True,
        "name": [name],
    }
    if form.phone:
        resource["telecom"] = [{"system": "phone", "value": form.phone, "use": "work"}]
    return resource


def build_appointment(form: AppointmentCreate) -> dict[str, Any]:
    """Appointment with the patient and practitioner as accepted participants."""
    resource: dict[str, Any] = {
        "resourceType": "Appointment",
        "status": form.status,
        "start": form.start.isoformat(),
        "end": form.end.isoformat(),
        "participant": [
            {
                "actor": {"reference": f"Patient/{form.patient_id}"},
                "status": "accepted",
            },
            {
                "actor": {"reference": f"Practitioner/{form.practitioner_id}"},
                "status": "accepted",
            },
        ],
    }
    if form.description:
        resource["description"] = form.description
    return resource
