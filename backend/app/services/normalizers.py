"""Resource normalizers: raw FHIR resources to flat display records.

One pure function per category. Every optional field may be missing or
shaped differently from server to server, so each normalizer degrades
field by field instead of failing the whole record. Coded concepts always
resolve through ``concept_label`` (text, then first coding display, then
first coding code, then a fixed "Unknown <category>" label).
"""

from collections.abc import Callable
from typing import Any

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
from app.schemas.sections import Category
from app.utils.fhir_helpers import (
    AbsentConcept,
    classify_concept,
    concept_label,
    extract_reference_id,
    extract_status_code,
    first_concept,
    format_date,
    format_datetime,
    format_human_name,
    identifier_label,
    optional_concept_label,
)

UNKNOWN_VACCINE = "Unknown Vaccine"
UNKNOWN_MEDICATION = "Unknown Medication"
UNKNOWN_ALLERGY = "Unknown Allergy"
UNKNOWN_PROCEDURE = "Unknown Procedure"
UNKNOWN_CONDITION = "Unknown Condition"
UNKNOWN_APPOINTMENT = "Unknown Appointment"
UNKNOWN_PRACTITIONER = "Unknown Practitioner"

UNKNOWN = "unknown"
TBD = "TBD"


# =============================================================================
# Patient and practitioner
# =============================================================================


def _format_address(addresses: Any) -> str:
    if not isinstance(addresses, list) or not addresses:
        return "No address recorded"
    address = addresses[0] or {}
    parts = [
        " ".join(address.get("line") or []),
        address.get("city"),
        address.get("state"),
        address.get("postalCode"),
    ]
    return ", ".join(part for part in parts if part) or "No address recorded"


def _format_telecom(telecoms: Any) -> str | None:
    if not isinstance(telecoms, list) or not telecoms:
        return None
    telecom = telecoms[0] or {}
    value = telecom.get("value")
    if not value:
        return None
    system = telecom.get("system")
    return f"{value} ({system})" if system else value


def normalize_identifiers(identifiers: Any) -> list[IdentifierRecord]:
    """Label each identifier; see identifier_label for the heuristics."""
    if not isinstance(identifiers, list):
        return []
    return [
        IdentifierRecord(label=identifier_label(identifier), value=identifier.get("value") or "N/A")
        for identifier in identifiers
        if isinstance(identifier, dict)
    ]


def normalize_patient(resource: dict[str, Any]) -> PatientRecord:
    return PatientRecord(
        id=resource.get("id", ""),
        name=format_human_name(resource.get("name"), "Unnamed Patient"),
        gender=resource.get("gender") or "Unknown",
        birth_date=resource.get("birthDate") or "N/A",
        address=_format_address(resource.get("address")),
        telecom=_format_telecom(resource.get("telecom")),
        identifiers=normalize_identifiers(resource.get("identifier")),
    )


def normalize_practitioner(resource: dict[str, Any]) -> PractitionerRecord:
    name = resource.get("name")
    display = format_human_name(name, UNKNOWN_PRACTITIONER)
    if isinstance(name, list) and name and (name[0] or {}).get("prefix") and display != UNKNOWN_PRACTITIONER:
        display = f"{' '.join(name[0]['prefix'])} {display}"

    qualification = None
    qualifications = resource.get("qualification")
    if isinstance(qualifications, list) and qualifications:
        qualification = optional_concept_label((qualifications[0] or {}).get("code"))

    return PractitionerRecord(
        id=resource.get("id", ""),
        name=display,
        qualification=qualification,
        telecom=_format_telecom(resource.get("telecom")),
    )


# =============================================================================
# Clinical categories
# =============================================================================


def normalize_immunization(resource: dict[str, Any]) -> ImmunizationRecord:
    return ImmunizationRecord(
        id=resource.get("id", ""),
        name=concept_label(resource.get("vaccineCode"), UNKNOWN_VACCINE),
        date=format_date(resource.get("occurrenceDateTime") or resource.get("occurrenceString")),
        status=resource.get("status") or UNKNOWN,
    )


def _dosage_text(resource: dict[str, Any]) -> str | None:
    """First dosage instruction's text, else its timing code."""
    instructions = resource.get("dosageInstruction")
    if not isinstance(instructions, list) or not instructions:
        return None
    instruction = instructions[0] or {}
    if instruction.get("text"):
        return instruction["text"]
    timing = instruction.get("timing") or {}
    return optional_concept_label(timing.get("code"))


def normalize_medication(resource: dict[str, Any]) -> MedicationRecord:
    """MedicationRequest to display record.

    The medication is usually a CodeableConcept; some servers send a
    reference instead, in which case its display is used.
    """
    medication = resource.get("medicationCodeableConcept")
    if isinstance(classify_concept(medication), AbsentConcept):
        reference = resource.get("medicationReference") or {}
        medication = reference.get("display")

    return MedicationRecord(
        id=resource.get("id", ""),
        name=concept_label(medication, UNKNOWN_MEDICATION),
        dosage=_dosage_text(resource),
        reason=optional_concept_label(first_concept(resource.get("reasonCode"))),
        status=resource.get("status") or UNKNOWN,
        authored_on=format_date(resource.get("authoredOn")),
    )


def normalize_reaction(reaction: dict[str, Any]) -> ReactionRecord:
    """One reaction: comma-joined manifestations plus severity verbatim."""
    labels = []
    for manifestation in reaction.get("manifestation") or []:
        label = optional_concept_label(manifestation)
        if label:
            labels.append(label)
    return ReactionRecord(
        manifestation=", ".join(labels),
        severity=reaction.get("severity") or "",
    )


def _onset(resource: dict[str, Any]) -> str | None:
    if resource.get("onsetDateTime"):
        return format_date(resource["onsetDateTime"])
    if resource.get("onsetString"):
        return resource["onsetString"]
    period = resource.get("onsetPeriod") or {}
    if period.get("start"):
        return format_date(period["start"])
    age = resource.get("onsetAge") or {}
    if age.get("value") is not None:
        return f"{age['value']} {age.get('unit', 'years')}".strip()
    return None


def normalize_allergy(resource: dict[str, Any]) -> AllergyRecord:
    categories = resource.get("category")
    if isinstance(categories, list) and categories:
        category = ", ".join(str(c) for c in categories)
    else:
        category = UNKNOWN

    recorded = resource.get("recordedDate")
    return AllergyRecord(
        id=resource.get("id", ""),
        name=concept_label(resource.get("code"), UNKNOWN_ALLERGY),
        clinical_status=extract_status_code(resource.get("clinicalStatus")),
        type=resource.get("type") or UNKNOWN,
        category=category,
        criticality=resource.get("criticality") or UNKNOWN,
        reactions=[
            normalize_reaction(reaction)
            for reaction in resource.get("reaction") or []
            if isinstance(reaction, dict)
        ],
        recorded_date=format_date(recorded) if recorded else None,
        onset=_onset(resource),
    )


def normalize_procedure(resource: dict[str, Any]) -> ProcedureRecord:
    performed = resource.get("performedDateTime")
    if not performed:
        performed = (resource.get("performedPeriod") or {}).get("start")

    return ProcedureRecord(
        id=resource.get("id", ""),
        name=concept_label(resource.get("code"), UNKNOWN_PROCEDURE),
        status=resource.get("status") or UNKNOWN,
        date=format_date(performed or resource.get("performedString")),
        reason=optional_concept_label(first_concept(resource.get("reasonCode"))),
    )


def normalize_condition(resource: dict[str, Any]) -> ConditionRecord:
    recorded = resource.get("recordedDate")
    return ConditionRecord(
        id=resource.get("id", ""),
        name=concept_label(resource.get("code"), UNKNOWN_CONDITION),
        clinical_status=extract_status_code(resource.get("clinicalStatus")),
        verification_status=extract_status_code(resource.get("verificationStatus")),
        category=optional_concept_label(first_concept(resource.get("category"))),
        onset=_onset(resource) or "Unknown",
        recorded_date=format_date(recorded) if recorded else None,
    )


def _appointment_practitioner_id(resource: dict[str, Any]) -> str | None:
    """Id of the first Practitioner among the participant actors."""
    for participant in resource.get("participant") or []:
        reference = ((participant or {}).get("actor") or {}).get("reference") or ""
        if reference.startswith("Practitioner/"):
            return extract_reference_id(reference)
    return None


def normalize_appointment(resource: dict[str, Any]) -> AppointmentRecord:
    """Appointment to display record; untitled appointments use the service type."""
    description = resource.get("description")
    if not description:
        description = concept_label(
            resource.get("appointmentType") or first_concept(resource.get("serviceType")),
            UNKNOWN_APPOINTMENT,
        )

    return AppointmentRecord(
        id=resource.get("id", ""),
        description=description,
        status=resource.get("status") or UNKNOWN,
        start=format_datetime(resource.get("start"), TBD),
        end=format_datetime(resource.get("end"), TBD),
        practitioner_id=_appointment_practitioner_id(resource),
        cancellation_reason=optional_concept_label(resource.get("cancelationReason")),
    )


def normalize_appointment_bundle(resources: list[dict[str, Any]]) -> AppointmentBundle:
    """Split a search result into appointments and their included practitioners."""
    appointments = []
    practitioners = {}
    for resource in resources:
        resource_type = resource.get("resourceType")
        if resource_type == "Appointment":
            appointments.append(normalize_appointment(resource))
        elif resource_type == "Practitioner" and resource.get("id"):
            practitioners[resource["id"]] = normalize_practitioner(resource)
    return AppointmentBundle(appointments=appointments, practitioners=practitioners)


def _normalize_each(
    normalizer: Callable[[dict[str, Any]], Any],
    resource_type: str,
) -> Callable[[list[dict[str, Any]]], list[Any]]:
    def normalize(resources: list[dict[str, Any]]) -> list[Any]:
        # Searches can carry OperationOutcome entries alongside matches
        return [normalizer(r) for r in resources if r.get("resourceType") == resource_type]

    return normalize


# Raw search results -> cache payload, per list-backed category
LIST_NORMALIZERS: dict[Category, Callable[[list[dict[str, Any]]], Any]] = {
    Category.IMMUNIZATION: _normalize_each(normalize_immunization, "Immunization"),
    Category.MEDICATION: _normalize_each(normalize_medication, "MedicationRequest"),
    Category.ALLERGY: _normalize_each(normalize_allergy, "AllergyIntolerance"),
    Category.PROCEDURE: _normalize_each(normalize_procedure, "Procedure"),
    Category.CONDITION: _normalize_each(normalize_condition, "Condition"),
    Category.APPOINTMENT: normalize_appointment_bundle,
}
