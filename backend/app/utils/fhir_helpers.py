"""Shared FHIR resource parsing utilities.

Consolidates common FHIR extraction patterns used by the normalizers.
All functions are pure and handle missing/malformed data gracefully.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any


def extract_reference_id(reference: str | None) -> str | None:
    """Extract FHIR ID from a reference string.

    Handles both formats:
    - "urn:uuid:abc-123" -> "abc-123"
    - "Practitioner/abc-123" -> "abc-123"

    Args:
        reference: FHIR reference string

    Returns:
        Extracted ID or None if reference is empty/None
    """
    if not reference:
        return None

    if reference.startswith("urn:uuid:"):
        return reference[9:]  # len("urn:uuid:")
    elif "/" in reference:
        return reference.split("/")[-1]
    return reference


def extract_first_coding(codeable_concept: dict[str, Any]) -> dict[str, Any]:
    """Extract first coding from a FHIR CodeableConcept.

    Args:
        codeable_concept: FHIR CodeableConcept structure

    Returns:
        First coding dict or empty dict if none
    """
    codings = codeable_concept.get("coding") or []
    first = codings[0] if codings else {}
    return first if isinstance(first, dict) else {}


# =============================================================================
# Coded concept variant
# =============================================================================


@dataclass(frozen=True)
class TextConcept:
    """Concept carrying human-readable free text."""

    text: str


@dataclass(frozen=True)
class CodedConcept:
    """Concept known only through its first coding."""

    display: str | None
    code: str | None

    @property
    def label(self) -> str | None:
        return self.display or self.code


@dataclass(frozen=True)
class AbsentConcept:
    """No usable text, display or code."""


Concept = TextConcept | CodedConcept | AbsentConcept

ABSENT = AbsentConcept()


def classify_concept(value: Any) -> Concept:
    """Resolve a CodeableConcept-shaped value into one tagged variant.

    Order is text, then the first coding (display, then code). A bare
    string is treated as free text.
    """
    if isinstance(value, str):
        return TextConcept(value) if value.strip() else ABSENT
    if not isinstance(value, dict):
        return ABSENT

    text = value.get("text")
    if isinstance(text, str) and text.strip():
        return TextConcept(text)

    coding = extract_first_coding(value)
    display = coding.get("display") or None
    code = coding.get("code") or None
    if display or code:
        return CodedConcept(display=display, code=code)
    return ABSENT


def concept_label(value: Any, unknown: str) -> str:
    """Human-readable label for a concept: text, display, code, then ``unknown``."""
    concept = classify_concept(value)
    if isinstance(concept, TextConcept):
        return concept.text
    if isinstance(concept, CodedConcept):
        return concept.label
    return unknown


def optional_concept_label(value: Any) -> str | None:
    """Like concept_label but None when nothing usable is present."""
    concept = classify_concept(value)
    if isinstance(concept, AbsentConcept):
        return None
    return concept_label(value, "")


def first_concept(values: Any) -> Any:
    """First element of a list-valued CodeableConcept field, or None."""
    if isinstance(values, list) and values:
        return values[0]
    return None


def extract_status_code(concept: Any, default: str = "unknown") -> str:
    """Extract a status code (clinicalStatus, verificationStatus).

    Status concepts carry the machine code in coding[0].code; text is used
    when a server sends only text.
    """
    if not isinstance(concept, dict):
        return default
    coding = extract_first_coding(concept)
    return coding.get("code") or concept.get("text") or default


# =============================================================================
# Dates
# =============================================================================


def _parse_fhir_datetime(value: str) -> datetime | date | None:
    """Parse a full FHIR date or dateTime; partial dates return None."""
    if len(value) < 10:
        return None
    try:
        if "T" in value:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def format_date(value: str | None, placeholder: str = "Unknown") -> str:
    """Format a FHIR date/dateTime as a locale date string (e.g. 1/15/2024).

    Partial dates such as "2024" or "2024-03" are returned as given.
    """
    if not value:
        return placeholder
    parsed = _parse_fhir_datetime(value)
    if parsed is None:
        return value
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


def format_datetime(value: str | None, placeholder: str = "Unknown") -> str:
    """Format a FHIR dateTime as a locale date-time string (1/15/2024, 9:00 AM)."""
    if not value:
        return placeholder
    parsed = _parse_fhir_datetime(value)
    if parsed is None:
        return value
    if not isinstance(parsed, datetime):
        return f"{parsed.month}/{parsed.day}/{parsed.year}"
    hour = parsed.hour % 12 or 12
    meridiem = "AM" if parsed.hour < 12 else "PM"
    return f"{parsed.month}/{parsed.day}/{parsed.year}, {hour}:{parsed.minute:02d} {meridiem}"


# =============================================================================
# Identifiers and names
# =============================================================================


def identifier_label(identifier: dict[str, Any]) -> str:
    """Derive a display label for a FHIR Identifier.

    Looks at type.text, then type.coding[0].display, then guesses from the
    system URL. The URL guess is a plain substring match and can misclassify
    a system whose URL happens to contain "ssn" or "driver".
    """
    id_type = identifier.get("type") or {}
    if isinstance(id_type, dict):
        if id_type.get("text"):
            return id_type["text"]
        display = extract_first_coding(id_type).get("display")
        if display:
            return display

    system = identifier.get("system")
    if not system:
        return "ID"

    label = "System ID"
    if "ssn" in system:
        label = "SSN"
    if "driver" in system:
        label = "License"
    return label


def format_human_name(names: Any, default: str) -> str:
    """Join the first HumanName as "given family"."""
    if not isinstance(names, list) or not names:
        return default
    name = names[0] or {}
    if name.get("text") and not (name.get("given") or name.get("family")):
        return name["text"]
    given = " ".join(name.get("given") or [])
    family = name.get("family") or ""
    return f"{given} {family}".strip() or default
