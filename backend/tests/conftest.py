"""Pytest configuration and shared fixtures.

This module provides centralized test fixtures for:
- A scriptable in-memory FHIR gateway
- A fake summarization service
- HTTP client for API testing
- Common FHIR test data
"""

import asyncio
import copy
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.dependencies import build_services
from app.main import app
from app.schemas.sections import Category
from app.services.builders import build_appointment, build_patient, build_practitioner
from app.services.fhir_client import FhirClientError


# =============================================================================
# Fake Gateway
# =============================================================================


class FakeGateway:
    """In-memory stand-in for FhirClient.

    Results are scripted per (patient, category); failures are scripted as
    exceptions. Setting ``gate`` holds every list/fetch call until the test
    releases it, which lets tests observe the loading state.
    """

    def __init__(self):
        self.lists: dict[tuple[str, Category], list[dict[str, Any]]] = {}
        self.everything: dict[str, dict[str, Any]] = {}
        self.resources: dict[tuple[str, str], dict[str, Any]] = {}
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple] = []
        self.gate: asyncio.Event | None = None

    async def _maybe_wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()

    def _maybe_fail(self, operation: str) -> None:
        error = self.failures.pop(operation, None)
        if error is not None:
            raise error

    async def list_by_category(self, patient_id: str, category: Category) -> list[dict[str, Any]]:
        self.calls.append(("list_by_category", patient_id, Category(category)))
        await self._maybe_wait()
        self._maybe_fail("list_by_category")
        return copy.deepcopy(self.lists.get((patient_id, Category(category)), []))

    async def fetch_everything(self, patient_id: str) -> dict[str, Any]:
        self.calls.append(("fetch_everything", patient_id))
        await self._maybe_wait()
        self._maybe_fail("fetch_everything")
        return copy.deepcopy(self.everything.get(patient_id, {"resourceType": "Bundle", "entry": []}))

    async def search_patients(self, name=None, patient_id=None) -> list[dict[str, Any]]:
        self.calls.append(("search_patients", name, patient_id))
        self._maybe_fail("search_patients")
        patients = [r for (t, _), r in self.resources.items() if t == "Patient"]
        if patient_id:
            return [p for p in patients if p["id"] == patient_id]
        return patients

    async def get_by_id(self, resource_type: str, resource_id: str) -> dict[str, Any] | None:
        self.calls.append(("get_by_id", resource_type, resource_id))
        self._maybe_fail("get_by_id")
        resource = self.resources.get((resource_type, resource_id))
        return copy.deepcopy(resource) if resource else None

    async def replace(self, resource_type: str, resource_id: str, resource: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("replace", resource_type, resource_id, copy.deepcopy(resource)))
        self._maybe_fail("replace")
        self.resources[(resource_type, resource_id)] = copy.deepcopy(resource)
        return copy.deepcopy(resource)

    async def _create(self, resource_type: str, resource: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(("create", resource_type))
        self._maybe_fail("create")
        created = {**resource, "id": f"{resource_type.lower()}-{len(self.resources) + 1}"}
        self.resources[(resource_type, created["id"])] = created
        return created

    async def create_patient(self, form) -> dict[str, Any]:
        return await self._create("Patient", build_patient(form))

    async def create_practitioner(self, form) -> dict[str, Any]:
        return await self._create("Practitioner", build_practitioner(form))

    async def create_appointment(self, form) -> dict[str, Any]:
        return await self._create("Appointment", build_appointment(form))

    async def close(self) -> None:
        pass

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)


class FakeSummarizer:
    """Records the bundles it is asked to summarize."""

    def __init__(self, narrative: str = "## Summary\n- Stable"):
        self.narrative = narrative
        self.bundles: list[dict[str, Any]] = []
        self.error: Exception | None = None

    async def summarize(self, bundle: dict[str, Any]) -> str:
        self.bundles.append(bundle)
        if self.error is not None:
            raise self.error
        return self.narrative

    async def close(self) -> None:
        pass


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def summarizer() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
def transport_error() -> FhirClientError:
    """Error raised by the gateway for a 500 response."""
    return FhirClientError("Fetch failed: 500", status_code=500)


# =============================================================================
# HTTP Client Fixtures
# =============================================================================


@pytest.fixture
def services(gateway, summarizer):
    """Services wired to the fake gateway and summarizer."""
    return build_services(fhir_client=gateway, summarizer=summarizer)


@pytest_asyncio.fixture
async def client(services):
    """Async test client for the FastAPI app with fake services.

    ASGITransport does not run the lifespan, so services are placed on
    app.state directly.
    """
    app.state.services = services
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    del app.state.services


# =============================================================================
# FHIR Test Data Fixtures
# =============================================================================


@pytest.fixture
def sample_patient() -> dict:
    """Sample FHIR Patient resource with identifying fields."""
    return {
        "resourceType": "Patient",
        "id": "patient-test-123",
        "name": [{"use": "official", "given": ["Jane", "Q"], "family": "Doe"}],
        "telecom": [{"system": "phone", "value": "555-0100", "use": "home"}],
        "address": [
            {
                "line": ["1 Main St", "Apt 2"],
                "city": "Springfield",
                "state": "IL",
                "postalCode": "62701",
            }
        ],
        "identifier": [
            {"type": {"text": "Medical Record Number"}, "value": "MRN-1"},
            {"system": "http://hl7.org/fhir/sid/us-ssn", "value": "999-99-9999"},
        ],
        "birthDate": "1980-01-01",
        "gender": "female",
    }


@pytest.fixture
def sample_immunization() -> dict:
    """Sample FHIR Immunization resource."""
    return {
        "resourceType": "Immunization",
        "id": "imm-1",
        "status": "completed",
        "vaccineCode": {
            "coding": [
                {
                    "system": "http://hl7.org/fhir/sid/cvx",
                    "code": "140",
                    "display": "Influenza, seasonal, injectable",
                }
            ]
        },
        "occurrenceDateTime": "2023-10-05T10:00:00Z",
    }


@pytest.fixture
def sample_medication() -> dict:
    """Sample FHIR MedicationRequest resource."""
    return {
        "resourceType": "MedicationRequest",
        "id": "med-1",
        "status": "active",
        "medicationCodeableConcept": {
            "coding": [
                {
                    "system": "http://www.nlm.nih.gov/research/umls/rxnorm",
                    "code": "197361",
                    "display": "Lisinopril 10 MG",
                }
            ]
        },
        "dosageInstruction": [{"text": "Take 1 tablet daily"}],
        "reasonCode": [{"coding": [{"code": "38341003", "display": "Hypertension"}]}],
        "authoredOn": "2022-03-01",
    }


@pytest.fixture
def sample_allergy() -> dict:
    """Sample FHIR AllergyIntolerance resource with reactions."""
    return {
        "resourceType": "AllergyIntolerance",
        "id": "allergy-1",
        "clinicalStatus": {"coding": [{"code": "active"}]},
        "type": "allergy",
        "category": ["medication"],
        "criticality": "high",
        "code": {"coding": [{"code": "764146007", "display": "Penicillin"}]},
        "recordedDate": "2019-06-12",
        "onsetDateTime": "2010-01-01",
        "reaction": [
            {
                "manifestation": [
                    {"coding": [{"display": "Hives"}]},
                    {"coding": [{"code": "271807003"}]},
                ],
                "severity": "moderate",
            },
            {"manifestation": [{"text": "Anaphylaxis"}]},
        ],
    }


@pytest.fixture
def sample_procedure() -> dict:
    """Sample FHIR Procedure resource."""
    return {
        "resourceType": "Procedure",
        "id": "proc-1",
        "status": "completed",
        "code": {"text": "Appendectomy"},
        "performedPeriod": {"start": "2015-04-02T08:00:00Z", "end": "2015-04-02T10:00:00Z"},
    }


@pytest.fixture
def sample_condition() -> dict:
    """Sample FHIR Condition resource."""
    return {
        "resourceType": "Condition",
        "id": "cond-1",
        "clinicalStatus": {"coding": [{"code": "active"}]},
        "verificationStatus": {"coding": [{"code": "confirmed"}]},
        "category": [{"coding": [{"code": "problem-list-item", "display": "Problem List Item"}]}],
        "code": {
            "coding": [
                {
                    "system": "http://snomed.info/sct",
                    "code": "38341003",
                    "display": "Hypertension",
                }
            ]
        },
        "onsetDateTime": "2018-02-14",
    }


@pytest.fixture
def sample_practitioner() -> dict:
    """Sample FHIR Practitioner resource."""
    return {
        "resourceType": "Practitioner",
        "id": "prac-1",
        "name": [{"prefix": ["Dr."], "given": ["Gregory"], "family": "House"}],
        "telecom": [{"system": "phone", "value": "555-0199"}],
    }


def make_appointment(appointment_id: str, practitioner_id: str = "prac-1", **fields) -> dict:
    """Build a booked Appointment between patient-test-123 and a practitioner."""
    resource = {
        "resourceType": "Appointment",
        "id": appointment_id,
        "status": "booked",
        "description": f"Visit {appointment_id}",
        "start": "2024-01-15T09:00:00Z",
        "end": "2024-01-15T09:30:00Z",
        "participant": [
            {"actor": {"reference": "Patient/patient-test-123"}, "status": "accepted"},
            {"actor": {"reference": f"Practitioner/{practitioner_id}"}, "status": "accepted"},
        ],
    }
    resource.update(fields)
    return resource


@pytest.fixture
def appointment_factory():
    """Factory for Appointment resources."""
    return make_appointment


@pytest.fixture
def sample_appointments() -> list[dict]:
    """Three appointments with the same practitioner."""
    return [make_appointment("A1"), make_appointment("A2"), make_appointment("A3")]


@pytest.fixture
def sample_everything_bundle(sample_patient, sample_condition, sample_medication) -> dict:
    """Patient/$everything style bundle."""
    return {
        "resourceType": "Bundle",
        "type": "searchset",
        "entry": [
            {"fullUrl": "Patient/patient-test-123", "resource": sample_patient},
            {"resource": sample_condition},
            {"resource": sample_medication},
        ],
    }
