"""Async REST client for a remote FHIR R4 server.

Every read and write against the clinical record store goes through
``FhirClient``. Non-2xx responses and transport failures are raised as
``FhirClientError`` carrying the status code (when there is one) and a
human-readable message; callers decide whether to surface or cache them.
"""

import logging
from typing import Any

import httpx

from app.config import settings
from app.schemas.patient import AppointmentCreate, PatientCreate, PractitionerCreate
from app.schemas.sections import Category
from app.services.builders import build_appointment, build_patient, build_practitioner
from app.services.categories import CategoryConfig, build_category_configs

logger = logging.getLogger(__name__)

FHIR_JSON = "application/fhir+json"


class FhirClientError(Exception):
    """Raised when a FHIR call returns a non-2xx response or fails in transport."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class ResourceNotFoundError(FhirClientError):
    """Raised when a lookup by id finds no such resource."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type}/{resource_id} not found", status_code=404)


def bundle_resources(bundle: dict[str, Any]) -> list[dict[str, Any]]:
    """Pull the resources out of a searchset Bundle's entry array."""
    return [
        entry["resource"]
        for entry in bundle.get("entry") or []
        if isinstance(entry, dict) and entry.get("resource")
    ]


class FhirClient:
    """FHIR REST gateway backed by ``httpx.AsyncClient``.

    Only the first page of any search is read; the client never follows
    ``next`` links.

    Example:
        async with FhirClient() as client:
            immunizations = await client.list_by_category("123", Category.IMMUNIZATION)
    """

    def __init__(
        self,
        base_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        categories: dict[Category, CategoryConfig] | None = None,
        search_page_size: int | None = None,
    ):
        """Initialize FhirClient.

        Args:
            base_url: FHIR server base URL. Defaults to settings.fhir_base_url.
            http_client: Optional pre-configured httpx client (for testing).
            categories: Category search configs. Defaults to one built from
                settings.unsorted_categories.
            search_page_size: ``_count`` for patient searches.
        """
        self.base_url = (base_url or settings.fhir_base_url).rstrip("/")
        if http_client is not None:
            self._client = http_client
        else:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Accept": FHIR_JSON},
                timeout=httpx.Timeout(settings.fhir_timeout),
            )
        self._categories = categories or build_category_configs(settings.unsorted_categories)
        self._search_page_size = search_page_size or settings.search_page_size

    async def __aenter__(self) -> "FhirClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    @property
    def categories(self) -> dict[Category, CategoryConfig]:
        return self._categories

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        params: list[tuple[str, str]] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers = {"Accept": FHIR_JSON}
        if json is not None:
            headers["Content-Type"] = FHIR_JSON
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.HTTPError as e:
            logger.warning("%s %s transport failure: %s", method, path, e)
            raise FhirClientError(f"{action} failed: {str(e) or type(e).__name__}") from e

        logger.info("%s %s -> %d", method, path, response.status_code)
        if not response.is_success:
            raise FhirClientError(
                f"{action} failed: {response.status_code}",
                status_code=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: httpx.Response, action: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            logger.warning("%s returned a non-JSON body: %s", response.request.url, e)
            raise FhirClientError(
                f"{action} failed: invalid JSON response",
                status_code=response.status_code,
            ) from e

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_by_category(self, patient_id: str, category: Category) -> list[dict[str, Any]]:
        """Search one category of resources for a patient.

        Args:
            patient_id: FHIR Patient id.
            category: Any list-backed category (not summary).

        Returns:
            Raw resources of the first result page, including any
            ``_include``d resources.
        """
        config = self._categories.get(Category(category))
        if config is None:
            raise ValueError(f"{category} is not fetched by search")

        response = await self._request(
            "GET",
            f"/{config.resource_type}",
            "Fetch",
            params=config.search_params(patient_id),
        )
        return bundle_resources(self._json(response, "Fetch"))

    async def fetch_everything(self, patient_id: str) -> dict[str, Any]:
        """Read the patient's whole record via ``Patient/{id}/$everything``."""
        response = await self._request("GET", f"/Patient/{patient_id}/$everything", "Fetch")
        return self._json(response, "Fetch")

    async def search_patients(
        self,
        name: str | None = None,
        patient_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """Search patients, most recently updated first.

        An id takes precedence over a name; with neither, the most recently
        updated patients are returned.
        """
        params = [("_sort", "-_lastUpdated"), ("_count", str(self._search_page_size))]
        if patient_id:
            params.append(("_id", patient_id))
        elif name:
            params.append(("name", name))

        response = await self._request("GET", "/Patient", "Search", params=params)
        return bundle_resources(self._json(response, "Search"))

    async def get_by_id(self, resource_type: str, resource_id: str) -> dict[str, Any] | None:
        """Read one resource; None when the server reports it missing or gone."""
        try:
            response = await self._request("GET", f"/{resource_type}/{resource_id}", "Read")
        except FhirClientError as e:
            if e.status_code in (404, 410):
                return None
            raise
        return self._json(response, "Read")

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create(self, resource: dict[str, Any]) -> dict[str, Any]:
        """POST a new resource and return the server's copy."""
        resource_type = resource["resourceType"]
        response = await self._request("POST", f"/{resource_type}", "Create", json=resource)
        return self._json(response, "Create")

    async def create_patient(self, form: PatientCreate) -> dict[str, Any]:
        return await self.create(build_patient(form))

    async def create_practitioner(self, form: PractitionerCreate) -> dict[str, Any]:
        return await self.create(build_practitioner(form))

    async def create_appointment(self, form: AppointmentCreate) -> dict[str, Any]:
        return await self.create(build_appointment(form))

    async def replace(
        self,
        resource_type: str,
        resource_id: str,
        resource: dict[str, Any],
    ) -> dict[str, Any]:
        """Overwrite a whole resource with PUT and return the updated copy."""
        response = await self._request(
            "PUT", f"/{resource_type}/{resource_id}", "Update", json=resource
        )
        return self._json(response, "Update")
