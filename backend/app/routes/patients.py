"""Patient API routes: create, search, and lazily loaded clinical sections."""

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.dependencies import get_fhir_client, get_section_cache
from app.routes.errors import raise_for_fhir_error
from app.schemas.patient import CreatedResource, PatientCreate, PatientSearchResponse
from app.schemas.records import PatientRecord
from app.schemas.sections import CacheStatus, Category, SectionResponse, SummaryResponse
from app.services.fhir_client import FhirClient, FhirClientError
from app.services.narrative import blocks_to_html, render_narrative
from app.services.normalizers import normalize_patient
from app.services.section_cache import CacheEntry, CacheKey, SectionCache

router = APIRouter(prefix="/patients", tags=["patients"])


def _section_response(
    cache: SectionCache,
    patient_id: str,
    category: Category,
    entry: CacheEntry,
) -> SectionResponse:
    return SectionResponse(
        patient_id=patient_id,
        category=category,
        status=entry.status,
        data=entry.data,
        error=entry.error,
        is_open=cache.open_key == CacheKey(patient_id, category),
    )


@router.post("", response_model=CreatedResource, status_code=status.HTTP_201_CREATED)
async def create_patient(
    form: PatientCreate,
    client: FhirClient = Depends(get_fhir_client),
) -> CreatedResource:
    """Create a Patient on the FHIR server and echo the stored resource."""
    try:
        resource = await client.create_patient(form)
    except FhirClientError as e:
        raise_for_fhir_error(e)
    return CreatedResource(id=resource.get("id"), resource=resource)


@router.get("", response_model=PatientSearchResponse)
async def search_patients(
    name: str | None = None,
    id: str | None = Query(None, description="Exact FHIR id; takes precedence over name"),
    client: FhirClient = Depends(get_fhir_client),
) -> PatientSearchResponse:
    """Search patients by id or name, most recently updated first.

    Only the first page of results is returned.
    """
    try:
        resources = await client.search_patients(name=name or None, patient_id=id or None)
    except FhirClientError as e:
        raise_for_fhir_error(e)

    patients = [r for r in resources if r.get("resourceType") == "Patient"]
    return PatientSearchResponse(
        items=[normalize_patient(p) for p in patients],
        resources=patients,
        total=len(patients),
    )


@router.get("/{patient_id}", response_model=PatientRecord)
async def get_patient(
    patient_id: str,
    client: FhirClient = Depends(get_fhir_client),
) -> PatientRecord:
    """Get a single patient card.

    Raises:
        HTTPException: 404 if patient not found.
    """
    try:
        resource = await client.get_by_id("Patient", patient_id)
    except FhirClientError as e:
        raise_for_fhir_error(e)

    if resource is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Patient not found",
        )
    return normalize_patient(resource)


@router.get("/{patient_id}/sections/{category}", response_model=SectionResponse)
async def get_section(
    patient_id: str,
    category: Category,
    wait: bool = True,
    open: bool = True,
    cache: SectionCache = Depends(get_section_cache),
) -> SectionResponse:
    """Open a section and make sure its data is loaded.

    Args:
        wait: Wait for an in-flight load to finish. With false the current
            entry (typically loading) is returned immediately.
        open: Also move the open-section pointer to this section.

    Returns:
        The cache entry. Failed loads come back as status "error" with the
        failure message; requesting the section again retries.
    """
    if open:
        cache.open_section(patient_id, category)
    entry = await cache.ensure_loaded(patient_id, category, wait=wait)
    return _section_response(cache, patient_id, category, entry)


@router.delete("/sections/open", status_code=status.HTTP_204_NO_CONTENT)
async def close_open_section(cache: SectionCache = Depends(get_section_cache)) -> None:
    """Close whichever section is open. Cached data and running loads are kept."""
    cache.close_section()


@router.get("/{patient_id}/summary", response_model=SummaryResponse)
async def get_summary(
    patient_id: str,
    wait: bool = True,
    cache: SectionCache = Depends(get_section_cache),
) -> SummaryResponse:
    """Load (once per patient) and render the AI narrative summary."""
    cache.open_section(patient_id, Category.SUMMARY)
    entry = await cache.ensure_loaded(patient_id, Category.SUMMARY, wait=wait)

    response = SummaryResponse(patient_id=patient_id, status=entry.status, error=entry.error)
    if entry.status is CacheStatus.SUCCESS:
        blocks = render_narrative(entry.data)
        response.narrative = entry.data
        response.blocks = blocks
        response.html = blocks_to_html(blocks)
    return response
