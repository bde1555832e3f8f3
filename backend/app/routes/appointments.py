"""Practitioner and appointment API routes, including cancellation."""

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import get_appointment_coordinator
from app.routes.errors import raise_for_fhir_error
from app.schemas.patient import (
    AppointmentCreate,
    CancelRequest,
    CancelResponse,
    CreatedResource,
    PractitionerCreate,
)
from app.services.appointments import AppointmentCoordinator
from app.services.fhir_client import FhirClientError

router = APIRouter(tags=["appointments"])


@router.post(
    "/practitioners",
    response_model=CreatedResource,
    status_code=status.HTTP_201_CREATED,
)
async def create_practitioner(
    form: PractitionerCreate,
    coordinator: AppointmentCoordinator = Depends(get_appointment_coordinator),
) -> CreatedResource:
    """Create a Practitioner on the FHIR server."""
    try:
        resource = await coordinator.create_practitioner(form)
    except FhirClientError as e:
        raise_for_fhir_error(e)
    return CreatedResource(id=resource.get("id"), resource=resource)


@router.post(
    "/appointments",
    response_model=CreatedResource,
    status_code=status.HTTP_201_CREATED,
)
async def create_appointment(
    form: AppointmentCreate,
    coordinator: AppointmentCoordinator = Depends(get_appointment_coordinator),
) -> CreatedResource:
    """Book an appointment between an existing patient and practitioner.

    Raises:
        HTTPException: 404 if either participant is missing, 400 if the
            appointment ends before it starts.
    """
    if form.end < form.start:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Appointment end must not be before its start",
        )
    try:
        resource = await coordinator.create_appointment(form)
    except FhirClientError as e:
        raise_for_fhir_error(e)
    return CreatedResource(id=resource.get("id"), resource=resource)


@router.post(
    "/patients/{patient_id}/appointments/{appointment_id}/cancel",
    response_model=CancelResponse,
)
async def cancel_appointment(
    patient_id: str,
    appointment_id: str,
    body: CancelRequest,
    coordinator: AppointmentCoordinator = Depends(get_appointment_coordinator),
) -> CancelResponse:
    """Cancel an appointment and patch the patient's cached appointment list.

    Raises:
        HTTPException: 400 for an empty reason, 404 for an unknown
            appointment, 502 when the server rejects the write. The cache is
            unchanged in every failure case.
    """
    try:
        record = await coordinator.cancel(patient_id, appointment_id, body.reason)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except FhirClientError as e:
        raise_for_fhir_error(e)

    cached = coordinator.is_cached(patient_id, appointment_id)
    return CancelResponse(appointment=record, cache_updated=cached)
