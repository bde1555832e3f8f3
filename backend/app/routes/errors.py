"""Translate gateway errors into HTTP errors."""

from typing import NoReturn

from fastapi import HTTPException, status

from app.services.fhir_client import FhirClientError


def raise_for_fhir_error(error: FhirClientError) -> NoReturn:
    """Re-raise a FHIR gateway failure as an HTTPException.

    Missing resources map to 404; every other upstream failure is a 502
    carrying the upstream message.
    """
    if error.status_code in (404, 410):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error.message,
        ) from error
    raise HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=error.message,
    ) from error
