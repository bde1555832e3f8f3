"""Appointment writes that keep the section cache consistent.

Cancellation is the one place a cached section is changed other than by a
fresh load: after the server accepts the write, only the cancelled
appointment is swapped in the patient's cached list. Every other element
and the joined practitioner map stay the same objects. A failed write
leaves the cache exactly as it was.
"""

import copy
import logging
from typing import Any

from app.schemas.patient import AppointmentCreate, PractitionerCreate
from app.schemas.records import AppointmentBundle, AppointmentRecord
from app.schemas.sections import CacheStatus, Category
from app.services.fhir_client import ResourceNotFoundError
from app.services.normalizers import normalize_appointment
from app.services.section_cache import CacheEntry, SectionCache

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"


def build_cancelled_appointment(resource: dict[str, Any], reason: str) -> dict[str, Any]:
    """Full replacement record: status cancelled plus the cancellation reason."""
    updated = copy.deepcopy(resource)
    updated["status"] = CANCELLED
    updated["cancelationReason"] = {"text": reason}
    return updated


class AppointmentCoordinator:
    """Performs appointment writes through the gateway and patches the cache."""

    def __init__(self, gateway: Any, cache: SectionCache):
        self._gateway = gateway
        self._cache = cache

    async def cancel(self, patient_id: str, appointment_id: str, reason: str) -> AppointmentRecord:
        """Cancel one appointment and update the patient's cached list.

        Args:
            patient_id: Patient whose appointment section is patched.
            appointment_id: FHIR Appointment id.
            reason: Cancellation reason; required.

        Returns:
            The cancelled appointment's display record.

        Raises:
            ValueError: If reason is empty.
            ResourceNotFoundError: If the appointment does not exist.
            FhirClientError: If the read or the replace write fails.
        """
        if not reason or not reason.strip():
            raise ValueError("cancellation reason cannot be empty")

        resource = await self._gateway.get_by_id("Appointment", appointment_id)
        if resource is None:
            raise ResourceNotFoundError("Appointment", appointment_id)

        updated = await self._gateway.replace(
            "Appointment",
            appointment_id,
            build_cancelled_appointment(resource, reason.strip()),
        )
        record = normalize_appointment(updated)
        logger.info("Cancelled appointment %s for patient %s", appointment_id, patient_id)

        # A load started before the write may still store the old status
        await self._cache.await_in_flight(patient_id, Category.APPOINTMENT)
        self.replace_cached(patient_id, record)
        return record

    def replace_cached(self, patient_id: str, record: AppointmentRecord) -> bool:
        """Swap one appointment in a loaded appointment section.

        Returns:
            True if the cached list contained the appointment and was updated.
        """
        entry = self._cache.get(patient_id, Category.APPOINTMENT)
        if entry.status is not CacheStatus.SUCCESS:
            return False

        bundle: AppointmentBundle = entry.data
        for index, cached in enumerate(bundle.appointments):
            if cached.id == record.id:
                break
        else:
            logger.info("Appointment %s not in cached list for %s", record.id, patient_id)
            return False

        appointments = list(bundle.appointments)
        appointments[index] = record
        # Shallow copy keeps the practitioner map and the other records shared
        patched = bundle.model_copy(update={"appointments": appointments})
        self._cache.put(patient_id, Category.APPOINTMENT, CacheEntry.success(patched))
        return True

    def is_cached(self, patient_id: str, appointment_id: str) -> bool:
        """Whether the loaded appointment section shows this appointment cancelled."""
        entry = self._cache.get(patient_id, Category.APPOINTMENT)
        if entry.status is not CacheStatus.SUCCESS:
            return False
        return any(
            a.id == appointment_id and a.status == CANCELLED for a in entry.data.appointments
        )

    async def create_practitioner(self, form: PractitionerCreate) -> dict[str, Any]:
        return await self._gateway.create_practitioner(form)

    async def create_appointment(self, form: AppointmentCreate) -> dict[str, Any]:
        """Create an appointment after checking both participants exist.

        Raises:
            ResourceNotFoundError: If the patient or practitioner is missing.
        """
        if await self._gateway.get_by_id("Patient", form.patient_id) is None:
            raise ResourceNotFoundError("Patient", form.patient_id)
        if await self._gateway.get_by_id("Practitioner", form.practitioner_id) is None:
            raise ResourceNotFoundError("Practitioner", form.practitioner_id)
        return await self._gateway.create_appointment(form)
