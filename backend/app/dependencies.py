"""Process-wide services, created in the app lifespan and injected per request.

The section cache lives on ``app.state`` for the life of the process; that
is the whole "session" of cached sections.
"""

import logging
from dataclasses import dataclass

from fastapi import Request

from app.services.appointments import AppointmentCoordinator
from app.services.fhir_client import FhirClient
from app.services.section_cache import SectionCache, build_loaders
from app.services.summarizer import SummarizerService
from app.services.summary_pipeline import SummaryPipeline

logger = logging.getLogger(__name__)


@dataclass
class Services:
    fhir_client: FhirClient
    summarizer: SummarizerService | None
    pipeline: SummaryPipeline
    cache: SectionCache
    appointments: AppointmentCoordinator

    async def close(self) -> None:
        await self.fhir_client.close()
        if self.summarizer is not None:
            await self.summarizer.close()


def build_services(
    fhir_client: FhirClient | None = None,
    summarizer: SummarizerService | None = None,
) -> Services:
    """Wire the gateway, pipeline, cache and coordinator together.

    A missing OpenAI key is not fatal: summaries then fail at their
    summarize step while every other section keeps working.
    """
    fhir_client = fhir_client or FhirClient()
    if summarizer is None:
        try:
            summarizer = SummarizerService()
        except ValueError as e:
            logger.warning("Summaries disabled: %s", e)

    pipeline = SummaryPipeline(fhir_client, summarizer)
    cache = SectionCache(build_loaders(fhir_client, pipeline))
    return Services(
        fhir_client=fhir_client,
        summarizer=summarizer,
        pipeline=pipeline,
        cache=cache,
        appointments=AppointmentCoordinator(fhir_client, cache),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_fhir_client(request: Request) -> FhirClient:
    return get_services(request).fhir_client


def get_section_cache(request: Request) -> SectionCache:
    return get_services(request).cache


def get_appointment_coordinator(request: Request) -> AppointmentCoordinator:
    return get_services(request).appointments


def get_summary_pipeline(request: Request) -> SummaryPipeline:
    return get_services(request).pipeline
