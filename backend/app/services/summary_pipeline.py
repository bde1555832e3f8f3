"""Patient summary pipeline: fetch everything, sanitize, summarize.

The three steps run strictly in order for one patient; different patients
run independently. Each step fails on its own terms with a step-specific
message so an operator can tell "could not retrieve record" apart from
"could not generate narrative".

Sanitization is the privacy boundary: every Patient resource is reduced to
id, gender and birth date before anything leaves this process. It is not
configurable.
"""

import copy
import logging
from enum import Enum
from typing import Any

from app.services.fhir_client import FhirClientError
from app.services.summarizer import SummarizationError

logger = logging.getLogger(__name__)

# Fields of a Patient resource that may leave the process
PATIENT_RETAINED_FIELDS = ("resourceType", "id", "gender", "birthDate")


class PipelineStage(str, Enum):
    """Where one patient's pipeline currently stands."""

    IDLE = "idle"
    FETCHING = "fetching"
    SANITIZING = "sanitizing"
    SUMMARIZING = "summarizing"
    DONE = "done"
    FAILED = "failed"


class PipelineStepError(Exception):
    """Raised when one pipeline step fails; carries the failed stage."""

    def __init__(self, stage: PipelineStage, message: str) -> None:
        self.stage = stage
        self.message = message
        super().__init__(message)


def _minimal_patient(resource: dict[str, Any]) -> dict[str, Any]:
    return {key: resource[key] for key in PATIENT_RETAINED_FIELDS if key in resource}


def sanitize_bundle(bundle: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of a bundle with every Patient reduced to id, gender, birthDate.

    Names, addresses, telecoms, identifiers and every other Patient field
    are dropped. The input bundle is not modified.

    Raises:
        TypeError: If the bundle or its entry list is malformed.
    """
    if not isinstance(bundle, dict):
        raise TypeError("bundle must be a JSON object")

    if bundle.get("resourceType") == "Patient":
        return _minimal_patient(bundle)

    entries = bundle.get("entry")
    if entries is not None and not isinstance(entries, list):
        raise TypeError("bundle entry must be a list")

    sanitized = copy.deepcopy(bundle)
    for entry in sanitized.get("entry") or []:
        if not isinstance(entry, dict):
            continue
        resource = entry.get("resource")
        if isinstance(resource, dict) and resource.get("resourceType") == "Patient":
            entry["resource"] = _minimal_patient(resource)
    return sanitized


class SummaryPipeline:
    """Runs fetch, sanitize and summarize for one patient at a time.

    Stages are tracked per patient and can be read with ``stage()``.
    Caching and idempotence are the section cache's job: the pipeline is
    registered there as the loader of the summary category.
    """

    def __init__(self, gateway: Any, summarizer: Any | None = None):
        """Initialize SummaryPipeline.

        Args:
            gateway: FHIR gateway providing ``fetch_everything``.
            summarizer: Service providing ``summarize``. When None, every run
                fails at the summarize step.
        """
        self._gateway = gateway
        self._summarizer = summarizer
        self._stages: dict[str, PipelineStage] = {}

    def stage(self, patient_id: str) -> PipelineStage:
        return self._stages.get(patient_id, PipelineStage.IDLE)

    def _advance(self, patient_id: str, stage: PipelineStage) -> None:
        logger.info("Summary pipeline for %s: %s -> %s", patient_id, self.stage(patient_id).value, stage.value)
        self._stages[patient_id] = stage

    def _fail(self, patient_id: str, stage: PipelineStage, message: str) -> PipelineStepError:
        logger.warning("Summary pipeline for %s failed at %s: %s", patient_id, stage.value, message)
        self._stages[patient_id] = PipelineStage.FAILED
        return PipelineStepError(stage, message)

    async def run(self, patient_id: str) -> str:
        """Produce the narrative for one patient.

        Raises:
            PipelineStepError: With the stage that failed.
        """
        self._advance(patient_id, PipelineStage.FETCHING)
        try:
            bundle = await self._gateway.fetch_everything(patient_id)
        except FhirClientError as e:
            raise self._fail(
                patient_id, PipelineStage.FETCHING, f"Could not retrieve patient record: {e.message}"
            ) from e

        self._advance(patient_id, PipelineStage.SANITIZING)
        try:
            sanitized = sanitize_bundle(bundle)
        except TypeError as e:
            raise self._fail(
                patient_id, PipelineStage.SANITIZING, f"Could not prepare patient record: {e}"
            ) from e

        self._advance(patient_id, PipelineStage.SUMMARIZING)
        narrative = await self._summarize(patient_id, sanitized)

        self._advance(patient_id, PipelineStage.DONE)
        return narrative

    async def _summarize(self, patient_id: str, sanitized: dict[str, Any]) -> str:
        if self._summarizer is None:
            raise self._fail(
                patient_id,
                PipelineStage.SUMMARIZING,
                "Could not generate summary: summarization service is not configured",
            )
        try:
            return await self._summarizer.summarize(sanitized)
        except SummarizationError as e:
            raise self._fail(
                patient_id, PipelineStage.SUMMARIZING, f"Could not generate summary: {e.message}"
            ) from e

    async def summarize_bundle(self, bundle: dict[str, Any]) -> str:
        """Sanitize and summarize a caller-supplied bundle; nothing is cached.

        Raises:
            TypeError: If the bundle is malformed.
            SummarizationError: If the service fails or is not configured.
        """
        sanitized = sanitize_bundle(bundle)
        if self._summarizer is None:
            raise SummarizationError("Server configuration error: API Key missing", status_code=500)
        return await self._summarizer.summarize(sanitized)
