"""Narrative summarization of a patient record using the OpenAI Responses API.

One opaque call per bundle: no retry, no backoff. Callers are expected to
hand over a bundle that has already been sanitized.
"""

import json
import logging
import time
from typing import Any

from openai import APIError, APIStatusError, AsyncOpenAI

from app.config import settings

logger = logging.getLogger(__name__)

# Default model for summaries
DEFAULT_MODEL = "gpt-5-mini"

# Maximum tokens for the narrative
DEFAULT_MAX_OUTPUT_TOKENS = 8192

NO_SUMMARY = "No summary generated."

SUMMARY_PROMPT = (
    "You are an expert clinician. Review the following FHIR JSON data for a patient. "
    "Provide an informative clinical summary suitable for a healthcare provider reading "
    "a chart. Make logical inferences about the patient's condition based on the data "
    "provided. Focus on conditions, medications, procedures, immunizations and allergies. "
    "Do not mention specific IDs. Structure with clear headings using markdown "
    "(e.g. ## for section headers, ** for bold)."
)


class SummarizationError(Exception):
    """Raised when the summarization service fails or is unreachable."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class SummarizerService:
    """Turns a (sanitized) FHIR bundle into a markdown-lite narrative.

    Example:
        service = SummarizerService()
        narrative = await service.summarize(sanitized_bundle)
    """

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str | None = None,
        max_output_tokens: int | None = None,
    ):
        """Initialize SummarizerService.

        Args:
            client: Optional pre-configured AsyncOpenAI client (for testing).
                   If not provided, creates one from settings.
            model: Model to use. Defaults to settings.summary_model.
            max_output_tokens: Maximum tokens in the narrative.

        Raises:
            ValueError: If no client provided and OPENAI_API_KEY is not configured.
        """
        if client is not None:
            self._client = client
        else:
            if not settings.openai_api_key:
                raise ValueError(
                    "OPENAI_API_KEY environment variable is required. "
                    "Set it in your .env file or environment."
                )
            self._client = AsyncOpenAI(api_key=settings.openai_api_key)

        self._model = model or settings.summary_model or DEFAULT_MODEL
        self._max_output_tokens = (
            max_output_tokens or settings.summary_max_output_tokens or DEFAULT_MAX_OUTPUT_TOKENS
        )

    async def close(self) -> None:
        """Close the OpenAI client connection."""
        await self._client.close()

    async def summarize(self, bundle: dict[str, Any]) -> str:
        """Generate the narrative for one bundle.

        Returns:
            The narrative text, or a fixed notice when the model returned none.

        Raises:
            SummarizationError: On any API or transport failure.
        """
        payload = json.dumps(bundle, separators=(",", ":"))
        t0 = time.perf_counter()
        logger.info("summarize: model=%s, bundle_chars=%d", self._model, len(payload))

        try:
            response = await self._client.responses.create(
                model=self._model,
                instructions=SUMMARY_PROMPT,
                input=payload,
                max_output_tokens=self._max_output_tokens,
            )
        except APIStatusError as e:
            raise SummarizationError(
                f"AI Service Error: {e.status_code} - {e.message}",
                status_code=e.status_code,
            ) from e
        except APIError as e:
            raise SummarizationError(f"AI Service Error: {e.message}") from e

        text = getattr(response, "output_text", None) or NO_SUMMARY
        logger.info(
            "summarize complete: %.1fs, narrative_chars=%d",
            time.perf_counter() - t0,
            len(text),
        )
        return text
