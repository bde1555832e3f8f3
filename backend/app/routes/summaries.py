"""Stand-alone summary endpoint for a caller-supplied FHIR bundle."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.dependencies import get_summary_pipeline
from app.schemas.patient import SummaryRequest
from app.services.summarizer import SummarizationError
from app.services.summary_pipeline import SummaryPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/summaries", tags=["summaries"])


@router.post("")
async def generate_summary(
    body: SummaryRequest,
    pipeline: SummaryPipeline = Depends(get_summary_pipeline),
) -> dict:
    """Summarize a bundle posted by the caller.

    The bundle is sanitized before it is sent out, exactly as for cached
    patient summaries. Nothing is cached.

    Raises:
        HTTPException: 400 without a bundle or with a malformed one, 500 when
            the summarization service fails or is not configured.
    """
    if not body.bundle:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No patient data provided",
        )

    try:
        summary = await pipeline.summarize_bundle(body.bundle)
    except TypeError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid bundle: {e}",
        )
    except SummarizationError as e:
        logger.error("Summary generation failed: %s", e.message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.message,
        )

    return {"summary": summary}
