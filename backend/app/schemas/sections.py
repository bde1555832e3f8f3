"""Section cache vocabulary and response schemas."""

from enum import Enum
from typing import Any

from pydantic import BaseModel

from app.schemas.narrative import Block


class Category(str, Enum):
    """Clinical-data kinds tracked per patient, including the derived summary."""

    IMMUNIZATION = "immunization"
    MEDICATION = "medication"
    ALLERGY = "allergy"
    PROCEDURE = "procedure"
    CONDITION = "condition"
    APPOINTMENT = "appointment"
    SUMMARY = "summary"


class CacheStatus(str, Enum):
    """Lifecycle of one (patient, category) cache entry."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class SectionResponse(BaseModel):
    """A cache entry as returned by the sections API."""

    patient_id: str
    category: Category
    status: CacheStatus
    data: Any = None
    error: str | None = None
    is_open: bool = False


class SummaryResponse(BaseModel):
    """Summary entry plus the rendered narrative."""

    patient_id: str
    status: CacheStatus
    narrative: str | None = None
    blocks: list[Block] = []
    html: str | None = None
    error: str | None = None
