"""Application configuration using pydantic-settings."""

import warnings
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


# Public HAPI test server; any FHIR R4 endpoint works
_DEFAULT_FHIR_BASE_URL = "https://hapi.fhir.org/baseR4"

# Find .env file: check backend dir first, then project root
_BACKEND_DIR = Path(__file__).parent.parent
_PROJECT_ROOT = _BACKEND_DIR.parent
_ENV_FILE = _BACKEND_DIR / ".env" if (_BACKEND_DIR / ".env").exists() else _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The OpenAI key is only needed for patient summaries; everything else
    works against the FHIR server alone.
    """

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # FHIR server
    fhir_base_url: str = _DEFAULT_FHIR_BASE_URL
    # None means no timeout: a hung call leaves the section loading
    fhir_timeout: float | None = None
    search_page_size: int = 10

    # Categories whose server cannot sort by clinical date
    unsorted_categories: list[str] = ["medication", "condition"]

    # OpenAI
    openai_api_key: str = ""
    summary_model: str = "gpt-5-mini"
    summary_max_output_tokens: int = 8192

    # Application
    cors_origins: str = "http://localhost:3000"
    debug: bool = False

    def model_post_init(self, __context) -> None:
        """Warn about unconfigured credentials."""
        if not self.openai_api_key:
            warnings.warn(
                "OPENAI_API_KEY not configured! Patient summaries will fail until it is set.",
                UserWarning,
                stacklevel=2,
            )


settings = Settings()
