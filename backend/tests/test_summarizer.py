"""Tests for the Summarizer Service.

Uses a mocked OpenAI client to avoid real API calls.
"""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from openai import APIConnectionError, APIStatusError

from app.services.summarizer import (
    DEFAULT_MODEL,
    NO_SUMMARY,
    SUMMARY_PROMPT,
    SummarizationError,
    SummarizerService,
)

RESPONSES_URL = "https://api.openai.com/v1/responses"


def create_mock_openai_client(output_text: str | None = "## Summary\nStable.") -> AsyncMock:
    """Create a mock OpenAI client whose Responses API returns output_text."""
    mock_client = AsyncMock()
    mock_response = MagicMock()
    mock_response.output_text = output_text
    mock_client.responses.create = AsyncMock(return_value=mock_response)
    return mock_client


class TestSummarizerServiceInit:
    def test_uses_provided_client(self):
        mock_client = AsyncMock()
        service = SummarizerService(client=mock_client)
        assert service._client is mock_client

    def test_init_with_custom_model(self):
        service = SummarizerService(client=AsyncMock(), model="gpt-5")
        assert service._model == "gpt-5"

    def test_init_without_api_key_raises(self):
        """Test that missing API key raises ValueError."""
        with patch("app.services.summarizer.settings") as mock_settings:
            mock_settings.openai_api_key = ""

            with pytest.raises(ValueError, match="OPENAI_API_KEY"):
                SummarizerService()

    def test_init_creates_client_from_settings(self):
        with patch("app.services.summarizer.settings") as mock_settings:
            mock_settings.openai_api_key = "sk-test"
            mock_settings.summary_model = DEFAULT_MODEL
            mock_settings.summary_max_output_tokens = 1024
            with patch("app.services.summarizer.AsyncOpenAI") as mock_openai:
                service = SummarizerService()

        mock_openai.assert_called_once_with(api_key="sk-test")
        assert service._max_output_tokens == 1024


class TestSummarize:
    @pytest.mark.asyncio
    async def test_returns_output_text(self, sample_everything_bundle):
        mock_client = create_mock_openai_client()
        service = SummarizerService(client=mock_client)

        narrative = await service.summarize(sample_everything_bundle)

        assert narrative == "## Summary\nStable."
        mock_client.responses.create.assert_called_once()

    @pytest.mark.asyncio
    async def test_sends_prompt_and_bundle(self, sample_everything_bundle):
        mock_client = create_mock_openai_client()
        service = SummarizerService(client=mock_client, model="gpt-5-mini", max_output_tokens=500)

        await service.summarize(sample_everything_bundle)

        kwargs = mock_client.responses.create.call_args.kwargs
        assert kwargs["model"] == "gpt-5-mini"
        assert kwargs["instructions"] == SUMMARY_PROMPT
        assert kwargs["max_output_tokens"] == 500
        assert json.loads(kwargs["input"]) == sample_everything_bundle

    @pytest.mark.asyncio
    @pytest.mark.parametrize("output_text", ["", None])
    async def test_empty_output(self, output_text):
        service = SummarizerService(client=create_mock_openai_client(output_text))
        assert await service.summarize({"resourceType": "Bundle"}) == NO_SUMMARY

    @pytest.mark.asyncio
    async def test_status_error(self):
        mock_client = AsyncMock()
        response = httpx.Response(503, request=httpx.Request("POST", RESPONSES_URL))
        mock_client.responses.create = AsyncMock(
            side_effect=APIStatusError("Service Unavailable", response=response, body=None)
        )
        service = SummarizerService(client=mock_client)

        with pytest.raises(SummarizationError) as exc_info:
            await service.summarize({"resourceType": "Bundle"})

        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "AI Service Error: 503 - Service Unavailable"

    @pytest.mark.asyncio
    async def test_connection_error(self):
        mock_client = AsyncMock()
        mock_client.responses.create = AsyncMock(
            side_effect=APIConnectionError(request=httpx.Request("POST", RESPONSES_URL))
        )
        service = SummarizerService(client=mock_client)

        with pytest.raises(SummarizationError) as exc_info:
            await service.summarize({"resourceType": "Bundle"})

        assert exc_info.value.status_code is None
        assert exc_info.value.message.startswith("AI Service Error:")

    @pytest.mark.asyncio
    async def test_close(self):
        mock_client = AsyncMock()
        await SummarizerService(client=mock_client).close()
        mock_client.close.assert_awaited_once()
