"""
AI service package for asset record extraction.

This package provides:
- extraction: Prompt, response schema and the single extraction request
- validation: Reply validation and record normalization
- exceptions: Errors raised to the session layer

The AIService class binds the extraction functions to a configured client.
"""

import logging
from collections.abc import Sequence

from openai import AsyncOpenAI

from ...config import get_settings
from ...models import AssetRecord, PageImage
from .exceptions import (
    AIServiceError,
    EmptyInputError,
    ExtractionFailedError,
    SchemaViolationError,
)
from .extraction import (
    DEFAULT_MODEL,
    build_extraction_prompt,
    build_response_format,
    extract_assets,
)
from .validation import (
    ValidationFailure,
    ValidationOk,
    normalize_asset,
    parse_asset_response,
    validate_records,
)

logger = logging.getLogger(__name__)

__all__ = [
    "AIService",
    "AIServiceError",
    "EmptyInputError",
    "ExtractionFailedError",
    "SchemaViolationError",
    "ValidationFailure",
    "ValidationOk",
    "build_extraction_prompt",
    "build_response_format",
    "extract_assets",
    "get_ai_service",
    "normalize_asset",
    "parse_asset_response",
    "validate_records",
]


class AIService:
    """
    Service for AI-powered asset extraction.

    Uses an OpenAI vision model to read asset documents. Requests are never
    retried; each call to extract() is one request.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        timeout: float | None = None,
        client: AsyncOpenAI | None = None,
    ):
        """
        Initialize the AI service.

        Args:
            api_key: OpenAI API key.
            model: OpenAI model to use (must support vision).
            timeout: Request timeout in seconds.
            client: Pre-built client, mainly for tests.
        """
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy-load the OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise ExtractionFailedError(
                    "OpenAI API key not provided. Set OPENAI_API_KEY environment variable."
                )
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    async def extract(self, images: Sequence[PageImage]) -> list[AssetRecord]:
        """
        Extract asset records from page images.

        Delegates to the extraction module.

        Raises:
            EmptyInputError: If images is empty.
            ExtractionFailedError: If the request or reply is unusable.
        """
        if not images:
            raise EmptyInputError("No images provided for analysis")
        return await extract_assets(
            images,
            client=self.client,
            model=self.model,
            timeout=self.timeout,
        )


# =============================================================================
# Singleton Factory
# =============================================================================

_ai_service: AIService | None = None


def get_ai_service() -> AIService:
    """Get or create the AI service singleton."""
    global _ai_service
    if _ai_service is None:
        settings = get_settings()
        _ai_service = AIService(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout=settings.request_timeout_seconds,
        )
    return _ai_service
