"""
Asset extraction from page images.

Sends every page image in a single OpenAI vision request with a strict JSON
schema and turns the reply into normalized asset records.
"""

import logging
from collections.abc import Sequence
from typing import Any

from openai import OpenAIError

from ...models import AssetRecord, PageImage
from .exceptions import EmptyInputError, ExtractionFailedError, SchemaViolationError
from .validation import RECORDS_KEY, ValidationFailure, parse_asset_response

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4.1"

ASSET_CATEGORIES = ["PC", "Monitor", "Printer", "Laptop", "UPS", "Network Device"]


# =============================================================================
# Extraction Prompt
# =============================================================================

EXTRACTION_SYSTEM_PROMPT = """You are a precise Data Entry Clerk reading scanned equipment asset documents.
Read the text in every page image (OCR) and list every physical asset you find.

## Extraction Rules:

1. **One record per asset**: Each physical item gets its own record, even when several share a page.
2. **Accuracy Over Guessing**: If a value is unclear or not present, use "N/A". DO NOT HALLUCINATE.
3. **Preserve Original Text**: Copy identifiers and serial numbers exactly as printed.

Return data in the EXACT JSON format specified by the response schema."""


def build_extraction_prompt() -> str:
    """Build the user instruction sent alongside the page images."""
    categories = ", ".join(f'"{c}"' for c in ASSET_CATEGORIES)
    return f"""From the following asset document images, read the text and extract for each asset:
1. **assetId**: the asset identifier / asset number
2. **model**: the model, make or brand
3. **serialNumber**: the serial number (S/N)
4. **location**: the installation site or office where the asset is located
5. **category**: the equipment category. Use one of {categories}, or "Other" if none fits.

Collect all assets from all pages into a single JSON array under "{RECORDS_KEY}".
If any text field cannot be found for an asset, use "N/A" for that field."""


def build_response_format() -> dict[str, Any]:
    """Strict JSON schema: an array of five required string fields per asset."""
    asset_schema = {
        "type": "object",
        "properties": {
            "assetId": {"type": "string", "description": "Asset ID"},
            "model": {"type": "string", "description": "Model or brand"},
            "serialNumber": {"type": "string", "description": "Serial Number or S/N"},
            "location": {"type": "string", "description": "Installation site or office"},
            "category": {
                "type": "string",
                "description": "Equipment category (e.g. Monitor, PC, Printer, UPS, Laptop)",
            },
        },
        "required": ["assetId", "model", "serialNumber", "location", "category"],
        "additionalProperties": False,
    }
    return {
        "type": "json_schema",
        "json_schema": {
            "name": "asset_records",
            "strict": True,
            "schema": {
                "type": "object",
                "properties": {
                    RECORDS_KEY: {"type": "array", "items": asset_schema},
                },
                "required": [RECORDS_KEY],
                "additionalProperties": False,
            },
        },
    }


def build_messages(images: Sequence[PageImage]) -> list[dict[str, Any]]:
    """Build the chat messages: system rules, then instruction plus all images."""
    content: list[dict[str, Any]] = [
        {"type": "text", "text": build_extraction_prompt()},
    ]
    for image in images:
        content.append({
            "type": "image_url",
            "image_url": {
                "url": image.to_data_url(),
                "detail": "high",
            },
        })
    return [
        {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
        {"role": "user", "content": content},
    ]


# =============================================================================
# Main Extraction Function
# =============================================================================


async def extract_assets(
    images: Sequence[PageImage],
    client: Any,  # AsyncOpenAI client
    model: str = DEFAULT_MODEL,
    timeout: float | None = None,
) -> list[AssetRecord]:
    """
    Extract asset records from page images in one request.

    Args:
        images: Page images, in the order they should be read.
        client: AsyncOpenAI client instance.
        model: Model name to use (must support vision).
        timeout: Request timeout in seconds. None uses the client default.

    Returns:
        Normalized asset records, in reply order.

    Raises:
        EmptyInputError: If no images were given. No request is made.
        SchemaViolationError: If the reply is JSON but not an array of records.
        ExtractionFailedError: On network, auth, or JSON decoding failure.
    """
    if not images:
        raise EmptyInputError("No images provided for analysis")

    logger.info("Extracting assets from %d page image(s) with model '%s'", len(images), model)

    request: dict[str, Any] = {
        "model": model,
        "messages": build_messages(images),
        "response_format": build_response_format(),
    }
    if timeout is not None:
        request["timeout"] = timeout

    try:
        response = await client.chat.completions.create(**request)
    except OpenAIError as e:
        logger.error("OpenAI request failed: %s", e)
        raise ExtractionFailedError(f"Asset extraction request failed: {e}") from e
    except Exception as e:
        logger.exception("Asset extraction failed")
        raise ExtractionFailedError(f"Asset extraction failed: {e}") from e

    try:
        content = response.choices[0].message.content
    except (AttributeError, IndexError) as e:
        raise ExtractionFailedError("Unexpected response structure from OpenAI") from e

    outcome = parse_asset_response(content)
    if isinstance(outcome, ValidationFailure):
        if outcome.malformed_json:
            raise ExtractionFailedError(outcome.detail)
        logger.error("Extraction reply violated schema: %s", outcome.detail)
        raise SchemaViolationError(outcome.detail)

    logger.info("Extracted %d asset record(s)", len(outcome.records))
    return outcome.records
