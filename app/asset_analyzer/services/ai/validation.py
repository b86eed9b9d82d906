"""
Validation and normalization of model replies into asset records.

Handles:
- JSON decoding of the raw reply
- Shape checks (records must be an array of objects)
- Defensive per-field normalization ("N/A" / "Uncategorized" defaults)

Validation never raises: it returns either ValidationOk or ValidationFailure,
and the caller decides how to surface a failure.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Union

from ...models import MISSING_VALUE, UNCATEGORIZED, AssetField, AssetRecord

logger = logging.getLogger(__name__)

# Key used to wrap the record array (strict JSON schemas need an object root)
RECORDS_KEY = "assets"


@dataclass(frozen=True)
class ValidationOk:
    """The reply was well-formed; records are normalized."""

    records: list[AssetRecord]


@dataclass(frozen=True)
class ValidationFailure:
    """The reply could not be turned into records."""

    detail: str
    malformed_json: bool = False


ValidationOutcome = Union[ValidationOk, ValidationFailure]


def _normalize_value(value: Any, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, bool)):
        return str(value)
    logger.debug("Dropping non-scalar field value: %r", value)
    return default


def normalize_asset(item: dict[str, Any]) -> AssetRecord:
    """
    Build an AssetRecord from one reply object.

    Missing or null fields become "N/A", except category which becomes
    "Uncategorized". Numbers are kept as their string form.
    """
    values: dict[str, str] = {}
    for field in AssetField:
        default = UNCATEGORIZED if field is AssetField.CATEGORY else MISSING_VALUE
        values[field.attribute] = _normalize_value(item.get(field.value), default)
    return AssetRecord(**values)


def _unwrap_records(payload: Any) -> Any:
    if isinstance(payload, dict) and RECORDS_KEY in payload:
        return payload[RECORDS_KEY]
    return payload


def validate_records(payload: Any) -> ValidationOutcome:
    """
    Validate an already-decoded reply.

    Accepts a bare array of objects or an object wrapping that array
    under "assets".
    """
    records = _unwrap_records(payload)

    if not isinstance(records, list):
        return ValidationFailure(
            detail=f"Expected an array of asset records, got {type(records).__name__}"
        )

    normalized: list[AssetRecord] = []
    for index, item in enumerate(records):
        if not isinstance(item, dict):
            return ValidationFailure(
                detail=f"Asset record at index {index} is {type(item).__name__}, not an object"
            )
        normalized.append(normalize_asset(item))

    return ValidationOk(records=normalized)


def parse_asset_response(content: str | None) -> ValidationOutcome:
    """Decode a raw JSON reply and validate it."""
    if not content or not content.strip():
        return ValidationFailure(detail="Empty response from model", malformed_json=True)

    try:
        payload = json.loads(content)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse extraction response: %s", content[:500])
        return ValidationFailure(detail=f"Invalid JSON in extraction response: {e}", malformed_json=True)

    return validate_records(payload)
