"""
Pydantic models for the asset analysis pipeline.

Defines the asset record produced by extraction, the page image passed
between rasterization and extraction, session state, and API responses.
"""

import base64
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

MISSING_VALUE = "N/A"
UNCATEGORIZED = "Uncategorized"


class AssetField(str, Enum):
    """Asset record fields, addressed by their wire (camelCase) names."""

    ASSET_ID = "assetId"
    MODEL = "model"
    SERIAL_NUMBER = "serialNumber"
    LOCATION = "location"
    CATEGORY = "category"

    @property
    def attribute(self) -> str:
        """Python attribute name on AssetRecord."""
        return _FIELD_ATTRIBUTES[self]


_FIELD_ATTRIBUTES = {
    AssetField.ASSET_ID: "asset_id",
    AssetField.MODEL: "model",
    AssetField.SERIAL_NUMBER: "serial_number",
    AssetField.LOCATION: "location",
    AssetField.CATEGORY: "category",
}


class SortDirection(str, Enum):
    """Sort order for the asset table."""

    ASCENDING = "ascending"
    DESCENDING = "descending"


class SessionState(str, Enum):
    """Lifecycle states of the analysis session."""

    IDLE = "idle"
    FILES_SELECTED = "files_selected"
    ANALYZING = "analyzing"
    READY = "ready"
    FAILED = "failed"


class AssetRecord(BaseModel):
    """
    One row of extracted equipment metadata.

    All fields are free text. Absence is represented by "N/A",
    or "Uncategorized" for the category.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    asset_id: str = Field(
        default=MISSING_VALUE,
        alias="assetId",
        description="Asset identifier printed on the document",
    )
    model: str = Field(
        default=MISSING_VALUE,
        description="Model, make or brand",
    )
    serial_number: str = Field(
        default=MISSING_VALUE,
        alias="serialNumber",
        description="Serial number (S/N)",
    )
    location: str = Field(
        default=MISSING_VALUE,
        description="Installation site or office",
    )
    category: str = Field(
        default=UNCATEGORIZED,
        description="Equipment category, e.g. PC, Monitor, Printer",
    )

    def value_of(self, field: AssetField) -> str:
        return getattr(self, field.attribute)


@dataclass(frozen=True)
class PageImage:
    """A single rasterized PDF page, JPEG encoded."""

    page_number: int
    data: bytes
    source_file: str = ""
    mime_type: str = "image/jpeg"

    def __post_init__(self) -> None:
        if self.page_number < 1:
            raise ValueError("page_number must be >= 1")

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("utf-8")

    def to_data_url(self) -> str:
        """Inline data URL suitable for an image_url message part."""
        return f"data:{self.mime_type};base64,{self.to_base64()}"


@dataclass(frozen=True)
class SourceFile:
    """A PDF selected for analysis."""

    filename: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


# =============================================================================
# API Models
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    version: str = Field(default="1.0.0")
    message: str = Field(default="")


class SelectedFileResponse(BaseModel):
    """A file held by the current session."""

    filename: str = Field(..., description="Original filename")
    size_bytes: int = Field(..., ge=0, description="File size in bytes")


class CategoryCountResponse(BaseModel):
    """Occurrences of one category in the current record set."""

    category: str = Field(..., description="Category label")
    count: int = Field(..., ge=1, description="Number of assets in the category")


class SessionResponse(BaseModel):
    """Snapshot of the analysis session."""

    state: SessionState = Field(..., description="Current session state")
    files: list[SelectedFileResponse] = Field(
        default_factory=list,
        description="Selected source files, in selection order",
    )
    assets: list[AssetRecord] = Field(
        default_factory=list,
        description="Extracted asset records",
    )
    total_assets: int = Field(default=0, ge=0, description="Number of asset records")
    category_counts: list[CategoryCountResponse] = Field(
        default_factory=list,
        description="Asset counts per category, in first-seen order",
    )
    analyzed_at: str | None = Field(
        default=None,
        description="Completion timestamp of the last successful analysis (ISO format)",
    )
    error: str | None = Field(default=None, description="Last user-facing error")


class AssetListResponse(BaseModel):
    """Sorted view over the current record set."""

    assets: list[AssetRecord] = Field(default_factory=list)
    sort_by: AssetField | None = Field(default=None, description="Sort field")
    direction: SortDirection = Field(default=SortDirection.ASCENDING)
    total: int = Field(..., ge=0, description="Number of asset records")


class CategoryCountsResponse(BaseModel):
    """Category aggregate for the bar chart."""

    categories: list[CategoryCountResponse] = Field(default_factory=list)
    total: int = Field(..., ge=0, description="Total number of asset records")
