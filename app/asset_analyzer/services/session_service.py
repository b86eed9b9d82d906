"""
Analysis session orchestration.

Holds the single live analysis session: the selected PDFs, the extracted
asset records, and the derived per-category counts. Runs rasterization of
all files in parallel followed by one extraction request.
"""

import asyncio
import logging
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from ..models import (
    UNCATEGORIZED,
    AssetField,
    AssetRecord,
    PageImage,
    SessionState,
    SortDirection,
    SourceFile,
)
from .ai import AIService, EmptyInputError, ExtractionFailedError, get_ai_service
from .pdf_service import DocumentParseError, PDFService, get_pdf_service

logger = logging.getLogger(__name__)

NO_FILES_MESSAGE = "Please select a PDF file first."
NO_IMAGES_MESSAGE = (
    "Could not extract images from the PDF files, or the files have no content."
)
EXTRACTION_FAILED_MESSAGE = "Could not process the documents with the AI service."
CANCELLED_MESSAGE = "Analysis failed: the run was cancelled before it finished."


class SessionStateError(Exception):
    """Raised when an operation is not allowed in the current session state."""

    pass


# =============================================================================
# Derived views
# =============================================================================


def count_categories(assets: Sequence[AssetRecord]) -> dict[str, int]:
    """
    Count assets per category.

    Iteration order follows the first occurrence of each category.
    """
    return dict(Counter(asset.category or UNCATEGORIZED for asset in assets))


def sort_assets(
    assets: Sequence[AssetRecord],
    field: AssetField,
    direction: SortDirection = SortDirection.ASCENDING,
) -> list[AssetRecord]:
    """Stable, case-insensitive sort of records by one field."""
    return sorted(
        assets,
        key=lambda asset: asset.value_of(field).casefold(),
        reverse=direction is SortDirection.DESCENDING,
    )


@dataclass(frozen=True)
class SortState:
    """Current sort of the asset table. field=None means extraction order."""

    field: AssetField | None = None
    direction: SortDirection = SortDirection.ASCENDING

    def toggle(self, field: AssetField) -> "SortState":
        """Same field flips the direction; a new field starts ascending."""
        if self.field is field and self.direction is SortDirection.ASCENDING:
            return SortState(field, SortDirection.DESCENDING)
        return SortState(field, SortDirection.ASCENDING)

    def apply(self, assets: Sequence[AssetRecord]) -> list[AssetRecord]:
        if self.field is None:
            return list(assets)
        return sort_assets(assets, self.field, self.direction)


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of the session for presentation."""

    state: SessionState
    files: tuple[SourceFile, ...] = ()
    assets: tuple[AssetRecord, ...] = ()
    analyzed_at: datetime | None = None
    error: str | None = None
    sort: SortState = field(default_factory=SortState)

    @property
    def category_counts(self) -> dict[str, int]:
        return count_categories(self.assets)


# =============================================================================
# Controller
# =============================================================================


class SessionController:
    """
    State machine over the live analysis session.

    idle -> files_selected -> analyzing -> ready | failed

    Selecting files or clearing is rejected while an analysis runs; a run
    always completes (success or failure) before the next one starts.
    """

    def __init__(
        self,
        pdf_service: PDFService | None = None,
        ai_service: AIService | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._pdf_service = pdf_service
        self._ai_service = ai_service
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._snapshot = SessionSnapshot(state=SessionState.IDLE)
        self.last_exception: Exception | None = None

    @property
    def pdf_service(self) -> PDFService:
        if self._pdf_service is None:
            self._pdf_service = get_pdf_service()
        return self._pdf_service

    @property
    def ai_service(self) -> AIService:
        if self._ai_service is None:
            self._ai_service = get_ai_service()
        return self._ai_service

    @property
    def state(self) -> SessionState:
        return self._snapshot.state

    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    def _ensure_not_analyzing(self, operation: str) -> None:
        if self._snapshot.state is SessionState.ANALYZING:
            raise SessionStateError(
                f"Cannot {operation} while an analysis is in progress"
            )

    def select_files(self, files: Sequence[SourceFile]) -> SessionSnapshot:
        """
        Replace the selection. Prior records, error and timestamp are discarded.
        """
        self._ensure_not_analyzing("select files")
        files = tuple(files)
        state = SessionState.FILES_SELECTED if files else SessionState.IDLE
        self._snapshot = SessionSnapshot(state=state, files=files)
        self.last_exception = None
        logger.info("Selected %d file(s): %s", len(files), [f.filename for f in files])
        return self._snapshot

    def clear(self) -> SessionSnapshot:
        """Discard all session state."""
        self._ensure_not_analyzing("clear the session")
        self._snapshot = SessionSnapshot(state=SessionState.IDLE)
        self.last_exception = None
        logger.info("Session cleared")
        return self._snapshot

    def toggle_sort(self, field: AssetField) -> SessionSnapshot:
        self._snapshot = replace(self._snapshot, sort=self._snapshot.sort.toggle(field))
        return self._snapshot

    def sorted_assets(
        self,
        field: AssetField | None = None,
        direction: SortDirection | None = None,
    ) -> list[AssetRecord]:
        """Records sorted by the given field, or by the session's sort state."""
        if field is None:
            return self._snapshot.sort.apply(self._snapshot.assets)
        return sort_assets(self._snapshot.assets, field, direction or SortDirection.ASCENDING)

    @property
    def category_counts(self) -> dict[str, int]:
        return self._snapshot.category_counts

    async def analyze(self) -> SessionSnapshot:
        """
        Rasterize every selected file and extract asset records once.

        Failures are recorded on the session as a user-facing message; the
        record set is only replaced when the whole run succeeds.

        Raises:
            SessionStateError: If there is nothing to analyze or a run is active.
        """
        current = self._snapshot
        if current.state is SessionState.ANALYZING:
            raise SessionStateError("An analysis is already in progress")
        if current.state not in (SessionState.FILES_SELECTED, SessionState.FAILED) or not current.files:
            raise SessionStateError(NO_FILES_MESSAGE)

        files = current.files
        self._snapshot = SessionSnapshot(state=SessionState.ANALYZING, files=files)
        self.last_exception = None

        try:
            images = await self._rasterize_all(files)
            if not images:
                raise EmptyInputError(NO_IMAGES_MESSAGE)
            assets = await self.ai_service.extract(images)
        except (DocumentParseError, EmptyInputError, ExtractionFailedError) as e:
            return self._fail(files, e, self._user_message(e))
        except asyncio.CancelledError as e:
            self._fail(files, e, CANCELLED_MESSAGE)
            raise
        except Exception as e:
            logger.exception("Unexpected error during analysis")
            return self._fail(files, e, f"Analysis failed: {e}")

        self._snapshot = SessionSnapshot(
            state=SessionState.READY,
            files=files,
            assets=tuple(assets),
            analyzed_at=self._clock(),
        )
        logger.info(
            "Analysis complete: %d asset(s) from %d page image(s)",
            len(assets),
            len(images),
        )
        return self._snapshot

    async def _rasterize_all(self, files: Sequence[SourceFile]) -> list[PageImage]:
        """Rasterize all files in parallel; pages keep (file order, page order)."""
        pages_per_file = await asyncio.gather(
            *(self._rasterize_file(source) for source in files)
        )
        return [page for pages in pages_per_file for page in pages]

    async def _rasterize_file(self, source: SourceFile) -> list[PageImage]:
        try:
            return await self.pdf_service.rasterize(source.content, source_file=source.filename)
        except DocumentParseError as e:
            raise DocumentParseError(
                f"Could not process '{source.filename}' into images. "
                f"It might be corrupted or in an unsupported format. ({e})"
            ) from e

    def _fail(self, files: tuple[SourceFile, ...], exc: Exception, message: str) -> SessionSnapshot:
        logger.warning("Analysis failed: %s", exc)
        self.last_exception = exc
        self._snapshot = SessionSnapshot(
            state=SessionState.FAILED,
            files=files,
            error=message,
        )
        return self._snapshot

    @staticmethod
    def _user_message(exc: Exception) -> str:
        if isinstance(exc, ExtractionFailedError):
            detail = EXTRACTION_FAILED_MESSAGE
        else:
            detail = str(exc)
        return f"Analysis failed: {detail}"


# Singleton instance for convenience
_session_controller: SessionController | None = None


def get_session_controller() -> SessionController:
    """Get or create the session controller singleton."""
    global _session_controller
    if _session_controller is None:
        _session_controller = SessionController()
    return _session_controller
