"""
Router for analysis session endpoints.

Handles:
- PDF selection (upload)
- Running the analysis
- Clearing the session
- Sorted asset listing and category counts
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse

from ..models import (
    AssetField,
    AssetListResponse,
    CategoryCountResponse,
    CategoryCountsResponse,
    SelectedFileResponse,
    SessionResponse,
    SessionState,
    SortDirection,
    SourceFile,
)
from ..services.ai import ExtractionFailedError
from ..services.session_service import (
    SessionController,
    SessionSnapshot,
    get_session_controller,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["session"])


def to_session_response(snapshot: SessionSnapshot) -> SessionResponse:
    """Convert a session snapshot to its API representation."""
    return SessionResponse(
        state=snapshot.state,
        files=[
            SelectedFileResponse(filename=f.filename, size_bytes=f.size)
            for f in snapshot.files
        ],
        assets=list(snapshot.assets),
        total_assets=len(snapshot.assets),
        category_counts=[
            CategoryCountResponse(category=category, count=count)
            for category, count in snapshot.category_counts.items()
        ],
        analyzed_at=snapshot.analyzed_at.isoformat() if snapshot.analyzed_at else None,
        error=snapshot.error,
    )


@router.get("", response_model=SessionResponse)
async def get_session(
    controller: SessionController = Depends(get_session_controller),
) -> SessionResponse:
    """Return the current session state and results."""
    return to_session_response(controller.snapshot())


@router.post("/files", response_model=SessionResponse)
async def select_files(
    files: Annotated[list[UploadFile], File(description="PDF files to analyze")],
    controller: SessionController = Depends(get_session_controller),
) -> SessionResponse:
    """
    Select the PDF files for the next analysis.

    Replaces any previous selection and discards previous results.
    """
    selected: list[SourceFile] = []
    try:
        for upload in files:
            if not upload.filename:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="No filename provided",
                )
            if not upload.filename.lower().endswith(".pdf"):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Only PDF files are accepted: {upload.filename}",
                )

            content = await upload.read()
            if not content:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Empty file provided: {upload.filename}",
                )

            logger.info("Received PDF: %s (%d bytes)", upload.filename, len(content))
            selected.append(SourceFile(filename=upload.filename, content=content))
    finally:
        for upload in files:
            await upload.close()

    return to_session_response(controller.select_files(selected))


@router.post(
    "/analyze",
    response_model=SessionResponse,
    responses={
        422: {"model": SessionResponse, "description": "Documents could not be read"},
        502: {"model": SessionResponse, "description": "AI extraction failed"},
    },
)
async def analyze(
    controller: SessionController = Depends(get_session_controller),
):
    """
    Rasterize the selected PDFs and extract asset records.

    On failure the session moves to 'failed' and the response carries the
    user-facing error alongside the session state.
    """
    snapshot = await controller.analyze()
    response = to_session_response(snapshot)

    if snapshot.state is SessionState.FAILED:
        failure = controller.last_exception
        status_code = (
            status.HTTP_502_BAD_GATEWAY
            if isinstance(failure, ExtractionFailedError)
            else status.HTTP_422_UNPROCESSABLE_ENTITY
        )
        return JSONResponse(
            status_code=status_code,
            content=response.model_dump(mode="json", by_alias=True),
        )

    return response


@router.delete("", response_model=SessionResponse)
async def clear_session(
    controller: SessionController = Depends(get_session_controller),
) -> SessionResponse:
    """Discard the selection and all results."""
    return to_session_response(controller.clear())


@router.get("/assets", response_model=AssetListResponse)
async def list_assets(
    sort_by: Annotated[AssetField | None, Query(description="Field to sort by")] = None,
    direction: Annotated[SortDirection, Query(description="Sort direction")] = SortDirection.ASCENDING,
    controller: SessionController = Depends(get_session_controller),
) -> AssetListResponse:
    """
    List the extracted assets.

    Without sort_by, the table's current sort (see POST /session/assets/sort) applies.
    """
    if sort_by is None:
        sort = controller.snapshot().sort
        assets = controller.sorted_assets()
        sort_by, direction = sort.field, sort.direction
    else:
        assets = controller.sorted_assets(sort_by, direction)

    return AssetListResponse(
        assets=assets,
        sort_by=sort_by,
        direction=direction,
        total=len(assets),
    )


@router.post("/assets/sort/{field}", response_model=AssetListResponse)
async def toggle_sort(
    field: AssetField,
    controller: SessionController = Depends(get_session_controller),
) -> AssetListResponse:
    """
    Sort the table by a column header click.

    Clicking the same column again flips between ascending and descending.
    """
    sort = controller.toggle_sort(field).sort
    assets = controller.sorted_assets()
    return AssetListResponse(
        assets=assets,
        sort_by=sort.field,
        direction=sort.direction,
        total=len(assets),
    )


@router.get("/category-counts", response_model=CategoryCountsResponse)
async def category_counts(
    controller: SessionController = Depends(get_session_controller),
) -> CategoryCountsResponse:
    """Asset counts per category, in first-seen order."""
    counts = controller.category_counts
    return CategoryCountsResponse(
        categories=[
            CategoryCountResponse(category=category, count=count)
            for category, count in counts.items()
        ],
        total=sum(counts.values()),
    )
