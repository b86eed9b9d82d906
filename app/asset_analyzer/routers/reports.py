"""
Router for report export.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..config import get_settings
from ..models import SessionState
from ..services.report_service import export_report_pdf, report_filename
from ..services.session_service import SessionController, get_session_controller

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/session", tags=["reports"])


@router.get("/report")
async def download_report(
    scale: int = Query(default=2, ge=1, le=4, description="Render scale"),
    controller: SessionController = Depends(get_session_controller),
) -> Response:
    """
    Export the current results (chart and table) as a PDF report.

    The table follows the session's current sort.
    """
    snapshot = controller.snapshot()
    if snapshot.state is not SessionState.READY or not snapshot.assets:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No analysis results to export",
        )

    content = await asyncio.to_thread(
        export_report_pdf,
        controller.sorted_assets(),
        snapshot.category_counts,
        snapshot.analyzed_at,
        scale,
        get_settings().report_font_path,
    )

    return Response(
        content=content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{report_filename()}"',
        },
    )
