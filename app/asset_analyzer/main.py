"""
FastAPI application for the asset document analyzer.

Provides endpoints for:
- Selecting PDF documents for analysis
- Extracting asset records with AI
- Sorted results and category counts
- PDF report export
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import ConfigurationError, check_settings
from .models import HealthResponse
from .routers import reports, session
from .services.ai import AIServiceError, get_ai_service
from .services.pdf_service import DocumentParseError, get_pdf_service
from .services.report_service import ExportError
from .services.session_service import SessionStateError, get_session_controller

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting Asset Document Analyzer...")
    result = check_settings()
    if not result.ok:
        for error in result.errors:
            logger.error("Configuration error: %s", error)
        raise ConfigurationError("; ".join(result.errors))

    # Initialize services on startup
    get_pdf_service()
    get_ai_service()
    get_session_controller()
    logger.info("Services initialized successfully")
    yield
    logger.info("Shutting down Asset Document Analyzer...")


# Create FastAPI application
app = FastAPI(
    title="Asset Document Analyzer API",
    description="Extracts equipment asset records from PDF documents using AI",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",  # Vite development server
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Health Endpoints
# =============================================================================


@app.get("/", response_model=HealthResponse)
async def root() -> HealthResponse:
    """Root endpoint - health check."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        message="Asset Document Analyzer API is running",
    )


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__, message="Service is healthy")


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(session.router)
app.include_router(reports.router)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(SessionStateError)
async def session_state_error_handler(request: Request, exc: SessionStateError):
    """Handle operations attempted in the wrong session state."""
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc)},
    )


@app.exception_handler(DocumentParseError)
async def document_parse_error_handler(request: Request, exc: DocumentParseError):
    """Handle unreadable PDF documents."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc)},
    )


@app.exception_handler(AIServiceError)
async def ai_service_error_handler(request: Request, exc: AIServiceError):
    """Handle AI service errors."""
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": str(exc)},
    )


@app.exception_handler(ExportError)
async def export_error_handler(request: Request, exc: ExportError):
    """Handle report export errors."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )
