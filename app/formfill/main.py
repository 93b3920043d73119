"""
FastAPI application for the PDF form auto-fill service.

Provides endpoints for:
- Listing bundled form schemas and the provider's models
- Opening form sessions and uploading PDFs into them
- Extracting field values with an LLM, with token-cost estimation
- Editing and clearing form values
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Handle both package imports (when running as module) and standalone imports (uvicorn main:app)
try:
    from .config import get_settings
    from .models import HealthResponse
    from .routers import catalog, schemas, sessions, upload
    from .services.ai import (
        AIServiceError,
        MalformedResponse,
        PricingUnavailable,
        TransportError,
        get_ai_service,
    )
    from .services.pdf_service import DocumentReadError, get_pdf_service
    from .services.schema_registry import SchemaNotFound, get_schema_registry
    from .services.session import (
        FieldNotFound,
        InvalidFieldValue,
        NoDocumentLoaded,
        RunInProgress,
        SessionNotFound,
    )
except ImportError:
    import sys
    from pathlib import Path

    # Add parent directory to path for standalone imports
    package_dir = Path(__file__).parent
    if str(package_dir) not in sys.path:
        sys.path.insert(0, str(package_dir))
    from config import get_settings
    from models import HealthResponse
    from routers import catalog, schemas, sessions, upload
    from services.ai import (
        AIServiceError,
        MalformedResponse,
        PricingUnavailable,
        TransportError,
        get_ai_service,
    )
    from services.pdf_service import DocumentReadError, get_pdf_service
    from services.schema_registry import SchemaNotFound, get_schema_registry
    from services.session import (
        FieldNotFound,
        InvalidFieldValue,
        NoDocumentLoaded,
        RunInProgress,
        SessionNotFound,
    )

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def describe_error(exc: Exception) -> str:
    """Render any processing failure as a single human-readable message."""
    if isinstance(exc, DocumentReadError):
        return f"PDF Processing Error: {exc}"
    if isinstance(exc, TransportError):
        status_text = f" (Status: {exc.status_code})" if exc.status_code else ""
        return f"API Error: {exc}{status_text}"
    if isinstance(exc, MalformedResponse):
        return f"Failed to parse API response: {exc}"
    if isinstance(exc, PricingUnavailable):
        return f"Pricing Error: {exc}"
    if str(exc):
        return str(exc)
    return "An unexpected error occurred"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    logger.info("Starting PDF Form Auto-Fill Service...")
    # Initialize services on startup
    get_pdf_service()
    get_ai_service()
    get_schema_registry()
    logger.info("Services initialized successfully")
    yield
    logger.info("Shutting down PDF Form Auto-Fill Service...")


# Create FastAPI application
app = FastAPI(
    title="PDF Form Auto-Fill API",
    description="Fill forms from PDF documents using LLM extraction",
    version="1.0.0",
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
    return HealthResponse(status="healthy", message="PDF Form Auto-Fill API is running")


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", message="Service is healthy")


# =============================================================================
# Include Routers
# =============================================================================

app.include_router(schemas.router)
app.include_router(catalog.router)
app.include_router(sessions.router)
app.include_router(upload.router)


# =============================================================================
# Exception Handlers
# =============================================================================


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": describe_error(exc)})


@app.exception_handler(DocumentReadError)
async def document_read_error_handler(request: Request, exc: DocumentReadError):
    """Handle unreadable or empty documents."""
    logger.warning("Document read failed: %s", exc)
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)


@app.exception_handler(AIServiceError)
async def ai_service_error_handler(request: Request, exc: AIServiceError):
    """Handle AI service errors (transport, malformed replies, pricing)."""
    logger.error("Processing failed: %s", exc)
    if isinstance(exc, (TransportError, MalformedResponse)):
        status_code = status.HTTP_502_BAD_GATEWAY
    elif isinstance(exc, PricingUnavailable):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    else:
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return _error_response(status_code, exc)


@app.exception_handler(SessionNotFound)
@app.exception_handler(FieldNotFound)
@app.exception_handler(SchemaNotFound)
async def not_found_handler(request: Request, exc: Exception):
    """Handle unknown sessions, schemas and fields."""
    return _error_response(status.HTTP_404_NOT_FOUND, exc)


@app.exception_handler(RunInProgress)
async def run_in_progress_handler(request: Request, exc: RunInProgress):
    """Handle changes requested while a run is in flight."""
    return _error_response(status.HTTP_409_CONFLICT, exc)


@app.exception_handler(NoDocumentLoaded)
async def no_document_handler(request: Request, exc: NoDocumentLoaded):
    """Handle processing requested before any upload."""
    return _error_response(status.HTTP_400_BAD_REQUEST, exc)


@app.exception_handler(InvalidFieldValue)
async def invalid_field_value_handler(request: Request, exc: InvalidFieldValue):
    """Handle form edits that do not fit the field type."""
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)
