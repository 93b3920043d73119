"""
Router for document upload endpoints.

Handles:
- Uploading a PDF into a session (text extraction)
- Loading the bundled sample document into a session
- Removing the session's document
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

# Handle both package imports and standalone imports
try:
    from ..config import Settings, get_settings
    from ..models import SessionStateResponse, UploadDocumentResponse
    from ..services.pdf_service import DocumentReadError, PDFService, get_pdf_service
    from ..services.session import SessionError, SessionStore, get_session_store
except ImportError:
    from config import Settings, get_settings
    from models import SessionStateResponse, UploadDocumentResponse
    from services.pdf_service import DocumentReadError, PDFService, get_pdf_service
    from services.session import SessionError, SessionStore, get_session_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["upload"])


@router.post("/{session_id}/document", response_model=UploadDocumentResponse)
async def upload_document(
    session_id: str,
    file: Annotated[UploadFile, File(description="PDF file to fill the form from")],
    store: SessionStore = Depends(get_session_store),
    pdf_service: PDFService = Depends(get_pdf_service),
) -> UploadDocumentResponse:
    """
    Upload a PDF into a session.

    Extracts the document text, which later processing runs send to the
    model. The session's current form values are left as they are.
    """
    session = store.get(session_id)

    # Validate file type
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No filename provided",
        )

    if not file.filename.lower().endswith(".pdf"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only PDF files are accepted",
        )

    try:
        file_bytes = await file.read()

        if not file_bytes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Empty file provided",
            )

        logger.info("Processing PDF: %s (%d bytes)", file.filename, len(file_bytes))

        document = pdf_service.read_document(file_bytes)
        session.load_document(file.filename, document)

        return UploadDocumentResponse(
            message="PDF uploaded successfully",
            filename=file.filename,
            page_count=document.page_count,
            characters=len(document.text),
        )

    except (HTTPException, DocumentReadError, SessionError):
        raise
    except Exception as e:
        logger.exception("Unexpected error processing PDF")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Internal error: {e}",
        )
    finally:
        await file.close()


@router.post("/{session_id}/sample-document", response_model=UploadDocumentResponse)
async def load_sample_document(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
    pdf_service: PDFService = Depends(get_pdf_service),
    settings: Settings = Depends(get_settings),
) -> UploadDocumentResponse:
    """
    Load the bundled sample PDF into a session.

    Goes through the same text extraction as an upload.
    """
    session = store.get(session_id)
    sample_path = settings.sample_pdf_path

    try:
        file_bytes = sample_path.read_bytes()
    except OSError as e:
        logger.error("Sample document unavailable at %s: %s", sample_path, e)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Sample document not available",
        ) from e

    document = pdf_service.read_document(file_bytes)
    session.load_document(sample_path.name, document)

    return UploadDocumentResponse(
        message="Sample PDF loaded successfully",
        filename=sample_path.name,
        page_count=document.page_count,
        characters=len(document.text),
    )


@router.delete("/{session_id}/document", response_model=SessionStateResponse)
async def remove_document(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> SessionStateResponse:
    """Forget the session's document. Form values are kept."""
    session = store.get(session_id)
    session.remove_document()
    return session.to_response()
