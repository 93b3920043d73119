"""
PDF text extraction service using pypdf.

Turns uploaded PDF bytes into the plain text that is sent to the model.
"""

import io
import logging
from typing import BinaryIO

from pydantic import BaseModel, ConfigDict, Field
from pypdf import PdfReader
from pypdf.errors import FileNotDecryptedError, PdfReadError

# Handle both package imports and standalone imports
try:
    from ..config import get_settings
except ImportError:
    from config import get_settings

logger = logging.getLogger(__name__)


class DocumentReadError(Exception):
    """Raised when a document cannot be read or holds no text."""

    pass


class TextExtractorConfig(BaseModel):
    """
    Text extraction settings, fixed when the service is built.

    Attributes:
        max_pages: Only read the first N pages (None reads all).
        strict: Let pypdf reject slightly malformed files instead of repairing them.
        password: Password for encrypted documents.
    """

    model_config = ConfigDict(frozen=True)

    max_pages: int | None = Field(default=None, ge=1)
    strict: bool = False
    password: str | None = None


class ExtractedDocument(BaseModel):
    """Text of a document along with its page count."""

    text: str
    page_count: int = Field(..., ge=1)


class PDFService:
    """
    Service for PDF processing operations.

    Uses pypdf to read the text layer of each page. Scanned documents
    without a text layer are reported as unreadable.
    """

    def __init__(self, config: TextExtractorConfig | None = None):
        """
        Initialize the PDF service.

        Args:
            config: Extraction settings. Immutable for the life of the service.
        """
        self.config = config or TextExtractorConfig()

    def _open(self, file_bytes: bytes | BinaryIO) -> PdfReader:
        # Ensure we have bytes
        if hasattr(file_bytes, "read"):
            pdf_bytes = file_bytes.read()
        else:
            pdf_bytes = file_bytes

        if not pdf_bytes:
            raise DocumentReadError("Empty PDF file provided")

        # Validate PDF magic bytes
        if not pdf_bytes[:4] == b"%PDF":
            raise DocumentReadError("Invalid PDF file: does not start with PDF header")

        try:
            reader = PdfReader(io.BytesIO(pdf_bytes), strict=self.config.strict)
            if reader.is_encrypted:
                if not self.config.password:
                    raise DocumentReadError("PDF file is encrypted")
                if not reader.decrypt(self.config.password):
                    raise DocumentReadError("Incorrect password for encrypted PDF file")
            return reader
        except DocumentReadError:
            raise
        except (PdfReadError, FileNotDecryptedError) as e:
            logger.error("PDF read error: %s", e)
            raise DocumentReadError(f"Invalid or corrupted PDF file: {e}") from e
        except Exception as e:
            logger.exception("Unexpected error opening PDF")
            raise DocumentReadError(f"Failed to process PDF file: {e}") from e

    def read_document(self, file_bytes: bytes | BinaryIO) -> ExtractedDocument:
        """
        Extract the text of every page.

        Args:
            file_bytes: PDF file as bytes or file-like object.

        Returns:
            ExtractedDocument with page texts joined by newlines.

        Raises:
            DocumentReadError: If the file is empty, not a PDF, corrupted,
                encrypted, has no pages or no extractable text.
        """
        reader = self._open(file_bytes)

        try:
            pages = reader.pages
            page_count = len(pages)
        except Exception as e:
            logger.error("Could not get PDF page count: %s", e)
            raise DocumentReadError(f"Could not determine PDF page count: {e}") from e

        if page_count == 0:
            raise DocumentReadError("PDF file is empty")

        last_page = page_count
        if self.config.max_pages is not None:
            last_page = min(page_count, self.config.max_pages)

        logger.info("Extracting text from %d of %d page(s)", last_page, page_count)

        page_texts: list[str] = []
        for page_number in range(1, last_page + 1):
            try:
                page_texts.append(pages[page_number - 1].extract_text() or "")
            except Exception as e:
                logger.error("Text extraction failed on page %d: %s", page_number, e)
                raise DocumentReadError(
                    f"Failed to extract text from page {page_number}"
                ) from e

        text = "\n".join(page_texts)
        if not text.strip():
            raise DocumentReadError("PDF file contains no extractable text")

        logger.info("Extracted %d character(s) of text", len(text))
        return ExtractedDocument(text=text, page_count=page_count)

    def extract_text(self, file_bytes: bytes | BinaryIO) -> str:
        """
        Convenience method returning only the document text.

        Raises:
            DocumentReadError: See read_document.
        """
        return self.read_document(file_bytes).text


# Singleton instance for convenience
_pdf_service: PDFService | None = None


def get_pdf_service() -> PDFService:
    """Get or create the PDF service singleton."""
    global _pdf_service
    if _pdf_service is None:
        settings = get_settings()
        _pdf_service = PDFService(TextExtractorConfig(max_pages=settings.pdf_max_pages))
    return _pdf_service
