"""Pytest configuration and fixtures."""

import io
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from pypdf import PdfWriter

from app.formfill.main import app
from app.formfill.models import ComboBoxOption, FormField, FormSchema
from app.formfill.services.ai import AIService, get_ai_service
from app.formfill.services.pdf_service import (
    ExtractedDocument,
    PDFService,
    get_pdf_service,
)
from app.formfill.services.session import SessionStore, get_session_store

SAMPLE_DOCUMENT_TEXT = """AUTORIZZAZIONE UNICA AMBIENTALE
Ragione sociale: Acme Industrie S.r.l.
Partita IVA: 01234567890
Stabilimento: Via Roma 1, Bergamo
Protocollo n. 2024/0042 rilasciato il 15/01/2024, durata 15 anni.
"""


class FakePDFService(PDFService):
    """PDF service returning canned text for anything with a PDF header."""

    def read_document(self, file_bytes):
        if isinstance(file_bytes, bytes) and file_bytes.startswith(b"%PDF"):
            return ExtractedDocument(text=SAMPLE_DOCUMENT_TEXT, page_count=1)
        return super().read_document(file_bytes)


@pytest.fixture
def sample_document_text() -> str:
    """Text of a short authorization document."""
    return SAMPLE_DOCUMENT_TEXT


@pytest.fixture
def mock_ai_service() -> AIService:
    """AI service in mock mode (no network)."""
    return AIService(use_mock=True)


@pytest.fixture
def session_store() -> SessionStore:
    """A fresh, empty session store."""
    return SessionStore()


@pytest.fixture
def client(
    mock_ai_service: AIService, session_store: SessionStore
) -> Generator[TestClient, None, None]:
    """Create a test client with mock AI, fake PDF reading and isolated sessions."""
    app.dependency_overrides[get_ai_service] = lambda: mock_ai_service
    app.dependency_overrides[get_session_store] = lambda: session_store
    app.dependency_overrides[get_pdf_service] = lambda: FakePDFService()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_fields() -> list[FormField]:
    """One field of every supported type."""
    return [
        FormField(name="company", type="text", label="Company"),
        FormField(name="city", type="text", label="City"),
        FormField(name="notes", type="textarea", label="Notes"),
        FormField(name="issued_on", type="date", label="Issue date"),
        FormField(name="amount", type="number", label="Amount"),
        FormField(name="approved", type="checkbox", label="Approved"),
        FormField(
            name="province",
            type="select",
            label="Province",
            options=["Bergamo", "Brescia", "Milano"],
        ),
        FormField(
            name="procedure",
            type="combo box",
            label="Procedure",
            options=[
                ComboBoxOption(id="01", value="Rilascio"),
                ComboBoxOption(id="02", value="Rinnovo"),
            ],
        ),
    ]


@pytest.fixture
def sample_schema(sample_fields: list[FormField]) -> FormSchema:
    """A schema built from sample_fields."""
    return FormSchema(
        id="sample",
        name="Sample Schema",
        description="A test schema for unit tests",
        fields=sample_fields,
    )


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """Bytes that pass the PDF header check (content served by FakePDFService)."""
    return b"%PDF-1.4\n%fake document for tests\n%%EOF"


@pytest.fixture
def blank_pdf_bytes() -> bytes:
    """A real one-page PDF with no text layer."""
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


@pytest.fixture
def invalid_file_bytes() -> bytes:
    """Create invalid (non-PDF) file bytes for testing."""
    return b"This is not a PDF file"
