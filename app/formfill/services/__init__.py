"""
Services package for the form auto-fill application.

Contains:
- pdf_service: PDF text extraction
- ai: OpenRouter integration for field extraction, validation and cost
- schema_registry: Bundled form schemas
- session: In-memory form sessions
"""

from .ai import AIService
from .pdf_service import PDFService
from .schema_registry import SchemaRegistry
from .session import SessionStore

__all__ = ["AIService", "PDFService", "SchemaRegistry", "SessionStore"]
