"""
In-memory form sessions.

A session holds what the user is working on: the selected schema, the form
values, the uploaded document text and the summary of the last run. Nothing
is persisted; sessions live until deleted or until they sit idle longer
than the configured TTL.
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable

# Handle both package imports and standalone imports
try:
    from ..config import get_settings
    from ..models import (
        ComboBoxOption,
        CostBreakdown,
        FieldType,
        FieldValue,
        FormField,
        FormSchema,
        ProcessingResult,
        SessionStateResponse,
        TokenUsage,
    )
except ImportError:
    from config import get_settings
    from models import (
        ComboBoxOption,
        CostBreakdown,
        FieldType,
        FieldValue,
        FormField,
        FormSchema,
        ProcessingResult,
        SessionStateResponse,
        TokenUsage,
    )

from .pdf_service import ExtractedDocument

logger = logging.getLogger(__name__)

Processor = Callable[[str, list[FormField]], Awaitable[ProcessingResult]]


class SessionError(Exception):
    """Base class for session state errors."""

    pass


class SessionNotFound(SessionError):
    """Raised when a session id is unknown."""

    pass


class FieldNotFound(SessionError):
    """Raised when a field name is not part of the session's schema."""

    pass


class RunInProgress(SessionError):
    """Raised when the session is changed or re-run while a run is in flight."""

    pass


class NoDocumentLoaded(SessionError):
    """Raised when processing is requested before a document was uploaded."""

    pass


class InvalidFieldValue(SessionError):
    """Raised when a form edit does not fit the field type."""

    pass


def _check_field_value(field: FormField, value: FieldValue) -> None:
    """Reject form edits the field's control could not have produced."""
    field_type = field.field_type

    if field_type == FieldType.CHECKBOX:
        if not isinstance(value, bool):
            raise InvalidFieldValue(f"Field '{field.name}' expects true or false")
        return

    if value == "":
        return

    if field_type == FieldType.NUMBER:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidFieldValue(f"Field '{field.name}' expects a number")
    elif field_type == FieldType.SELECT:
        if value not in (field.options or []):
            raise InvalidFieldValue(f"'{value}' is not an option of field '{field.name}'")
    elif field_type == FieldType.COMBO_BOX:
        option_ids = [opt.id for opt in field.options or [] if isinstance(opt, ComboBoxOption)]
        if value not in option_ids:
            raise InvalidFieldValue(f"'{value}' is not an option id of field '{field.name}'")
    elif not isinstance(value, str):
        raise InvalidFieldValue(f"Field '{field.name}' expects text")


class FormSession:
    """
    State of one user's form.

    Only one processing run may be in flight at a time; while it runs, every
    other change to the session is rejected with RunInProgress.
    """

    def __init__(self, session_id: str, schema: FormSchema):
        self.id = session_id
        self.schema = schema
        self.fields: list[FormField] = []
        self.document_name: str | None = None
        self.document_text: str | None = None
        self.page_count: int = 0
        self.completed_fields: int = 0
        self.model_id: str | None = None
        self.usage: TokenUsage | None = None
        self.cost: CostBreakdown | None = None
        self._lock = asyncio.Lock()
        self._reset_values()

    @property
    def processing(self) -> bool:
        return self._lock.locked()

    def _ensure_idle(self) -> None:
        if self.processing:
            raise RunInProgress("A document is already being processed for this session")

    def _reset_values(self) -> None:
        self.fields = [
            field.model_copy(update={"value": field.default_value()})
            for field in self.schema.fields
        ]
        self.completed_fields = 0
        self.usage = None
        self.cost = None

    def select_schema(self, schema: FormSchema) -> None:
        """Switch to another schema; all values start over."""
        self._ensure_idle()
        self.schema = schema
        self._reset_values()
        logger.info("Session %s switched to schema '%s'", self.id, schema.id)

    def load_document(self, filename: str, document: ExtractedDocument) -> None:
        self._ensure_idle()
        self.document_name = filename
        self.document_text = document.text
        self.page_count = document.page_count
        logger.info(
            "Session %s loaded '%s' (%d page(s), %d chars)",
            self.id,
            filename,
            document.page_count,
            len(document.text),
        )

    def remove_document(self) -> None:
        self._ensure_idle()
        self.document_name = None
        self.document_text = None
        self.page_count = 0

    def clear_values(self) -> None:
        """Reset every field to its default and forget the last run's summary."""
        self._ensure_idle()
        self._reset_values()

    def update_field(self, name: str, value: FieldValue | None) -> FormField:
        """
        Apply an edit reported by the form renderer.

        Raises:
            FieldNotFound: If the schema has no such field.
            InvalidFieldValue: If the value does not fit the field type.
        """
        self._ensure_idle()
        for index, field in enumerate(self.fields):
            if field.name == name:
                break
        else:
            raise FieldNotFound(f"Field '{name}' not found in schema '{self.schema.id}'")

        if value is None:
            value = field.default_value()
        _check_field_value(field, value)

        updated = field.model_copy(update={"value": value})
        self.fields[index] = updated
        return updated

    def apply_result(self, result: ProcessingResult) -> None:
        """Merge a run's values with the field defaults and record its summary."""
        self.fields = [
            field.model_copy(update={"value": result.data.get(field.name, field.default_value())})
            for field in self.fields
        ]
        self.completed_fields = result.filled_count
        self.model_id = result.model_id
        self.usage = result.usage
        self.cost = result.cost

    async def run(self, processor: Processor) -> ProcessingResult:
        """
        Process the loaded document and apply the result.

        On failure the previous values are left untouched and the error
        propagates to the caller.

        Raises:
            RunInProgress: If another run is in flight.
            NoDocumentLoaded: If no document has been uploaded.
        """
        self._ensure_idle()
        if not self.document_text:
            raise NoDocumentLoaded("Upload a PDF file before processing")

        async with self._lock:
            logger.info("Session %s: processing '%s'", self.id, self.document_name)
            result = await processor(self.document_text, list(self.fields))
            self.apply_result(result)

        logger.info(
            "Session %s: %d/%d field(s) filled",
            self.id,
            result.filled_count,
            result.total_fields,
        )
        return result

    def to_response(self) -> SessionStateResponse:
        return SessionStateResponse(
            id=self.id,
            schema_id=self.schema.id,
            schema_name=self.schema.name,
            fields=self.fields,
            document_name=self.document_name,
            document_loaded=self.document_text is not None,
            document_characters=len(self.document_text or ""),
            completed_fields=self.completed_fields,
            total_fields=len(self.fields),
            model_id=self.model_id,
            usage=self.usage,
            cost=self.cost,
            processing=self.processing,
        )


class SessionStore:
    """
    Process-wide map of session id to FormSession.

    Sessions not accessed for `ttl_seconds` are dropped on the next create
    or lookup, together with their document text. Sessions with a run in
    flight are never dropped.
    """

    def __init__(
        self,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._sessions: dict[str, FormSession] = {}
        self._last_access: dict[str, float] = {}
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def purge_expired(self) -> int:
        """Drop idle sessions. Returns how many were removed."""
        if self.ttl_seconds is None:
            return 0

        now = self._clock()
        expired = [
            session_id
            for session_id, last_access in self._last_access.items()
            if now - last_access > self.ttl_seconds
            and not self._sessions[session_id].processing
        ]
        for session_id in expired:
            del self._sessions[session_id]
            del self._last_access[session_id]

        if expired:
            logger.info("Expired %d idle session(s)", len(expired))
        return len(expired)

    def create(self, schema: FormSchema) -> FormSession:
        self.purge_expired()
        session = FormSession(uuid.uuid4().hex, schema)
        self._sessions[session.id] = session
        self._last_access[session.id] = self._clock()
        logger.info("Created session %s with schema '%s'", session.id, schema.id)
        return session

    def get(self, session_id: str) -> FormSession:
        self.purge_expired()
        try:
            session = self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(f"Session '{session_id}' not found") from None
        self._last_access[session_id] = self._clock()
        return session

    def delete(self, session_id: str) -> None:
        session = self.get(session_id)
        if session.processing:
            raise RunInProgress("Cannot close a session while it is processing")
        del self._sessions[session_id]
        del self._last_access[session_id]

    def __len__(self) -> int:
        return len(self._sessions)


_session_store: SessionStore | None = None


def get_session_store() -> SessionStore:
    """Get or create the session store singleton."""
    global _session_store
    if _session_store is None:
        _session_store = SessionStore(ttl_seconds=get_settings().session_ttl_seconds)
    return _session_store
