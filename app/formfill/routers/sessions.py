"""
Router for form session endpoints.

Handles:
- Opening, reading and closing sessions
- Switching the session's schema
- Running extraction on the uploaded document
- Form edits and clearing values
"""

import logging

from fastapi import APIRouter, Depends, Response, status

# Handle both package imports and standalone imports
try:
    from ..models import (
        CreateSessionRequest,
        FormField,
        ProcessRequest,
        ProcessResponse,
        SelectSchemaRequest,
        SessionStateResponse,
        UpdateFieldRequest,
    )
    from ..services.ai import AIService, get_ai_service
    from ..services.schema_registry import SchemaRegistry, get_schema_registry
    from ..services.session import SessionStore, get_session_store
except ImportError:
    from models import (
        CreateSessionRequest,
        FormField,
        ProcessRequest,
        ProcessResponse,
        SelectSchemaRequest,
        SessionStateResponse,
        UpdateFieldRequest,
    )
    from services.ai import AIService, get_ai_service
    from services.schema_registry import SchemaRegistry, get_schema_registry
    from services.session import SessionStore, get_session_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post(
    "",
    response_model=SessionStateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(
    request: CreateSessionRequest,
    store: SessionStore = Depends(get_session_store),
    registry: SchemaRegistry = Depends(get_schema_registry),
) -> SessionStateResponse:
    """
    Open a form session.

    Fields start at their defaults (unchecked checkboxes, empty values).
    """
    schema = registry.get(request.schema_id) if request.schema_id else registry.default()
    session = store.create(schema)
    return session.to_response()


@router.get("/{session_id}", response_model=SessionStateResponse)
async def get_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> SessionStateResponse:
    """Get the current form values and processing summary."""
    return store.get(session_id).to_response()


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> Response:
    """Close a session."""
    store.delete(session_id)
    logger.info("Deleted session %s", session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{session_id}/schema", response_model=SessionStateResponse)
async def select_schema(
    session_id: str,
    request: SelectSchemaRequest,
    store: SessionStore = Depends(get_session_store),
    registry: SchemaRegistry = Depends(get_schema_registry),
) -> SessionStateResponse:
    """Switch the session to another schema. All values and the cost summary are reset."""
    session = store.get(session_id)
    session.select_schema(registry.get(request.schema_id))
    return session.to_response()


@router.post("/{session_id}/process", response_model=ProcessResponse)
async def process_session(
    session_id: str,
    request: ProcessRequest,
    store: SessionStore = Depends(get_session_store),
    ai_service: AIService = Depends(get_ai_service),
) -> ProcessResponse:
    """
    Extract field values from the session's document.

    The validated values replace the form values (fields the model did not
    fill go back to their defaults). On any failure the form is left as it
    was and the error is returned as a single message.
    """
    session = store.get(session_id)
    model_id = request.model_id or session.model_id or ai_service.default_model

    async def processor(text: str, fields: list[FormField]):
        return await ai_service.process_document(text, fields, model_id)

    result = await session.run(processor)

    return ProcessResponse(
        message="Data extracted successfully",
        result=result,
        session=session.to_response(),
    )


@router.patch("/{session_id}/fields/{field_name}", response_model=FormField)
async def update_field(
    session_id: str,
    field_name: str,
    request: UpdateFieldRequest,
    store: SessionStore = Depends(get_session_store),
) -> FormField:
    """Record an edit made in the form. A null value resets the field to its default."""
    session = store.get(session_id)
    return session.update_field(field_name, request.value)


@router.post("/{session_id}/clear", response_model=SessionStateResponse)
async def clear_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> SessionStateResponse:
    """Reset every field to its default and drop the cost summary."""
    session = store.get(session_id)
    session.clear_values()
    return session.to_response()
