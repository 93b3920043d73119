"""
Router for schema endpoints.

Handles:
- Listing the bundled schemas
- Getting a schema with its full field list
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

# Handle both package imports and standalone imports
try:
    from ..models import FormSchema, SchemaListResponse
    from ..services.schema_registry import (
        SchemaNotFound,
        SchemaRegistry,
        get_schema_registry,
    )
except ImportError:
    from models import FormSchema, SchemaListResponse
    from services.schema_registry import (
        SchemaNotFound,
        SchemaRegistry,
        get_schema_registry,
    )

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schemas", tags=["schemas"])


@router.get("", response_model=SchemaListResponse)
async def list_schemas(
    registry: SchemaRegistry = Depends(get_schema_registry),
) -> SchemaListResponse:
    """
    List the schemas a session can be filled against.

    Returns:
        Schema summaries in display order.
    """
    summaries = registry.summaries()
    return SchemaListResponse(schemas=summaries, total=len(summaries))


@router.get("/{schema_id}", response_model=FormSchema)
async def get_schema(
    schema_id: str,
    registry: SchemaRegistry = Depends(get_schema_registry),
) -> FormSchema:
    """
    Get a schema by ID.

    Args:
        schema_id: Schema identifier.
        registry: Schema registry.

    Returns:
        The full schema definition.
    """
    try:
        return registry.get(schema_id)
    except SchemaNotFound as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
