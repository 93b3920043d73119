"""
Registry of the bundled form schemas.

Schemas are JSON files (one FormSchema each) in the configured schemas
directory, loaded once and served read-only.
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

# Handle both package imports and standalone imports
try:
    from ..config import get_settings
    from ..models import FormSchema, SchemaSummary
except ImportError:
    from config import get_settings
    from models import FormSchema, SchemaSummary

logger = logging.getLogger(__name__)


class SchemaNotFound(Exception):
    """Raised when a schema id is not in the registry."""

    pass


class SchemaRegistry:
    """In-memory, ordered collection of form schemas."""

    def __init__(self, schemas: list[FormSchema] | None = None):
        self._schemas: dict[str, FormSchema] = {}
        for schema in schemas or []:
            self.register(schema)

    @classmethod
    def from_directory(cls, directory: Path) -> "SchemaRegistry":
        """
        Load every *.json schema in a directory, sorted by file name.

        Invalid files are logged and skipped so that one bad schema does not
        take the others down.
        """
        registry = cls()
        if not directory.is_dir():
            logger.warning("Schemas directory not found: %s", directory)
            return registry

        for path in sorted(directory.glob("*.json")):
            try:
                schema = FormSchema.model_validate(json.loads(path.read_text(encoding="utf-8")))
                registry.register(schema)
            except (OSError, json.JSONDecodeError, ValidationError, ValueError) as e:
                logger.error("Skipping invalid schema file %s: %s", path.name, e)

        logger.info("Loaded %d schema(s) from %s", len(registry), directory)
        return registry

    def register(self, schema: FormSchema) -> None:
        if schema.id in self._schemas:
            raise ValueError(f"Duplicate schema id '{schema.id}'")
        self._schemas[schema.id] = schema

    def __len__(self) -> int:
        return len(self._schemas)

    def all(self) -> list[FormSchema]:
        return list(self._schemas.values())

    def summaries(self) -> list[SchemaSummary]:
        return [
            SchemaSummary(
                id=schema.id,
                name=schema.name,
                description=schema.description,
                field_count=len(schema.fields),
            )
            for schema in self._schemas.values()
        ]

    def get(self, schema_id: str) -> FormSchema:
        """
        Resolve a schema by id.

        Raises:
            SchemaNotFound: If no schema has that id.
        """
        try:
            return self._schemas[schema_id]
        except KeyError:
            raise SchemaNotFound(f"Schema '{schema_id}' not found") from None

    def default(self) -> FormSchema:
        """The first schema, preselected for new sessions."""
        if not self._schemas:
            raise SchemaNotFound("No schemas available")
        return next(iter(self._schemas.values()))


_schema_registry: SchemaRegistry | None = None


def get_schema_registry() -> SchemaRegistry:
    """Get or create the schema registry singleton."""
    global _schema_registry
    if _schema_registry is None:
        _schema_registry = SchemaRegistry.from_directory(get_settings().schemas_dir)
    return _schema_registry
