"""
Pydantic models for the form auto-fill pipeline.

Defines strict types for field schemas, model catalog entries,
token usage and cost, and the API request/response payloads.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class FieldType(str, Enum):
    """Supported form field types."""

    TEXT = "text"
    NUMBER = "number"
    CHECKBOX = "checkbox"
    SELECT = "select"
    COMBO_BOX = "combo box"
    TEXTAREA = "textarea"
    DATE = "date"


# Types whose values must come from a declared option list
OPTION_FIELD_TYPES = (FieldType.SELECT, FieldType.COMBO_BOX)

FieldValue = bool | int | float | str


class ComboBoxOption(BaseModel):
    """A selectable (id, display value) pair. Only the id is ever stored."""

    id: str = Field(..., min_length=1, description="Stored identifier")
    value: str = Field(..., description="Display value")


class FormField(BaseModel):
    """
    A named, typed slot to be filled with a value extracted from a document.

    Attributes:
        name: Unique identifier within the schema (also the JSON key the model returns).
        type: One of the FieldType values. Unknown types are tolerated here and
            simply never filled by the validator.
        label: Display string shown next to the control.
        options: Bare strings for select fields, id/value pairs for combo boxes.
        value: Current value, edited by the user or filled by extraction.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Unique field identifier",
        examples=["ragione_sociale", "importo"],
    )
    type: str = Field(
        ...,
        min_length=1,
        description="Field type",
        examples=["text", "combo box"],
    )
    label: str = Field(..., description="Display label")
    options: list[str] | list[ComboBoxOption] | None = Field(
        default=None,
        description="Allowed options (select and combo box only)",
    )
    value: FieldValue | None = Field(
        default=None,
        description="Current value",
    )

    @field_validator("type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        """Accept 'combo-box' / 'combobox' spellings for the combo box type."""
        v = v.strip().lower()
        if v.replace("-", " ").replace("_", " ") == FieldType.COMBO_BOX.value or v == "combobox":
            return FieldType.COMBO_BOX.value
        return v

    @model_validator(mode="after")
    def validate_options(self) -> "FormField":
        """Options are required for select/combo box and absent otherwise."""
        field_type = self.field_type
        if field_type in OPTION_FIELD_TYPES:
            if not self.options:
                raise ValueError(
                    f"Field '{self.name}' of type '{self.type}' requires a non-empty options list"
                )
            if field_type == FieldType.COMBO_BOX and not all(
                isinstance(opt, ComboBoxOption) for opt in self.options
            ):
                raise ValueError(
                    f"Combo box field '{self.name}' options must be {{id, value}} pairs"
                )
            if field_type == FieldType.SELECT and not all(
                isinstance(opt, str) for opt in self.options
            ):
                raise ValueError(f"Select field '{self.name}' options must be strings")
        elif self.options:
            raise ValueError(
                f"Field '{self.name}' of type '{self.type}' does not take options"
            )
        else:
            self.options = None
        return self

    @property
    def field_type(self) -> FieldType | None:
        """The declared type as a FieldType, or None if it is not a known type."""
        try:
            return FieldType(self.type)
        except ValueError:
            return None

    def default_value(self) -> bool | str:
        """Value shown for a field nothing has been extracted for."""
        return False if self.field_type == FieldType.CHECKBOX else ""


class FormSchema(BaseModel):
    """
    An ordered list of fields defining what to extract.

    The field list is both the prompt contract and the validation contract.
    """

    id: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Schema identifier",
        examples=["provajson"],
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Schema display name",
    )
    description: str = Field(default="", max_length=1000)
    fields: list[FormField] = Field(
        ...,
        min_length=1,
        description="Fields to extract, in display order",
    )

    @field_validator("fields")
    @classmethod
    def validate_unique_field_names(cls, v: list[FormField]) -> list[FormField]:
        """Ensure all field names are unique."""
        names = [f.name for f in v]
        if len(names) != len(set(names)):
            raise ValueError("All field names must be unique within a schema")
        return v


# =============================================================================
# Model Catalog, Usage and Cost
# =============================================================================


class ProviderPricing(BaseModel):
    """Per-token prices exactly as published by the provider (usually strings)."""

    prompt: str | float | None = None
    completion: str | float | None = None


class ModelDescriptor(BaseModel):
    """An entry of the provider's model catalog."""

    id: str
    name: str
    pricing: ProviderPricing = Field(default_factory=ProviderPricing)
    context_window: int = Field(default=8192, ge=0)


class ModelPricing(BaseModel):
    """Resolved numeric rates, per single token."""

    prompt_rate: float = Field(..., ge=0.0)
    completion_rate: float = Field(..., ge=0.0)


class TokenUsage(BaseModel):
    """Token counts reported by the provider for one request/response exchange."""

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class CompletionReply(BaseModel):
    """Raw text and usage returned by the chat-completion transport."""

    text: str
    usage: TokenUsage = Field(default_factory=TokenUsage)


class CostBreakdown(BaseModel):
    """Monetary cost of one processing run."""

    prompt_cost: float = Field(..., ge=0.0)
    completion_cost: float = Field(..., ge=0.0)
    total_cost: float = Field(..., ge=0.0)


class ProcessingResult(BaseModel):
    """Outcome of one successful processing run."""

    model_config = ConfigDict(protected_namespaces=())

    model_id: str = Field(..., description="Model used for the completion")
    data: dict[str, Any] = Field(
        ...,
        description="Validated field values, keyed by field name (missing = not found)",
    )
    filled_count: int = Field(..., ge=0, description="Fields with a meaningful value")
    total_fields: int = Field(..., ge=0, description="Fields in the schema")
    usage: TokenUsage
    cost: CostBreakdown


# =============================================================================
# API Models
# =============================================================================


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    version: str = Field(default="1.0.0")
    message: str = Field(default="")


class SchemaSummary(BaseModel):
    """A bundled schema as listed to the user."""

    id: str
    name: str
    description: str = ""
    field_count: int = Field(..., ge=0)


class SchemaListResponse(BaseModel):
    """Response model for listing schemas."""

    schemas: list[SchemaSummary] = Field(default_factory=list)
    total: int = Field(..., ge=0)


class ModelInfo(BaseModel):
    """Catalog entry with display prices (per million tokens)."""

    id: str
    name: str
    context_window: int
    prompt_price_per_million: float | None = None
    completion_price_per_million: float | None = None


class ModelListResponse(BaseModel):
    """Response model for the model catalog."""

    models: list[ModelInfo] = Field(default_factory=list)
    total: int = Field(..., ge=0)
    default_model: str


class CreateSessionRequest(BaseModel):
    """Request model for opening a form session."""

    schema_id: str | None = Field(
        default=None,
        description="Schema to start with (defaults to the first bundled schema)",
    )


class SelectSchemaRequest(BaseModel):
    """Request model for switching the session's schema."""

    schema_id: str = Field(..., min_length=1)


class ProcessRequest(BaseModel):
    """Request model for running extraction on the session's document."""

    model_config = ConfigDict(protected_namespaces=())

    model_id: str | None = Field(
        default=None,
        description="Model to use (defaults to the session's or the configured model)",
    )


class UpdateFieldRequest(BaseModel):
    """A field edit reported by the form renderer."""

    value: FieldValue | None = None


class SessionStateResponse(BaseModel):
    """Current state of a form session."""

    model_config = ConfigDict(protected_namespaces=())

    id: str
    schema_id: str
    schema_name: str
    fields: list[FormField]
    document_name: str | None = None
    document_loaded: bool = False
    document_characters: int = Field(default=0, ge=0)
    completed_fields: int = Field(default=0, ge=0)
    total_fields: int = Field(default=0, ge=0)
    model_id: str | None = None
    usage: TokenUsage | None = None
    cost: CostBreakdown | None = None
    processing: bool = False


class UploadDocumentResponse(BaseModel):
    """Response model for a document upload."""

    message: str
    filename: str
    page_count: int = Field(..., ge=1)
    characters: int = Field(..., ge=0)


class ProcessResponse(BaseModel):
    """Response model for a processing run."""

    message: str
    result: ProcessingResult
    session: SessionStateResponse
