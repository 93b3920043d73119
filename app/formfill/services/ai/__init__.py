"""
AI service package for extracting form field values from document text.

This package provides modular AI functionality split into:
- catalog: Model catalog retrieval (names, context windows, pricing)
- extraction: Prompt construction, completion transport and response parsing
- validation: Field-value validation and coercion
- cost: Token cost calculation

The AIService class bundles the provider client and the cached catalog and
delegates to these modules.
"""

import json
import logging
from typing import Any

# Handle both package imports and standalone imports
try:
    from ...config import get_settings
    from ...models import (
        CompletionReply,
        FieldType,
        FormField,
        ModelDescriptor,
        ProcessingResult,
        ProviderPricing,
        TokenUsage,
    )
except ImportError:
    from config import get_settings
    from models import (
        CompletionReply,
        FieldType,
        FormField,
        ModelDescriptor,
        ProcessingResult,
        ProviderPricing,
        TokenUsage,
    )

from .catalog import fetch_models
from .cost import compute_cost, parse_rate, price_per_million, resolve_pricing
from .exceptions import (
    AIServiceError,
    MalformedResponse,
    PricingUnavailable,
    TransportError,
)
from .extraction import (
    EXTRACTION_SYSTEM_PROMPT,
    build_prompt,
    extract_json_object,
    parse_json_object,
    process_document as _process_document,
    request_completion,
)
from .validation import (
    DEFAULT_UNSPECIFIED_PHRASES,
    ValidationResult,
    normalize_phrases,
    validate_field_values,
)

logger = logging.getLogger(__name__)

__all__ = [
    "AIService",
    "AIServiceError",
    "MalformedResponse",
    "PricingUnavailable",
    "TransportError",
    "ValidationResult",
    "DEFAULT_UNSPECIFIED_PHRASES",
    "EXTRACTION_SYSTEM_PROMPT",
    "build_prompt",
    "compute_cost",
    "extract_json_object",
    "fetch_models",
    "get_ai_service",
    "normalize_phrases",
    "parse_json_object",
    "parse_rate",
    "price_per_million",
    "request_completion",
    "resolve_pricing",
    "validate_field_values",
]


class AIService:
    """
    Service for LLM-powered form filling.

    Talks to an OpenAI-compatible provider (OpenRouter by default) for:
    - Listing available models and their per-token pricing
    - Extracting field values from document text, with cost estimation

    Runs in mock mode (no network) when no API key is configured.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str | None = None,
        use_mock: bool = False,
    ):
        """
        Initialize the AI service.

        Args:
            api_key: OpenRouter API key. If None, reads from config/environment.
            base_url: Provider API root. If None, reads from config.
            default_model: Model used when a run does not name one.
            use_mock: If True, return mock data instead of calling the provider.
        """
        settings = get_settings()
        if api_key is None:
            api_key = settings.openrouter_api_key

        self.settings = settings
        self.api_key = api_key
        self.base_url = base_url or settings.openrouter_base_url
        self.default_model = default_model or settings.default_model
        self.unspecified_phrases = normalize_phrases(settings.unspecified_phrases)
        self.use_mock = use_mock or not self.api_key
        self._client = None
        self._models: list[ModelDescriptor] | None = None

        if self.use_mock:
            logger.warning(
                "AI Service running in MOCK MODE. Set OPENROUTER_API_KEY in .env for real extraction."
            )

    @property
    def headers(self) -> dict[str, str]:
        """Attribution headers OpenRouter uses to identify the calling app."""
        return {
            "HTTP-Referer": self.settings.app_referer,
            "X-Title": self.settings.app_title,
        }

    @property
    def client(self):
        """Lazy-load the async OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise AIServiceError(
                    "OpenRouter API key not provided. Set OPENROUTER_API_KEY environment variable."
                )
            try:
                from openai import AsyncOpenAI

                self._client = AsyncOpenAI(
                    api_key=self.api_key,
                    base_url=self.base_url,
                    default_headers=self.headers,
                    timeout=self.settings.request_timeout,
                    max_retries=0,
                )
            except ImportError as e:
                raise AIServiceError(
                    "openai library not installed. Run: pip install openai"
                ) from e
        return self._client

    async def list_models(self, refresh: bool = False) -> list[ModelDescriptor]:
        """
        Return the provider's model catalog, fetched once and cached.

        Args:
            refresh: Force a new fetch.
        """
        if self._models is None or refresh:
            if self.use_mock:
                self._models = self._get_mock_models()
            else:
                self._models = await fetch_models(
                    self.base_url,
                    api_key=self.api_key,
                    timeout=self.settings.request_timeout,
                    headers=self.headers,
                )
        return self._models

    async def process_document(
        self,
        document_text: str,
        fields: list[FormField],
        model_id: str | None = None,
    ) -> ProcessingResult:
        """
        Extract field values from document text.

        Delegates to the extraction module.

        Args:
            document_text: Text extracted from the PDF.
            fields: The schema's field list.
            model_id: Model to use (defaults to the configured model).

        Returns:
            ProcessingResult with validated values, filled count and cost.
        """
        model_id = model_id or self.default_model
        models = await self.list_models()
        return await _process_document(
            document_text,
            fields,
            model_id,
            models,
            client=None if self.use_mock else self.client,
            unspecified_phrases=self.unspecified_phrases,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
            use_mock=self.use_mock,
            get_mock_completion=self._get_mock_completion if self.use_mock else None,
        )

    def _get_mock_models(self) -> list[ModelDescriptor]:
        """Return a mock catalog for development."""
        return [
            ModelDescriptor(
                id=self.default_model,
                name=f"{self.default_model} (mock)",
                pricing=ProviderPricing(prompt="0.000003", completion="0.000015"),
                context_window=200000,
            ),
        ]

    def _get_mock_completion(
        self, prompt: str, fields: list[FormField]
    ) -> CompletionReply:
        """Return a mock completion filling every field with a plausible value."""
        mock_data: dict[str, Any] = {}

        for field in fields:
            field_type = field.field_type
            if field_type in (FieldType.TEXT, FieldType.TEXTAREA):
                mock_data[field.name] = f"MOCK-{field.name.upper()}"
            elif field_type == FieldType.DATE:
                mock_data[field.name] = "2024-01-15"
            elif field_type == FieldType.NUMBER:
                mock_data[field.name] = 42
            elif field_type == FieldType.CHECKBOX:
                mock_data[field.name] = True
            elif field_type == FieldType.SELECT:
                mock_data[field.name] = field.options[0]
            elif field_type == FieldType.COMBO_BOX:
                mock_data[field.name] = field.options[0].id

        text = json.dumps(mock_data, ensure_ascii=False)
        # Rough 4-characters-per-token estimate
        usage = TokenUsage(
            prompt_tokens=len(prompt) // 4,
            completion_tokens=len(text) // 4,
        )
        return CompletionReply(text=text, usage=usage)


# =============================================================================
# Singleton Factory
# =============================================================================

_ai_service: AIService | None = None


def get_ai_service() -> AIService:
    """Get or create the AI service singleton."""
    global _ai_service
    if _ai_service is None:
        _ai_service = AIService()
    return _ai_service
