"""
Field extraction from document text using an OpenAI-compatible chat API.

Builds the prompt from the schema fields, sends it to the provider,
isolates the JSON object in the reply and hands it to validation.
"""

import json
import logging
from collections.abc import Iterable
from typing import Any, Callable

# Handle both package imports and standalone imports
try:
    from ...models import (
        ComboBoxOption,
        CompletionReply,
        FieldType,
        FormField,
        ModelDescriptor,
        ProcessingResult,
        TokenUsage,
    )
except ImportError:
    from models import (
        ComboBoxOption,
        CompletionReply,
        FieldType,
        FormField,
        ModelDescriptor,
        ProcessingResult,
        TokenUsage,
    )

from .cost import compute_cost, resolve_pricing
from .exceptions import MalformedResponse, TransportError
from .validation import DEFAULT_UNSPECIFIED_PHRASES, validate_field_values

logger = logging.getLogger(__name__)


# =============================================================================
# Prompts
# =============================================================================

EXTRACTION_SYSTEM_PROMPT = """You are a document parser. You read the text of a document and fill in form fields with values found in it.
You never guess, and you answer with a single JSON object only."""

EXTRACTION_RULES = """Rules:
- Respond with exactly ONE JSON object and nothing else: no prose before or after it, no markdown, no code fences
- Keys must match the field names exactly
- For combo box fields, return the ID of the matching option
- For select fields, values must be one of the provided options
- For checkbox fields, values must be true or false
- For number fields, values must be numeric
- For text, textarea and date fields, values must be strings
- OMIT a field entirely (do not include its key) when:
  - the value cannot be found in the text or you are not sure of it
  - the value would be the field's own label or the field's own type name
  - the value would be a placeholder such as "n/a", "none", "unspecified", "not specified" or "non specificato"
  - the field is not a checkbox and the value would be "false"
- Never use null or empty strings; leave the field out instead

Example response format:
{
  "fieldName1": "value1",
  "fieldName2": true,
  "fieldName3": 42,
  "comboBoxField": "01"
}"""


def _describe_field(field: FormField) -> str:
    description = f"{field.name} ({field.type}"
    if field.options:
        if field.field_type == FieldType.COMBO_BOX:
            rendered = ", ".join(
                f"{opt.id}:{opt.value}"
                for opt in field.options
                if isinstance(opt, ComboBoxOption)
            )
        else:
            rendered = ", ".join(str(opt) for opt in field.options)
        description += f", options: [{rendered}]"
    return description + ")"


def build_prompt(document_text: str, fields: list[FormField]) -> str:
    """
    Build the extraction prompt for a document and a field list.

    One line per field, `name (type[, options: [...]])`, followed by the
    document text and the output-format rules.
    """
    field_lines = "\n".join(_describe_field(field) for field in fields)

    return f"""Extract information from the text below and provide values for the specified fields.
Respond ONLY with a valid JSON object containing the extracted values.

Fields to extract:
{field_lines}

Text content:
{document_text}

{EXTRACTION_RULES}"""


# =============================================================================
# Response Parsing
# =============================================================================


def _is_json(text: str) -> bool:
    try:
        json.loads(text)
    except json.JSONDecodeError:
        return False
    return True


def extract_json_object(raw_text: str) -> str:
    """
    Isolate the JSON object in a model reply.

    Clean replies (starting with `{`, ending with `}` and parsing) are
    returned unchanged. Otherwise the text between the first `{` and the
    last `}` is taken, which tolerates code fences and leading chatter.

    Raises:
        MalformedResponse: If no braces are found, they are out of order,
            or the candidate does not parse as JSON.
    """
    if raw_text.startswith("{") and raw_text.endswith("}") and _is_json(raw_text):
        return raw_text

    start = raw_text.find("{")
    end = raw_text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        logger.error("No JSON object in model response: %s", raw_text[:500])
        raise MalformedResponse("Invalid JSON in API response: no JSON object found")

    candidate = raw_text[start : end + 1]
    try:
        json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse model response: %s", raw_text[:500])
        raise MalformedResponse(f"Invalid JSON in API response: {e}") from e

    return candidate


def parse_json_object(raw_text: str) -> dict[str, Any]:
    """
    Extract and decode the JSON object in a model reply.

    The extracted text always starts with `{` and ends with `}`, so it
    decodes to a dict. An object wrapped in an array is returned on its own.
    """
    return json.loads(extract_json_object(raw_text))


# =============================================================================
# Transport
# =============================================================================


async def request_completion(
    client: Any,  # AsyncOpenAI client
    prompt: str,
    model: str,
    system_instruction: str = EXTRACTION_SYSTEM_PROMPT,
    temperature: float = 0.1,
    max_tokens: int = 1000,
) -> CompletionReply:
    """
    Send the prompt to the chat-completion endpoint.

    Raises:
        TransportError: On non-success HTTP status, connection failure or an
            empty reply. Carries the HTTP status when known.
    """
    from openai import APIConnectionError, APIStatusError

    logger.info("Requesting completion from model '%s' (%d prompt chars)", model, len(prompt))

    try:
        response = await client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_instruction},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
        )
    except APIStatusError as e:
        body = e.body if isinstance(e.body, dict) else {}
        message = body.get("message") or f"API request failed with status {e.status_code}"
        logger.error("Completion request failed (%d): %s", e.status_code, message)
        raise TransportError(message, status_code=e.status_code) from e
    except APIConnectionError as e:
        logger.error("Could not reach model provider: %s", e)
        raise TransportError(f"Could not reach the model provider: {e}") from e

    content = response.choices[0].message.content if response.choices else None
    if not content:
        raise TransportError("Empty response from API")

    if response.usage is None:
        logger.warning("Provider reported no token usage for model '%s'", model)
        usage = TokenUsage()
    else:
        usage = TokenUsage(
            prompt_tokens=response.usage.prompt_tokens or 0,
            completion_tokens=response.usage.completion_tokens or 0,
        )

    return CompletionReply(text=content, usage=usage)


# =============================================================================
# Main Processing Function
# =============================================================================


async def process_document(
    document_text: str,
    fields: list[FormField],
    model_id: str,
    models: list[ModelDescriptor],
    client: Any = None,  # AsyncOpenAI client
    unspecified_phrases: Iterable[str] = DEFAULT_UNSPECIFIED_PHRASES,
    temperature: float = 0.1,
    max_tokens: int = 1000,
    use_mock: bool = False,
    get_mock_completion: Callable[[str, list[FormField]], CompletionReply] | None = None,
) -> ProcessingResult:
    """
    Run one extraction: pricing lookup, prompt, completion, parsing,
    validation and cost.

    Pricing is resolved before the completion request so that a run whose
    cost cannot be shown never spends tokens.

    Args:
        document_text: Text extracted from the uploaded document.
        fields: The schema's field list.
        model_id: Model to use.
        models: The provider's model catalog.
        client: AsyncOpenAI client instance.
        unspecified_phrases: Denylist passed to validation.
        temperature: Sampling temperature.
        max_tokens: Completion token limit.
        use_mock: If True, use get_mock_completion instead of the provider.
        get_mock_completion: Function producing a mock reply (for development).

    Returns:
        ProcessingResult with the validated values, filled count and cost.

    Raises:
        PricingUnavailable, TransportError, MalformedResponse.
    """
    pricing = resolve_pricing(models, model_id)
    prompt = build_prompt(document_text, fields)

    if use_mock and get_mock_completion:
        logger.info("Processing document (MOCK MODE) with %d field(s)", len(fields))
        reply = get_mock_completion(prompt, fields)
    else:
        reply = await request_completion(
            client,
            prompt,
            model_id,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    parsed = parse_json_object(reply.text)
    validation = validate_field_values(parsed, fields, unspecified_phrases)
    cost = compute_cost(reply.usage, pricing)

    return ProcessingResult(
        model_id=model_id,
        data=validation.values,
        filled_count=validation.filled_count,
        total_fields=len(fields),
        usage=reply.usage,
        cost=cost,
    )
