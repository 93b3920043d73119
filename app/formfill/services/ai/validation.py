"""
Validation and coercion of model-extracted field values.

Handles:
- Noise filtering (label/type echoes, "not specified" synonyms, textual "false")
- Type coercion per field type (combo box, select, number, checkbox, text)
- Filled-count bookkeeping
"""

import json
import logging
import math
from collections.abc import Iterable
from typing import Any

# Handle both package imports and standalone imports
try:
    from ...models import FieldType, FormField
except ImportError:
    from models import FieldType, FormField

logger = logging.getLogger(__name__)


DEFAULT_UNSPECIFIED_PHRASES: tuple[str, ...] = (
    "non specificato",
    "not specified",
    "unspecified",
    "n/a",
    "none",
)

_SKIP = object()


class ValidationResult:
    """Result of field-value validation."""

    def __init__(self):
        self.values: dict[str, Any] = {}
        self.filled_count: int = 0
        # field name -> reason, for fields that produced no entry
        self.skipped: dict[str, str] = {}


def normalize_phrases(phrases: Iterable[str]) -> tuple[str, ...]:
    """Casefold, strip and deduplicate denylist phrases, keeping their order."""
    normalized: list[str] = []
    for phrase in phrases:
        phrase = phrase.strip().casefold()
        if phrase and phrase not in normalized:
            normalized.append(phrase)
    return tuple(normalized)


def _noise_reason(
    value: Any, field: FormField, unspecified_phrases: tuple[str, ...]
) -> str | None:
    """Return why a raw value is noise, or None if it passes the filters."""
    is_checkbox = field.field_type == FieldType.CHECKBOX

    # A JSON false on a non-checkbox field is the same placeholder as "false"
    if value is False and not is_checkbox:
        return "false placeholder"

    if not isinstance(value, str):
        return None

    folded = value.strip().casefold()
    if folded == field.label.strip().casefold():
        return "echoes label"
    if folded == field.type.strip().casefold():
        return "echoes type"
    for phrase in unspecified_phrases:
        if phrase in folded:
            return f"unspecified ({phrase})"
    if not is_checkbox and folded == "false":
        return "false placeholder"
    return None


def _coerce_number(value: Any) -> int | float | object:
    if isinstance(value, bool):
        return _SKIP
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else _SKIP
    if not isinstance(value, str):
        return _SKIP

    text = value.strip()
    if "_" in text:
        return _SKIP
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return _SKIP
    return number if math.isfinite(number) else _SKIP


def _coerce_checkbox(value: Any) -> bool | object:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return _SKIP


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def _coerce(value: Any, field: FormField) -> Any:
    """Apply the type-specific acceptance test. Returns _SKIP when rejected."""
    field_type = field.field_type

    if field_type == FieldType.COMBO_BOX:
        option_ids = [opt.id for opt in field.options or []]
        return value if isinstance(value, str) and value in option_ids else _SKIP

    if field_type == FieldType.SELECT:
        return value if isinstance(value, str) and value in (field.options or []) else _SKIP

    if field_type == FieldType.NUMBER:
        return _coerce_number(value)

    if field_type == FieldType.CHECKBOX:
        return _coerce_checkbox(value)

    if field_type in (FieldType.TEXT, FieldType.TEXTAREA, FieldType.DATE):
        return _as_text(value)

    # Unknown type: schema misconfiguration, never filled
    return _SKIP


def validate_field_values(
    parsed: dict[str, Any],
    fields: list[FormField],
    unspecified_phrases: Iterable[str] = DEFAULT_UNSPECIFIED_PHRASES,
) -> ValidationResult:
    """
    Turn an untrusted model response into a type-safe field-value mapping.

    Only keys matching field names are read. For each field, in order:
    missing/null/empty values are skipped, noise values are filtered, and
    the value is coerced according to the field type. Rejected values
    produce no entry; nothing here raises.

    Args:
        parsed: The JSON object decoded from the model response.
        fields: The schema's field list.
        unspecified_phrases: Denylist of "not specified" synonyms (substring match).

    Returns:
        ValidationResult with the accepted values and the filled count.
    """
    result = ValidationResult()
    phrases = normalize_phrases(unspecified_phrases)

    for field in fields:
        value = parsed.get(field.name)

        if value is None or value == "":
            result.skipped[field.name] = "missing"
            continue

        reason = _noise_reason(value, field, phrases)
        if reason is not None:
            logger.debug("Skipping field '%s' (%s): %r", field.name, reason, value)
            result.skipped[field.name] = reason
            continue

        coerced = _coerce(value, field)
        if coerced is _SKIP:
            logger.debug(
                "Rejected value for field '%s' (type %s): %r",
                field.name,
                field.type,
                value,
            )
            result.skipped[field.name] = "rejected"
            continue

        result.values[field.name] = coerced
        if field.field_type != FieldType.CHECKBOX or coerced is True:
            result.filled_count += 1

    logger.info(
        "Validated %d/%d field(s), %d filled",
        len(result.values),
        len(fields),
        result.filled_count,
    )
    return result
