"""
Model catalog retrieval from the OpenRouter-compatible provider.

The catalog is reference data: it is fetched once per AIService and read
for model pricing and display names.
"""

import logging
from typing import Any

import httpx

# Handle both package imports and standalone imports
try:
    from ...models import ModelDescriptor, ProviderPricing
except ImportError:
    from models import ModelDescriptor, ProviderPricing

from .exceptions import TransportError

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_WINDOW = 8192


def parse_model_entry(entry: dict[str, Any]) -> ModelDescriptor:
    """Build a ModelDescriptor from one entry of the provider's `data` array."""
    pricing = entry.get("pricing") or {}
    context_window = (
        entry.get("context_length")
        or entry.get("context_window")
        or DEFAULT_CONTEXT_WINDOW
    )
    return ModelDescriptor(
        id=entry["id"],
        name=entry.get("name") or entry["id"],
        pricing=ProviderPricing(
            prompt=pricing.get("prompt"),
            completion=pricing.get("completion"),
        ),
        context_window=context_window,
    )


async def fetch_models(
    base_url: str,
    api_key: str | None = None,
    timeout: float = 30.0,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[ModelDescriptor]:
    """
    Fetch the list of available models with their pricing.

    Args:
        base_url: Provider API root (e.g. https://openrouter.ai/api/v1).
        api_key: Bearer token, sent when present.
        timeout: Request timeout in seconds.
        headers: Extra headers (attribution).
        transport: Optional httpx transport (used by tests).

    Returns:
        List of ModelDescriptor, in provider order.

    Raises:
        TransportError: On network failure, non-success status or a malformed body.
    """
    request_headers = dict(headers or {})
    if api_key:
        request_headers["Authorization"] = f"Bearer {api_key}"

    url = f"{base_url.rstrip('/')}/models"
    logger.info("Fetching model catalog from %s", url)

    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(url, headers=request_headers)
    except httpx.HTTPError as e:
        logger.error("Model catalog request failed: %s", e)
        raise TransportError(f"Failed to fetch models: {e}") from e

    if response.status_code != 200:
        logger.error(
            "Model catalog request returned %d: %s",
            response.status_code,
            response.text[:500],
        )
        raise TransportError(
            f"Failed to fetch models: {response.reason_phrase or 'request failed'}",
            status_code=response.status_code,
        )

    try:
        entries = response.json()["data"]
        models = [parse_model_entry(entry) for entry in entries if entry.get("id")]
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        logger.error("Malformed model catalog: %s", response.text[:500])
        raise TransportError(f"Malformed model catalog response: {e}") from e

    logger.info("Fetched %d model(s)", len(models))
    return models
