"""
Token cost calculation from provider usage and model pricing.

All rates at this layer are expressed per single token. Per-million figures
are only produced for display by price_per_million().
"""

import logging
import math
from typing import Any

from price_parser import Price

# Handle both package imports and standalone imports
try:
    from ...models import CostBreakdown, ModelDescriptor, ModelPricing, TokenUsage
except ImportError:
    from models import CostBreakdown, ModelDescriptor, ModelPricing, TokenUsage

from .exceptions import PricingUnavailable

logger = logging.getLogger(__name__)

TOKENS_PER_MILLION = 1_000_000


def parse_rate(value: Any) -> float | None:
    """
    Parse a published per-token rate into a float.

    Accepts numbers, plain numeric strings ("0.000003") and currency-formatted
    strings ("$0.000003"). Returns None for missing, negative or non-numeric
    values such as "N/A".
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        rate = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            rate = float(text)
        except ValueError:
            # Currency symbols and thousands separators
            price = Price.fromstring(text)
            if price.amount_float is None:
                return None
            rate = price.amount_float
    else:
        return None

    if not math.isfinite(rate) or rate < 0:
        return None
    return rate


def resolve_pricing(models: list[ModelDescriptor], model_id: str) -> ModelPricing:
    """
    Find a model in the catalog and resolve its numeric per-token rates.

    Raises:
        PricingUnavailable: If the model is not in the catalog or either
            rate is not numeric.
    """
    model = next((m for m in models if m.id == model_id), None)
    if model is None:
        raise PricingUnavailable(f"Model '{model_id}' not found in the model catalog")

    prompt_rate = parse_rate(model.pricing.prompt)
    completion_rate = parse_rate(model.pricing.completion)
    if prompt_rate is None or completion_rate is None:
        raise PricingUnavailable(
            f"Model pricing information not available for '{model_id}' "
            f"(prompt={model.pricing.prompt!r}, completion={model.pricing.completion!r})"
        )

    return ModelPricing(prompt_rate=prompt_rate, completion_rate=completion_rate)


def compute_cost(usage: TokenUsage, pricing: ModelPricing) -> CostBreakdown:
    """
    Compute prompt, completion and total cost of one exchange.

    Args:
        usage: Token counts reported by the provider.
        pricing: Per-token rates for the model used.

    Returns:
        CostBreakdown with total = prompt + completion.
    """
    prompt_cost = usage.prompt_tokens * pricing.prompt_rate
    completion_cost = usage.completion_tokens * pricing.completion_rate
    cost = CostBreakdown(
        prompt_cost=prompt_cost,
        completion_cost=completion_cost,
        total_cost=prompt_cost + completion_cost,
    )
    logger.info(
        "Cost: %d prompt + %d completion tokens = $%.6f",
        usage.prompt_tokens,
        usage.completion_tokens,
        cost.total_cost,
    )
    return cost


def price_per_million(value: Any) -> float | None:
    """Convert a per-token rate to a per-million-tokens display price."""
    rate = parse_rate(value)
    if rate is None:
        return None
    return rate * TOKENS_PER_MILLION
