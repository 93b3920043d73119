"""
Router for the model catalog.

Handles:
- Listing the provider's models with display prices
"""

import logging

from fastapi import APIRouter, Depends

# Handle both package imports and standalone imports
try:
    from ..models import ModelInfo, ModelListResponse
    from ..services.ai import AIService, get_ai_service, price_per_million
except ImportError:
    from models import ModelInfo, ModelListResponse
    from services.ai import AIService, get_ai_service, price_per_million

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/models", tags=["models"])


@router.get("", response_model=ModelListResponse)
async def list_models(
    refresh: bool = False,
    ai_service: AIService = Depends(get_ai_service),
) -> ModelListResponse:
    """
    List available models.

    Prices are converted from the provider's per-token rates to per million
    tokens for display; models without numeric pricing show null prices.

    Args:
        refresh: Re-fetch the catalog instead of using the cached copy.
        ai_service: AI service.
    """
    models = await ai_service.list_models(refresh=refresh)

    return ModelListResponse(
        models=[
            ModelInfo(
                id=model.id,
                name=model.name,
                context_window=model.context_window,
                prompt_price_per_million=price_per_million(model.pricing.prompt),
                completion_price_per_million=price_per_million(model.pricing.completion),
            )
            for model in models
        ],
        total=len(models),
        default_model=ai_service.default_model,
    )
