"""OpenRouter model catalog."""

import logging

import httpx

from app.core.config import Settings, settings as app_settings
from app.models.schemas.models import (
    OpenRouterModelDisplay,
    OpenRouterModelsResponse,
    OpenRouterPricing,
)

logger = logging.getLogger(__name__)


def to_display_model(model: dict) -> OpenRouterModelDisplay:
    """Reshape one catalog entry from the OpenRouter API."""
    model_id = model["id"]
    architecture = model.get("architecture") or {}
    pricing = model.get("pricing") or {}
    input_modalities = architecture.get("input_modalities") or []

    return OpenRouterModelDisplay(
        id=model_id,
        name=model.get("name") or model_id,
        provider=model_id.split("/")[0] or "unknown",
        description=model.get("description"),
        context_length=model.get("context_length") or 0,
        pricing=OpenRouterPricing(
            prompt=str(pricing.get("prompt", "0")),
            completion=str(pricing.get("completion", "0")),
        ),
        modality=architecture.get("modality") or "text->text",
        supports_images="image" in input_modalities,
    )


async def fetch_openrouter_models(
    config: Settings | None = None,
    client: httpx.AsyncClient | None = None,
) -> OpenRouterModelsResponse:
    """
    Fetch the OpenRouter catalog sorted by provider then name.

    The API key is optional for listing and only sent when configured.
    Failures are reported in the response instead of raised.
    """
    config = config or app_settings
    headers = {"Accept": "application/json"}
    if config.has_api_key(config.openrouter_api_key):
        headers["Authorization"] = f"Bearer {config.openrouter_api_key}"

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=15.0) as own_client:
                response = await own_client.get(config.openrouter_models_url, headers=headers)
        else:
            response = await client.get(config.openrouter_models_url, headers=headers)

        if response.status_code != 200:
            raise ValueError(f"OpenRouter API error: {response.reason_phrase or response.status_code}")

        data = response.json()
        models = [to_display_model(model) for model in data.get("data", [])]
    except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
        logger.error(f"Error fetching OpenRouter models: {e}")
        return OpenRouterModelsResponse(success=False, error=str(e) or "Failed to fetch OpenRouter models")

    models.sort(key=lambda m: (m.provider, m.name))
    return OpenRouterModelsResponse(success=True, models=models)
