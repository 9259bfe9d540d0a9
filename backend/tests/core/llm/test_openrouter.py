"""Tests for the OpenRouter catalog."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.core.config import Settings
from app.core.llm.openrouter import fetch_openrouter_models, to_display_model

CATALOG = {
    "data": [
        {
            "id": "openai/gpt-oss-120b",
            "name": "GPT OSS 120B",
            "context_length": 131072,
            "pricing": {"prompt": "0.0000001", "completion": "0.0000004"},
            "architecture": {"modality": "text->text", "input_modalities": ["text"]},
        },
        {
            "id": "google/gemini-2.5-pro",
            "name": "Gemini 2.5 Pro",
            "description": "Multimodal",
            "context_length": 1048576,
            "pricing": {"prompt": "0.00000125", "completion": "0.00001"},
            "architecture": {"modality": "text+image->text", "input_modalities": ["text", "image"]},
        },
        {
            "id": "deepseek/deepseek-chat",
            "name": "DeepSeek Chat",
            "context_length": 200000,
            "pricing": {"prompt": "0.000001", "completion": "0.000005"},
            "architecture": {"modality": "text->text", "input_modalities": ["text"]},
        },
    ]
}


def make_client(response):
    client = MagicMock()
    client.get = AsyncMock(return_value=response)
    return client


@pytest.mark.unit
class TestOpenRouterCatalog:
    """Test cases for fetch_openrouter_models."""

    def test_to_display_model(self):
        model = to_display_model(CATALOG["data"][1])

        assert model.provider == "google"
        assert model.supports_images is True
        assert model.modality == "text+image->text"
        assert model.pricing.completion == "0.00001"

    def test_to_display_model_defaults(self):
        model = to_display_model({"id": "x/y"})

        assert model.name == "x/y"
        assert model.context_length == 0
        assert model.pricing.prompt == "0"
        assert model.modality == "text->text"
        assert model.supports_images is False

    @pytest.mark.asyncio
    async def test_sorted_by_provider_then_name(self):
        client = make_client(httpx.Response(200, json=CATALOG))
        config = Settings(_env_file=None, openrouter_api_key=None)

        result = await fetch_openrouter_models(config, client=client)

        assert result.success is True
        assert [m.provider for m in result.models] == ["deepseek", "google", "openai"]
        assert "Authorization" not in client.get.call_args.kwargs["headers"]

    @pytest.mark.asyncio
    async def test_sends_key_when_configured(self):
        client = make_client(httpx.Response(200, json={"data": []}))
        config = Settings(_env_file=None, openrouter_api_key="sk-or")

        await fetch_openrouter_models(config, client=client)

        assert client.get.call_args.kwargs["headers"]["Authorization"] == "Bearer sk-or"

    @pytest.mark.asyncio
    async def test_upstream_error_reported(self):
        client = make_client(httpx.Response(503))

        result = await fetch_openrouter_models(Settings(_env_file=None), client=client)

        assert result.success is False
        assert result.models is None
        assert "OpenRouter API error" in result.error

    @pytest.mark.asyncio
    async def test_network_error_reported(self):
        client = MagicMock()
        client.get = AsyncMock(side_effect=httpx.ConnectError("unreachable"))

        result = await fetch_openrouter_models(Settings(_env_file=None), client=client)

        assert result.success is False
        assert "unreachable" in result.error
