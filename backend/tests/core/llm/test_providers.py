"""Tests for the model registry."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from app.core.config import Settings
from app.core.llm.providers import (
    OPENROUTER_MODEL_ID_MAPPING,
    ModelRegistry,
    Provider,
    does_ollama_model_support_tools,
    get_ollama_models,
    parse_openai_compatible_data,
)
from app.models.schemas.chat import ChatModel

COMPATIBLE_DATA = json.dumps(
    [
        {
            "provider": "localai",
            "apiKey": "local-key",
            "baseUrl": "http://localhost:8080/v1",
            "models": [
                {"apiName": "llama-3-8b", "uiName": "Llama 3", "supportsTools": False},
                {"apiName": "qwen-7b", "uiName": "Qwen"},
            ],
        }
    ]
)


def make_settings(**overrides) -> Settings:
    values = {
        "openai_api_key": "sk-openai",
        "openrouter_api_key": None,
        "groq_api_key": "****",
        "ollama_base_url": None,
        "openai_compatible_data": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.mark.unit
class TestModelResolution:
    """Test cases for ModelRegistry.get_model."""

    def test_openai_model(self):
        registry = ModelRegistry(make_settings())
        handle = registry.get_model(ChatModel(provider="openai", model="gpt-5-mini"))

        assert handle.provider == "openai"
        assert handle.litellm_model == "openai/gpt-5-mini"
        assert handle.api_key == "sk-openai"
        assert handle.supports_image_input is True
        assert "application/pdf" in handle.file_mime_types

    def test_openrouter_model_maps_display_name(self):
        registry = ModelRegistry(make_settings(openrouter_api_key="sk-or"))
        handle = registry.get_model(ChatModel(provider="openRouter", model="grok-4-fast-0.70"))

        assert handle.litellm_model == "openrouter/x-ai/grok-4-fast"
        assert handle.api_key == "sk-or"

    def test_openrouter_id_mapping_covers_all_openrouter_tiers(self):
        assert OPENROUTER_MODEL_ID_MAPPING["grok-4-fast-0.70"] == "x-ai/grok-4-fast"
        assert OPENROUTER_MODEL_ID_MAPPING["glm-4.5v-2.40"] == "z-ai/glm-4.5v"
        assert OPENROUTER_MODEL_ID_MAPPING["qwen3-coder:free"] == "qwen/qwen3-coder:free"
        assert "gpt-5" not in OPENROUTER_MODEL_ID_MAPPING

    def test_groq_model_uses_base_url(self):
        registry = ModelRegistry(make_settings())
        handle = registry.get_model(ChatModel(provider="groq", model="qwen3-32b"))

        assert handle.litellm_model == "groq/qwen/qwen3-32b"
        assert handle.api_base == "https://api.groq.com/openai/v1"

    def test_unknown_model_falls_back(self):
        registry = ModelRegistry(make_settings())

        for chat_model in (None, ChatModel(provider="openai", model="nope"), ChatModel(provider="x", model="y")):
            handle = registry.get_model(chat_model)
            assert (handle.provider, handle.name) == ("openai", "gpt-5")

    def test_ollama_requires_base_url(self):
        without = ModelRegistry(make_settings())
        assert without.get_model(ChatModel(provider="ollama", model="llama3")).provider == "openai"

        registry = ModelRegistry(make_settings(ollama_base_url="http://localhost:11434/api"))
        handle = registry.get_model(ChatModel(provider="ollama", model="qwen2.5-coder:7b"))

        assert handle.provider == "ollama"
        assert handle.litellm_model == "ollama_chat/qwen2.5-coder:7b"
        assert handle.api_base == "http://localhost:11434"
        assert handle.supports_tool_call is True

    def test_compatible_provider(self):
        registry = ModelRegistry(make_settings(openai_compatible_data=COMPATIBLE_DATA))
        handle = registry.get_model(ChatModel(provider="localai", model="Llama 3"))

        assert handle.litellm_model == "openai/llama-3-8b"
        assert handle.api_base == "http://localhost:8080/v1"
        assert handle.api_key == "local-key"
        assert registry.is_tool_call_unsupported(handle) is True

        qwen = registry.get_model(ChatModel(provider="localai", model="Qwen"))
        assert registry.is_tool_call_unsupported(qwen) is False


@pytest.mark.unit
class TestModelListing:
    """Test cases for models_info."""

    def test_placeholder_key_counts_as_missing(self):
        registry = ModelRegistry(make_settings())

        assert registry.has_api_key("openai") is True
        assert registry.has_api_key(Provider.GROQ.value) is False
        assert registry.has_api_key("openRouterFREE") is False
        assert registry.has_api_key("custom") is True

    def test_models_info_contains_static_and_compatible(self):
        registry = ModelRegistry(make_settings(openai_compatible_data=COMPATIBLE_DATA))
        info = {p["provider"]: p for p in registry.models_info()}

        assert {"openai", "openRouter", "openRouterVisual", "openRouterFREE", "groq", "localai"} <= set(info)
        assert [m["name"] for m in info["openai"]["models"]] == ["gpt-5", "gpt-5-mini", "gpt-5-codex"]
        llama = next(m for m in info["localai"]["models"] if m["name"] == "Llama 3")
        assert llama["is_tool_call_unsupported"] is True

    @pytest.mark.asyncio
    async def test_providers_with_keys_first(self):
        registry = ModelRegistry(make_settings())
        providers = await registry.models_info_with_ollama()

        flags = [p["has_api_key"] for p in providers]
        assert flags == sorted(flags, reverse=True)
        assert providers[0]["provider"] == "openai"

    @pytest.mark.asyncio
    async def test_ollama_models_appended(self):
        registry = ModelRegistry(make_settings(ollama_base_url="http://localhost:11434"))

        with patch("app.core.llm.providers.get_ollama_models", new_callable=AsyncMock) as mock_models:
            mock_models.return_value = ["llama3", "mixtral:8x7b"]
            providers = await registry.models_info_with_ollama()

        ollama = next(p for p in providers if p["provider"] == "ollama")
        assert [m["name"] for m in ollama["models"]] == ["llama3", "mixtral:8x7b"]
        assert ollama["has_api_key"] is True


@pytest.mark.unit
class TestCompatibleData:
    """Test cases for OPENAI_COMPATIBLE_DATA parsing."""

    def test_parse(self):
        providers = parse_openai_compatible_data(COMPATIBLE_DATA)

        assert len(providers) == 1
        assert providers[0].base_url == "http://localhost:8080/v1"
        assert providers[0].models[1].supports_tools is True

    @pytest.mark.parametrize("raw", [None, "", "not json", '{"provider": "x"}', '[{"provider": "x"}]'])
    def test_invalid_yields_nothing(self, raw):
        assert parse_openai_compatible_data(raw) == []


@pytest.mark.unit
class TestOllama:
    """Test cases for Ollama discovery."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("qwen2.5-coder:7b", True),
            ("Mixtral:8x7b", True),
            ("llama3-tools", True),
            ("llama3", False),
            ("phi3:mini", False),
        ],
    )
    def test_tool_support_heuristic(self, name, expected):
        assert does_ollama_model_support_tools(name) is expected

    @pytest.mark.asyncio
    async def test_get_models_normalizes_api_suffix(self):
        client = MagicMock()
        client.get = AsyncMock(
            return_value=httpx.Response(200, json={"models": [{"name": "llama3"}, {"name": "phi3"}]})
        )

        names = await get_ollama_models("http://localhost:11434/api/", client=client)

        assert names == ["llama3", "phi3"]
        assert client.get.call_args.args[0] == "http://localhost:11434/api/tags"

    @pytest.mark.asyncio
    async def test_get_models_failures_return_empty(self):
        client = MagicMock()

        client.get = AsyncMock(return_value=httpx.Response(500))
        assert await get_ollama_models("http://ollama", client=client) == []

        client.get = AsyncMock(return_value=httpx.Response(200, json={"unexpected": True}))
        assert await get_ollama_models("http://ollama", client=client) == []

        client.get = AsyncMock(side_effect=httpx.ConnectError("refused"))
        assert await get_ollama_models("http://ollama", client=client) == []
