"""Model registry: providers, models, capability flags and routing to LiteLLM."""

import enum
import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache

import httpx
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from app.core.config import Settings, settings as app_settings
from app.models.schemas.chat import ChatModel

logger = logging.getLogger(__name__)


class Provider(str, enum.Enum):
    """Statically known model providers."""

    OPENAI = "openai"
    OPENROUTER = "openRouter"
    OPENROUTER_VISUAL = "openRouterVisual"
    OPENROUTER_FREE = "openRouterFREE"
    GROQ = "groq"
    OLLAMA = "ollama"


DEFAULT_FILE_PART_MIME_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")
OPENAI_FILE_MIME_TYPES = DEFAULT_FILE_PART_MIME_TYPES + ("application/pdf",)
GEMINI_FILE_MIME_TYPES = DEFAULT_FILE_PART_MIME_TYPES + (
    "application/pdf",
    "text/plain",
    "text/csv",
)

# display name -> upstream model id, per provider
STATIC_MODELS: dict[Provider, dict[str, str]] = {
    Provider.OPENROUTER: {
        "gpt-120b-0.44": "openai/gpt-oss-120b",
        "gemini-quick-0.50": "google/gemini-2.5-flash-lite-preview-09-2025",
        "grok-4-fast-0.70": "x-ai/grok-4-fast",
        "minimax-m2-0.60": "minimax/minimax-m2",
        "qwen3-coder-1": "qwen/qwen3-coder",
    },
    Provider.OPENROUTER_VISUAL: {
        "qwen3-vl-1": "qwen/qwen3-vl-235b-a22b-instruct",
        "glm-4.5v-2.40": "z-ai/glm-4.5v",
        "gemini-2.5-pro-11.25": "google/gemini-2.5-pro",
    },
    Provider.OPENROUTER_FREE: {
        "gpt-oss-120b:free": "openai/gpt-oss-20b:free",
        "qwen3-coder:free": "qwen/qwen3-coder:free",
        "deepseek-v3:free": "deepseek/deepseek-r1-0528:free",
        "gemini-2.0-flash-exp:free": "google/gemini-2.0-flash-exp:free",
    },
    Provider.OPENAI: {
        "gpt-5": "gpt-5",
        "gpt-5-mini": "gpt-5-mini",
        "gpt-5-codex": "gpt-5-codex",
    },
    Provider.GROQ: {
        "kimi-k2-instruct": "moonshotai/kimi-k2-instruct",
        "llama-4-scout-17b": "meta-llama/llama-4-scout-17b-16e-instruct",
        "gpt-oss-20b": "openai/gpt-oss-20b",
        "gpt-oss-120b": "openai/gpt-oss-120b",
        "qwen3-32b": "qwen/qwen3-32b",
    },
}

# Models that cannot call tools. None of the static models are listed.
STATIC_TOOL_CALL_UNSUPPORTED: set[tuple[Provider, str]] = set()

STATIC_IMAGE_INPUT_MODELS: set[tuple[Provider, str]] = {
    *((Provider.OPENAI, name) for name in STATIC_MODELS[Provider.OPENAI]),
    *((Provider.OPENROUTER_VISUAL, name) for name in STATIC_MODELS[Provider.OPENROUTER_VISUAL]),
    (Provider.OPENROUTER, "gemini-quick-0.50"),
    (Provider.OPENROUTER_FREE, "gemini-2.0-flash-exp:free"),
}

STATIC_FILE_MIME_TYPES: dict[tuple[Provider, str], tuple[str, ...]] = {
    (Provider.OPENAI, "gpt-5"): OPENAI_FILE_MIME_TYPES,
    (Provider.OPENAI, "gpt-5-mini"): OPENAI_FILE_MIME_TYPES,
    (Provider.OPENROUTER_VISUAL, "qwen3-vl-1"): DEFAULT_FILE_PART_MIME_TYPES,
    (Provider.OPENROUTER_VISUAL, "glm-4.5v-2.40"): DEFAULT_FILE_PART_MIME_TYPES,
    (Provider.OPENROUTER_VISUAL, "gemini-2.5-pro-11.25"): GEMINI_FILE_MIME_TYPES,
    (Provider.OPENROUTER, "gemini-quick-0.50"): GEMINI_FILE_MIME_TYPES,
    (Provider.OPENROUTER_FREE, "gemini-2.0-flash-exp:free"): GEMINI_FILE_MIME_TYPES,
}

FALLBACK_MODEL = (Provider.OPENAI, "gpt-5")

# Display name -> OpenRouter API id, for matching catalog selections
OPENROUTER_MODEL_ID_MAPPING: dict[str, str] = {
    **STATIC_MODELS[Provider.OPENROUTER],
    **STATIC_MODELS[Provider.OPENROUTER_VISUAL],
    **STATIC_MODELS[Provider.OPENROUTER_FREE],
}

OLLAMA_TOOL_SUPPORT_PATTERNS = [
    "tools",
    "qwen2.5-coder",
    "qwen2.5:coder",
    "command-r",
    "mistral-large",
    "mixtral",
]


@dataclass(frozen=True)
class ModelHandle:
    """A resolved model: how to call it and what it can do."""

    provider: str
    name: str
    litellm_model: str
    api_base: str | None = None
    api_key: str | None = None
    supports_tool_call: bool = True
    supports_image_input: bool = False
    file_mime_types: tuple[str, ...] = field(default_factory=tuple)


class CompatibleModelConfig(BaseModel):
    api_name: str = Field(..., alias="apiName")
    ui_name: str = Field(..., alias="uiName")
    supports_tools: bool = Field(True, alias="supportsTools")


class CompatibleProviderConfig(BaseModel):
    """An OpenAI-compatible endpoint declared through OPENAI_COMPATIBLE_DATA."""

    provider: str
    api_key: str | None = Field(None, alias="apiKey")
    base_url: str = Field(..., alias="baseUrl")
    models: list[CompatibleModelConfig] = Field(default_factory=list)


def parse_openai_compatible_data(raw: str | None) -> list[CompatibleProviderConfig]:
    """Parse the OPENAI_COMPATIBLE_DATA JSON; invalid data yields no providers."""
    if not raw:
        return []
    try:
        return TypeAdapter(list[CompatibleProviderConfig]).validate_python(json.loads(raw))
    except (ValueError, ValidationError) as e:
        logger.warning(f"Ignoring invalid OPENAI_COMPATIBLE_DATA: {e}")
        return []


def does_ollama_model_support_tools(model_name: str) -> bool:
    """Guess tool-calling support of an Ollama model from its name."""
    name_lower = model_name.lower()
    return any(pattern in name_lower for pattern in OLLAMA_TOOL_SUPPORT_PATTERNS)


def _ollama_root(base_url: str) -> str:
    """Normalize an Ollama URL with or without trailing /api to the server root."""
    normalized = base_url.rstrip("/")
    if normalized.endswith("/api"):
        normalized = normalized[: -len("/api")]
    return normalized


async def get_ollama_models(base_url: str, client: httpx.AsyncClient | None = None) -> list[str]:
    """
    Fetch model names from an Ollama server.

    Args:
        base_url: Server URL (e.g., http://localhost:11434 or http://localhost:11434/api)
        client: Optional shared HTTP client

    Returns:
        Model names, or an empty list on any failure
    """
    tags_url = f"{_ollama_root(base_url)}/api/tags"
    logger.info(f"Fetching Ollama models from: {tags_url}")

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=10.0) as own_client:
                response = await own_client.get(tags_url)
        else:
            response = await client.get(tags_url, timeout=10.0)
    except httpx.HTTPError as e:
        logger.error(f"Error fetching Ollama models: {e}")
        return []

    if response.status_code != 200:
        logger.error(f"Failed to fetch Ollama models: {response.status_code}")
        return []

    try:
        data = response.json()
    except ValueError:
        logger.error("Invalid response format from Ollama server")
        return []

    models = data.get("models") if isinstance(data, dict) else None
    if not isinstance(models, list):
        logger.error("Invalid response format from Ollama server")
        return []

    names = [m["name"] for m in models if isinstance(m, dict) and "name" in m]
    logger.info(f"Found {len(names)} Ollama models")
    return names


class ModelRegistry:
    """Resolves ChatModel selections to callable model handles."""

    def __init__(self, config: Settings | None = None):
        self.settings = config or app_settings
        self.compatible_providers = parse_openai_compatible_data(self.settings.openai_compatible_data)

    # Resolution -----------------------------------------------------------

    def _static_handle(self, provider: Provider, name: str) -> ModelHandle:
        upstream = STATIC_MODELS[provider][name]
        key = (provider, name)
        common = dict(
            provider=provider.value,
            name=name,
            supports_tool_call=key not in STATIC_TOOL_CALL_UNSUPPORTED,
            supports_image_input=key in STATIC_IMAGE_INPUT_MODELS,
            file_mime_types=STATIC_FILE_MIME_TYPES.get(key, ()),
        )

        if provider == Provider.OPENAI:
            return ModelHandle(
                litellm_model=f"openai/{upstream}", api_key=self.settings.openai_api_key, **common
            )
        if provider == Provider.GROQ:
            return ModelHandle(
                litellm_model=f"groq/{upstream}",
                api_base=self.settings.groq_base_url,
                api_key=self.settings.groq_api_key,
                **common,
            )
        # openRouter, openRouterVisual, openRouterFREE
        return ModelHandle(
            litellm_model=f"openrouter/{upstream}",
            api_key=self.settings.openrouter_api_key,
            **common,
        )

    def _ollama_handle(self, name: str) -> ModelHandle:
        return ModelHandle(
            provider=Provider.OLLAMA.value,
            name=name,
            litellm_model=f"ollama_chat/{name}",
            api_base=_ollama_root(self.settings.ollama_base_url),
            supports_tool_call=does_ollama_model_support_tools(name),
            supports_image_input=False,
        )

    def _compatible_handle(self, provider_name: str, model_name: str) -> ModelHandle | None:
        for config in self.compatible_providers:
            if config.provider != provider_name:
                continue
            for model in config.models:
                if model.ui_name == model_name:
                    return ModelHandle(
                        provider=config.provider,
                        name=model.ui_name,
                        litellm_model=f"openai/{model.api_name}",
                        api_base=config.base_url,
                        api_key=config.api_key,
                        supports_tool_call=model.supports_tools,
                    )
        return None

    def get_model(self, chat_model: ChatModel | None) -> ModelHandle:
        """Resolve a selection, falling back to the default model when unknown."""
        if chat_model is not None:
            handle = self._resolve(chat_model.provider, chat_model.model)
            if handle is not None:
                return handle
            logger.info(
                f"Unknown model {chat_model.provider}/{chat_model.model}, using fallback"
            )
        return self._static_handle(*FALLBACK_MODEL)

    def _resolve(self, provider_name: str, model_name: str) -> ModelHandle | None:
        handle = self._compatible_handle(provider_name, model_name)
        if handle is not None:
            return handle

        try:
            provider = Provider(provider_name)
        except ValueError:
            return None

        if provider == Provider.OLLAMA:
            return self._ollama_handle(model_name) if self.settings.ollama_base_url else None
        if model_name in STATIC_MODELS.get(provider, {}):
            return self._static_handle(provider, model_name)
        return None

    def is_tool_call_unsupported(self, handle: ModelHandle) -> bool:
        return not handle.supports_tool_call

    # Listing --------------------------------------------------------------

    def has_api_key(self, provider: str) -> bool:
        """Whether the provider's key is configured; unknown providers count as configured."""
        keys = {
            Provider.OPENAI.value: self.settings.openai_api_key,
            Provider.GROQ.value: self.settings.groq_api_key,
            Provider.OPENROUTER.value: self.settings.openrouter_api_key,
            Provider.OPENROUTER_VISUAL.value: self.settings.openrouter_api_key,
            Provider.OPENROUTER_FREE.value: self.settings.openrouter_api_key,
        }
        if provider not in keys:
            return True
        return self.settings.has_api_key(keys[provider])

    def models_info(self) -> list[dict]:
        """Static and compatible providers with per-model capability flags."""
        providers = []

        for config in self.compatible_providers:
            providers.append(
                {
                    "provider": config.provider,
                    "models": [
                        {
                            "name": model.ui_name,
                            "is_tool_call_unsupported": not model.supports_tools,
                            "is_image_input_unsupported": True,
                            "supported_file_mime_types": [],
                        }
                        for model in config.models
                    ],
                    "has_api_key": True,
                }
            )

        for provider, models in STATIC_MODELS.items():
            handles = [self._static_handle(provider, name) for name in models]
            providers.append(
                {
                    "provider": provider.value,
                    "models": [
                        {
                            "name": handle.name,
                            "is_tool_call_unsupported": not handle.supports_tool_call,
                            "is_image_input_unsupported": not handle.supports_image_input,
                            "supported_file_mime_types": list(handle.file_mime_types),
                        }
                        for handle in handles
                    ],
                    "has_api_key": self.has_api_key(provider.value),
                }
            )

        return providers

    async def models_info_with_ollama(self) -> list[dict]:
        """models_info() plus live Ollama models, providers with keys first."""
        providers = self.models_info()

        if self.settings.ollama_base_url:
            names = await get_ollama_models(self.settings.ollama_base_url)
            if names:
                providers.append(
                    {
                        "provider": Provider.OLLAMA.value,
                        "has_api_key": True,
                        "models": [
                            {
                                "name": name,
                                "is_tool_call_unsupported": False,
                                "is_image_input_unsupported": True,
                                "supported_file_mime_types": [],
                            }
                            for name in names
                        ],
                    }
                )

        # sorted() is stable, so order within each group is preserved
        return sorted(providers, key=lambda p: not p["has_api_key"])


@lru_cache(maxsize=1)
def get_model_registry() -> ModelRegistry:
    """
    Get the process-wide model registry.
    Cached because compatible-provider parsing only depends on settings.
    """
    return ModelRegistry()
