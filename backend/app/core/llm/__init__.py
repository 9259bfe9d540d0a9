"""LLM integration module."""

from app.core.llm.provider import LLMProvider, create_llm_provider
from app.core.llm.providers import ModelHandle, ModelRegistry, Provider, get_model_registry

__all__ = [
    "LLMProvider",
    "create_llm_provider",
    "ModelHandle",
    "ModelRegistry",
    "Provider",
    "get_model_registry",
]
