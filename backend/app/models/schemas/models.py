"""Model listing schemas."""

from pydantic import BaseModel, Field


class ModelInfo(BaseModel):
    """Schema for a selectable chat model."""

    name: str = Field(..., description="Display name used in ChatModel.model")
    is_tool_call_unsupported: bool = False
    is_image_input_unsupported: bool = True
    supported_file_mime_types: list[str] = Field(default_factory=list)


class ProviderModelsInfo(BaseModel):
    """Schema for a provider with its available models."""

    provider: str = Field(..., description="Provider identifier (e.g., 'openai', 'openRouter')")
    models: list[ModelInfo]
    has_api_key: bool


class OpenRouterPricing(BaseModel):
    prompt: str
    completion: str


class OpenRouterModelDisplay(BaseModel):
    """OpenRouter catalog entry reshaped for display."""

    id: str
    name: str
    provider: str
    description: str | None = None
    context_length: int
    pricing: OpenRouterPricing
    modality: str
    supports_images: bool


class OpenRouterModelsResponse(BaseModel):
    success: bool
    models: list[OpenRouterModelDisplay] | None = None
    error: str | None = None
