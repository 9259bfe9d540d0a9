"""Image generation tool."""

import json
import logging
from typing import List, Optional

from litellm import aimage_generation

from app.core.tools.base import Tool, ToolParameter, ToolResult

logger = logging.getLogger(__name__)

IMAGE_TOOL_NAME = "image_generation"

# image_tool.model option -> LiteLLM image model
IMAGE_MODELS = {
    "openai": "dall-e-3",
    "google": "gemini/imagen-4.0-generate-001",
}


class ImageGenerationTool(Tool):
    """Generate images from a text prompt with the selected backend."""

    def __init__(self, backend: str = "openai", api_key: Optional[str] = None):
        if backend not in IMAGE_MODELS:
            raise ValueError(f"Unsupported image backend: {backend}")
        self.backend = backend
        self.model = IMAGE_MODELS[backend]
        self.api_key = api_key

    @property
    def name(self) -> str:
        return IMAGE_TOOL_NAME

    @property
    def description(self) -> str:
        return (
            "Generate an image from a detailed text description. "
            "Describe subject, style, composition and colors in the prompt."
        )

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(name="prompt", type="string", description="Image description", required=True),
        ]

    async def execute(self, prompt: str, **kwargs) -> ToolResult:
        logger.info(f"Generating image with {self.model}")
        request = {"prompt": prompt, "model": self.model, "n": 1}
        if self.api_key:
            request["api_key"] = self.api_key

        response = await aimage_generation(**request)

        images = []
        for item in getattr(response, "data", None) or []:
            url = getattr(item, "url", None)
            b64 = getattr(item, "b64_json", None)
            if url:
                images.append({"url": url})
            elif b64:
                images.append({"url": f"data:image/png;base64,{b64}"})

        if not images:
            return ToolResult(success=False, output="", error="No image was generated")

        return ToolResult(
            success=True,
            output=json.dumps({"images": images, "model": self.model}),
            metadata={"image_count": len(images)},
        )
