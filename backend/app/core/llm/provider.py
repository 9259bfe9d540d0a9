"""LLM provider gateway built on LiteLLM."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from litellm import acompletion

from app.core.llm.providers import ModelHandle

logger = logging.getLogger(__name__)


class LLMProvider:
    """Unified LLM provider using LiteLLM."""

    def __init__(
        self,
        provider: str = "openai",
        model: str = "openai/gpt-5",
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        **config,
    ):
        """
        Initialize LLM provider.

        Args:
            provider: Provider name as shown to users (openai, openRouter, groq, ...)
            model: LiteLLM model route (e.g., openai/gpt-5, groq/qwen/qwen3-32b)
            api_key: API key passed per request, never exported to the environment
            api_base: Optional endpoint override
            **config: Extra completion arguments (temperature, max_tokens, ...)
        """
        self.provider = provider
        self.model = model
        self.api_key = api_key
        self.api_base = api_base
        self.config = config

    def _completion_kwargs(self, messages: List[Dict[str, Any]], tools: Optional[List[Dict]]) -> dict:
        kwargs = {
            "model": self.model,
            "messages": messages,
            **self.config,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        return kwargs

    async def generate(
        self,
        messages: List[Dict[str, Any]],
        stream: bool = False,
        tools: Optional[List[Dict]] = None,
    ):
        """
        Generate a completion.

        Raises:
            Exception: wrapping the upstream error as "LLM generation failed: ..."
        """
        try:
            return await acompletion(
                stream=stream,
                **self._completion_kwargs(messages, tools),
            )
        except Exception as e:
            raise Exception(f"LLM generation failed: {str(e)}") from e

    async def generate_stream(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict]] = None,
    ) -> AsyncIterator[str | Dict[str, Any]]:
        """
        Stream a completion.

        Yields text deltas as ``str``. Tool calls are accumulated across chunks
        and yielded once complete as ``{"tool_call": {"id", "name", "arguments"}}``.
        Token usage, when reported, is yielded last as ``{"usage": {...}}``.
        """
        response = await self.generate(messages, stream=True, tools=tools)

        pending_calls: Dict[int, Dict[str, str]] = {}
        usage = None

        async for chunk in response:
            chunk_usage = getattr(chunk, "usage", None)
            if chunk_usage:
                usage = chunk_usage

            if not getattr(chunk, "choices", None):
                continue

            delta = chunk.choices[0].delta

            content = getattr(delta, "content", None)
            if content:
                yield content

            tool_calls = getattr(delta, "tool_calls", None)
            if tool_calls:
                for tool_call in tool_calls:
                    index = getattr(tool_call, "index", 0) or 0
                    entry = pending_calls.setdefault(index, {"id": "", "name": "", "arguments": ""})

                    call_id = getattr(tool_call, "id", None)
                    if isinstance(call_id, str) and call_id:
                        entry["id"] = call_id

                    function = getattr(tool_call, "function", None)
                    if function is None:
                        continue
                    name = getattr(function, "name", None)
                    if isinstance(name, str) and name:
                        entry["name"] = name
                    arguments = getattr(function, "arguments", None)
                    if isinstance(arguments, str):
                        entry["arguments"] += arguments

        for index in sorted(pending_calls):
            entry = pending_calls[index]
            if entry["name"]:
                yield {"tool_call": entry}

        if usage is not None:
            yield {"usage": _usage_to_dict(usage)}


def _usage_to_dict(usage: Any) -> Dict[str, Any]:
    if isinstance(usage, dict):
        return usage
    if hasattr(usage, "model_dump"):
        return usage.model_dump()
    return {
        "prompt_tokens": getattr(usage, "prompt_tokens", None),
        "completion_tokens": getattr(usage, "completion_tokens", None),
        "total_tokens": getattr(usage, "total_tokens", None),
    }


def create_llm_provider(handle: ModelHandle, llm_config: Optional[Dict[str, Any]] = None) -> LLMProvider:
    """
    Factory function to create an LLM provider for a resolved model.

    Args:
        handle: Model resolved by the registry
        llm_config: Extra completion arguments

    Returns:
        LLMProvider instance
    """
    return LLMProvider(
        provider=handle.provider,
        model=handle.litellm_model,
        api_key=handle.api_key,
        api_base=handle.api_base,
        **(llm_config or {}),
    )
