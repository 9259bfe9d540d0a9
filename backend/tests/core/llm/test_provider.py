"""Tests for LLM Provider."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core.llm.provider import LLMProvider, create_llm_provider
from app.core.llm.providers import ModelHandle


def text_chunk(text):
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=SimpleNamespace(content=text, tool_calls=None))],
        usage=None,
    )


def tool_chunk(index, call_id=None, name=None, arguments=None):
    call = SimpleNamespace(index=index, id=call_id, function=SimpleNamespace(name=name, arguments=arguments))
    return SimpleNamespace(
        choices=[SimpleNamespace(delta=SimpleNamespace(content=None, tool_calls=[call]))],
        usage=None,
    )


def usage_chunk(prompt_tokens, completion_tokens):
    return SimpleNamespace(
        choices=[],
        usage={"prompt_tokens": prompt_tokens, "completion_tokens": completion_tokens},
    )


def stream_of(*chunks):
    async def _stream():
        for chunk in chunks:
            yield chunk

    return _stream()


@pytest.mark.unit
class TestLLMProvider:
    """Test cases for LLMProvider."""

    def test_init_default_values(self):
        """Test initialization with default values."""
        provider = LLMProvider()

        assert provider.provider == "openai"
        assert provider.model == "openai/gpt-5"
        assert provider.api_key is None
        assert provider.config == {}

    def test_completion_kwargs(self):
        """Test that key, base and tools are passed per request."""
        provider = LLMProvider(
            provider="groq",
            model="groq/qwen/qwen3-32b",
            api_key="gsk",
            api_base="https://api.groq.com/openai/v1",
            temperature=0.2,
        )
        tools = [{"type": "function", "function": {"name": "think"}}]

        kwargs = provider._completion_kwargs([{"role": "user", "content": "hi"}], tools)

        assert kwargs["model"] == "groq/qwen/qwen3-32b"
        assert kwargs["api_key"] == "gsk"
        assert kwargs["api_base"] == "https://api.groq.com/openai/v1"
        assert kwargs["temperature"] == 0.2
        assert kwargs["tools"] == tools
        assert kwargs["tool_choice"] == "auto"

    def test_completion_kwargs_without_tools(self):
        kwargs = LLMProvider()._completion_kwargs([], None)

        assert "tools" not in kwargs
        assert "api_key" not in kwargs
        assert "api_base" not in kwargs

    def test_create_from_handle(self):
        handle = ModelHandle(
            provider="openRouter",
            name="grok-4-fast-0.70",
            litellm_model="openrouter/x-ai/grok-4-fast",
            api_key="sk-or",
        )
        provider = create_llm_provider(handle, {"max_tokens": 100})

        assert provider.provider == "openRouter"
        assert provider.model == "openrouter/x-ai/grok-4-fast"
        assert provider.api_key == "sk-or"
        assert provider.config == {"max_tokens": 100}

    @pytest.mark.asyncio
    async def test_generate_success(self):
        """Test successful generation."""
        provider = LLMProvider()
        mock_response = MagicMock()

        with patch("app.core.llm.provider.acompletion", new_callable=AsyncMock) as mock_acompletion:
            mock_acompletion.return_value = mock_response
            response = await provider.generate(messages=[{"role": "user", "content": "Hello"}])

        assert response == mock_response
        assert mock_acompletion.call_args.kwargs["stream"] is False

    @pytest.mark.asyncio
    async def test_generate_exception(self):
        """Test generate wraps upstream errors."""
        provider = LLMProvider()

        with patch("app.core.llm.provider.acompletion", new_callable=AsyncMock) as mock_acompletion:
            mock_acompletion.side_effect = Exception("API error")

            with pytest.raises(Exception) as exc_info:
                await provider.generate(messages=[{"role": "user", "content": "Hello"}])

        assert "LLM generation failed" in str(exc_info.value)
        assert "API error" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_generate_stream_text(self):
        """Test streaming text deltas and usage."""
        provider = LLMProvider()

        with patch("app.core.llm.provider.acompletion", new_callable=AsyncMock) as mock_acompletion:
            mock_acompletion.return_value = stream_of(
                text_chunk("Hello"), text_chunk(" "), text_chunk("World"), usage_chunk(5, 3)
            )
            chunks = [c async for c in provider.generate_stream([{"role": "user", "content": "Hi"}])]

        assert chunks == ["Hello", " ", "World", {"usage": {"prompt_tokens": 5, "completion_tokens": 3}}]

    @pytest.mark.asyncio
    async def test_generate_stream_accumulates_tool_calls(self):
        """Test tool call fragments are joined per index and yielded after the text."""
        provider = LLMProvider()

        with patch("app.core.llm.provider.acompletion", new_callable=AsyncMock) as mock_acompletion:
            mock_acompletion.return_value = stream_of(
                text_chunk("Let me check."),
                tool_chunk(0, call_id="call_1", name="current_time", arguments='{"time'),
                tool_chunk(1, call_id="call_2", name="think", arguments='{"thought": "x"}'),
                tool_chunk(0, arguments='zone": "UTC"}'),
            )
            chunks = [c async for c in provider.generate_stream([], tools=[{"type": "function"}])]

        assert chunks[0] == "Let me check."
        assert chunks[1] == {"tool_call": {"id": "call_1", "name": "current_time", "arguments": '{"timezone": "UTC"}'}}
        assert chunks[2] == {"tool_call": {"id": "call_2", "name": "think", "arguments": '{"thought": "x"}'}}
        assert mock_acompletion.call_args.kwargs["tool_choice"] == "auto"
