"""Tests for the chat API routes."""

import json
import uuid
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from app.repositories import ChatRepository
from app.services.chat_assembler import ChatRequestAssembler


class FakeProvider:
    def __init__(self, *chunks):
        self.chunks = chunks

    async def generate_stream(self, messages, tools=None):
        for chunk in self.chunks:
            yield chunk


def _chat_body(thread_id: str = "thread-api", text: str = "Hi") -> dict:
    return {
        "id": thread_id,
        "message": {"id": "m-1", "role": "user", "parts": [{"type": "text", "text": text}]},
        "tool_choice": "none",
    }


def _sse_events(body: str) -> list[dict]:
    return [json.loads(line[len("data: "):]) for line in body.splitlines() if line.startswith("data: ")]


@pytest.mark.api
class TestChatEndpoint:
    """Test cases for POST /api/v1/chat."""

    @pytest.mark.asyncio
    async def test_requires_session(self, anonymous_client):
        response = await anonymous_client.post("/api/v1/chat", json=_chat_body())

        assert response.status_code == 401
        assert response.json() == {"detail": "Unauthorized"}

    @pytest.mark.asyncio
    async def test_cookie_session(self, anonymous_client, sample_user):
        anonymous_client.cookies.set("session_token", "test-session-token")

        with patch.object(ChatRequestAssembler, "create_provider", return_value=FakeProvider("ok")):
            response = await anonymous_client.post("/api/v1/chat", json=_chat_body())

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_other_users_thread(self, client, sample_thread, other_auth_headers):
        response = await client.post(
            "/api/v1/chat", json=_chat_body(thread_id=sample_thread.id), headers=other_auth_headers
        )

        assert response.status_code == 403
        assert response.json() == {"detail": "Forbidden"}

    @pytest.mark.asyncio
    async def test_streams_events(self, client, db_session):
        with patch.object(ChatRequestAssembler, "create_provider", return_value=FakeProvider("Hello", " there")):
            response = await client.post("/api/v1/chat", json=_chat_body())

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"

        events = _sse_events(response.text)
        assert [e["type"] for e in events] == ["start", "text-delta", "text-delta", "finish"]
        assert events[-1]["messageMetadata"]["tool_choice"] == "none"

        messages = await ChatRepository(db_session).select_messages_by_thread_id("thread-api")
        assert [m.parts for m in messages] == [
            [{"type": "text", "text": "Hi"}],
            [{"type": "text", "text": "Hello there"}],
        ]

    @pytest.mark.asyncio
    async def test_invalid_body(self, client):
        response = await client.post("/api/v1/chat", json={"id": "x"})

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_assembly_failure_is_plain_text(self, client):
        with patch.object(ChatRequestAssembler, "prepare", new=AsyncMock(side_effect=RuntimeError("db down"))):
            response = await client.post("/api/v1/chat", json=_chat_body())

        assert response.status_code == 500
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == "db down"


@pytest.mark.api
class TestModelRoutes:
    """Test cases for model listing."""

    @pytest.mark.asyncio
    async def test_list_models(self, client):
        response = await client.get("/api/v1/chat/models")

        assert response.status_code == 200
        providers = response.json()
        assert {"openai", "openRouter"} <= {p["provider"] for p in providers}
        keyed = [p["has_api_key"] for p in providers]
        assert keyed == sorted(keyed, reverse=True)

    @pytest.mark.asyncio
    async def test_openrouter_failure_reported(self, client):
        from app.models.schemas.models import OpenRouterModelsResponse

        failed = OpenRouterModelsResponse(success=False, error="OpenRouter API error: Unauthorized")
        with patch("app.api.routes.chat.fetch_openrouter_models", new=AsyncMock(return_value=failed)):
            response = await client.get("/api/v1/chat/models/openrouter")

        assert response.status_code == 200
        assert response.json() == {"success": False, "error": "OpenRouter API error: Unauthorized"}


@pytest.mark.api
class TestVoiceMessage:
    """Test cases for POST /api/v1/chat/voice-message."""

    @pytest_asyncio.fixture
    async def voice_thread(self, db_session, sample_user):
        return await ChatRepository(db_session).insert_thread(str(uuid.uuid4()), sample_user.id)

    @pytest.mark.asyncio
    async def test_unauthorized(self, anonymous_client):
        response = await anonymous_client.post("/api/v1/chat/voice-message", json={})

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    @pytest.mark.asyncio
    async def test_invalid_body(self, client):
        response = await client.post(
            "/api/v1/chat/voice-message", json={"thread_id": "not-a-uuid", "role": "user", "content": "x"}
        )

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid request body"
        assert body["details"][0]["loc"] == ["thread_id"]

    @pytest.mark.asyncio
    async def test_malformed_json(self, client):
        response = await client.post(
            "/api/v1/chat/voice-message", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"

    @pytest.mark.asyncio
    async def test_access_denied(self, client, voice_thread, other_auth_headers):
        response = await client.post(
            "/api/v1/chat/voice-message",
            json={"thread_id": voice_thread.id, "role": "user", "content": "hello"},
            headers=other_auth_headers,
        )

        assert response.status_code == 403
        assert response.json() == {"error": "Access denied"}

    @pytest.mark.asyncio
    async def test_saves_message(self, client, voice_thread, db_session):
        response = await client.post(
            "/api/v1/chat/voice-message",
            json={
                "thread_id": voice_thread.id,
                "role": "assistant",
                "content": "Sure thing",
                "metadata": {"voice_model": "gpt-4o-realtime-preview", "voice_voice": "ash"},
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True

        messages = await ChatRepository(db_session).select_messages_by_thread_id(voice_thread.id)
        assert messages[0].id == body["message"]["id"]
        assert messages[0].parts == [{"type": "text", "text": "Sure thing"}]
        assert messages[0].message_metadata == {
            "modality": "voice",
            "voice_model": "gpt-4o-realtime-preview",
            "voice_voice": "ash",
        }


@pytest.mark.api
class TestRealtimeSession:
    """Test cases for POST /api/v1/chat/openai-realtime."""

    @pytest.mark.asyncio
    async def test_creates_session(self, client):
        session = {"id": "sess_1", "client_secret": {"value": "ek_1"}}
        with patch("app.api.routes.chat.create_realtime_session", new=AsyncMock(return_value=session)) as create:
            response = await client.post("/api/v1/chat/openai-realtime", json={"voice": "verse"})

        assert response.status_code == 200
        assert response.json() == session
        kwargs = create.call_args.kwargs
        assert kwargs["voice"] == "verse"
        assert kwargs["model"] == "gpt-4o-realtime-preview"
        assert [t["name"] for t in kwargs["tools"]] == ["changeBrowserTheme", "endConversation"]
        assert "Test User" in kwargs["instructions"]

    @pytest.mark.asyncio
    async def test_missing_key_is_server_error(self, client):
        from app.core.errors import AppError

        with patch(
            "app.api.routes.chat.create_realtime_session",
            new=AsyncMock(side_effect=AppError("OPENAI_API_KEY is not set")),
        ):
            response = await client.post("/api/v1/chat/openai-realtime", json={})

        assert response.status_code == 500
        assert response.json() == {"detail": "OPENAI_API_KEY is not set"}
