"""Tests for the voice relay WebSocket handshake."""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect


@pytest.mark.websocket
class TestVoiceSocket:
    """Test cases for /api/v1/chat/voice/{thread_id}."""

    def test_rejects_missing_session(self, app):
        client = TestClient(app)

        with client.websocket_connect("/api/v1/chat/voice/thread-1") as websocket:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                websocket.receive_text()

        assert exc_info.value.code == 1008
