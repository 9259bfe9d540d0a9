"""Realtime voice relay.

Bridges an OpenAI realtime session to the stored conversation of a thread.
The browser owns the WebRTC connection and forwards the vendor's server
events; the relay answers on the same channel with client events
(history replay, function call outputs, response triggers).
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import httpx

from app.core.config import Settings, settings as app_settings
from app.core.errors import AppError
from app.core.tools.mcp import McpClientsManager
from app.models.database import MessageRole
from app.models.schemas.chat import TextPart
from app.models.schemas.voice import VoiceMessageMetadata
from app.repositories import ChatRepository
from app.services.attachments import convert_to_save_part

logger = logging.getLogger(__name__)

FUNCTION_CALL_OUTPUT_MAX_CHARS = 15_000
TRANSCRIPTION_MODEL = "whisper-1"

DEFAULT_VOICE_TOOLS: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "changeBrowserTheme",
        "description": "Change the browser theme",
        "parameters": {
            "type": "object",
            "properties": {
                "theme": {"type": "string", "enum": ["light", "dark"]},
            },
            "required": ["theme"],
        },
    },
    {
        "type": "function",
        "name": "endConversation",
        "description": "End the current voice conversation, similar to hanging up a call",
        "parameters": {"type": "object", "properties": {}},
    },
]
LOCAL_VOICE_TOOL_NAMES = {tool["name"] for tool in DEFAULT_VOICE_TOOLS}


class DataChannel(Protocol):
    """Outbound side of the realtime data channel."""

    async def send(self, data: str) -> None:
        ...


@dataclass
class VoiceSessionState:
    """UI state of one voice connection."""

    theme: Optional[str] = None
    is_open: bool = True
    is_listening: bool = True
    is_user_speaking: bool = False
    is_assistant_speaking: bool = False


def history_event(role: str, text: str) -> Dict[str, Any]:
    """conversation.item.create for one past message; the vendor wants input_text for user turns."""
    content_type = "input_text" if role == "user" else "text"
    return {
        "type": "conversation.item.create",
        "item": {
            "type": "message",
            "role": role,
            "content": [{"type": content_type, "text": text}],
        },
    }


def _first_text(parts: List[Dict[str, Any]]) -> Optional[str]:
    for part in parts or []:
        if isinstance(part, dict) and part.get("type") == "text" and part.get("text"):
            return part["text"]
    return None


class VoiceRelay:
    """Per-connection relay between a realtime voice session and a thread."""

    def __init__(
        self,
        channel: DataChannel,
        chat_repository: ChatRepository,
        thread_id: str,
        mcp_manager: Optional[McpClientsManager] = None,
        voice_model: Optional[str] = None,
        voice: Optional[str] = None,
        config: Optional[Settings] = None,
        state: Optional[VoiceSessionState] = None,
    ):
        self.channel = channel
        self.chat_repository = chat_repository
        self.thread_id = thread_id
        self.mcp_manager = mcp_manager or McpClientsManager()
        self.voice_model = voice_model
        self.voice = voice
        self.settings = config or app_settings
        self.state = state or VoiceSessionState()
        self._assistant_transcripts: Dict[str, str] = {}

    async def send_event(self, event: Dict[str, Any]) -> None:
        await self.channel.send(json.dumps(event))

    async def on_open(self) -> int:
        """
        Replay recent thread history into the realtime session.

        Waits briefly first so text-chat writes that just happened are visible.

        Returns:
            Number of messages injected
        """
        await asyncio.sleep(self.settings.voice_history_delay_ms / 1000)

        messages = await self.chat_repository.select_messages_by_thread_id(
            self.thread_id, limit=self.settings.voice_history_limit
        )

        injected = 0
        for message in messages:
            text = _first_text(message.parts)
            if not text:
                continue
            role = message.role.value if isinstance(message.role, MessageRole) else message.role
            await self.send_event(history_event(role, text))
            injected += 1

        logger.info(f"Injected {injected} history messages into voice session for thread {self.thread_id}")
        return injected

    async def persist_voice_message(self, role: str, content: str, **metadata) -> None:
        meta = VoiceMessageMetadata(voice_model=self.voice_model, voice_voice=self.voice, **metadata)
        await self.chat_repository.upsert_message(
            self.thread_id,
            MessageRole(role),
            [convert_to_save_part(TextPart(text=content))],
            metadata=meta.model_dump(mode="json", exclude_none=True),
        )

    async def handle_server_event(self, event: Dict[str, Any]) -> None:
        """Apply one vendor server event; unknown event types are ignored."""
        event_type = event.get("type")

        if event_type == "input_audio_buffer.speech_started":
            self.state.is_user_speaking = True
        elif event_type == "input_audio_buffer.speech_stopped":
            self.state.is_user_speaking = False
        elif event_type == "conversation.item.input_audio_transcription.completed":
            transcript = event.get("transcript") or "...speaking"
            await self.persist_voice_message("user", transcript, voice_language="en")
        elif event_type == "response.audio_transcript.delta":
            self.state.is_assistant_speaking = True
            item_id = event.get("item_id", "")
            self._assistant_transcripts[item_id] = self._assistant_transcripts.get(item_id, "") + (
                event.get("delta") or ""
            )
        elif event_type == "response.audio_transcript.done":
            item_id = event.get("item_id", "")
            transcript = event.get("transcript") or self._assistant_transcripts.get(item_id, "")
            self._assistant_transcripts.pop(item_id, None)
            await self.persist_voice_message("assistant", transcript)
        elif event_type == "output_audio_buffer.stopped":
            self.state.is_assistant_speaking = False
        elif event_type == "response.function_call_arguments.done":
            await self.client_function_call(
                call_id=event.get("call_id", ""),
                tool_name=event.get("name", ""),
                args=event.get("arguments") or "{}",
                item_id=event.get("item_id"),
            )

    async def _call_mcp_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Any:
        tools = await self.mcp_manager.tools()
        tool = tools.get(tool_name)
        if tool is None:
            return {"isError": True, "error": f"Tool not found: {tool_name}"}
        try:
            return await self.mcp_manager.call_tool_by_server_name(tool.server_name, tool.tool_name, arguments)
        except Exception as e:
            logger.warning(f"Voice MCP call {tool_name} failed: {e}")
            return {"isError": True, "error": str(e)}

    async def client_function_call(self, call_id: str, tool_name: str, args: str,
                                   item_id: Optional[str] = None) -> str:
        """
        Run a function the model called and hand the result back.

        Local UI tools change session state; anything else goes to MCP.

        Returns:
            The output text sent on the channel
        """
        self.state.is_listening = False
        try:
            arguments = json.loads(args) if args else {}
        except ValueError:
            arguments = {}

        result: Any = "success"
        if tool_name in LOCAL_VOICE_TOOL_NAMES:
            if tool_name == "changeBrowserTheme":
                self.state.theme = arguments.get("theme")
            elif tool_name == "endConversation":
                self.state.is_open = False
        else:
            result = await self._call_mcp_tool(tool_name, arguments)
        self.state.is_listening = True

        output = json.dumps(result, default=str).strip()[:FUNCTION_CALL_OUTPUT_MAX_CHARS]

        event: Dict[str, Any] = {
            "type": "conversation.item.create",
            "item": {
                "type": "function_call_output",
                "call_id": call_id,
                "output": output,
            },
        }
        if item_id:
            event["previous_item_id"] = item_id
        await self.send_event(event)
        await self.send_event({"type": "response.create"})
        await self.send_event({"type": "response.create"})
        return output


def to_realtime_tool(tool) -> Dict[str, Any]:
    """Realtime API tool definition from a chat tool."""
    function = tool.format_for_llm()["function"]
    return {
        "type": "function",
        "name": function["name"],
        "description": function["description"],
        "parameters": function["parameters"],
    }


async def create_realtime_session(
    model: str,
    voice: str,
    instructions: str,
    tools: List[Dict[str, Any]],
    config: Optional[Settings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """
    Create an ephemeral OpenAI realtime session and return the vendor JSON.

    Raises:
        AppError: Missing API key or vendor failure
    """
    config = config or app_settings
    if not config.has_api_key(config.openai_api_key):
        raise AppError("OPENAI_API_KEY is not set")

    payload = {
        "model": model,
        "voice": voice,
        "instructions": instructions,
        "input_audio_transcription": {"model": TRANSCRIPTION_MODEL},
        "tools": tools,
        "tool_choice": "auto",
    }
    headers = {"Authorization": f"Bearer {config.openai_api_key}", "Content-Type": "application/json"}

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=30.0) as own_client:
                response = await own_client.post(config.openai_realtime_url, json=payload, headers=headers)
        else:
            response = await client.post(config.openai_realtime_url, json=payload, headers=headers)
    except httpx.HTTPError as e:
        raise AppError(f"Realtime session request failed: {e}") from e

    if response.status_code != 200:
        raise AppError(f"Realtime session request failed: {response.status_code} {response.text}")

    return response.json()
