"""Chat API routes: streamed turns, model listing and realtime voice."""

import json
import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_optional_user, get_websocket_user
from app.core.ai.prompts import build_user_system_prompt
from app.core.errors import AppError
from app.core.llm.openrouter import fetch_openrouter_models
from app.core.llm.providers import get_model_registry
from app.core.storage.database import get_db
from app.core.tools import McpClientsManager, WorkflowRegistry, load_mcp_tools
from app.models.database import MessageRole, User
from app.models.schemas.chat import ChatApiRequest
from app.models.schemas.models import OpenRouterModelsResponse, ProviderModelsInfo
from app.models.schemas.voice import (
    RealtimeSessionRequest,
    VoiceMessageMetadata,
    VoiceMessageRequest,
    VoiceMessageResponse,
    VoiceMessageSaved,
)
from app.repositories import ChatRepository
from app.services.chat_assembler import ChatRequestAssembler
from app.services.voice_relay import (
    DEFAULT_VOICE_TOOLS,
    VoiceRelay,
    create_realtime_session,
    to_realtime_tool,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Client-side marker sent once the realtime data channel is open
VOICE_CHANNEL_OPEN_EVENT = "session.channel_open"


def get_mcp_manager(request: Request) -> McpClientsManager:
    return getattr(request.app.state, "mcp_manager", None) or McpClientsManager()


def get_workflow_registry(request: Request) -> WorkflowRegistry:
    return getattr(request.app.state, "workflow_registry", None) or WorkflowRegistry()


@router.post("")
async def chat(
    request: Request,
    body: ChatApiRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
    mcp_manager: McpClientsManager = Depends(get_mcp_manager),
    workflow_registry: WorkflowRegistry = Depends(get_workflow_registry),
):
    """
    Run one chat turn and stream it back as Server-Sent Events.

    Thread resolution, tool binding and prompt assembly finish before the
    stream opens, so ownership errors are returned as plain status codes.
    """
    try:
        assembler = ChatRequestAssembler(
            db,
            user,
            body,
            mcp_manager=mcp_manager,
            workflow_registry=workflow_registry,
        )
        await assembler.prepare()
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Chat request assembly failed: {e}", exc_info=True)
        return PlainTextResponse(str(e), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return StreamingResponse(
        assembler.stream(is_disconnected=request.is_disconnected),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/models", response_model=list[ProviderModelsInfo])
async def list_models():
    """Selectable models per provider; providers with a usable key come first."""
    return await get_model_registry().models_info_with_ollama()


@router.get("/models/openrouter", response_model=OpenRouterModelsResponse, response_model_exclude_none=True)
async def list_openrouter_models():
    """OpenRouter catalog reshaped for display."""
    return await fetch_openrouter_models()


@router.post("/voice-message")
async def save_voice_message(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    """Persist one voice turn to its thread."""
    if user is None:
        return JSONResponse({"error": "Unauthorized"}, status_code=status.HTTP_401_UNAUTHORIZED)

    try:
        payload = await request.json()
        body = VoiceMessageRequest.model_validate(payload)
    except ValidationError as e:
        return JSONResponse(
            {"error": "Invalid request body", "details": e.errors(include_url=False, include_context=False)},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    except ValueError as e:
        return JSONResponse(
            {"error": "Invalid request body", "details": str(e)},
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    repository = ChatRepository(db)
    thread_id = str(body.thread_id)
    try:
        if not await repository.check_access(thread_id, user.id):
            return JSONResponse({"error": "Access denied"}, status_code=status.HTTP_403_FORBIDDEN)

        parts = body.parts or [{"type": "text", "text": body.content}]
        metadata = body.metadata or VoiceMessageMetadata()
        message = await repository.upsert_message(
            thread_id,
            MessageRole(body.role),
            parts,
            metadata=metadata.model_dump(mode="json", exclude_none=True),
        )
    except Exception as e:
        logger.error(f"Failed to save voice message for thread {thread_id}: {e}", exc_info=True)
        return JSONResponse(
            {"error": "Internal server error", "details": str(e)},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    logger.info(f"Saved {body.role} voice message {message.id} to thread {thread_id}")
    response = VoiceMessageResponse(message=VoiceMessageSaved(id=message.id, created_at=message.created_at))
    return JSONResponse(response.model_dump(mode="json"))


@router.post("/openai-realtime")
async def create_openai_realtime_session(
    body: RealtimeSessionRequest,
    user: User = Depends(get_current_user),
    mcp_manager: McpClientsManager = Depends(get_mcp_manager),
):
    """Create an ephemeral realtime session with voice and MCP tools."""
    mcp_tools = await load_mcp_tools(mcp_manager, body.mentions, None)
    tools = DEFAULT_VOICE_TOOLS + [to_realtime_tool(tool) for tool in mcp_tools.values()]
    instructions = build_user_system_prompt(user, user.preferences or {})

    session = await create_realtime_session(
        model=body.model,
        voice=body.voice,
        instructions=instructions,
        tools=tools,
    )
    logger.info(f"Created realtime session for user {user.id} with {len(tools)} tools")
    return session


class WebSocketChannel:
    """Data channel adapter writing relay events to a WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    async def send(self, data: str) -> None:
        await self.websocket.send_text(data)


@router.websocket("/voice/{thread_id}")
async def voice_relay(
    websocket: WebSocket,
    thread_id: str,
    db: AsyncSession = Depends(get_db),
):
    """
    Relay realtime vendor events for one thread.

    The browser forwards every server event it receives on the realtime data
    channel; outbound client events come back on this socket. Local UI state
    changes are reported as ``voice.state`` events.
    """
    await websocket.accept()

    user = await get_websocket_user(websocket, db)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Unauthorized")
        return

    repository = ChatRepository(db)
    if not await repository.check_access(thread_id, user.id):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Access denied")
        return

    relay = VoiceRelay(
        channel=WebSocketChannel(websocket),
        chat_repository=repository,
        thread_id=thread_id,
        mcp_manager=getattr(websocket.app.state, "mcp_manager", None),
        voice_model=websocket.query_params.get("model"),
        voice=websocket.query_params.get("voice"),
    )

    try:
        while relay.state.is_open:
            raw = await websocket.receive_text()
            try:
                event = json.loads(raw)
            except ValueError:
                logger.warning(f"Ignoring malformed voice event on thread {thread_id}")
                continue

            if event.get("type") == VOICE_CHANNEL_OPEN_EVENT:
                await relay.on_open()
                continue

            before = asdict(relay.state)
            await relay.handle_server_event(event)
            after = asdict(relay.state)
            if after != before:
                await websocket.send_text(json.dumps({"type": "voice.state", **after}))

        await websocket.close()
    except WebSocketDisconnect:
        logger.info(f"Voice relay disconnected for thread {thread_id}")
