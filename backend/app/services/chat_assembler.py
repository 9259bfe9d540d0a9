"""Chat request assembly: one inbound turn to a streamed, persisted reply.

Each step is a separate method so it can be exercised on its own:

1. resolve_thread       load or lazily create the thread, check ownership
2. merge_attachments    CSV previews and attachment parts into the message
3. is_tool_call_allowed tool eligibility for this turn
4. load_tools           MCP, workflow, app-default and image tools
5. build_system_prompt  user, project, MCP customization, fallback sections
6. stream               SSE events while generating, then persist
"""

import json
import logging
import uuid
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import anyio
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.ai.file_context import build_file_context_prompt, truncate_file_context
from app.core.ai.project_context import build_project_context_prompt
from app.core.ai.prompts import (
    TOOL_CALL_UNSUPPORTED_MODEL_SYSTEM_PROMPT,
    build_mcp_server_customizations_system_prompt,
    build_user_system_prompt,
    merge_system_prompt,
)
from app.core.config import Settings, settings as app_settings
from app.core.errors import AccessDeniedError
from app.core.llm.provider import LLMProvider, create_llm_provider
from app.core.llm.providers import ModelRegistry, get_model_registry
from app.core.storage.file_storage import LocalFileStorage, get_file_storage
from app.core.tools import (
    ImageGenerationTool,
    McpClientsManager,
    ToolRegistry,
    WorkflowRegistry,
    exclude_tool_execution,
    extract_in_progress_tool_parts,
    filter_mcp_server_customizations,
    load_app_default_tools,
    load_mcp_tools,
    load_workflow_tools,
    manual_tool_execute,
)
from app.models.database import ChatThread, MessageRole, User
from app.models.schemas.chat import (
    ChatApiRequest,
    ChatMessageIn,
    ChatMetadata,
    MessagePart,
    ProjectMention,
    TextPart,
    ToolInvocationPart,
)
from app.repositories import (
    ChatRepository,
    FileRepository,
    McpCustomizationRepository,
    ProjectRepository,
)
from app.services.attachments import (
    build_csv_preview_parts,
    convert_to_save_part,
    insert_before_last_text,
    merge_attachments,
)

logger = logging.getLogger(__name__)

_part_adapter = TypeAdapter(MessagePart)


def sse_event(event: dict) -> str:
    """Encode one Server-Sent Events frame."""
    return f"data: {json.dumps(event, default=str)}\n\n"


def parse_stored_parts(parts: list[dict]) -> list:
    """Typed parts from stored JSON; unknown part types are skipped."""
    typed = []
    for raw in parts or []:
        try:
            typed.append(_part_adapter.validate_python(raw))
        except ValidationError:
            logger.debug(f"Skipping unknown stored part: {raw.get('type') if isinstance(raw, dict) else raw}")
    return typed


def _tool_output_text(output: Any) -> str:
    if isinstance(output, str):
        return output
    return json.dumps(output, default=str)


def _user_content(parts: list) -> str | list[dict]:
    content: list[dict] = []
    for part in parts:
        if part.type == "text":
            content.append({"type": "text", "text": part.text})
        elif part.type == "file":
            if part.media_type.startswith("image/"):
                content.append({"type": "image_url", "image_url": {"url": part.url}})
            else:
                label = part.filename or part.url
                content.append({"type": "text", "text": f"[Attached file: {label} ({part.media_type}) {part.url}]"})
        elif part.type == "source-url":
            content.append({"type": "text", "text": f"[Source: {part.title or part.url} {part.url}]"})

    if all(item["type"] == "text" for item in content):
        return "\n".join(item["text"] for item in content)
    return content


def _assistant_messages(parts: list) -> list[dict]:
    """Split assistant parts into assistant/tool messages, one group per tool step."""
    messages: list[dict] = []
    text: list[str] = []
    calls: list[ToolInvocationPart] = []

    def flush():
        if not text and not calls:
            return
        message: dict[str, Any] = {"role": "assistant", "content": "".join(text) or None}
        if calls:
            message["tool_calls"] = [
                {
                    "id": call.tool_call_id,
                    "type": "function",
                    "function": {"name": call.tool_name, "arguments": json.dumps(call.input)},
                }
                for call in calls
            ]
        messages.append(message)
        for call in calls:
            messages.append(
                {"role": "tool", "tool_call_id": call.tool_call_id, "content": _tool_output_text(call.output)}
            )
        text.clear()
        calls.clear()

    for part in parts:
        if part.type == "text":
            if calls:
                flush()
            text.append(part.text)
        elif part.type == "tool-invocation" and part.state != "input-available":
            calls.append(part)
    flush()
    return messages


def to_model_messages(messages: list[dict]) -> list[dict]:
    """Convert stored/ui messages ({role, parts}) to chat-completion messages."""
    model_messages: list[dict] = []
    for message in messages:
        parts = message["parts"]
        if message["role"] == "assistant":
            model_messages.extend(_assistant_messages(parts))
        elif message["role"] == "user":
            content = _user_content(parts)
            if content:
                model_messages.append({"role": "user", "content": content})
        else:
            text = "".join(p.text for p in parts if p.type == "text")
            if text:
                model_messages.append({"role": "system", "content": text})
    return model_messages


class ChatRequestAssembler:
    """Turns one ChatApiRequest into a streamed reply plus persisted messages."""

    def __init__(
        self,
        db: AsyncSession,
        user: User,
        request: ChatApiRequest,
        *,
        registry: Optional[ModelRegistry] = None,
        mcp_manager: Optional[McpClientsManager] = None,
        workflow_registry: Optional[WorkflowRegistry] = None,
        file_storage: Optional[LocalFileStorage] = None,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.user = user
        self.request = request
        self.settings = config or app_settings
        self.registry = registry or get_model_registry()
        self.mcp_manager = mcp_manager or McpClientsManager()
        self.workflow_registry = workflow_registry or WorkflowRegistry()
        self._file_storage = file_storage

        self.chat_repository = ChatRepository(db)
        self.project_repository = ProjectRepository(db)
        self.file_repository = FileRepository(db)
        self.customization_repository = McpCustomizationRepository(db)

        self.model = self.registry.get_model(request.chat_model)
        self.message: ChatMessageIn = request.message.model_copy(deep=True)
        self.thread: ChatThread | None = None
        self.history: list[dict] = []
        self.tools = ToolRegistry()
        self.mcp_tools: dict = {}
        self.system_prompt = ""
        self.metadata = ChatMetadata(
            tool_choice=request.tool_choice,
            tool_count=0,
            chat_model=request.chat_model,
        )

    @property
    def file_storage(self) -> LocalFileStorage:
        if self._file_storage is None:
            self._file_storage = get_file_storage()
        return self._file_storage

    @property
    def supports_tool_call(self) -> bool:
        return not self.registry.is_tool_call_unsupported(self.model)

    @property
    def use_image_tool(self) -> bool:
        return bool(self.request.image_tool and self.request.image_tool.model)

    # Step 1 -----------------------------------------------------------------

    async def resolve_thread(self) -> ChatThread:
        """
        Load the thread, creating it on first use.

        A new thread takes its project from the first project mention.

        Raises:
            AccessDeniedError: The thread belongs to another user
        """
        thread = await self.chat_repository.select_thread_details(self.request.id)

        if thread is None:
            project_id = next(
                (m.project_id for m in self.request.mentions if isinstance(m, ProjectMention)), None
            )
            await self.chat_repository.insert_thread(self.request.id, self.user.id, project_id=project_id)
            thread = await self.chat_repository.select_thread_details(self.request.id)

        if thread.user_id != self.user.id:
            raise AccessDeniedError("Forbidden")

        history = [
            {
                "id": m.id,
                "role": m.role.value if isinstance(m.role, MessageRole) else m.role,
                "parts": parse_stored_parts(m.parts),
                "metadata": m.message_metadata,
            }
            for m in thread.messages
        ]
        # A resent message (manual tool approval) replaces its stored copy
        if history and history[-1]["id"] == self.message.id:
            history.pop()

        self.thread = thread
        self.history = history
        return thread

    # Step 2 -----------------------------------------------------------------

    async def merge_attachments(self) -> ChatMessageIn:
        """Add CSV previews (before the last text part) and attachment parts (before the first)."""
        attachments = self.request.attachments
        parts = list(self.message.parts)

        preview_parts = await build_csv_preview_parts(attachments, self.file_storage.download)
        parts = insert_before_last_text(parts, preview_parts)
        parts = merge_attachments(parts, attachments)

        self.message.parts = parts
        return self.message

    # Step 3 -----------------------------------------------------------------

    def is_tool_call_allowed(self) -> bool:
        return (
            self.supports_tool_call
            and (self.request.tool_choice != "none" or len(self.request.mentions) > 0)
            and not self.use_image_tool
        )

    # Step 4 -----------------------------------------------------------------

    async def _guarded(self, label: str, loader: Callable[[], Awaitable[dict] | dict]) -> dict:
        """Run one tool loader; a failure yields no tools for that category."""
        try:
            result = loader()
            if hasattr(result, "__await__"):
                result = await result
            return result
        except Exception as e:
            logger.warning(f"Failed to load {label} tools: {e}")
            return {}

    def _is_manual(self) -> bool:
        message_metadata = self.message.metadata or {}
        return self.request.tool_choice == "manual" or message_metadata.get("tool_choice") == "manual"

    async def load_tools(self) -> ToolRegistry:
        """
        Bind the tools for this turn.

        In manual mode MCP and workflow tools are bound without execution;
        app-default and image tools always execute.
        """
        allowed = self.is_tool_call_allowed()
        mentions = self.request.mentions

        mcp_tools = workflow_tools = app_default_tools = {}
        if allowed:
            mcp_tools = await self._guarded(
                "MCP",
                lambda: load_mcp_tools(self.mcp_manager, mentions, self.request.allowed_mcp_servers),
            )
            workflow_tools = await self._guarded(
                "workflow", lambda: load_workflow_tools(self.workflow_registry, mentions)
            )
            app_default_tools = await self._guarded(
                "app default",
                lambda: load_app_default_tools(mentions, self.request.allowed_app_default_toolkit),
            )

        bindable = {**mcp_tools, **workflow_tools}
        if self._is_manual():
            bindable = exclude_tool_execution(bindable)

        registry = ToolRegistry(bindable)
        registry.update(app_default_tools)

        if self.use_image_tool:
            backend = self.request.image_tool.model
            api_key = self.settings.openai_api_key if backend == "openai" else None
            registry.register(ImageGenerationTool(backend=backend, api_key=api_key))
            logger.info(f"binding tool count Image: {backend}")
        else:
            logger.info(
                f"binding tool count APP_DEFAULT: {len(app_default_tools)}, "
                f"MCP: {len(mcp_tools)}, Workflow: {len(workflow_tools)}"
            )

        self.mcp_tools = mcp_tools
        self.tools = registry
        self.metadata.tool_count = len(registry)
        return registry

    # Step 5 -----------------------------------------------------------------

    async def _project_prompt(self) -> str | None:
        project_id = next(
            (m.project_id for m in self.request.mentions if isinstance(m, ProjectMention)),
            self.thread.project_id if self.thread is not None else None,
        )
        if not project_id:
            return None

        project = await self.project_repository.find_project_by_id(project_id, self.user.id)
        if project is None:
            return None

        sections = [build_project_context_prompt(project)]
        files = await self.file_repository.get_project_files_for_context(project_id, self.user.id)
        file_context = build_file_context_prompt(files)
        if file_context:
            sections.append(truncate_file_context(file_context, self.settings.file_context_max_length))
        return "\n\n".join(sections)

    async def _mcp_customizations(self) -> dict:
        if not self.mcp_tools:
            return {}
        try:
            customizations = await self.customization_repository.select_by_user_id(self.user.id)
        except Exception as e:
            logger.warning(f"Failed to load MCP customizations: {e}")
            return {}
        return filter_mcp_server_customizations(self.mcp_tools, customizations)

    async def build_system_prompt(self) -> str:
        preferences = getattr(self.user, "preferences", None) or {}
        self.system_prompt = merge_system_prompt(
            build_user_system_prompt(self.user, preferences),
            await self._project_prompt(),
            build_mcp_server_customizations_system_prompt(await self._mcp_customizations()),
            None if self.supports_tool_call else TOOL_CALL_UNSUPPORTED_MODEL_SYSTEM_PROMPT,
        )
        return self.system_prompt

    async def prepare(self) -> None:
        """Run steps 1-5. Raises before any model call on access errors."""
        await self.resolve_thread()
        await self.merge_attachments()
        await self.load_tools()
        await self.build_system_prompt()

        logger.info(
            f"tool mode: {self.request.tool_choice}, mentions: {len(self.request.mentions)}, "
            f"model: {self.model.provider}/{self.model.name}"
        )

    # Step 6 -----------------------------------------------------------------

    def create_provider(self) -> LLMProvider:
        return create_llm_provider(self.model)

    async def _run_tool(self, part: ToolInvocationPart) -> None:
        tool = self.tools.get(part.tool_name)
        if tool is None:
            part.state = "output-error"
            part.error_text = f"Tool not found: {part.tool_name}"
            part.output = {"isError": True, "error": part.error_text}
            return

        result = await tool.validate_and_execute(**part.input)
        part.output = result.as_output()
        if result.success:
            part.state = "output-available"
        else:
            part.state = "output-error"
            part.error_text = result.error

    async def stream(
        self,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> AsyncIterator[str]:
        """
        Generate the reply as SSE frames, then persist the turn.

        Events: start, text-delta, tool-input-available, tool-output-available,
        finish (with metadata) and error.

        The turn is saved even when the stream is closed or cancelled midway,
        in which case the partial reply is kept.
        """
        continuing = self.message.role == "assistant"
        response_id = self.message.id if continuing else str(uuid.uuid4())
        response_parts: list = list(self.message.parts) if continuing else []
        thread_id = self.thread.id
        failed = False
        saved = False

        try:
            yield sse_event({"type": "start", "messageId": response_id})

            try:
                async for event in self._generate(response_id, response_parts, is_disconnected):
                    yield event
            except Exception as e:
                failed = True
                logger.error(f"Chat stream failed for thread {thread_id}: {e}", exc_info=True)
                yield sse_event({"type": "error", "errorText": str(e)})

            save_error = await self._save_turn(thread_id, continuing, response_id, response_parts, failed)
            saved = True
            if save_error is not None:
                yield sse_event({"type": "error", "errorText": str(save_error)})
        finally:
            if not saved:
                logger.info(f"Stream closed early, saving partial turn for thread {thread_id}")
                with anyio.CancelScope(shield=True):
                    await self._save_turn(thread_id, continuing, response_id, response_parts, failed)

    async def _generate(
        self,
        response_id: str,
        response_parts: list,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]],
    ) -> AsyncIterator[str]:
        for part in extract_in_progress_tool_parts(self.message):
            output = await manual_tool_execute(part, self.tools.as_dict())
            part.output = output
            part.state = "output-available"
            yield sse_event({"type": "tool-output-available", "toolCallId": part.tool_call_id, "output": output})

        model_messages = [{"role": "system", "content": self.system_prompt}]
        model_messages += to_model_messages(self.history + [{"role": self.message.role, "parts": self.message.parts}])

        provider = self.create_provider()
        tool_specs = self.tools.get_tools_for_llm() or None
        usage: dict[str, Any] = {}
        stopped = False

        for step in range(self.settings.max_tool_steps):
            text = ""
            text_part: Optional[TextPart] = None
            tool_calls = []

            async for chunk in provider.generate_stream(model_messages, tools=tool_specs):
                if is_disconnected is not None and await is_disconnected():
                    logger.info(f"Client disconnected, stopping generation for thread {self.thread.id}")
                    stopped = True
                    break
                if isinstance(chunk, str):
                    if not chunk:
                        continue
                    # Kept in response_parts as it grows so a closed stream still saves it
                    if text_part is None:
                        text_part = TextPart(text="")
                        response_parts.append(text_part)
                    text += chunk
                    text_part.text = text
                    yield sse_event({"type": "text-delta", "id": response_id, "delta": chunk})
                elif "tool_call" in chunk:
                    tool_calls.append(chunk["tool_call"])
                elif "usage" in chunk:
                    for key, value in chunk["usage"].items():
                        if isinstance(value, (int, float)):
                            usage[key] = usage.get(key, 0) + value

            if stopped or not tool_calls:
                break

            invocations = []
            for call in tool_calls:
                try:
                    arguments = json.loads(call.get("arguments") or "{}")
                except ValueError:
                    arguments = {}
                invocations.append(
                    ToolInvocationPart(
                        tool_call_id=call.get("id") or f"call_{uuid.uuid4().hex[:24]}",
                        tool_name=call["name"],
                        input=arguments if isinstance(arguments, dict) else {},
                    )
                )

            model_messages.append(
                {
                    "role": "assistant",
                    "content": text or None,
                    "tool_calls": [
                        {
                            "id": part.tool_call_id,
                            "type": "function",
                            "function": {"name": part.tool_name, "arguments": json.dumps(part.input)},
                        }
                        for part in invocations
                    ],
                }
            )

            pending = False
            for part in invocations:
                response_parts.append(part)
                yield sse_event(
                    {
                        "type": "tool-input-available",
                        "toolCallId": part.tool_call_id,
                        "toolName": part.tool_name,
                        "input": part.input,
                    }
                )

                tool = self.tools.get(part.tool_name)
                if tool is not None and not tool.auto_execute:
                    pending = True
                    continue

                await self._run_tool(part)
                yield sse_event(
                    {"type": "tool-output-available", "toolCallId": part.tool_call_id, "output": part.output}
                )
                model_messages.append(
                    {"role": "tool", "tool_call_id": part.tool_call_id, "content": _tool_output_text(part.output)}
                )

            # Calls awaiting user approval end the turn
            if pending:
                break

        if usage:
            self.metadata.usage = usage
        yield sse_event({"type": "finish", "messageMetadata": self.metadata.model_dump(mode="json")})

    async def _save_turn(self, thread_id: str, continuing: bool, response_id: str,
                         response_parts: list, failed: bool) -> Optional[Exception]:
        """Persist the turn; a failure is logged and returned, never raised."""
        try:
            await self._persist(thread_id, continuing, response_id, response_parts, failed)
        except Exception as e:
            logger.error(f"Failed to save chat turn for thread {thread_id}: {e}", exc_info=True)
            await self.db.rollback()
            return e
        return None

    async def _persist(self, thread_id: str, continuing: bool, response_id: str,
                       response_parts: list, failed: bool) -> None:
        metadata = self.metadata.model_dump(mode="json")
        saved_parts = [convert_to_save_part(part) for part in response_parts]

        if continuing:
            await self.chat_repository.upsert_message(
                thread_id, MessageRole.ASSISTANT, saved_parts, message_id=response_id, metadata=metadata
            )
            return

        await self.chat_repository.upsert_message(
            thread_id,
            MessageRole(self.message.role),
            [convert_to_save_part(part) for part in self.message.parts],
            message_id=self.message.id,
            metadata=self.message.metadata,
        )
        if saved_parts and not failed:
            await self.chat_repository.upsert_message(
                thread_id, MessageRole.ASSISTANT, saved_parts, message_id=response_id, metadata=metadata
            )
