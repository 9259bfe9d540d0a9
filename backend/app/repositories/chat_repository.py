"""Thread and message persistence."""

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.errors import AccessDeniedError, NotFoundError
from app.models.database import ChatMessage, ChatThread, MessageRole

logger = logging.getLogger(__name__)


class ChatRepository:
    """Threads are owned by one user; every write path checks that owner."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert_thread(
        self,
        thread_id: str,
        user_id: str,
        project_id: str | None = None,
        title: str = "",
    ) -> ChatThread:
        thread = ChatThread(id=thread_id, user_id=user_id, project_id=project_id, title=title)
        self.db.add(thread)
        await self.db.commit()
        await self.db.refresh(thread)
        logger.info(f"Created chat thread: {thread_id}")
        return thread

    async def select_thread(self, thread_id: str) -> ChatThread | None:
        result = await self.db.execute(select(ChatThread).where(ChatThread.id == thread_id))
        return result.scalar_one_or_none()

    async def select_thread_details(self, thread_id: str) -> ChatThread | None:
        """Thread with its messages loaded in creation order."""
        result = await self.db.execute(
            select(ChatThread)
            .where(ChatThread.id == thread_id)
            .options(selectinload(ChatThread.messages))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def check_access(self, thread_id: str, user_id: str) -> bool:
        """True only when the thread exists and belongs to ``user_id``."""
        result = await self.db.execute(
            select(ChatThread.id).where(ChatThread.id == thread_id, ChatThread.user_id == user_id)
        )
        return result.scalar_one_or_none() is not None

    async def get_owned_thread(self, thread_id: str, user_id: str) -> ChatThread:
        """
        Get a thread owned by ``user_id``.

        Raises:
            NotFoundError: No such thread
            AccessDeniedError: Thread belongs to another user
        """
        thread = await self.select_thread_details(thread_id)
        if thread is None:
            raise NotFoundError(f"Thread with id {thread_id} not found")
        if thread.user_id != user_id:
            raise AccessDeniedError("Access denied")
        return thread

    async def list_threads(self, user_id: str, skip: int = 0, limit: int = 100) -> tuple[list[ChatThread], int]:
        query = select(ChatThread).where(ChatThread.user_id == user_id)

        total_result = await self.db.execute(select(func.count()).select_from(query.subquery()))
        total = total_result.scalar_one()

        result = await self.db.execute(
            query.order_by(ChatThread.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    async def delete_thread(self, thread_id: str, user_id: str) -> None:
        thread = await self.get_owned_thread(thread_id, user_id)
        await self.db.delete(thread)
        await self.db.commit()

    async def upsert_message(
        self,
        thread_id: str,
        role: MessageRole | str,
        parts: list[dict[str, Any]],
        message_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ChatMessage:
        """
        Insert a message, or replace an existing one wholesale.

        Parts are never merged: an update stores exactly ``parts``. Metadata
        is only replaced when given.
        """
        message = None
        if message_id is not None:
            message = await self.db.get(ChatMessage, message_id)

        if message is None:
            message = ChatMessage(
                thread_id=thread_id,
                role=MessageRole(role),
                parts=parts,
                message_metadata=metadata,
            )
            if message_id is not None:
                message.id = message_id
            self.db.add(message)
        else:
            if message.thread_id != thread_id:
                raise AccessDeniedError("Message belongs to another thread")
            message.role = MessageRole(role)
            message.parts = parts
            if metadata is not None:
                message.message_metadata = metadata

        await self.db.commit()
        await self.db.refresh(message)
        return message

    async def select_messages_by_thread_id(
        self,
        thread_id: str,
        modality: str | None = None,
        limit: int | None = None,
    ) -> list[ChatMessage]:
        """
        Messages of a thread in creation order.

        ``modality`` keeps messages whose metadata carries that modality tag;
        ``limit`` then keeps the most recent N.
        """
        result = await self.db.execute(
            select(ChatMessage)
            .where(ChatMessage.thread_id == thread_id)
            .order_by(ChatMessage.created_at)
        )
        messages = list(result.scalars().all())

        if modality:
            messages = [m for m in messages if (m.message_metadata or {}).get("modality") == modality]

        if limit and limit > 0:
            messages = messages[-limit:]

        return messages
