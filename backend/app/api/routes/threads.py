"""Chat thread API routes."""

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_optional_user
from app.core.storage.database import get_db
from app.models.database import User
from app.models.schemas.chat import (
    ChatMessageResponse,
    ThreadDetailResponse,
    ThreadListResponse,
    ThreadResponse,
)
from app.models.schemas.voice import ThreadMessagesResponse
from app.repositories import ChatRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/threads", tags=["threads"])


@router.get("", response_model=ThreadListResponse)
async def list_threads(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List the user's threads, newest first."""
    threads, total = await ChatRepository(db).list_threads(user.id, skip=skip, limit=limit)
    return ThreadListResponse(
        threads=[ThreadResponse.model_validate(t) for t in threads],
        total=total,
    )


@router.get("/{thread_id}", response_model=ThreadDetailResponse)
async def get_thread(
    thread_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Get a thread with its messages."""
    thread = await ChatRepository(db).get_owned_thread(thread_id, user.id)
    return ThreadDetailResponse(
        **ThreadResponse.model_validate(thread).model_dump(),
        messages=[ChatMessageResponse.model_validate(m) for m in thread.messages],
    )


@router.delete("/{thread_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_thread(
    thread_id: str,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Delete a thread and its messages."""
    await ChatRepository(db).delete_thread(thread_id, user.id)


@router.get("/{thread_id}/messages")
async def list_thread_messages(
    thread_id: str,
    modality: str | None = Query(None),
    limit: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: User | None = Depends(get_optional_user),
):
    """
    Messages of a thread in creation order.

    ``modality`` keeps only messages tagged with it (e.g. "voice");
    ``limit`` keeps the most recent N after filtering.
    """
    if user is None:
        return JSONResponse({"error": "Unauthorized"}, status_code=status.HTTP_401_UNAUTHORIZED)

    repository = ChatRepository(db)
    try:
        if not await repository.check_access(thread_id, user.id):
            return JSONResponse({"error": "Access denied"}, status_code=status.HTTP_403_FORBIDDEN)

        messages = await repository.select_messages_by_thread_id(thread_id, modality=modality, limit=limit)
    except Exception as e:
        logger.error(f"Failed to load messages for thread {thread_id}: {e}", exc_info=True)
        return JSONResponse(
            {"error": "Internal server error", "details": str(e)},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    response = ThreadMessagesResponse(
        thread_id=thread_id,
        messages=[
            {
                "id": m.id,
                "role": m.role.value,
                "parts": m.parts,
                "metadata": m.message_metadata,
                "created_at": m.created_at.isoformat(),
            }
            for m in messages
        ],
        count=len(messages),
    )
    return JSONResponse(response.model_dump(mode="json"))
