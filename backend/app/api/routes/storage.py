"""Object storage API routes for chat attachments."""

import logging

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import Response

from app.api.deps import get_current_user
from app.core.errors import StoredFileNotFoundError, ValidationFailedError
from app.core.storage.file_storage import LocalFileStorage, get_file_storage
from app.models.database import User
from app.models.schemas.file import MAX_FILE_SIZE, StoredObjectResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/storage", tags=["storage"])


def _object_url(key: str) -> str:
    return f"/api/v1/storage/{key}"


@router.post("/upload", response_model=StoredObjectResponse, status_code=status.HTTP_201_CREATED)
async def upload_object(
    file: UploadFile = File(...),
    storage: LocalFileStorage = Depends(get_file_storage),
    user: User = Depends(get_current_user),
):
    """Store an uploaded attachment and return its key and URL."""
    content = await file.read()
    if len(content) > MAX_FILE_SIZE:
        raise ValidationFailedError(f"File too large (max {MAX_FILE_SIZE} bytes)")

    metadata = storage.upload(content, file.filename, file.content_type)
    logger.info(f"User {user.id} uploaded {metadata.key}")
    return StoredObjectResponse(
        key=metadata.key,
        url=_object_url(metadata.key),
        filename=metadata.filename,
        content_type=metadata.content_type,
        size=metadata.size,
        uploaded_at=metadata.uploaded_at,
    )


@router.get("/{key:path}")
async def download_object(
    key: str,
    storage: LocalFileStorage = Depends(get_file_storage),
    user: User = Depends(get_current_user),
):
    """Serve a stored object with its recorded content type."""
    metadata = storage.get_metadata(key)
    if metadata is None:
        raise StoredFileNotFoundError(key)

    return Response(
        content=storage.download(key),
        media_type=metadata.content_type,
        headers={"Content-Disposition": f'inline; filename="{metadata.filename}"'},
    )
