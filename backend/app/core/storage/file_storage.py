"""Local object storage for chat uploads."""

import json
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path, PurePosixPath

from app.core.config import settings
from app.core.errors import StoredFileNotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
METADATA_SUFFIX = ".meta.json"


@dataclass
class StoredFileMetadata:
    key: str
    filename: str
    content_type: str
    size: int
    uploaded_at: datetime


def sanitize_filename(filename: str) -> str:
    """Sanitize filename to prevent directory traversal."""
    filename = os.path.basename(filename.replace("\\", "/"))

    for char in ["..", "/", "\\", "\0"]:
        filename = filename.replace(char, "_")
    filename = filename.strip() or "file"

    if len(filename) > 200:
        name, ext = os.path.splitext(filename)
        filename = name[:200 - len(ext)] + ext

    return filename


class LocalFileStorage:
    """Store objects on disk under keys shaped like ``{prefix}/{uuid}-{name}``."""

    def __init__(self, base_path: str | None = None, prefix: str | None = None):
        """
        Initialize file storage.

        Args:
            base_path: Root directory for stored objects
            prefix: Optional key prefix (e.g., "uploads")
        """
        self.base_path = Path(base_path or settings.file_storage_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.prefix = (prefix if prefix is not None else settings.file_storage_prefix).strip("/")

    def build_key(self, filename: str) -> str:
        name = f"{uuid.uuid4()}-{sanitize_filename(filename or 'file')}"
        return f"{self.prefix}/{name}" if self.prefix else name

    def _path(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or any(part in ("..", "/") for part in parts) or key.endswith(METADATA_SUFFIX):
            raise ValidationFailedError(f"Invalid storage key: {key}")
        return self.base_path.joinpath(*parts)

    def _metadata_path(self, key: str) -> Path:
        path = self._path(key)
        return path.with_name(path.name + METADATA_SUFFIX)

    def upload(self, content: bytes, filename: str | None = None,
               content_type: str | None = None) -> StoredFileMetadata:
        """
        Save an object.

        Args:
            content: Object bytes
            filename: Original filename (sanitized into the key)
            content_type: MIME type, defaults to application/octet-stream

        Returns:
            Metadata including the generated key
        """
        key = self.build_key(filename or "file")
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)

        metadata = StoredFileMetadata(
            key=key,
            filename=PurePosixPath(key).name,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            size=len(content),
            uploaded_at=datetime.utcnow(),
        )
        self._metadata_path(key).write_text(
            json.dumps(
                {
                    "filename": metadata.filename,
                    "content_type": metadata.content_type,
                    "size": metadata.size,
                    "uploaded_at": metadata.uploaded_at.isoformat(),
                }
            )
        )
        logger.info(f"Stored file {key} ({metadata.size} bytes)")
        return metadata

    def download(self, key: str) -> bytes:
        path = self._path(key)
        if not path.is_file():
            raise StoredFileNotFoundError(key)
        return path.read_bytes()

    def exists(self, key: str) -> bool:
        try:
            return self._path(key).is_file()
        except ValidationFailedError:
            return False

    def delete(self, key: str) -> None:
        """Delete an object; missing keys are ignored."""
        path = self._path(key)
        path.unlink(missing_ok=True)
        self._metadata_path(key).unlink(missing_ok=True)

    def get_metadata(self, key: str) -> StoredFileMetadata | None:
        path = self._path(key)
        if not path.is_file():
            return None

        meta_path = self._metadata_path(key)
        if meta_path.is_file():
            data = json.loads(meta_path.read_text())
            return StoredFileMetadata(
                key=key,
                filename=data["filename"],
                content_type=data["content_type"],
                size=data["size"],
                uploaded_at=datetime.fromisoformat(data["uploaded_at"]),
            )

        stat = path.stat()
        return StoredFileMetadata(
            key=key,
            filename=path.name,
            content_type=DEFAULT_CONTENT_TYPE,
            size=stat.st_size,
            uploaded_at=datetime.fromtimestamp(stat.st_mtime),
        )


# Global file storage instance
_file_storage: LocalFileStorage | None = None


def get_file_storage() -> LocalFileStorage:
    """Get global file storage instance."""
    global _file_storage
    if _file_storage is None:
        _file_storage = LocalFileStorage()
    return _file_storage
