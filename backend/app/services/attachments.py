"""Attachment handling for incoming chat messages."""

import asyncio
import csv
import io
import logging
from typing import Any, Callable, Iterable

from app.core.errors import AppError
from app.models.schemas.chat import (
    ChatAttachment,
    FilePart,
    SourceUrlPart,
    TextPart,
)

logger = logging.getLogger(__name__)

CSV_PREVIEW_ROWS = 20
CSV_MEDIA_TYPES = {"text/csv", "application/csv"}
TRANSIENT_PART_FIELDS = ("provider_metadata", "call_provider_metadata")


def convert_to_save_part(part: Any) -> dict[str, Any]:
    """Serialize a part for storage, dropping transient provider metadata."""
    if hasattr(part, "model_dump"):
        data = part.model_dump(mode="json")
    else:
        data = dict(part)

    for field in TRANSIENT_PART_FIELDS:
        data.pop(field, None)
    return data


def attachment_to_part(attachment: ChatAttachment) -> FilePart | SourceUrlPart:
    if attachment.type == "file":
        return FilePart(url=attachment.url, media_type=attachment.media_type, filename=attachment.filename)
    return SourceUrlPart(url=attachment.url, media_type=attachment.media_type, title=attachment.filename)


def _part_url(part: Any) -> str | None:
    return getattr(part, "url", None)


def merge_attachments(parts: list, attachments: Iterable[ChatAttachment]) -> list:
    """
    Add attachment parts to a message's parts.

    New parts go right before the first text part, or at the end when there
    is none. Attachments already present (same type and url) are skipped.
    """
    existing = {(part.type, _part_url(part)) for part in parts}
    new_parts = [
        attachment_to_part(attachment)
        for attachment in attachments
        if (attachment.type, attachment.url) not in existing
    ]
    if not new_parts:
        return list(parts)

    first_text = next((i for i, part in enumerate(parts) if part.type == "text"), None)
    if first_text is None:
        return [*parts, *new_parts]
    return [*parts[:first_text], *new_parts, *parts[first_text:]]


def insert_before_last_text(parts: list, new_parts: list) -> list:
    """Insert ``new_parts`` right before the last text part, or append."""
    if not new_parts:
        return list(parts)

    last_text = None
    for i in range(len(parts) - 1, -1, -1):
        if parts[i].type == "text":
            last_text = i
            break

    if last_text is None:
        return [*parts, *new_parts]
    return [*parts[:last_text], *new_parts, *parts[last_text:]]


def is_csv_attachment(attachment: ChatAttachment) -> bool:
    if attachment.media_type in CSV_MEDIA_TYPES:
        return True
    return bool(attachment.filename and attachment.filename.lower().endswith(".csv"))


def build_csv_preview(content: bytes, filename: str, max_rows: int = CSV_PREVIEW_ROWS) -> str:
    """Header plus the first ``max_rows`` data rows, rendered as a csv block."""
    text = content.decode("utf-8", errors="replace")
    rows = list(csv.reader(io.StringIO(text)))
    if not rows:
        return f'CSV file "{filename}" is empty.'

    header, data_rows = rows[0], rows[1:]
    shown = data_rows[:max_rows]

    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(shown)

    return (
        f'CSV file "{filename}": {len(data_rows)} rows, {len(header)} columns '
        f"({', '.join(header)}). Showing the first {len(shown)} rows:\n"
        f"```csv\n{out.getvalue()}```"
    )


async def build_csv_preview_parts(
    attachments: Iterable[ChatAttachment],
    download: Callable[[str], bytes],
) -> list[TextPart]:
    """
    Text preview parts for CSV attachments that live in file storage.

    A CSV that cannot be read is skipped so the turn still goes through.
    """
    parts = []
    for attachment in attachments:
        if not attachment.storage_key or not is_csv_attachment(attachment):
            continue
        try:
            content = await asyncio.to_thread(download, attachment.storage_key)
        except AppError as e:
            logger.warning(f"Skipping CSV preview for {attachment.storage_key}: {e.message}")
            continue
        parts.append(TextPart(text=build_csv_preview(content, attachment.filename or attachment.storage_key)))
    return parts
