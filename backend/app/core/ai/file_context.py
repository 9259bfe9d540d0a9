"""Project file context for chat prompts."""

from typing import Any

from app.core.ai.project_context import escape_xml

DEFAULT_MAX_CONTEXT_LENGTH = 100_000


def _isoformat(value: Any) -> str:
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def build_file_context_prompt(files: list[Any] | None) -> str | None:
    """Render project files as a <project_files> block, or None when there are none."""
    if not files:
        return None

    elements = []
    for file in files:
        elements.append(
            f'  <file name="{escape_xml(file.name)}" updated="{_isoformat(file.updated_at)}" '
            f'size="{file.size}">\n'
            f"    <content>{escape_xml(file.content)}</content>\n"
            f"  </file>"
        )

    return "<project_files>\n" + "\n".join(elements) + "\n</project_files>"


def truncate_file_context(context: str, max_length: int = DEFAULT_MAX_CONTEXT_LENGTH) -> str:
    """Cut the file context to ``max_length`` characters, noting the cut."""
    if len(context) <= max_length:
        return context

    return (
        f"{context[:max_length]}\n\n"
        f"<!-- File context truncated due to length. Showing first {max_length} characters. -->"
    )
