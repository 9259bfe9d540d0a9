"""Project context injection.

Builds an XML summary of a project (name, description, tech stack, custom
instructions and the active version's deliverables) that is appended to the
chat system prompt when the user @-mentions the project.

All functions here are pure: the same project always renders to the same
string.
"""

from typing import Any


STATUS_EMOJI = {
    "done": "✅",
    "in-progress": "🔄",
    "not-started": "⭕",
}
DEFAULT_STATUS_EMOJI = "⭕"


def _get(obj: Any, field: str, default: Any = None) -> Any:
    """Read a field from an ORM row, a pydantic model or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(field, default)
    return getattr(obj, field, default)


def _status_value(status: Any) -> str:
    return getattr(status, "value", status) or ""


def escape_xml(text: str | None) -> str:
    """
    Escape the five XML metacharacters.

    The ampersand is replaced first so the entities produced by the later
    replacements are not escaped again. Escaping already-escaped text
    therefore double-escapes its ampersands.

    Args:
        text: Text to escape (None is treated as empty)

    Returns:
        Escaped text safe for XML element content and attribute values
    """
    if not text:
        return ""

    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def format_deliverable_status(status: str) -> str:
    """Map a deliverable status to an emoji for model readability."""
    return STATUS_EMOJI.get(_status_value(status), DEFAULT_STATUS_EMOJI)


def build_deliverable_xml(deliverable: Any) -> str:
    """Render one deliverable; <description> is omitted when empty."""
    status = _status_value(_get(deliverable, "status"))
    emoji = format_deliverable_status(status)

    xml = f'      <deliverable status="{escape_xml(status)}" emoji="{emoji}">\n'
    xml += f"        <name>{escape_xml(_get(deliverable, 'name'))}</name>\n"

    description = _get(deliverable, "description")
    if description:
        xml += f"        <description>{escape_xml(description)}</description>\n"

    xml += "      </deliverable>"
    return xml


def build_project_context_xml(project: Any) -> str:
    """
    Render the <project_context> fragment for a project with versions.

    Only the first entry of ``project.versions`` is rendered, as the active
    version. Later versions never appear in the output.
    """
    xml = "<project_context>\n"
    xml += "  <project>\n"
    xml += f"    <name>{escape_xml(_get(project, 'name'))}</name>\n"

    description = _get(project, "description")
    if description:
        xml += f"    <description>{escape_xml(description)}</description>\n"

    tech_stack = _get(project, "tech_stack") or []
    if tech_stack:
        xml += "    <tech_stack>\n"
        for tech in tech_stack:
            xml += f"      <technology>{escape_xml(tech)}</technology>\n"
        xml += "    </tech_stack>\n"
    else:
        xml += "    <tech_stack />\n"

    system_prompt = _get(project, "system_prompt")
    if system_prompt:
        xml += "    <system_prompt>\n"
        xml += f"      {escape_xml(system_prompt)}\n"
        xml += "    </system_prompt>\n"

    versions = _get(project, "versions") or []
    if versions:
        active_version = versions[0]
        xml += "    <active_version>\n"
        xml += f"      <name>{escape_xml(_get(active_version, 'name'))}</name>\n"

        version_description = _get(active_version, "description")
        if version_description:
            xml += f"      <description>{escape_xml(version_description)}</description>\n"

        deliverables = _get(active_version, "deliverables") or []
        if deliverables:
            xml += "      <deliverables>\n"
            for deliverable in deliverables:
                xml += build_deliverable_xml(deliverable) + "\n"
            xml += "      </deliverables>\n"

        xml += "    </active_version>\n"

    xml += "  </project>\n"
    xml += "</project_context>"
    return xml


def build_project_context_prompt(project: Any | None) -> str | None:
    """
    Wrap the project XML in instructions for the model.

    Returns:
        The prompt section, or None when there is no project so the caller
        can leave the section out entirely
    """
    if project is None:
        return None

    xml = build_project_context_xml(project)

    prompt = f"""
# Project Context

You are working on a project that the user has mentioned. Here is the structured project information:

{xml}

Use this context to provide relevant, project-aware responses. Reference the tech stack, deliverables, and any custom instructions provided in the system_prompt section.
"""
    return prompt.strip()
