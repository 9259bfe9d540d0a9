"""System prompt builders for the chat pipeline."""

from datetime import datetime
from typing import Any, Mapping


TOOL_CALL_UNSUPPORTED_MODEL_SYSTEM_PROMPT = """
### Tool Call Limitation
- You are using a model that does not support tool calls.
- When users request tool usage, simply explain that the current model cannot use tools and that they can switch to a model that supports tool calling to use tools.
""".strip()


def build_user_system_prompt(user: Any | None, preferences: Mapping[str, Any] | None = None) -> str:
    """
    Base system prompt built from the session user and their preferences.

    Args:
        user: Session user (name/email are read if present)
        preferences: Optional dict with display_name, profession, response_style

    Returns:
        Prompt text
    """
    preferences = preferences or {}

    prompt = "You are Forge, an intelligent assistant that helps users with their work and projects.\n"
    prompt += f"The current date and time is {datetime.now().strftime('%A, %B %d, %Y %H:%M')}.\n"

    if user is not None:
        prompt += "\n<user_information>\n"
        name = getattr(user, "name", None)
        email = getattr(user, "email", None)
        if name:
            prompt += f"- System Name: {name}\n"
        if email:
            prompt += f"- System Email: {email}\n"
        if preferences.get("display_name"):
            prompt += f"- Preferred Name: {preferences['display_name']}\n"
        if preferences.get("profession"):
            prompt += f"- Profession: {preferences['profession']}\n"
        prompt += "</user_information>\n"

    response_style = preferences.get("response_style")
    if response_style:
        prompt += f"\n<response_style>\n{response_style}\n</response_style>\n"
    else:
        prompt += (
            "\n<general_capabilities>\n"
            "- Answer clearly and concisely; use markdown where it helps readability.\n"
            "- Ask a clarifying question when the request is ambiguous.\n"
            "</general_capabilities>\n"
        )

    return prompt.strip()


def build_mcp_server_customizations_system_prompt(
    customizations: Mapping[str, Mapping[str, Any]] | None,
) -> str | None:
    """
    Render per-server MCP instructions.

    ``customizations`` maps server name to ``{"prompt": str | None,
    "tools": {tool_name: prompt}}``. Returns None when nothing is set.
    """
    if not customizations:
        return None

    sections = []
    for server_name, customization in customizations.items():
        server_prompt = customization.get("prompt")
        tool_prompts = customization.get("tools") or {}
        if not server_prompt and not tool_prompts:
            continue

        section = f'<mcp_server name="{server_name}">\n'
        if server_prompt:
            section += f"  <server_instructions>{server_prompt}</server_instructions>\n"
        for tool_name, tool_prompt in tool_prompts.items():
            section += f'  <tool_instructions name="{tool_name}">{tool_prompt}</tool_instructions>\n'
        section += "</mcp_server>"
        sections.append(section)

    if not sections:
        return None

    return (
        "### Tool Usage Guidelines\n"
        "- When using tools, follow the additional instructions provided for each MCP server and tool.\n"
        "<mcp_server_customizations>\n" + "\n".join(sections) + "\n</mcp_server_customizations>"
    )


def merge_system_prompt(*prompts: str | None) -> str:
    """Join the non-empty prompt sections with blank lines, in order."""
    return "\n\n".join(prompt.strip() for prompt in prompts if prompt and prompt.strip())
