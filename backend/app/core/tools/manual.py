"""Manual tool-choice support.

With tool_choice="manual" the server does not run MCP or workflow tools. The
call is streamed to the client in the input-available state; the client then
resends the message with the tool part's output set to ``{"confirm": bool}``
and the approved call is executed before the next generation.
"""

import logging
from typing import Any, Dict, List

from app.core.tools.base import Tool
from app.models.schemas.chat import ChatMessageIn, ToolInvocationPart

logger = logging.getLogger(__name__)

MANUAL_REJECT_RESPONSE = "The user declined to run this tool."


def exclude_tool_execution(tools: Dict[str, Tool]) -> Dict[str, Tool]:
    """Copies of ``tools`` that the server will not execute."""
    return {name: tool.copy(auto_execute=False) for name, tool in tools.items()}


def is_manual_confirmation(output: Any) -> bool:
    return isinstance(output, dict) and isinstance(output.get("confirm"), bool)


def extract_in_progress_tool_parts(message: ChatMessageIn) -> List[ToolInvocationPart]:
    """Tool parts of ``message`` carrying the user's approve/decline decision."""
    return [
        part
        for part in message.parts
        if isinstance(part, ToolInvocationPart) and is_manual_confirmation(part.output)
    ]


async def manual_tool_execute(part: ToolInvocationPart, tools: Dict[str, Tool]) -> Any:
    """
    Resolve a confirmed or declined tool part to its output.

    Returns the tool output, the decline message, or an error object when
    the tool is no longer available.
    """
    if not part.output.get("confirm"):
        return MANUAL_REJECT_RESPONSE

    tool = tools.get(part.tool_name)
    if tool is None:
        logger.warning(f"Manual tool not found: {part.tool_name}")
        return {"isError": True, "error": f"Tool not found: {part.tool_name}"}

    result = await tool.validate_and_execute(**part.input)
    return result.as_output()
