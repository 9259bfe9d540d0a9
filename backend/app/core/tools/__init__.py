"""Chat tools: app defaults, MCP, workflows and image generation."""

from app.core.tools.base import Tool, ToolParameter, ToolRegistry, ToolResult
from app.core.tools.builtin import APP_DEFAULT_TOOLKITS, load_app_default_tools
from app.core.tools.image import IMAGE_TOOL_NAME, ImageGenerationTool
from app.core.tools.manual import (
    MANUAL_REJECT_RESPONSE,
    exclude_tool_execution,
    extract_in_progress_tool_parts,
    manual_tool_execute,
)
from app.core.tools.mcp import (
    McpClientsManager,
    McpTool,
    filter_mcp_server_customizations,
    load_mcp_tools,
)
from app.core.tools.workflow import Workflow, WorkflowRegistry, load_workflow_tools

__all__ = [
    "Tool",
    "ToolParameter",
    "ToolRegistry",
    "ToolResult",
    "APP_DEFAULT_TOOLKITS",
    "load_app_default_tools",
    "IMAGE_TOOL_NAME",
    "ImageGenerationTool",
    "MANUAL_REJECT_RESPONSE",
    "exclude_tool_execution",
    "extract_in_progress_tool_parts",
    "manual_tool_execute",
    "McpClientsManager",
    "McpTool",
    "filter_mcp_server_customizations",
    "load_mcp_tools",
    "Workflow",
    "WorkflowRegistry",
    "load_workflow_tools",
]
