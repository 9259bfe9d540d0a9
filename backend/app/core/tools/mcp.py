"""MCP (Model Context Protocol) tool integration.

MCP servers are reached through client objects registered with the
McpClientsManager. A client only needs to expose ``name``, an async
``list_tools()`` returning tool descriptors (``name``, ``description``,
``input_schema``) and an async ``call_tool(tool_name, arguments)``.
Transport and lifecycle belong to the client.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from app.core.tools.base import Tool, ToolResult

logger = logging.getLogger(__name__)


@runtime_checkable
class McpClient(Protocol):
    name: str

    async def list_tools(self) -> List[Dict[str, Any]]:
        ...

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> Any:
        ...


def mcp_tool_key(server_name: str, tool_name: str) -> str:
    """Registry key of an MCP tool."""
    return f"{server_name}_{tool_name}"


def _stringify(result: Any) -> str:
    if isinstance(result, str):
        return result
    try:
        return json.dumps(result, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(result)


class McpTool(Tool):
    """A tool served by an MCP server."""

    def __init__(self, client: McpClient, tool_name: str, description: str = "",
                 input_schema: Optional[Dict[str, Any]] = None):
        self.client = client
        self.server_name = client.name
        self.tool_name = tool_name
        self._description = description
        self._input_schema = input_schema or {"type": "object", "properties": {}}

    @property
    def name(self) -> str:
        return mcp_tool_key(self.server_name, self.tool_name)

    @property
    def description(self) -> str:
        return self._description or f"{self.tool_name} from MCP server {self.server_name}"

    @property
    def parameters_schema(self) -> Dict[str, Any]:
        return self._input_schema

    async def execute(self, **kwargs) -> ToolResult:
        result = await self.client.call_tool(self.tool_name, kwargs)

        is_error = isinstance(result, dict) and bool(result.get("isError"))
        output = _stringify(result)
        return ToolResult(
            success=not is_error,
            output=output,
            error=output if is_error else None,
            metadata={"server_name": self.server_name, "tool_name": self.tool_name},
        )


class McpClientsManager:
    """Registered MCP clients for the running app."""

    def __init__(self):
        self._clients: Dict[str, McpClient] = {}

    def register(self, client: McpClient) -> None:
        self._clients[client.name] = client
        logger.info(f"Registered MCP server: {client.name}")

    def unregister(self, server_name: str) -> None:
        self._clients.pop(server_name, None)

    def get_clients(self) -> List[McpClient]:
        return list(self._clients.values())

    def get_client(self, server_name: str) -> Optional[McpClient]:
        return self._clients.get(server_name)

    async def tools(self) -> Dict[str, McpTool]:
        """
        All tools of all registered servers, keyed "{server}_{tool}".

        A server whose listing fails contributes no tools.
        """
        tools: Dict[str, McpTool] = {}
        for client in self._clients.values():
            try:
                descriptors = await client.list_tools()
            except Exception as e:
                logger.warning(f"Failed to list tools of MCP server {client.name}: {e}")
                continue

            for descriptor in descriptors:
                tool = McpTool(
                    client,
                    tool_name=descriptor["name"],
                    description=descriptor.get("description") or "",
                    input_schema=descriptor.get("input_schema") or descriptor.get("inputSchema"),
                )
                tools[tool.name] = tool
        return tools

    async def call_tool_by_server_name(self, server_name: str, tool_name: str,
                                       arguments: Dict[str, Any]) -> Any:
        """Call a tool on a named server, returning the raw result."""
        client = self._clients.get(server_name)
        if client is None:
            raise LookupError(f"MCP server not found: {server_name}")
        return await client.call_tool(tool_name, arguments)


def _filter_by_mentions(tools: Dict[str, McpTool], mentions: list) -> Dict[str, McpTool]:
    servers = {m.server_name for m in mentions if m.type == "mcpServer"}
    tool_pairs = {(m.server_name, m.tool_name) for m in mentions if m.type == "mcpTool"}
    return {
        key: tool
        for key, tool in tools.items()
        if tool.server_name in servers or (tool.server_name, tool.tool_name) in tool_pairs
    }


def _filter_by_allowed(tools: Dict[str, McpTool], allowed_mcp_servers: Mapping[str, Any]) -> Dict[str, McpTool]:
    selected = {}
    for key, tool in tools.items():
        allowed = allowed_mcp_servers.get(tool.server_name)
        if allowed is None:
            continue
        if tool.tool_name in allowed.tools:
            selected[key] = tool
    return selected


async def load_mcp_tools(
    manager: McpClientsManager,
    mentions: Optional[list] = None,
    allowed_mcp_servers: Optional[Mapping[str, Any]] = None,
) -> Dict[str, McpTool]:
    """
    Select the MCP tools for one turn.

    MCP mentions win over the allow-list; with neither, every tool is loaded.
    """
    tools = await manager.tools()

    mcp_mentions = [m for m in (mentions or []) if m.type in ("mcpServer", "mcpTool")]
    if mcp_mentions:
        return _filter_by_mentions(tools, mcp_mentions)
    if allowed_mcp_servers is not None:
        return _filter_by_allowed(tools, allowed_mcp_servers)
    return tools


def filter_mcp_server_customizations(
    tools: Mapping[str, McpTool],
    customizations: Mapping[str, Mapping[str, Any]],
) -> Dict[str, Dict[str, Any]]:
    """Keep only customizations of servers and tools present in ``tools``."""
    present: Dict[str, set] = {}
    for tool in tools.values():
        present.setdefault(tool.server_name, set()).add(tool.tool_name)

    filtered: Dict[str, Dict[str, Any]] = {}
    for server_name, customization in customizations.items():
        if server_name not in present:
            continue
        tool_prompts = {
            name: prompt
            for name, prompt in (customization.get("tools") or {}).items()
            if name in present[server_name]
        }
        if customization.get("prompt") or tool_prompts:
            filtered[server_name] = {"prompt": customization.get("prompt"), "tools": tool_prompts}
    return filtered
