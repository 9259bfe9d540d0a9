"""App-default tools available to every chat, grouped in toolkits."""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from pydantic import BaseModel, Field, HttpUrl

from app.core.tools.base import Tool, ToolParameter, ToolResult

logger = logging.getLogger(__name__)

HTTP_FETCH_MAX_CHARS = 20_000


class ThinkTool(Tool):
    """Scratchpad for step-by-step reasoning.

    The tool does not obtain new information or change any state. The thought
    becomes part of the conversation history and serves as working memory in
    later tool steps.
    """

    @property
    def name(self) -> str:
        return "think"

    @property
    def description(self) -> str:
        return (
            "Use this tool to think through a problem step-by-step before answering. "
            "It does NOT fetch anything or change any state - it only records your reasoning.\n\n"
            "WHEN TO USE:\n"
            "- After receiving tool results, to analyze what they mean and plan next steps\n"
            "- When a request needs to be broken down into smaller parts\n"
            "- When several approaches exist and you need to weigh them"
        )

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="thought",
                type="string",
                description="Your reasoning: what you observed, what you concluded, what you plan next.",
                required=True,
            ),
        ]

    async def execute(self, thought: str, **kwargs) -> ToolResult:
        return ToolResult(
            success=True,
            output="Thought recorded. Continue with your plan.",
            metadata={"thought_length": len(thought)},
        )


class HttpFetchInput(BaseModel):
    url: HttpUrl = Field(..., description="Absolute http(s) URL")

    model_config = {"json_schema_extra": {"examples": [{"url": "https://example.com"}]}}


class HttpFetchTool(Tool):
    """GET a URL and return the (truncated) response body."""

    def __init__(self, max_chars: int = HTTP_FETCH_MAX_CHARS, client: Optional[httpx.AsyncClient] = None):
        self.max_chars = max_chars
        self._client = client

    @property
    def name(self) -> str:
        return "http_fetch"

    @property
    def description(self) -> str:
        return (
            "Fetch a web page or API endpoint with an HTTP GET request and return the status "
            f"code and body. Bodies longer than {self.max_chars} characters are truncated."
        )

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(name="url", type="string", description="Absolute http(s) URL", required=True),
        ]

    @property
    def input_schema(self):
        return HttpFetchInput

    async def _get(self, url: str) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, follow_redirects=True)
        async with httpx.AsyncClient(timeout=15.0) as client:
            return await client.get(url, follow_redirects=True)

    async def execute(self, url, **kwargs) -> ToolResult:
        url = str(url)
        try:
            response = await self._get(url)
        except httpx.HTTPError as e:
            logger.info(f"http_fetch failed for {url}: {e}")
            return ToolResult(success=False, output="", error=f"Request failed: {e}")

        body = response.text
        truncated = len(body) > self.max_chars
        if truncated:
            body = body[: self.max_chars] + "\n... (truncated)"

        return ToolResult(
            success=response.is_success,
            output=f"Status: {response.status_code}\n\n{body}",
            error=None if response.is_success else f"HTTP {response.status_code}",
            metadata={"status_code": response.status_code, "truncated": truncated},
        )


class CurrentTimeTool(Tool):
    """Current date and time, optionally in a given IANA time zone."""

    @property
    def name(self) -> str:
        return "current_time"

    @property
    def description(self) -> str:
        return "Get the current date and time. Optionally pass an IANA time zone such as 'Europe/Berlin'."

    @property
    def parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="timezone",
                type="string",
                description="IANA time zone name (defaults to UTC)",
                required=False,
                default="UTC",
            ),
        ]

    async def execute(self, **kwargs) -> ToolResult:
        # "timezone" would shadow datetime.timezone as a named parameter
        tz_name = kwargs.get("timezone") or "UTC"
        try:
            tz = timezone.utc if tz_name == "UTC" else ZoneInfo(tz_name)
        except ZoneInfoNotFoundError:
            return ToolResult(success=False, output="", error=f"Unknown time zone: {tz_name}")

        now = datetime.now(tz)
        return ToolResult(success=True, output=now.isoformat(), metadata={"timezone": tz_name})


# toolkit name -> tool factories
APP_DEFAULT_TOOLKITS: Dict[str, List[type]] = {
    "reasoning": [ThinkTool],
    "http": [HttpFetchTool],
    "time": [CurrentTimeTool],
}


def load_app_default_tools(
    mentions: Optional[list] = None,
    allowed_app_default_toolkit: Optional[List[str]] = None,
) -> Dict[str, Tool]:
    """
    Resolve the app-default tools for one turn.

    ``defaultTool`` mentions select exactly the mentioned tools. Otherwise the
    allowed toolkits are used, all of them when no allow-list is given.
    """
    all_tools: Dict[str, Dict[str, Tool]] = {
        toolkit: {tool.name: tool for tool in (factory() for factory in factories)}
        for toolkit, factories in APP_DEFAULT_TOOLKITS.items()
    }

    mentioned = [m.name for m in (mentions or []) if m.type == "defaultTool"]
    if mentioned:
        flat = {name: tool for tools in all_tools.values() for name, tool in tools.items()}
        return {name: flat[name] for name in mentioned if name in flat}

    toolkits = all_tools.keys() if allowed_app_default_toolkit is None else allowed_app_default_toolkit
    selected: Dict[str, Tool] = {}
    for toolkit in toolkits:
        selected.update(all_tools.get(toolkit, {}))
    return selected
