"""Workflow tools: registered async callables exposed when @-mentioned."""

import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.core.tools.base import Tool, ToolResult
from app.core.tools.mcp import _stringify

WorkflowHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass
class Workflow:
    id: str
    name: str
    handler: WorkflowHandler
    description: str = ""
    input_schema: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})


def workflow_tool_name(name: str) -> str:
    """Function-call safe name for a workflow."""
    return re.sub(r"[^a-zA-Z0-9_-]", "_", name.strip()) or "workflow"


class WorkflowTool(Tool):
    def __init__(self, workflow: Workflow, description: Optional[str] = None):
        self.workflow = workflow
        self._description = description

    @property
    def name(self) -> str:
        return workflow_tool_name(self.workflow.name)

    @property
    def description(self) -> str:
        return self._description or self.workflow.description or f"Run the {self.workflow.name} workflow"

    @property
    def parameters_schema(self) -> Dict[str, Any]:
        return self.workflow.input_schema

    async def execute(self, **kwargs) -> ToolResult:
        result = await self.workflow.handler(kwargs)
        return ToolResult(success=True, output=_stringify(result), metadata={"workflow_id": self.workflow.id})


class WorkflowRegistry:
    """Workflows available to this app, keyed by id."""

    def __init__(self):
        self._workflows: Dict[str, Workflow] = {}

    def register(self, workflow: Workflow) -> None:
        self._workflows[workflow.id] = workflow

    def get(self, workflow_id: str) -> Optional[Workflow]:
        return self._workflows.get(workflow_id)

    def list_workflows(self) -> List[Workflow]:
        return list(self._workflows.values())


def load_workflow_tools(registry: WorkflowRegistry, mentions: Optional[list] = None) -> Dict[str, Tool]:
    """One tool per mentioned workflow; unknown ids are skipped."""
    tools: Dict[str, Tool] = {}
    for mention in mentions or []:
        if mention.type != "workflow":
            continue
        workflow = registry.get(mention.workflow_id)
        if workflow is None:
            continue
        tool = WorkflowTool(workflow, description=mention.description)
        tools[tool.name] = tool
    return tools
