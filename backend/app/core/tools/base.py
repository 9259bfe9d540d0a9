"""Base tool interface and registry for chat tool calling."""

import copy
import json
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, Field, ValidationError


class ToolParameter(BaseModel):
    """Tool parameter definition."""
    name: str
    type: str  # "string", "number", "boolean", "object", "array"
    description: str
    required: bool = True
    default: Any | None = None


class ToolDefinition(BaseModel):
    """Tool definition for LLM function calling."""
    name: str
    description: str
    parameters: List[ToolParameter]


class ToolResult(BaseModel):
    """Result from tool execution."""
    success: bool
    output: str
    error: str | None = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_validation_error: bool = False

    def as_output(self) -> Any:
        """Value reported to the model and the client as the tool output."""
        if self.success:
            return self.output
        return {"isError": True, "error": self.error or "Tool execution failed"}


class Tool(ABC):
    """Base class for all chat tools."""

    # Tools with auto_execute=False are surfaced to the client as pending
    # calls instead of being run by the server ("manual" tool choice).
    auto_execute: bool = True

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Tool description."""
        pass

    @property
    def parameters(self) -> List[ToolParameter]:
        """Tool parameters."""
        return []

    @property
    def parameters_schema(self) -> Optional[Dict[str, Any]]:
        """
        Raw JSON schema for the parameters.

        Tools whose schema comes from elsewhere (MCP servers) return it here
        and it is used as-is instead of being built from ``parameters``.
        """
        return None

    @property
    def input_schema(self) -> Optional[Type[BaseModel]]:
        """Optional Pydantic schema for parameter validation."""
        return None

    @property
    def handle_validation_error(self) -> Optional[Callable[[ValidationError], str]]:
        """Optional handler returning a message the LLM can learn from."""
        return None

    def get_definition(self) -> ToolDefinition:
        """Get tool definition for LLM."""
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )

    def copy(self, **overrides) -> "Tool":
        """Shallow copy with attributes replaced (e.g., auto_execute=False)."""
        clone = copy.copy(self)
        for key, value in overrides.items():
            setattr(clone, key, value)
        return clone

    async def validate_and_execute(self, **kwargs) -> ToolResult:
        """
        Validate parameters with the Pydantic schema (if provided) and execute.

        Returns:
            ToolResult with success=False on validation or execution failure
        """
        if self.input_schema is None:
            try:
                return await self.execute(**kwargs)
            except Exception as e:
                return ToolResult(
                    success=False,
                    output="",
                    error=f"Tool execution error: {str(e)}"
                )

        try:
            validated_input = self.input_schema(**kwargs)
            return await self.execute(**validated_input.model_dump())

        except ValidationError as e:
            if self.handle_validation_error:
                error_message = self.handle_validation_error(e)
            else:
                error_message = self._format_validation_error(e)

            return ToolResult(
                success=False,
                output="",
                error=error_message,
                is_validation_error=True,
            )

        except Exception as e:
            return ToolResult(
                success=False,
                output="",
                error=f"Tool execution error: {str(e)}"
            )

    def _format_validation_error(self, error: ValidationError) -> str:
        """Format validation error with helpful details."""
        error_details = "\n".join([
            f"  - {err['loc'][0] if err['loc'] else 'root'}: {err['msg']}"
            for err in error.errors()
        ])

        message = f"Parameter validation failed for '{self.name}':\n{error_details}\n"

        if self.input_schema:
            schema = self.input_schema.model_json_schema()
            if schema.get("examples"):
                message += f"\nExample valid call:\n{json.dumps(schema['examples'][0], indent=2)}\n"
            if "required" in schema:
                message += f"\nRequired parameters: {', '.join(schema['required'])}\n"

        message += "\nPlease check the parameters and try again."
        return message

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult:
        """Execute the tool with given parameters."""
        pass

    def format_for_llm(self) -> Dict[str, Any]:
        """Format tool definition for LLM function calling (OpenAI format)."""
        parameters_dict = self.parameters_schema
        if parameters_dict is None:
            parameters_dict = {
                "type": "object",
                "properties": {},
                "required": [],
            }
            for param in self.parameters:
                parameters_dict["properties"][param.name] = {
                    "type": param.type,
                    "description": param.description,
                }
                if param.default is not None:
                    parameters_dict["properties"][param.name]["default"] = param.default
                if param.required:
                    parameters_dict["required"].append(param.name)

        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters_dict,
            }
        }


class ToolRegistry:
    """Named set of tools bound to one chat turn."""

    def __init__(self, tools: Optional[Dict[str, Tool]] = None):
        self._tools: Dict[str, Tool] = dict(tools or {})

    def register(self, tool: Tool, name: Optional[str] = None) -> None:
        """Register a tool, optionally under a different key."""
        self._tools[name or tool.name] = tool

    def update(self, tools: Dict[str, Tool]) -> None:
        """Register many tools; later keys win."""
        self._tools.update(tools)

    def unregister(self, tool_name: str) -> None:
        """Unregister a tool."""
        self._tools.pop(tool_name, None)

    def get(self, tool_name: str) -> Tool | None:
        """Get a tool by name."""
        return self._tools.get(tool_name)

    def names(self) -> List[str]:
        return list(self._tools)

    def as_dict(self) -> Dict[str, Tool]:
        return dict(self._tools)

    def list_tools(self) -> List[Tool]:
        """List all registered tools."""
        return list(self._tools.values())

    def get_tools_for_llm(self) -> List[Dict[str, Any]]:
        """Get all tools formatted for LLM function calling, keyed by registry name."""
        formatted = []
        for key, tool in self._tools.items():
            definition = tool.format_for_llm()
            definition["function"]["name"] = key
            formatted.append(definition)
        return formatted

    def has_tool(self, tool_name: str) -> bool:
        """Check if a tool is registered."""
        return tool_name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
