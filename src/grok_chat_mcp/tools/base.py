"""
Base tool system for mcp-server-grok-chat

Provides the foundation for tool declaration, registration, and execution.
"""

import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union
from dataclasses import dataclass, field
from enum import Enum

import structlog

from ..core.api import XaiClient, XaiError
from ..utils.security import ValidationError

logger = structlog.get_logger(__name__)


class ToolCategory(Enum):
    """Tool categories"""
    CHAT = "chat"
    EMBEDDINGS = "embeddings"
    MODELS = "models"


@dataclass
class ToolParameter:
    """Tool parameter definition"""
    name: str
    type: str  # "string", "integer", "number", "boolean", "array", "object"
    description: str
    required: bool = True
    default: Any = None
    enum: Optional[List[str]] = None
    min_value: Optional[Union[int, float]] = None
    max_value: Optional[Union[int, float]] = None


@dataclass
class ToolDefinition:
    """Tool definition as advertised over MCP"""
    name: str
    description: str
    parameters: Dict[str, Any]
    category: ToolCategory


@dataclass
class ToolResult:
    """Result from tool execution"""
    success: bool
    result: Optional[str] = None
    error: Optional[str] = None
    execution_time: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)


class BaseTool(ABC):
    """
    Base class for all tools
    """

    def __init__(self, client: XaiClient):
        self.client = client
        self.enabled = True
        self.execution_count = 0
        self.total_execution_time = 0.0
        self.error_count = 0

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name"""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Tool description"""
        pass

    @property
    @abstractmethod
    def category(self) -> ToolCategory:
        """Tool category"""
        pass

    def get_parameters(self) -> List[ToolParameter]:
        """Get tool parameters"""
        return []

    @abstractmethod
    async def execute(self, **kwargs) -> ToolResult:
        """Execute the tool"""
        pass

    def get_tool_definition(self) -> ToolDefinition:
        """Render the declared parameters as a JSON Schema"""
        properties = {}
        required = []

        for param in self.get_parameters():
            prop_def: Dict[str, Any] = {
                "type": param.type,
                "description": param.description,
            }

            if param.enum:
                prop_def["enum"] = param.enum
            if param.min_value is not None:
                prop_def["minimum"] = param.min_value
            if param.max_value is not None:
                prop_def["maximum"] = param.max_value
            if param.default is not None:
                prop_def["default"] = param.default

            properties[param.name] = prop_def

            if param.required:
                required.append(param.name)

        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters={
                "type": "object",
                "properties": properties,
                "required": required,
            },
            category=self.category,
        )

    def validate_parameters(self, **kwargs) -> Dict[str, Any]:
        """
        Check arguments against the declared parameters.

        Returns the arguments to pass to ``execute``: unknown names and
        explicit nulls are dropped. Raises ValidationError on the first
        violation.
        """
        parameters = self.get_parameters()
        param_dict = {p.name: p for p in parameters}

        arguments = {}
        for name, value in kwargs.items():
            if name not in param_dict:
                logger.warning("Unknown parameter", tool=self.name, parameter=name)
                continue
            if value is None:
                continue
            arguments[name] = value

        for param in parameters:
            if param.required and param.name not in arguments:
                raise ValidationError(f"Missing required parameter: {param.name}")

        for name, value in arguments.items():
            param = param_dict[name]

            if not self._validate_type(value, param.type):
                raise ValidationError(
                    f"Parameter '{name}' must be of type {param.type}, got {type(value).__name__}"
                )

            self._validate_constraints(value, param)

        return arguments

    def _validate_type(self, value: Any, expected_type: str) -> bool:
        """Validate parameter type"""
        type_map = {
            "string": str,
            "integer": int,
            "number": (int, float),
            "boolean": bool,
            "array": list,
            "object": dict,
        }

        expected = type_map.get(expected_type)
        if expected is None:
            return True  # Unknown type, skip validation

        # bool is an int subclass
        if isinstance(value, bool) and expected_type in ("integer", "number"):
            return False

        return isinstance(value, expected)

    def _validate_constraints(self, value: Any, param: ToolParameter):
        """Validate parameter constraints"""
        if param.enum and value not in param.enum:
            raise ValidationError(
                f"Invalid {param.name} '{value}', must be one of: {', '.join(param.enum)}"
            )

        if isinstance(value, (int, float)):
            if param.min_value is not None and value < param.min_value:
                raise ValidationError(f"{param.name} must be >= {param.min_value}, got {value}")
            if param.max_value is not None and value > param.max_value:
                raise ValidationError(f"{param.name} must be <= {param.max_value}, got {value}")

    async def safe_execute(self, **kwargs) -> ToolResult:
        """Execute with validation; validation and upstream failures become failed results"""
        start_time = time.time()

        try:
            arguments = self.validate_parameters(**kwargs)
            result = await self.execute(**arguments)
        except ValidationError as e:
            logger.info("Tool parameters rejected", tool=self.name, error=str(e))
            result = ToolResult(success=False, error=str(e))
        except XaiError as e:
            logger.error("Tool execution failed", tool=self.name, error=str(e))
            result = ToolResult(success=False, error=str(e))
        except Exception as e:
            logger.error("Tool execution failed", tool=self.name, error=str(e), exc_info=True)
            result = ToolResult(success=False, error=f"Tool execution failed: {e}")

        execution_time = time.time() - start_time
        self.execution_count += 1
        self.total_execution_time += execution_time
        if not result.success:
            self.error_count += 1

        result.execution_time = execution_time

        logger.debug(
            "Tool executed",
            tool=self.name,
            success=result.success,
            execution_time=execution_time,
        )

        return result

    def get_stats(self) -> Dict[str, Any]:
        """Get tool execution statistics"""
        avg_execution_time = (
            self.total_execution_time / self.execution_count
            if self.execution_count > 0
            else 0.0
        )

        success_rate = (
            (self.execution_count - self.error_count) / self.execution_count
            if self.execution_count > 0
            else 1.0
        )

        return {
            "name": self.name,
            "category": self.category.value,
            "enabled": self.enabled,
            "execution_count": self.execution_count,
            "error_count": self.error_count,
            "success_rate": success_rate,
            "avg_execution_time": avg_execution_time,
        }


class ToolRegistry:
    """
    Registry mapping tool names to tools. Built once at startup and
    iterated by the MCP transport.
    """

    def __init__(self):
        self.tools: Dict[str, BaseTool] = {}

        logger.debug("Tool registry initialized")

    def register_tool(self, tool: BaseTool):
        """Register a tool"""
        if tool.name in self.tools:
            logger.warning("Tool already registered, replacing", tool=tool.name)

        self.tools[tool.name] = tool

        logger.debug("Tool registered", tool=tool.name, category=tool.category.value)

    def get_tool(self, tool_name: str) -> Optional[BaseTool]:
        """Get a tool by name"""
        return self.tools.get(tool_name)

    def get_enabled_tools(self) -> List[BaseTool]:
        """Get all enabled tools"""
        return [tool for tool in self.tools.values() if tool.enabled]

    def get_tool_definitions(self) -> List[ToolDefinition]:
        """Get definitions for all enabled tools, in registration order"""
        return [tool.get_tool_definition() for tool in self.get_enabled_tools()]

    async def execute_tool(self, tool_name: str, **kwargs) -> ToolResult:
        """Execute a tool by name"""
        tool = self.get_tool(tool_name)
        if not tool:
            return ToolResult(
                success=False,
                error=f"Tool '{tool_name}' not found",
            )

        if not tool.enabled:
            return ToolResult(
                success=False,
                error=f"Tool '{tool_name}' is disabled",
            )

        return await tool.safe_execute(**kwargs)

    def get_registry_stats(self) -> Dict[str, Any]:
        """Get registry statistics"""
        return {
            "total_tools": len(self.tools),
            "enabled_tools": len(self.get_enabled_tools()),
            "tools": [tool.get_stats() for tool in self.tools.values()],
        }
