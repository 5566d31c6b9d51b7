"""
Base classes for MCP tools.

Provides common functionality and interfaces for all FalkorDB tools,
including validation, error handling, and result formatting.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import structlog

from ..errors import AppError, InputValidationError, to_safe_result
from ..protocol.schemas import Tool, ToolParameter, ToolSchema
from ..tenancy import NO_TENANT, TenantContext, TenantGraphResolver

logger = structlog.get_logger(__name__)

_JSON_TYPES = {
    "string": (str,),
    "number": (int, float),
    "integer": (int,),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list,),
}


class ToolResult:
    """Standardized tool result format."""

    def __init__(
        self,
        content: List[Dict[str, Any]],
        is_error: bool = False,
    ):
        self.content = content
        self.is_error = is_error

    @classmethod
    def success(cls, text: str) -> "ToolResult":
        """Create a successful result with text content."""
        return cls(content=[{"type": "text", "text": text}], is_error=False)

    @classmethod
    def data(cls, data: Any) -> "ToolResult":
        """Create a result with structured data rendered as JSON text."""
        return cls.success(json.dumps(data, indent=2, default=str))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format for MCP response."""
        return {
            "content": self.content,
            "isError": self.is_error,
        }


class BaseTool(ABC):
    """
    Base class for all MCP tools.

    Tools receive logical names from the client and turn them into physical
    names through the tenant resolver before touching a backend.
    """

    # Tool metadata (must be defined by subclasses)
    name: str = ""
    title: str = ""
    description: str = ""

    def __init__(self, resolver: Optional[TenantGraphResolver] = None):
        """
        Initialize tool.

        Args:
            resolver: Tenant name resolver; a pass-through one by default
        """
        self.resolver = resolver or TenantGraphResolver()
        self.logger = logger.bind(tool=self.name)

    @abstractmethod
    def get_schema(self) -> Tool:
        """
        Get the tool schema definition.

        Returns:
            Tool schema for MCP protocol
        """
        pass

    @abstractmethod
    async def execute(self, arguments: Dict[str, Any], context: TenantContext) -> ToolResult:
        """
        Execute the tool with given arguments.

        Args:
            arguments: Validated tool arguments from the MCP request
            context: Identity of the caller

        Returns:
            Tool execution result

        Raises:
            AppError: If execution fails
        """
        pass

    async def __call__(
        self, arguments: Dict[str, Any], context: TenantContext = NO_TENANT
    ) -> Dict[str, Any]:
        """
        Make tool callable for MCP handler integration.

        Failures never escape: they are logged with full detail and returned
        to the client as a sanitized error result.
        """
        try:
            self._validate_arguments(arguments)
            result = await self.execute(arguments, context)
            self.logger.debug("Tool execution completed", success=not result.is_error)
            return result.to_dict()

        except AppError as e:
            self.logger.warning(
                "Tool execution failed",
                error_kind=e.kind.value,
                error_message=e.message,
                tenant_id=context.tenant_id,
            )
            return to_safe_result(e).to_dict()

        except Exception as e:
            self.logger.error(
                "Unexpected tool error",
                error=str(e),
                tenant_id=context.tenant_id,
                exc_info=True,
            )
            return to_safe_result(e).to_dict()

    def resolve(self, logical_name: str, context: TenantContext) -> str:
        """Physical backend name for a logical name."""
        return self.resolver.resolve(logical_name, context.tenant_id)

    def _validate_arguments(self, arguments: Dict[str, Any]) -> None:
        """
        Validate tool arguments against schema.

        Raises:
            InputValidationError: If validation fails
        """
        schema = self.get_schema()

        for required_param in schema.inputSchema.required:
            if arguments.get(required_param) is None:
                raise InputValidationError(f"Missing required parameter: {required_param}")

        for param_name, param_value in arguments.items():
            param_def = schema.inputSchema.properties.get(param_name)
            if param_def is None:
                # unknown arguments are ignored, not rejected
                continue
            self._validate_parameter(param_name, param_value, param_def)

    def _validate_parameter(self, name: str, value: Any, definition: ToolParameter) -> None:
        expected = _JSON_TYPES.get(definition.type)
        # bool is an int subclass but never a JSON number
        if expected and (
            not isinstance(value, expected)
            or (isinstance(value, bool) and definition.type != "boolean")
        ):
            raise InputValidationError(f"Parameter '{name}' must be a {definition.type}")

        if definition.const is not None and value != definition.const:
            raise InputValidationError(
                f"Parameter '{name}' must be {json.dumps(definition.const)}"
            )

        if definition.enum and value not in definition.enum:
            raise InputValidationError(f"Parameter '{name}' must be one of: {definition.enum}")

    @staticmethod
    def _require_text(arguments: Dict[str, Any], name: str, label: str) -> str:
        """Return a required string argument, rejecting blank values."""
        value = arguments.get(name)
        if not isinstance(value, str) or not value.strip():
            raise InputValidationError(f"{label} is required and cannot be empty")
        return value

    def _create_parameter(
        self,
        param_type: str,
        description: str,
        const: Optional[Any] = None,
        default: Optional[Any] = None,
    ) -> ToolParameter:
        """Helper to create JSON Schema parameter definitions."""
        return ToolParameter(
            type=param_type,
            description=description,
            const=const,
            default=default,
        )

    def _create_schema(
        self,
        parameters: Dict[str, ToolParameter],
        required: List[str],
    ) -> Tool:
        """Helper to create tool schema with proper JSON Schema format."""
        return Tool(
            name=self.name,
            title=self.title or None,
            description=self.description,
            inputSchema=ToolSchema(
                type="object",
                properties=parameters,
                required=required,
                additionalProperties=False,
            ),
        )
