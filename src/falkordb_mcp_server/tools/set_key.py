"""Set Key tool for FalkorDB MCP Server."""

from typing import Any, Dict, Optional

from ..client.redis_client import RedisClient
from ..errors import InputValidationError, OperationError
from ..protocol.schemas import Tool
from ..tenancy import TenantContext, TenantGraphResolver
from .base import BaseTool, ToolResult


class SetKeyTool(BaseTool):
    """Tool for storing a string value under a key."""

    name = "set_key"
    title = "Set Key"
    description = "Set a key in Redis"

    def __init__(self, redis_client: RedisClient, resolver: Optional[TenantGraphResolver] = None):
        super().__init__(resolver)
        self.redis_client = redis_client

    def get_schema(self) -> Tool:
        """Get the tool schema definition."""
        return self._create_schema(
            parameters={
                "key": self._create_parameter("string", "The key to set"),
                "value": self._create_parameter("string", "The value to set"),
            },
            required=["key", "value"],
        )

    async def execute(self, arguments: Dict[str, Any], context: TenantContext) -> ToolResult:
        key = self._require_text(arguments, "key", "Key")
        value = arguments.get("value")
        if value is None:
            raise InputValidationError("Value is required")

        try:
            await self.redis_client.set(self.resolve(key, context), value)
        except OperationError as e:
            raise OperationError(f"Failed to set key '{key}': {e.message}") from e

        self.logger.debug("Set key tool executed successfully", key=key)
        return ToolResult.success(f"Key {key} set successfully")
