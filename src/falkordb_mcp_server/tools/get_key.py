"""Get Key tool for FalkorDB MCP Server."""

from typing import Any, Dict, Optional

from ..client.redis_client import RedisClient
from ..errors import OperationError
from ..protocol.schemas import Tool
from ..tenancy import TenantContext, TenantGraphResolver
from .base import BaseTool, ToolResult


class GetKeyTool(BaseTool):
    """Tool for reading the value stored under a key."""

    name = "get_key"
    title = "Get Key"
    description = "Get a key from Redis"

    def __init__(self, redis_client: RedisClient, resolver: Optional[TenantGraphResolver] = None):
        super().__init__(resolver)
        self.redis_client = redis_client

    def get_schema(self) -> Tool:
        """Get the tool schema definition."""
        return self._create_schema(
            parameters={"key": self._create_parameter("string", "The key to get.")},
            required=["key"],
        )

    async def execute(self, arguments: Dict[str, Any], context: TenantContext) -> ToolResult:
        key = self._require_text(arguments, "key", "Key")

        try:
            value = await self.redis_client.get(self.resolve(key, context))
        except OperationError as e:
            raise OperationError(f"Failed to get key '{key}': {e.message}") from e

        self.logger.debug("Get key tool executed successfully", key=key, has_value=value is not None)
        shown = value if value is not None else "null (not found)"
        return ToolResult.success(f"Key {key} is {shown}")
