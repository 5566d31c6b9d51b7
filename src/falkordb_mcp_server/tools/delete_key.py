"""Delete Key tool for FalkorDB MCP Server."""

from typing import Any, Dict, Optional

from ..client.redis_client import RedisClient
from ..errors import OperationError
from ..protocol.schemas import Tool
from ..tenancy import TenantContext, TenantGraphResolver
from .base import BaseTool, ToolResult
from .delete_graph import CONFIRM_DELETE_DESCRIPTION


class DeleteKeyTool(BaseTool):
    """Tool for deleting a key. Requires ``confirmDelete: true``."""

    name = "delete_key"
    title = "Delete Key"
    description = (
        "Permanently delete a key from Redis. WARNING: This action is irreversible. "
        "You must set confirmDelete to true to proceed."
    )

    def __init__(self, redis_client: RedisClient, resolver: Optional[TenantGraphResolver] = None):
        super().__init__(resolver)
        self.redis_client = redis_client

    def get_schema(self) -> Tool:
        """Get the tool schema definition."""
        return self._create_schema(
            parameters={
                "key": self._create_parameter("string", "The key to delete"),
                "confirmDelete": self._create_parameter(
                    "boolean", CONFIRM_DELETE_DESCRIPTION, const=True
                ),
            },
            required=["key", "confirmDelete"],
        )

    async def execute(self, arguments: Dict[str, Any], context: TenantContext) -> ToolResult:
        key = self._require_text(arguments, "key", "Key")

        try:
            await self.redis_client.delete(self.resolve(key, context))
        except OperationError as e:
            raise OperationError(f"Failed to delete key '{key}': {e.message}") from e

        self.logger.debug("Delete key tool executed successfully", key=key)
        return ToolResult.success(f"Key {key} deleted")
