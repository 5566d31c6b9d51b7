"""List Keys tool for FalkorDB MCP Server."""

from typing import Any, Dict, Optional

from ..client.redis_client import RedisClient
from ..protocol.schemas import Tool
from ..tenancy import TenantContext, TenantGraphResolver
from .base import BaseTool, ToolResult


class ListKeysTool(BaseTool):
    """Tool for listing the keys visible to the caller."""

    name = "list_keys"
    title = "List Keys"
    description = "List all keys in Redis"

    def __init__(self, redis_client: RedisClient, resolver: Optional[TenantGraphResolver] = None):
        super().__init__(resolver)
        self.redis_client = redis_client

    def get_schema(self) -> Tool:
        """Get the tool schema definition."""
        return self._create_schema(parameters={}, required=[])

    async def execute(self, arguments: Dict[str, Any], context: TenantContext) -> ToolResult:
        all_keys = await self.redis_client.list_keys()
        keys = self.resolver.filter_for_tenant(all_keys, context.tenant_id)

        self.logger.debug("List keys tool executed", count=len(keys))
        return ToolResult.success("\n".join(keys))
