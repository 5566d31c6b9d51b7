"""
List Graphs tool for FalkorDB MCP Server.

Lists the graphs visible to the caller: with tenant prefixing active a
tenant sees only its own graphs, under their logical names.
"""

from typing import Any, Dict, Optional

from ..client.falkordb_client import FalkorDBClient
from ..protocol.schemas import Tool
from ..tenancy import TenantContext, TenantGraphResolver
from .base import BaseTool, ToolResult


class ListGraphsTool(BaseTool):
    """Tool for listing graphs."""

    name = "list_graphs"
    title = "List Graphs"
    description = "List all graphs available to query"

    def __init__(self, falkordb_client: FalkorDBClient, resolver: Optional[TenantGraphResolver] = None):
        super().__init__(resolver)
        self.falkordb_client = falkordb_client

    def get_schema(self) -> Tool:
        """Get the tool schema definition."""
        return self._create_schema(parameters={}, required=[])

    async def execute(self, arguments: Dict[str, Any], context: TenantContext) -> ToolResult:
        all_graphs = await self.falkordb_client.list_graphs()
        graphs = self.resolver.filter_for_tenant(all_graphs, context.tenant_id)

        self.logger.debug("List graphs tool executed", count=len(graphs))
        return ToolResult.success("\n".join(graphs))
