"""
Delete Graph tool for FalkorDB MCP Server.

Permanently deletes one of the caller's graphs. The client must pass
``confirmDelete: true`` explicitly.
"""

from typing import Any, Dict, Optional

from ..client.falkordb_client import FalkorDBClient
from ..protocol.schemas import Tool
from ..tenancy import TenantContext, TenantGraphResolver
from .base import BaseTool, ToolResult

CONFIRM_DELETE_DESCRIPTION = (
    "Must be set to true to confirm deletion. "
    "This is a safety measure to prevent accidental data loss."
)


class DeleteGraphTool(BaseTool):
    """Tool for deleting a graph."""

    name = "delete_graph"
    title = "Delete Graph"
    description = (
        "Permanently delete a graph from the database. WARNING: This action is irreversible. "
        "You must set confirmDelete to true to proceed."
    )

    def __init__(self, falkordb_client: FalkorDBClient, resolver: Optional[TenantGraphResolver] = None):
        super().__init__(resolver)
        self.falkordb_client = falkordb_client

    def get_schema(self) -> Tool:
        """Get the tool schema definition."""
        return self._create_schema(
            parameters={
                "graphName": self._create_parameter("string", "The name of the graph to delete"),
                "confirmDelete": self._create_parameter(
                    "boolean", CONFIRM_DELETE_DESCRIPTION, const=True
                ),
            },
            required=["graphName", "confirmDelete"],
        )

    async def execute(self, arguments: Dict[str, Any], context: TenantContext) -> ToolResult:
        graph_name = self._require_text(arguments, "graphName", "Graph name")

        await self.falkordb_client.delete_graph(self.resolve(graph_name, context))

        self.logger.info("Delete graph tool executed successfully", graph_name=graph_name)
        return ToolResult.success(f"Graph {graph_name} deleted")
