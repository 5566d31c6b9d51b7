"""
Query Graph tools for FalkorDB MCP Server.

Implements query_graph and query_graph_readonly, which run OpenCypher
queries against a tenant's graph.
"""

from typing import Any, Dict, Optional

from ..client.falkordb_client import FalkorDBClient
from ..protocol.schemas import Tool
from ..tenancy import TenantContext, TenantGraphResolver
from .base import BaseTool, ToolResult

QUERY_LOG_PREVIEW = 100


def _preview(query: str) -> str:
    if len(query) <= QUERY_LOG_PREVIEW:
        return query
    return query[:QUERY_LOG_PREVIEW] + "..."


class QueryGraphTool(BaseTool):
    """
    Tool for running OpenCypher queries.

    Read-only execution (GRAPH.RO_QUERY) is chosen per call, falling back to
    the configured default; strict read-only mode overrides the caller.
    """

    name = "query_graph"
    title = "Query Graph"
    description = (
        "Run an OpenCypher query on a graph. Supports both read-write and read-only queries."
    )

    def __init__(
        self,
        falkordb_client: FalkorDBClient,
        resolver: Optional[TenantGraphResolver] = None,
        default_read_only: bool = False,
        strict_read_only: bool = False,
    ):
        """
        Initialize query graph tool.

        Args:
            falkordb_client: Shared FalkorDB adapter
            resolver: Tenant name resolver
            default_read_only: Read-only mode when the caller does not choose
            strict_read_only: Force read-only mode for every query
        """
        super().__init__(resolver)
        self.falkordb_client = falkordb_client
        self.default_read_only = default_read_only
        self.strict_read_only = strict_read_only

    def get_schema(self) -> Tool:
        """Get the tool schema definition."""
        return self._create_schema(
            parameters={
                "graphName": self._create_parameter("string", "The name of the graph to query"),
                "query": self._create_parameter("string", "The OpenCypher query to run"),
                "readOnly": self._create_parameter(
                    "boolean",
                    "If true, executes as a read-only query (GRAPH.RO_QUERY). Useful for "
                    "replica instances or to prevent accidental writes. Defaults to the "
                    "server's FALKORDB_DEFAULT_READONLY setting.",
                ),
            },
            required=["graphName", "query"],
        )

    def _read_only(self, arguments: Dict[str, Any]) -> bool:
        if self.strict_read_only:
            return True
        read_only = arguments.get("readOnly")
        return self.default_read_only if read_only is None else read_only

    async def execute(self, arguments: Dict[str, Any], context: TenantContext) -> ToolResult:
        graph_name = self._require_text(arguments, "graphName", "Graph name")
        query = self._require_text(arguments, "query", "Query")
        read_only = self._read_only(arguments)

        try:
            result = await self.falkordb_client.execute_query(
                self.resolve(graph_name, context),
                query,
                read_only=read_only,
            )
        except Exception:
            self.logger.error(
                "Query tool execution failed",
                graph_name=graph_name,
                query=_preview(query),
            )
            raise

        self.logger.debug("Query tool executed successfully", graph_name=graph_name, read_only=read_only)
        return ToolResult.data(result)


class QueryGraphReadOnlyTool(QueryGraphTool):
    """Query tool that always uses GRAPH.RO_QUERY."""

    name = "query_graph_readonly"
    title = "Query Graph (Read-Only)"
    description = (
        "Run a read-only OpenCypher query on a graph using GRAPH.RO_QUERY. This ensures no "
        "write operations are performed and is ideal for replica instances."
    )

    def __init__(
        self,
        falkordb_client: FalkorDBClient,
        resolver: Optional[TenantGraphResolver] = None,
    ):
        super().__init__(falkordb_client, resolver, strict_read_only=True)

    def get_schema(self) -> Tool:
        """Get the tool schema definition."""
        return self._create_schema(
            parameters={
                "graphName": self._create_parameter("string", "The name of the graph to query"),
                "query": self._create_parameter(
                    "string",
                    "The read-only OpenCypher query to run (write operations will fail)",
                ),
            },
            required=["graphName", "query"],
        )
