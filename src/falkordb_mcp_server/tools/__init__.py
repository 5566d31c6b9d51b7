"""
FalkorDB MCP tools implementation.

This module provides the tool implementations that expose FalkorDB graph
queries and the auxiliary key/value store through the MCP protocol.
"""

from .base import BaseTool, ToolResult
from .delete_graph import DeleteGraphTool
from .delete_key import DeleteKeyTool
from .get_key import GetKeyTool
from .list_graphs import ListGraphsTool
from .list_keys import ListKeysTool
from .query_graph import QueryGraphReadOnlyTool, QueryGraphTool
from .set_key import SetKeyTool

__all__ = [
    "BaseTool",
    "ToolResult",
    "QueryGraphTool",
    "QueryGraphReadOnlyTool",
    "ListGraphsTool",
    "DeleteGraphTool",
    "SetKeyTool",
    "GetKeyTool",
    "DeleteKeyTool",
    "ListKeysTool",
]
