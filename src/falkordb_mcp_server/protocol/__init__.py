"""MCP protocol engine and transports."""

from .handlers import MCPHandler, contains_initialize, parse_payload
from .http_transport import SESSION_HEADER, HttpSessionTransport
from .schemas import MCPError, MCPRequest, MCPResponse, ServerInfo, Tool, ToolParameter, ToolSchema
from .session_manager import HttpSessionManager, Session, SessionState
from .transport import StdioTransport, TransportError

__all__ = [
    "HttpSessionManager",
    "HttpSessionTransport",
    "MCPError",
    "MCPHandler",
    "MCPRequest",
    "MCPResponse",
    "SESSION_HEADER",
    "ServerInfo",
    "Session",
    "SessionState",
    "StdioTransport",
    "Tool",
    "ToolParameter",
    "ToolSchema",
    "TransportError",
    "contains_initialize",
    "parse_payload",
]
