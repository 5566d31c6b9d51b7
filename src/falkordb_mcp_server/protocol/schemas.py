"""
MCP Protocol message schemas and data structures.

Defines the JSON-RPC 2.0 message formats for the Model Context Protocol,
including requests, responses, and error handling.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

JSONRPC_VERSION = "2.0"

SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")
LATEST_PROTOCOL_VERSION = SUPPORTED_PROTOCOL_VERSIONS[-1]

# JSON-RPC error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_ERROR = -32000
UNAUTHORIZED = -32001
NOT_INITIALIZED = -32002

RequestId = Union[str, int]


class MCPError(Exception):
    """Base exception for MCP protocol errors."""

    def __init__(
        self,
        message: str,
        code: int = SERVER_ERROR,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to JSON-RPC error format."""
        error_dict = {
            "code": self.code,
            "message": self.message,
        }
        if self.data:
            error_dict["data"] = self.data
        return error_dict


class MCPParseError(MCPError):
    """Error for bodies that are not valid JSON."""

    def __init__(self, message: str = "Parse error"):
        super().__init__(message, code=PARSE_ERROR)


class MCPInvalidRequestError(MCPError):
    """Error for messages that are not valid JSON-RPC requests."""

    def __init__(self, message: str = "Invalid Request"):
        super().__init__(message, code=INVALID_REQUEST)


class MCPValidationError(MCPError):
    """Error for invalid request parameters."""

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=INVALID_PARAMS, data=data)


class MCPMethodNotFoundError(MCPError):
    """Error for unknown method calls."""

    def __init__(self, method: str):
        super().__init__(f"Method not found: {method}", code=METHOD_NOT_FOUND)


class MCPNotInitializedError(MCPError):
    """Error for calls made before the initialize handshake."""

    def __init__(self):
        super().__init__("Session not initialized", code=NOT_INITIALIZED)


class MCPInternalError(MCPError):
    """Error for internal server issues."""

    def __init__(self, message: str = "Internal error"):
        super().__init__(message, code=INTERNAL_ERROR)


# Base message types
class MCPMessage(BaseModel):
    """Base class for all MCP messages."""

    model_config = ConfigDict(extra="forbid")

    jsonrpc: str = Field(default=JSONRPC_VERSION, description="JSON-RPC version")


class MCPRequest(MCPMessage):
    """Base class for MCP requests."""

    id: RequestId = Field(description="Request ID")
    method: str = Field(description="Method name")
    params: Optional[Dict[str, Any]] = Field(default=None, description="Method parameters")


class MCPResponse(MCPMessage):
    """Base class for MCP responses."""

    id: Optional[RequestId] = Field(description="Request ID")
    result: Optional[Dict[str, Any]] = Field(default=None, description="Response result")
    error: Optional[Dict[str, Any]] = Field(default=None, description="Error information")

    @classmethod
    def from_error(cls, request_id: Optional[RequestId], error: MCPError) -> "MCPResponse":
        """Build an error response."""
        return cls(id=request_id, error=error.to_dict())

    def model_dump(self, **kwargs) -> Dict[str, Any]:
        """Override model_dump to properly handle JSON-RPC 2.0 response format."""
        result = super().model_dump(**kwargs)

        # JSON-RPC 2.0: Response must have either result OR error, never both
        if self.error is not None:
            result.pop("result", None)
        else:
            result.pop("error", None)
            if result.get("result") is None:
                result["result"] = {}

        return result


class MCPNotification(MCPMessage):
    """Base class for MCP notifications (no response expected)."""

    method: str = Field(description="Method name")
    params: Optional[Dict[str, Any]] = Field(default=None, description="Method parameters")


# Client info structures
class ClientInfo(BaseModel):
    """Information about the MCP client."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(default="unknown", description="Client name")
    version: str = Field(default="unknown", description="Client version")


class ServerInfo(BaseModel):
    """Information about the MCP server."""

    name: str = Field(default="falkordb-mcp-server", description="Server name")
    version: str = Field(default="0.1.0", description="Server version")


# Tool structures
class ToolParameter(BaseModel):
    """Tool parameter definition."""

    type: str = Field(description="Parameter type")
    description: Optional[str] = Field(default=None, description="Parameter description")
    enum: Optional[List[str]] = Field(default=None, description="Allowed values")
    const: Optional[Any] = Field(default=None, description="Only accepted value")
    default: Optional[Any] = Field(default=None, description="Default value")
    minimum: Optional[float] = Field(default=None, description="Minimum value")
    maximum: Optional[float] = Field(default=None, description="Maximum value")


class ToolSchema(BaseModel):
    """Tool input schema definition."""

    type: str = Field(default="object", description="Schema type")
    properties: Dict[str, ToolParameter] = Field(description="Tool parameters")
    required: List[str] = Field(default_factory=list, description="Required parameters")
    additionalProperties: bool = Field(default=False, description="Allow unknown parameters")


class Tool(BaseModel):
    """Tool definition."""

    name: str = Field(description="Tool name")
    title: Optional[str] = Field(default=None, description="Human-readable tool title")
    description: str = Field(description="Tool description")
    inputSchema: ToolSchema = Field(description="Tool input schema")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for tools/list, omitting unset optional keywords."""
        return self.model_dump(exclude_none=True)


# Initialize protocol
class MCPInitializeRequest(MCPRequest):
    """Initialize request from client."""

    method: str = Field(default="initialize", frozen=True)
    params: Dict[str, Any] = Field(default_factory=dict, description="Initialize parameters")

    @property
    def protocol_version(self) -> str:
        """Get protocol version from params."""
        version = self.params.get("protocolVersion", LATEST_PROTOCOL_VERSION)
        return str(version)

    @property
    def client_info(self) -> Optional[ClientInfo]:
        """Get client info from params."""
        client_data = self.params.get("clientInfo")
        return ClientInfo(**client_data) if isinstance(client_data, dict) else None


class MCPCallToolRequest(MCPRequest):
    """Call tool request from client."""

    method: str = Field(default="tools/call", frozen=True)
    params: Dict[str, Any] = Field(description="Tool call parameters")

    @property
    def tool_name(self) -> str:
        """Get tool name from params."""
        name = self.params.get("name", "")
        return str(name) if name is not None else ""

    @property
    def tool_arguments(self) -> Dict[str, Any]:
        """Get tool arguments from params."""
        args = self.params.get("arguments") or {}
        return args if isinstance(args, dict) else {}
