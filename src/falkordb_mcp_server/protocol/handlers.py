"""
MCP Protocol message handlers.

Implements the core logic for handling MCP protocol messages,
routing them to appropriate handlers, and managing the protocol lifecycle.
One ``MCPHandler`` exists per session; it holds no transport state.
"""

import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import structlog
from pydantic import ValidationError

from ..errors import to_safe_result
from ..tenancy import NO_TENANT, TenantContext
from ..utils.logging import MCP_LOG_LEVELS
from .schemas import (
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    MCPCallToolRequest,
    MCPError,
    MCPInitializeRequest,
    MCPInternalError,
    MCPInvalidRequestError,
    MCPMethodNotFoundError,
    MCPNotification,
    MCPNotInitializedError,
    MCPParseError,
    MCPRequest,
    MCPResponse,
    MCPValidationError,
    ServerInfo,
    Tool,
)

logger = structlog.get_logger(__name__)

ToolExecutor = Callable[[Dict[str, Any], TenantContext], Awaitable[Any]]


def parse_payload(raw: Union[str, bytes]) -> Any:
    """
    Decode a request body or stdio line.

    Raises:
        MCPParseError: If the text is not valid JSON
    """
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MCPParseError(f"Parse error: {e.__class__.__name__}") from e


def is_initialize_request(message: Any) -> bool:
    """Check if a decoded message is an initialize request."""
    return isinstance(message, dict) and message.get("method") == "initialize" and "id" in message


def contains_initialize(payload: Any) -> bool:
    """Check a single message or a batch for an initialize request."""
    if isinstance(payload, list):
        return any(is_initialize_request(message) for message in payload)
    return is_initialize_request(payload)


def _request_id(message: Dict[str, Any]) -> Optional[Union[str, int]]:
    request_id = message.get("id")
    if isinstance(request_id, (str, int)) and not isinstance(request_id, bool):
        return request_id
    return None


class MCPHandler:
    """
    Main handler for MCP protocol messages.

    Routes incoming requests to appropriate handlers and manages
    the protocol state and capabilities.
    """

    def __init__(self, server_info: Optional[ServerInfo] = None):
        self.server_info = server_info or ServerInfo()
        self._initialized = False
        self._protocol_version: Optional[str] = None
        self._tools: Dict[str, Tool] = {}
        self._tool_executors: Dict[str, ToolExecutor] = {}
        self.client_log_level: Optional[str] = None
        self.on_log_level: Optional[Callable[[str], None]] = None

        # Protocol capabilities
        self._capabilities = {
            "tools": {"listChanged": False},
            "logging": {},
        }

    def register_tool(self, tool: Tool, executor: ToolExecutor) -> None:
        """
        Register a tool with its executor function.

        Args:
            tool: Tool definition
            executor: Async function called with ``(arguments, tenant_context)``
        """
        self._tools[tool.name] = tool
        self._tool_executors[tool.name] = executor
        logger.debug("Registered tool", tool_name=tool.name)

    async def dispatch_payload(
        self, payload: Any, context: TenantContext = NO_TENANT
    ) -> List[MCPResponse]:
        """
        Handle a decoded body: one message or a batch.

        Returns:
            Responses to emit, in message order; empty when the payload held
            only notifications
        """
        if isinstance(payload, list):
            if not payload:
                return [MCPResponse.from_error(None, MCPInvalidRequestError("Empty batch"))]
            responses = []
            for message in payload:
                response = await self.dispatch(message, context)
                if response is not None:
                    responses.append(response)
            return responses

        response = await self.dispatch(payload, context)
        return [response] if response is not None else []

    async def dispatch(
        self, message: Any, context: TenantContext = NO_TENANT
    ) -> Optional[MCPResponse]:
        """
        Handle one decoded JSON-RPC message.

        Returns:
            The response, or None for notifications and client responses
        """
        if not isinstance(message, dict):
            return MCPResponse.from_error(None, MCPInvalidRequestError())

        if "method" not in message:
            if "result" in message or "error" in message:
                logger.debug("Ignoring client response", request_id=message.get("id"))
                return None
            return MCPResponse.from_error(_request_id(message), MCPInvalidRequestError())

        if "id" not in message:
            await self._dispatch_notification(message)
            return None

        try:
            request = MCPRequest(**message)
        except ValidationError as e:
            logger.warning("Invalid request format", error=str(e))
            return MCPResponse.from_error(
                _request_id(message), MCPInvalidRequestError("Invalid Request")
            )

        return await self.handle_request(request, context)

    async def _dispatch_notification(self, message: Dict[str, Any]) -> None:
        try:
            notification = MCPNotification(**message)
        except ValidationError as e:
            logger.warning("Invalid notification format", error=str(e))
            return

        if notification.method == "notifications/initialized":
            logger.debug("Client reported initialized")
        else:
            logger.debug("Received notification", method=notification.method)

    async def handle_request(
        self, request: MCPRequest, context: TenantContext = NO_TENANT
    ) -> MCPResponse:
        """
        Handle incoming MCP request.

        Args:
            request: Incoming request
            context: Identity of the caller

        Returns:
            Response to send back to client
        """
        logger.debug(
            "Handling request",
            method=request.method,
            request_id=request.id,
        )

        try:
            # Route to appropriate handler
            if request.method == "initialize":
                result = await self._handle_initialize(request)
            elif request.method == "ping":
                result = {}
            elif request.method == "tools/list":
                result = await self._handle_list_tools(request)
            elif request.method == "tools/call":
                result = await self._handle_call_tool(request, context)
            elif request.method == "logging/setLevel":
                result = await self._handle_set_level(request)
            else:
                raise MCPMethodNotFoundError(request.method)

            return MCPResponse(id=request.id, result=result)

        except MCPError as e:
            logger.warning(
                "MCP error handling request",
                method=request.method,
                request_id=request.id,
                error_code=e.code,
                error_message=e.message,
            )
            return MCPResponse.from_error(request.id, e)

        except Exception as e:
            logger.error(
                "Unexpected error handling request",
                method=request.method,
                request_id=request.id,
                error=str(e),
                exc_info=True,
            )
            return MCPResponse.from_error(request.id, MCPInternalError())

    async def _handle_initialize(self, request: MCPRequest) -> Dict[str, Any]:
        """Handle initialize request."""
        if self._initialized:
            raise MCPInvalidRequestError("Session already initialized")

        try:
            init_request = MCPInitializeRequest(**request.model_dump(exclude_none=True))
        except ValidationError as e:
            raise MCPValidationError(f"Invalid initialize request: {e.error_count()} error(s)")

        requested = init_request.protocol_version
        if requested in SUPPORTED_PROTOCOL_VERSIONS:
            protocol_version = requested
        else:
            logger.warning(
                "Unsupported protocol version",
                requested=requested,
                supported=list(SUPPORTED_PROTOCOL_VERSIONS),
            )
            protocol_version = LATEST_PROTOCOL_VERSION

        client_info = init_request.client_info
        logger.info(
            "Initializing MCP session",
            protocol_version=protocol_version,
            client_name=client_info.name if client_info else None,
        )

        # Mark as initialized
        self._initialized = True
        self._protocol_version = protocol_version

        return {
            "protocolVersion": protocol_version,
            "serverInfo": self.server_info.model_dump(),
            "capabilities": self._capabilities,
        }

    async def _handle_list_tools(self, request: MCPRequest) -> Dict[str, Any]:
        """Handle list tools request."""
        if not self._initialized:
            raise MCPNotInitializedError()

        logger.debug("Listing tools", tool_count=len(self._tools))
        return {"tools": [tool.to_dict() for tool in self._tools.values()]}

    async def _handle_call_tool(
        self, request: MCPRequest, context: TenantContext
    ) -> Dict[str, Any]:
        """Handle call tool request."""
        if not self._initialized:
            raise MCPNotInitializedError()

        try:
            call_request = MCPCallToolRequest(**request.model_dump(exclude_none=True))
        except ValidationError:
            raise MCPValidationError("Invalid call tool request: params are required")

        tool_name = call_request.tool_name
        arguments = call_request.tool_arguments

        # Check if tool exists
        if tool_name not in self._tool_executors:
            raise MCPValidationError(f"Unknown tool: {tool_name}")

        logger.info("Calling tool", tool_name=tool_name, tenant_id=context.tenant_id)

        executor = self._tool_executors[tool_name]
        try:
            result = await executor(arguments, context)
        except Exception as e:
            # Full detail stays in the server log; the client sees a sanitized text
            logger.error(
                "Tool execution failed",
                tool_name=tool_name,
                error=str(e),
                exc_info=True,
            )
            return to_safe_result(e).to_dict()

        # Format result for MCP response
        if hasattr(result, "to_dict"):
            result_dict = result.to_dict()
        elif isinstance(result, dict) and "content" in result:
            result_dict = result
        else:
            result_dict = {
                "content": [
                    {
                        "type": "text",
                        "text": result if isinstance(result, str) else str(result),
                    }
                ],
            }

        is_error = bool(result_dict.get("isError", False))
        logger.debug("Tool execution completed", tool_name=tool_name, success=not is_error)

        return {"content": result_dict["content"], "isError": is_error}

    async def _handle_set_level(self, request: MCPRequest) -> Dict[str, Any]:
        """Handle logging/setLevel request."""
        level = (request.params or {}).get("level")
        if not isinstance(level, str) or level.lower() not in MCP_LOG_LEVELS:
            raise MCPValidationError(
                "Invalid log level",
                data={"allowed_values": list(MCP_LOG_LEVELS)},
            )

        self.client_log_level = level.lower()
        if self.on_log_level is not None:
            self.on_log_level(self.client_log_level)

        logger.debug("Client log level changed", level=self.client_log_level)
        return {}

    @property
    def initialized(self) -> bool:
        """Check if the handler is initialized."""
        return self._initialized

    @property
    def protocol_version(self) -> Optional[str]:
        """Negotiated protocol version, once initialized."""
        return self._protocol_version

    @property
    def tools(self) -> List[Tool]:
        """Get list of registered tools."""
        return list(self._tools.values())

    def get_tool(self, name: str) -> Optional[Tool]:
        """Get tool by name."""
        return self._tools.get(name)
