"""
HTTP multi-session manager for the MCP endpoint.

Owns the table of live sessions and routes every request on the MCP
endpoint to the session it belongs to. Each session has its own protocol
handler and transport; only the backend adapters behind the tools are
shared.

Table lookups and mutations never span an ``await``: the event loop is
single-threaded, so the table needs no lock as long as that holds.
"""

import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import structlog
from aiohttp import web

from ..tenancy import AuthenticationError, RequestAuthenticator, TenantContext
from ..utils.logging import ClientLogForwarder
from .handlers import MCPHandler, contains_initialize, parse_payload
from .http_transport import SESSION_HEADER, HttpSessionTransport
from .schemas import SERVER_ERROR, UNAUTHORIZED, MCPError, MCPResponse

logger = structlog.get_logger(__name__)

ALLOWED_METHODS = ("POST", "GET", "DELETE")


class SessionState(str, Enum):
    """Lifecycle state of an HTTP session."""

    ACTIVE = "active"
    CLOSED = "closed"


@dataclass
class Session:
    """One live MCP connection over HTTP."""

    session_id: str
    handler: MCPHandler
    transport: HttpSessionTransport
    tenant_id: Optional[str] = None
    state: SessionState = SessionState.ACTIVE
    created_at: float = field(default_factory=time.time)


def _dumps(data: Any) -> str:
    return json.dumps(data, default=str)


def error_response(status: int, code: int, message: str, headers: Optional[dict] = None) -> web.Response:
    """JSON-RPC shaped error body with an HTTP status."""
    body = MCPResponse.from_error(None, MCPError(message, code=code)).model_dump()
    return web.json_response(body, status=status, headers=headers, dumps=_dumps)


class HttpSessionManager:
    """
    Multiplex MCP sessions over one HTTP endpoint.

    Args:
        handler_factory: Builds a fresh handler with its tools registered
        authenticator: Turns the Authorization header into a tenant context
        endpoint: Path of the MCP endpoint
        log_forwarder: Relays server logs to sessions, if configured
        health_check: Coroutine returning a health report for ``GET /health``
    """

    def __init__(
        self,
        handler_factory: Callable[[], MCPHandler],
        authenticator: RequestAuthenticator,
        endpoint: str = "/mcp",
        log_forwarder: Optional[ClientLogForwarder] = None,
        health_check: Optional[Callable[[], Any]] = None,
    ):
        self.handler_factory = handler_factory
        self.authenticator = authenticator
        self.endpoint = endpoint
        self.log_forwarder = log_forwarder
        self.health_check = health_check
        self._sessions: Dict[str, Session] = {}

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    @property
    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def get_session(self, session_id: str, context: TenantContext) -> Optional[Session]:
        """
        Look up a live session for a caller.

        A session only answers to the tenant that created it; any other
        caller gets the same result as for an unknown id.
        """
        session = self._sessions.get(session_id)
        if session is None or session.state is SessionState.CLOSED:
            return None
        if session.tenant_id != context.tenant_id:
            logger.warning("Session tenant mismatch", session_id=session_id)
            return None
        return session

    def create_app(self) -> web.Application:
        """Build the aiohttp application serving the MCP endpoint."""
        app = web.Application()
        app.router.add_route("*", self.endpoint, self.handle_request)
        app.router.add_get("/health", self.handle_health)
        app.on_shutdown.append(self._on_shutdown)
        return app

    async def _on_shutdown(self, app: web.Application) -> None:
        await self.close_all()

    async def handle_request(self, request: web.Request) -> web.StreamResponse:
        """Authenticate and route one request on the MCP endpoint."""
        try:
            context = await self.authenticator.authenticate(request.headers.get("Authorization"))
        except AuthenticationError as e:
            logger.warning("Rejected unauthenticated request", method=request.method)
            return error_response(401, UNAUTHORIZED, e.message)

        if request.method == "POST":
            return await self._handle_post(request, context)
        if request.method == "GET":
            return await self._handle_get(request, context)
        if request.method == "DELETE":
            return await self._handle_delete(request, context)

        return error_response(
            405,
            SERVER_ERROR,
            "Method not allowed",
            headers={"Allow": ", ".join(ALLOWED_METHODS)},
        )

    async def _handle_post(self, request: web.Request, context: TenantContext) -> web.StreamResponse:
        session_id = request.headers.get(SESSION_HEADER)
        session = None
        if session_id:
            session = self.get_session(session_id, context)
            if session is None:
                return error_response(400, SERVER_ERROR, "Bad Request: Unknown session ID")

        try:
            payload = parse_payload(await request.read())
        except MCPError as e:
            logger.warning("Unparseable request body", error=e.message)
            return error_response(400, e.code, e.message)

        if session is not None:
            return await session.transport.handle_post(payload, context)

        if not contains_initialize(payload):
            return error_response(400, SERVER_ERROR, "Bad Request: No valid session ID provided")

        return await self._create_session(payload, context)

    async def _create_session(self, payload: Any, context: TenantContext) -> web.StreamResponse:
        handler = self.handler_factory()
        transport = HttpSessionTransport(handler)

        def register(session_id: str) -> None:
            self._sessions[session_id] = Session(
                session_id=session_id,
                handler=handler,
                transport=transport,
                tenant_id=context.tenant_id,
            )
            transport.on_close(lambda: self._remove_session(session_id))
            if self.log_forwarder is not None:
                self.log_forwarder.register(session_id, transport.enqueue)
                handler.on_log_level = lambda level: self.log_forwarder.set_level(session_id, level)
            logger.info(
                "Session initialized",
                session_id=session_id,
                tenant_id=context.tenant_id,
                active_sessions=len(self._sessions),
            )

        transport.on_session_initialized = register
        response = await transport.handle_post(payload, context)

        if transport.session_id is None:
            await transport.close()
        return response

    async def _handle_get(self, request: web.Request, context: TenantContext) -> web.StreamResponse:
        session = self._lookup_header(request, context)
        if session is None:
            return error_response(400, SERVER_ERROR, "Bad Request: Unknown or missing session ID")
        return await session.transport.handle_get(request)

    async def _handle_delete(self, request: web.Request, context: TenantContext) -> web.StreamResponse:
        session = self._lookup_header(request, context)
        if session is None:
            return error_response(400, SERVER_ERROR, "Bad Request: Unknown or missing session ID")

        try:
            return await session.transport.handle_delete()
        finally:
            self._remove_session(session.session_id)

    def _lookup_header(self, request: web.Request, context: TenantContext) -> Optional[Session]:
        session_id = request.headers.get(SESSION_HEADER)
        if not session_id:
            return None
        return self.get_session(session_id, context)

    def _remove_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        session.state = SessionState.CLOSED
        if self.log_forwarder is not None:
            self.log_forwarder.unregister(session_id)
        logger.info(
            "Session closed",
            session_id=session_id,
            active_sessions=len(self._sessions),
        )

    async def handle_health(self, request: web.Request) -> web.Response:
        """Unauthenticated health probe."""
        if self.health_check is None:
            return web.json_response({"status": "healthy"})

        report = await self.health_check()
        status = 503 if report.get("status") == "unhealthy" else 200
        return web.json_response(report, status=status, dumps=_dumps)

    async def close_all(self) -> None:
        """Close every session."""
        for session in list(self._sessions.values()):
            await session.transport.close()
            self._remove_session(session.session_id)
        logger.info("All sessions closed")
