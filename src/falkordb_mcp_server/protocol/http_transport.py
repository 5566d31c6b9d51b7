"""
Per-session binding of the MCP protocol to HTTP requests.

Each ``HttpSessionTransport`` pairs with exactly one ``MCPHandler``. POST
bodies are answered inline; server-initiated messages (log notifications)
are queued and delivered over a GET event stream when the client opens one.
"""

import asyncio
import json
import uuid
from typing import Any, Callable, List, Optional

import structlog
from aiohttp import web

from ..tenancy import NO_TENANT, TenantContext
from ..utils.logging import log_origin
from .handlers import MCPHandler
from .schemas import MCPResponse
from .transport import serialize_message

logger = structlog.get_logger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
OUTBOUND_QUEUE_SIZE = 1000

_CLOSE = object()


def generate_session_id() -> str:
    return uuid.uuid4().hex


def _dumps(data: Any) -> str:
    return json.dumps(data, default=str)


class HttpSessionTransport:
    """
    HTTP transport bound to a single MCP session.

    The session id is assigned only once the handler has completed the
    initialize handshake, so a failed handshake never yields an id.

    Args:
        handler: Protocol handler owned by this session
        session_id_generator: Produces the id assigned after the handshake
    """

    def __init__(
        self,
        handler: MCPHandler,
        session_id_generator: Callable[[], str] = generate_session_id,
    ):
        self.handler = handler
        self.session_id: Optional[str] = None
        self.on_session_initialized: Optional[Callable[[str], None]] = None
        self._generate_session_id = session_id_generator
        self._close_callbacks: List[Callable[[], None]] = []
        self._outbound: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=OUTBOUND_QUEUE_SIZE)
        self._stream_open = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def on_close(self, callback: Callable[[], None]) -> None:
        """Register a callback run once when the transport closes."""
        self._close_callbacks.append(callback)

    def _headers(self) -> dict:
        return {SESSION_HEADER: self.session_id} if self.session_id else {}

    async def handle_post(
        self, payload: Any, context: TenantContext = NO_TENANT
    ) -> web.Response:
        """
        Process a decoded POST body and build the HTTP response.

        Returns 202 when the body held only notifications.
        """
        with log_origin(self.session_id):
            responses = await self.handler.dispatch_payload(payload, context)

        if self.session_id is None and self.handler.initialized:
            self.session_id = self._generate_session_id()
            if self.on_session_initialized is not None:
                self.on_session_initialized(self.session_id)

        if not responses:
            return web.Response(status=202, headers=self._headers())

        body: Any
        if isinstance(payload, list):
            body = [response.model_dump() for response in responses]
        else:
            body = responses[0].model_dump()
        return web.json_response(body, headers=self._headers(), dumps=_dumps)

    async def handle_get(self, request: web.Request) -> web.StreamResponse:
        """Stream queued server messages as server-sent events."""
        if self._stream_open:
            return web.json_response(
                MCPResponse(
                    id=None,
                    error={"code": -32000, "message": "Conflict: Only one stream is allowed per session"},
                ).model_dump(),
                status=409,
                dumps=_dumps,
            )

        response = web.StreamResponse(
            status=200,
            headers={
                "Content-Type": "text/event-stream",
                "Cache-Control": "no-cache",
                **self._headers(),
            },
        )
        await response.prepare(request)

        self._stream_open = True
        logger.debug("Event stream opened", session_id=self.session_id)
        try:
            while not self._closed:
                message = await self._outbound.get()
                if message is _CLOSE:
                    break
                frame = f"event: message\ndata: {serialize_message(message)}\n\n"
                await response.write(frame.encode("utf-8"))
        except ConnectionResetError:
            logger.debug("Event stream disconnected", session_id=self.session_id)
        finally:
            self._stream_open = False

        return response

    async def handle_delete(self) -> web.Response:
        """Terminate the session."""
        await self.close()
        return web.Response(status=200, headers=self._headers())

    def enqueue(self, message: Any) -> None:
        """Queue a server message for the event stream without blocking."""
        if self._closed:
            return
        try:
            self._outbound.put_nowait(message)
        except asyncio.QueueFull:
            logger.debug("Outbound queue full, dropping message", session_id=self.session_id)

    async def close(self) -> None:
        """Close the transport. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True

        # Wake an open event stream
        try:
            self._outbound.put_nowait(_CLOSE)
        except asyncio.QueueFull:
            self._outbound.get_nowait()
            self._outbound.put_nowait(_CLOSE)

        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            callback()

        logger.debug("Session transport closed", session_id=self.session_id)
