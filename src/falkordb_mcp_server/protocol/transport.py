"""
Stdio transport for MCP protocol communication.

Newline-delimited JSON-RPC over stdin/stdout for exactly one peer, the
process that launched the server. Every outbound frame, responses and
server notifications alike, goes through one queue drained by a single
writer task, so frames are never interleaved on stdout.
"""

import asyncio
import json
import sys
from typing import Any, AsyncIterator, Dict, Optional, TextIO, Union

import structlog

from ..tenancy import NO_TENANT
from .handlers import MCPHandler, parse_payload
from .schemas import MCPError, MCPResponse

logger = structlog.get_logger(__name__)

OUTBOUND_QUEUE_SIZE = 1000

_STOP = object()


class TransportError(Exception):
    """Base exception for transport errors."""

    pass


def serialize_message(message: Union[MCPResponse, Dict[str, Any], list]) -> str:
    """Serialize one outbound frame to compact JSON."""
    if isinstance(message, MCPResponse):
        data: Any = message.model_dump()
    elif isinstance(message, list):
        data = [m.model_dump() if isinstance(m, MCPResponse) else m for m in message]
    else:
        data = message
    return json.dumps(data, separators=(",", ":"), default=str)


class StdioTransport:
    """
    Stdio transport for MCP communication.

    Handles JSON-RPC message exchange over stdin/stdout for
    integration with Claude CLI and other stdio-based hosts.
    """

    def __init__(
        self,
        handler: MCPHandler,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ):
        self.handler = handler
        self._stdin = stdin
        self._stdout = stdout
        self._running = False
        self._outbound: "asyncio.Queue[Any]" = asyncio.Queue(maxsize=OUTBOUND_QUEUE_SIZE)
        self._writer_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Run the transport until EOF on stdin or ``stop()``."""
        if self._running:
            raise TransportError("Transport is already running")

        self._running = True
        self._writer_task = asyncio.create_task(self._writer_loop())
        logger.info("Starting stdio transport")

        try:
            await self._run_transport_loop()
        finally:
            self._running = False
            await self._drain_writer()
            logger.info("Stdio transport stopped")

    async def stop(self) -> None:
        """Stop the stdio transport."""
        self._running = False

    def enqueue(self, message: Any) -> None:
        """
        Queue an outbound frame without blocking.

        Frames are dropped when the queue is full or the transport is not
        running.
        """
        if not self._running:
            return
        try:
            self._outbound.put_nowait(message)
        except asyncio.QueueFull:
            logger.debug("Outbound queue full, dropping message")

    async def _drain_writer(self) -> None:
        if self._writer_task is None:
            return
        await self._outbound.put(_STOP)
        try:
            await self._writer_task
        finally:
            self._writer_task = None

    async def _writer_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            message = await self._outbound.get()
            if message is _STOP:
                return
            try:
                line = serialize_message(message)
                await loop.run_in_executor(None, self._write_stdout_sync, line)
            except Exception as e:
                logger.error("Failed to send message", error=str(e))

    def _write_stdout_sync(self, line: str) -> None:
        """Synchronous stdout write with immediate flush."""
        stream = self._stdout or sys.stdout
        stream.write(line + "\n")
        stream.flush()

    async def _run_transport_loop(self) -> None:
        """Main transport loop for processing stdin messages."""
        async for line in self._read_stdin_lines():
            if not self._running:
                break

            try:
                await self._process_line(line)
            except Exception as e:
                logger.error("Error processing line", error=str(e), exc_info=True)
                # Continue processing other messages

    async def _read_stdin_lines(self) -> AsyncIterator[str]:
        """Async generator for reading lines from stdin."""
        loop = asyncio.get_running_loop()
        stream = self._stdin or sys.stdin

        while self._running:
            line = await loop.run_in_executor(None, stream.readline)

            if not line:  # EOF
                logger.info("Received EOF on stdin")
                break

            line = line.strip()
            if line:
                yield line

    async def _process_line(self, line: str) -> None:
        """
        Process a single line from stdin.

        Args:
            line: JSON line to process
        """
        try:
            payload = parse_payload(line)
        except MCPError as e:
            logger.warning("Invalid JSON received", error=e.message)
            self.enqueue(MCPResponse.from_error(None, e))
            return

        responses = await self.handler.dispatch_payload(payload, NO_TENANT)
        if not responses:
            return

        if isinstance(payload, list):
            self.enqueue(responses)
        else:
            self.enqueue(responses[0])
