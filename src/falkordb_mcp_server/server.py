"""
Main FalkorDB MCP Server implementation.

Owns every long-lived service instance (backend adapters, tenant resolver,
authenticator, error handler, log forwarder, health checker) and binds them
to either the stdio transport or the HTTP session manager.
"""

import asyncio
import signal
import sys
from typing import Any, Dict, List, Optional

import structlog
from aiohttp import web

from . import __version__
from .client.falkordb_client import FalkorDBClient
from .client.redis_client import RedisClient
from .config.settings import Config
from .errors import ErrorHandler
from .protocol.handlers import MCPHandler
from .protocol.schemas import ServerInfo
from .protocol.session_manager import HttpSessionManager
from .protocol.transport import StdioTransport
from .tenancy import RequestAuthenticator, TenantGraphResolver
from .tools import (
    BaseTool,
    DeleteGraphTool,
    DeleteKeyTool,
    GetKeyTool,
    ListGraphsTool,
    ListKeysTool,
    QueryGraphReadOnlyTool,
    QueryGraphTool,
    SetKeyTool,
)
from .utils.health import HealthChecker, create_backend_health_check
from .utils.logging import ClientLogForwarder

logger = structlog.get_logger(__name__)

STDIO_SINK_ID = "stdio"


class FalkorDBMCPServer:
    """
    MCP server exposing FalkorDB over stdio or HTTP.

    Every session (the single stdio peer, or each HTTP session) gets its own
    protocol handler with its own tool instances; the backend adapters are
    shared by all of them.
    """

    def __init__(
        self,
        config: Config,
        falkordb_client: Optional[FalkorDBClient] = None,
        redis_client: Optional[RedisClient] = None,
        log_forwarder: Optional[ClientLogForwarder] = None,
    ):
        """
        Initialize the MCP server.

        Args:
            config: Server configuration
            falkordb_client: FalkorDB adapter, built from config if omitted
            redis_client: Redis adapter, built from config if omitted
            log_forwarder: Processor installed in the logging chain, if any
        """
        self.config = config
        self.exit_code = 0
        self._running = False
        self._shutdown_event = asyncio.Event()

        self.falkordb_client = falkordb_client or FalkorDBClient(config.falkordb)
        self.redis_client = redis_client or RedisClient(config.redis)
        self.resolver = TenantGraphResolver.from_config(config)
        self.error_handler = ErrorHandler(on_fatal=self._on_fatal)
        self.log_forwarder = log_forwarder or ClientLogForwarder(config.server.client_log_level)
        self.server_info = ServerInfo(name="falkordb-mcp-server", version=__version__)

        self.health_checker = HealthChecker()
        self.health_checker.register_check(
            "falkordb",
            create_backend_health_check("falkordb", self.falkordb_client),
            timeout_seconds=config.falkordb.ping_timeout_seconds + 1,
            critical=True,
        )
        self.health_checker.register_check(
            "redis",
            create_backend_health_check("redis", self.redis_client),
            timeout_seconds=5.0,
            critical=False,
        )

        self.stdio_transport: Optional[StdioTransport] = None
        self.session_manager: Optional[HttpSessionManager] = None
        self._runner: Optional[web.AppRunner] = None

    def create_tools(self) -> List[BaseTool]:
        """Build one instance of every enabled tool."""
        tools_config = self.config.tools
        falkordb_config = self.config.falkordb
        candidates = [
            (
                tools_config.query_graph,
                lambda: QueryGraphTool(
                    self.falkordb_client,
                    self.resolver,
                    default_read_only=falkordb_config.default_read_only,
                    strict_read_only=falkordb_config.strict_read_only,
                ),
            ),
            (tools_config.query_graph_readonly, lambda: QueryGraphReadOnlyTool(self.falkordb_client, self.resolver)),
            (tools_config.list_graphs, lambda: ListGraphsTool(self.falkordb_client, self.resolver)),
            (tools_config.delete_graph, lambda: DeleteGraphTool(self.falkordb_client, self.resolver)),
            (tools_config.set_key, lambda: SetKeyTool(self.redis_client, self.resolver)),
            (tools_config.get_key, lambda: GetKeyTool(self.redis_client, self.resolver)),
            (tools_config.delete_key, lambda: DeleteKeyTool(self.redis_client, self.resolver)),
            (tools_config.list_keys, lambda: ListKeysTool(self.redis_client, self.resolver)),
        ]
        return [build() for tool_config, build in candidates if tool_config.enabled]

    def create_handler(self) -> MCPHandler:
        """Build a protocol handler with every enabled tool registered."""
        handler = MCPHandler(server_info=self.server_info)
        for tool in self.create_tools():
            handler.register_tool(tool.get_schema(), tool)
        return handler

    async def start(self) -> None:
        """Connect the backends and install process-level error handling."""
        if self._running:
            return

        logger.info("Starting FalkorDB MCP Server", transport=self.config.server.transport)
        self.error_handler.install(asyncio.get_running_loop())

        try:
            await self.falkordb_client.initialize()
            await self.redis_client.initialize()
        except Exception as e:
            logger.error("Failed to start server", error=str(e))
            await self._close_backends()
            raise

        self._running = True
        logger.info(
            "Server started successfully",
            multi_tenancy=self.resolver.multi_tenancy_enabled,
            tenant_prefix=self.resolver.active,
        )

    async def stop(self) -> None:
        """Stop the MCP server. Safe to call more than once."""
        if not self._running:
            return

        logger.info("Stopping FalkorDB MCP Server")
        self._running = False
        self._shutdown_event.set()

        if self.stdio_transport is not None:
            await self.stdio_transport.stop()
            self.log_forwarder.unregister(STDIO_SINK_ID)

        if self._runner is not None:
            # Runs the app's shutdown hooks, which close every session
            await self._runner.cleanup()
            self._runner = None

        await self._close_backends()
        logger.info("Server stopped")

    async def _close_backends(self) -> None:
        await self.falkordb_client.close()
        await self.redis_client.close()

    def request_shutdown(self) -> None:
        """Ask the running transport loop to shut down."""
        self._shutdown_event.set()

    def _on_fatal(self, error: BaseException) -> None:
        self.exit_code = 1
        self.request_shutdown()

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        if sys.platform == "win32":
            return

        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self._handle_signal, signum)

    def _handle_signal(self, signum: int) -> None:
        logger.info("Received signal, initiating shutdown", signal=signum)
        self.request_shutdown()

    async def run(self) -> int:
        """Run with the configured transport until shutdown; return the exit code."""
        self._setup_signal_handlers()
        if self.config.server.transport == "http":
            await self.run_http()
        else:
            await self.run_stdio()
        return self.exit_code

    async def run_stdio(self) -> None:
        """Serve the single peer on stdin/stdout."""
        try:
            await self.start()

            self.stdio_transport = StdioTransport(self.create_handler())
            # sole peer, also receives events with no originating session
            self.log_forwarder.register(
                STDIO_SINK_ID, self.stdio_transport.enqueue, receive_untagged=True
            )
            self.stdio_transport.handler.on_log_level = lambda level: self.log_forwarder.set_level(
                STDIO_SINK_ID, level
            )

            transport_task = asyncio.create_task(self.stdio_transport.start())
            shutdown_task = asyncio.create_task(self._shutdown_event.wait())
            await asyncio.wait({transport_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)

            for task in (transport_task, shutdown_task):
                task.cancel()
            results = await asyncio.gather(transport_task, shutdown_task, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error("Stdio transport failed", error=str(result))
                    self.exit_code = 1
        finally:
            await self.stop()

    async def run_http(self) -> None:
        """Serve MCP sessions over HTTP until shutdown."""
        server_config = self.config.server
        try:
            await self.start()

            self.session_manager = HttpSessionManager(
                handler_factory=self.create_handler,
                authenticator=RequestAuthenticator.from_config(self.config),
                endpoint=server_config.endpoint,
                log_forwarder=self.log_forwarder,
                health_check=self.health_check,
            )
            self._runner = web.AppRunner(self.session_manager.create_app(), access_log=None)
            await self._runner.setup()
            site = web.TCPSite(self._runner, server_config.host, server_config.port)
            await site.start()

            logger.info(
                "HTTP transport listening",
                host=server_config.host,
                port=server_config.port,
                endpoint=server_config.endpoint,
            )
            await self._shutdown_event.wait()
        finally:
            await self.stop()

    @property
    def running(self) -> bool:
        """Check if server is running."""
        return self._running

    async def health_check(self) -> Dict[str, Any]:
        """
        Run every registered health check.

        Returns:
            Health status information
        """
        status = await self.health_checker.run_all_checks()
        report = status.to_dict()
        if self.session_manager is not None:
            report["active_sessions"] = self.session_manager.session_count
        return report
