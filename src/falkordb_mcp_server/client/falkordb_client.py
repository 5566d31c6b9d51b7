"""
FalkorDB client wrapper for MCP server.

Owns the single shared connection to the graph engine. Every call is
guarded by a timeout; a timeout or a connection-class failure drops the
cached connection so the next call reconnects instead of reusing a dead
link. Names passed in are physical (already tenant-resolved).
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog
from falkordb.asyncio import FalkorDB

from ..config.settings import FalkorDBConfig
from ..errors import (
    AppError,
    BackendConnectionError,
    OperationError,
    is_connection_error,
    sanitize_message,
)
from .retry import retry_with_backoff

logger = structlog.get_logger(__name__)

_STAT_FIELDS = (
    "labels_added",
    "nodes_created",
    "nodes_deleted",
    "properties_set",
    "relationships_created",
    "relationships_deleted",
    "run_time_ms",
)


def _to_jsonable(value: Any) -> Any:
    """Convert FalkorDB result values into JSON-serializable data."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_jsonable(v) for v in value]

    # Path
    if callable(getattr(value, "nodes", None)) and callable(getattr(value, "edges", None)):
        return {
            "nodes": [_to_jsonable(n) for n in value.nodes()],
            "edges": [_to_jsonable(e) for e in value.edges()],
        }

    # Edge
    if hasattr(value, "relation") and hasattr(value, "properties"):
        return {
            "id": getattr(value, "id", None),
            "relation": value.relation,
            "src_node": _to_jsonable(getattr(value, "src_node", None)),
            "dest_node": _to_jsonable(getattr(value, "dest_node", None)),
            "properties": _to_jsonable(value.properties),
        }

    # Node
    if hasattr(value, "labels") and hasattr(value, "properties"):
        return {
            "id": getattr(value, "id", None),
            "labels": _to_jsonable(value.labels),
            "properties": _to_jsonable(value.properties),
        }

    return str(value)


def format_query_result(result: Any) -> Dict[str, Any]:
    """Convert a FalkorDB query result into a plain dictionary."""
    columns = []
    for column in getattr(result, "header", None) or []:
        if isinstance(column, (list, tuple)) and len(column) == 2:
            columns.append(str(column[1]))
        else:
            columns.append(str(column))

    stats = {}
    for field in _STAT_FIELDS:
        stat = getattr(result, field, None)
        if isinstance(stat, (int, float)):
            stats[field] = stat

    return {
        "columns": columns,
        "rows": _to_jsonable(getattr(result, "result_set", None) or []),
        "stats": stats,
    }


class FalkorDBClient:
    """
    Adapter around the asyncio FalkorDB driver.

    Safe to call concurrently; a reconnect after a reset is transparent to
    callers apart from latency.
    """

    def __init__(
        self,
        config: FalkorDBConfig,
        connection_factory: Optional[Callable[..., Any]] = None,
    ):
        """
        Initialize FalkorDB client.

        Args:
            config: FalkorDB configuration section
            connection_factory: Builds a driver instance, defaults to ``FalkorDB``
        """
        self.config = config
        self._connection_factory = connection_factory or FalkorDB
        self._db: Optional[Any] = None
        self._connection_lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        """Check if a connection is cached."""
        return self._db is not None

    async def initialize(self, retry: bool = True) -> None:
        """
        Connect to FalkorDB. Idempotent.

        Args:
            retry: Retry with exponential backoff; a single attempt otherwise
        """
        async with self._connection_lock:
            if self._db is not None:
                return

            if retry:
                self._db = await retry_with_backoff(
                    self._connect_once,
                    max_retries=self.config.max_retries,
                    base_delay=self.config.initial_backoff_seconds,
                    max_delay=self.config.max_backoff_seconds,
                    description="FalkorDB",
                )
            else:
                try:
                    self._db = await self._connect_once()
                except AppError:
                    raise
                except Exception as e:
                    raise BackendConnectionError(
                        f"Failed to connect to FalkorDB: {sanitize_message(str(e))}"
                    ) from e

            logger.info("Successfully connected to FalkorDB")

    async def _connect_once(self) -> Any:
        db = self._connection_factory(
            host=self.config.host,
            port=self.config.port,
            username=self.config.username or None,
            password=self.config.password or None,
            socket_connect_timeout=self.config.connect_timeout_seconds,
        )
        try:
            await asyncio.wait_for(db.connection.ping(), self.config.ping_timeout_seconds)
        except asyncio.TimeoutError:
            await self._close_driver(db)
            raise BackendConnectionError("FalkorDB ping timed out")
        except Exception:
            await self._close_driver(db)
            raise
        return db

    async def _ensure_connected(self) -> Any:
        db = self._db
        if db is None:
            await self.initialize(retry=False)
            db = self._db
        return db

    def _reset(self) -> None:
        logger.warning("Connection error detected, resetting FalkorDB client")
        self._db = None

    async def _run(
        self,
        operation: str,
        call: Callable[[Any], Awaitable[Any]],
        timeout: float,
    ) -> Any:
        db = await self._ensure_connected()
        try:
            return await asyncio.wait_for(call(db), timeout)
        except asyncio.TimeoutError as e:
            self._reset()
            raise BackendConnectionError(f"FalkorDB {operation} timed out") from e
        except AppError:
            raise
        except Exception as e:
            if is_connection_error(e):
                self._reset()
                raise BackendConnectionError(
                    f"Lost connection to FalkorDB during {operation}"
                ) from e
            raise OperationError(
                f"FalkorDB {operation} failed: {sanitize_message(str(e))}"
            ) from e

    async def execute_query(
        self,
        graph_name: str,
        query: str,
        parameters: Optional[Dict[str, Any]] = None,
        read_only: bool = False,
    ) -> Dict[str, Any]:
        """
        Execute an OpenCypher query.

        Args:
            graph_name: Physical graph name
            query: Query text
            parameters: Query parameters
            read_only: Use GRAPH.RO_QUERY

        Returns:
            Dictionary with columns, rows and statistics
        """

        async def call(db: Any) -> Any:
            graph = db.select_graph(graph_name)
            if read_only:
                return await graph.ro_query(query, parameters)
            return await graph.query(query, parameters)

        try:
            result = await self._run("query", call, self.config.query_timeout_seconds)
        except AppError as e:
            logger.error(
                "Error executing FalkorDB query",
                graph=graph_name.replace("\n", "").replace("\r", ""),
                error=str(e.__cause__ or e),
            )
            raise

        return format_query_result(result)

    async def list_graphs(self) -> List[str]:
        """List every graph in the database (unfiltered physical names)."""

        async def call(db: Any) -> Any:
            return await db.list_graphs()

        graphs = await self._run("list graphs", call, self.config.list_timeout_seconds)
        return [g.decode() if isinstance(g, bytes) else str(g) for g in graphs or []]

    async def delete_graph(self, graph_name: str) -> None:
        """Delete a graph by physical name."""

        async def call(db: Any) -> Any:
            return await db.select_graph(graph_name).delete()

        await self._run("delete graph", call, self.config.query_timeout_seconds)
        logger.info("Deleted graph", graph=graph_name)

    async def health_check(self) -> Dict[str, Any]:
        """
        Ping the database.

        Returns:
            ``{"connected": bool, "latency_ms": float}``; latency only when connected
        """
        try:
            start = time.perf_counter()

            async def call(db: Any) -> Any:
                return await db.connection.ping()

            await self._run("health check", call, self.config.ping_timeout_seconds)
            return {"connected": True, "latency_ms": (time.perf_counter() - start) * 1000}
        except Exception as e:
            logger.warning("FalkorDB health check failed", error=str(e))
            return {"connected": False}

    async def close(self) -> None:
        """Close the connection. Errors are logged, never raised."""
        async with self._connection_lock:
            db, self._db = self._db, None
            if db is None:
                return
            try:
                await asyncio.wait_for(self._close_driver(db), 5.0)
                logger.info("FalkorDB connection closed")
            except Exception as e:
                logger.error("Error closing FalkorDB connection", error=str(e))

    @staticmethod
    async def _close_driver(db: Any) -> None:
        connection = getattr(db, "connection", None)
        closer = getattr(connection, "aclose", None) or getattr(connection, "close", None)
        if closer is not None:
            result = closer()
            if asyncio.iscoroutine(result):
                await result
