"""
Redis client wrapper for the auxiliary key/value tools.

Must be initialized explicitly before use. Keys passed in are physical
(already tenant-resolved) and never appear in error messages; callers
phrase failures with the logical key.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional
from urllib.parse import urlsplit, urlunsplit

import redis.asyncio as redis
import structlog
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ..config.settings import RedisConfig
from ..errors import (
    AppError,
    BackendConnectionError,
    OperationError,
    is_connection_error,
    sanitize_message,
)
from .retry import retry_with_backoff

logger = structlog.get_logger(__name__)

SCAN_BATCH_SIZE = 1000


def sanitize_url(url: str) -> str:
    """Mask credentials in a Redis URL for logging."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<invalid-url>"
    if not (parts.username or parts.password):
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    user = "***" if parts.username else ""
    password = ":***" if parts.password else ""
    return urlunsplit((parts.scheme, f"{user}{password}@{host}", parts.path, parts.query, parts.fragment))


class RedisClient:
    """
    Adapter around ``redis.asyncio`` with explicit initialization.

    Every operation is raced against a timeout. A timeout or a lost
    connection drops the cached client; the next call reconnects with a
    single attempt.
    """

    def __init__(
        self,
        config: RedisConfig,
        client_factory: Optional[Callable[..., Any]] = None,
    ):
        self.config = config
        self._client_factory = client_factory or redis.from_url
        self._client: Optional[Any] = None
        self._initialized = False
        self._connection_lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        """Check if a client is cached."""
        return self._client is not None

    async def initialize(self, retry: bool = True) -> None:
        """
        Connect to Redis. Idempotent.

        Args:
            retry: Retry with exponential backoff; a single attempt otherwise
        """
        async with self._connection_lock:
            if self._client is not None:
                return

            if retry:
                self._client = await retry_with_backoff(
                    self._connect_once,
                    max_retries=self.config.max_retries,
                    base_delay=self.config.initial_backoff_seconds,
                    max_delay=self.config.max_backoff_seconds,
                    description="Redis",
                )
            else:
                try:
                    self._client = await self._connect_once()
                except AppError:
                    raise
                except Exception as e:
                    raise BackendConnectionError(
                        f"Failed to connect to Redis: {sanitize_message(str(e))}"
                    ) from e

            self._initialized = True
            logger.info("Successfully connected to Redis")

    async def _connect_once(self) -> Any:
        logger.info("Attempting to connect to Redis", url=sanitize_url(self.config.url))
        kwargs = {
            "decode_responses": True,
            "socket_connect_timeout": self.config.connect_timeout_seconds,
        }
        if self.config.username:
            kwargs["username"] = self.config.username
        if self.config.password:
            kwargs["password"] = self.config.password

        client = self._client_factory(self.config.url, **kwargs)
        try:
            await asyncio.wait_for(client.ping(), self.config.ping_timeout_seconds)
        except Exception as e:
            try:
                await client.aclose()
            except Exception as close_error:
                logger.debug("Ignoring disconnect error", error=str(close_error))
            if isinstance(e, asyncio.TimeoutError):
                raise BackendConnectionError("Redis ping timed out") from e
            raise
        return client

    async def _ensure_connected(self) -> Any:
        client = self._client
        if client is None:
            if not self._initialized:
                raise BackendConnectionError("Redis client not initialized. Call initialize() first.")
            await self.initialize(retry=False)
            client = self._client
        return client

    def _reset(self) -> None:
        logger.warning("Connection error detected, resetting Redis client")
        self._client = None

    async def _run(
        self,
        operation: str,
        call: Callable[[Any], Awaitable[Any]],
        timeout: float,
    ) -> Any:
        client = await self._ensure_connected()
        try:
            return await asyncio.wait_for(call(client), timeout)
        except asyncio.TimeoutError as e:
            self._reset()
            raise BackendConnectionError(f"Redis {operation} timed out") from e
        except AppError:
            raise
        except Exception as e:
            logger.error("Redis operation failed", operation=operation, error=str(e))
            if isinstance(e, (RedisConnectionError, RedisTimeoutError)) or is_connection_error(e):
                self._reset()
                raise BackendConnectionError(f"Lost connection to Redis during {operation}") from e
            raise OperationError(f"Redis {operation} failed: {sanitize_message(str(e))}") from e

    async def get(self, key: str) -> Optional[str]:
        """Get a value, None if the key does not exist."""

        async def call(client: Any) -> Any:
            return await client.get(key)

        value = await self._run("GET", call, self.config.operation_timeout_seconds)
        logger.debug("Redis GET operation completed", has_value=value is not None)
        return value

    async def set(self, key: str, value: str) -> None:
        """Set a value."""

        async def call(client: Any) -> Any:
            return await client.set(key, value)

        await self._run("SET", call, self.config.operation_timeout_seconds)
        logger.debug("Redis SET operation completed")

    async def delete(self, key: str) -> None:
        """Delete a key."""

        async def call(client: Any) -> Any:
            return await client.delete(key)

        await self._run("DEL", call, self.config.operation_timeout_seconds)
        logger.debug("Redis DEL operation completed")

    async def list_keys(self) -> List[str]:
        """List every key using SCAN."""

        async def call(client: Any) -> List[str]:
            return [key async for key in client.scan_iter(match="*", count=SCAN_BATCH_SIZE)]

        keys = await self._run("SCAN", call, self.config.scan_timeout_seconds)
        logger.debug("Redis SCAN operation completed", count=len(keys))
        return keys

    async def health_check(self) -> dict:
        """Ping Redis, reconnecting once after a reset."""

        async def call(client: Any) -> Any:
            return await client.ping()

        try:
            await self._run("PING", call, self.config.ping_timeout_seconds)
            return {"connected": True}
        except Exception as e:
            logger.warning("Redis health check failed", error=str(e))
            return {"connected": False}

    async def close(self) -> None:
        """Close the connection. Errors are logged, never raised."""
        client, self._client = self._client, None
        self._initialized = False
        if client is None:
            return
        try:
            await client.aclose()
            logger.info("Redis connection closed successfully")
        except Exception as e:
            logger.error("Error closing Redis connection", error=str(e))
