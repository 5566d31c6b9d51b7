"""Backend adapters for FalkorDB and the auxiliary Redis store."""

from .falkordb_client import FalkorDBClient, format_query_result
from .redis_client import RedisClient
from .retry import backoff_delay, retry_with_backoff

__all__ = [
    "FalkorDBClient",
    "RedisClient",
    "backoff_delay",
    "format_query_result",
    "retry_with_backoff",
]
