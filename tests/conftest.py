"""
Pytest configuration and fixtures for FalkorDB MCP Server tests.
"""

from unittest.mock import AsyncMock

import pytest

from falkordb_mcp_server.client.falkordb_client import FalkorDBClient
from falkordb_mcp_server.client.redis_client import RedisClient
from falkordb_mcp_server.config.settings import (
    Config,
    FalkorDBConfig,
    MultiTenancyConfig,
    RedisConfig,
    ServerConfig,
)
from falkordb_mcp_server.tenancy import TenantGraphResolver

INITIALIZE_PARAMS = {
    "protocolVersion": "2025-06-18",
    "clientInfo": {"name": "test-client", "version": "1.0.0"},
    "capabilities": {},
}


@pytest.fixture
def init_message():
    """A valid initialize request."""
    return {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": dict(INITIALIZE_PARAMS)}


@pytest.fixture
def test_config():
    """Create a test configuration."""
    return Config(
        version="0.1.0-test",
        falkordb=FalkorDBConfig(
            host="localhost",
            port=6379,
            max_retries=1,
            initial_backoff_seconds=0,
        ),
        redis=RedisConfig(max_retries=1, initial_backoff_seconds=0),
        server=ServerConfig(log_level="DEBUG"),
        multi_tenancy=MultiTenancyConfig(),
    )


@pytest.fixture
def resolver():
    """Resolver with multi-tenancy and prefixing enabled."""
    return TenantGraphResolver(multi_tenancy_enabled=True, prefix_enabled=True)


@pytest.fixture
def mock_falkordb_client():
    """Create a mock FalkorDB client."""
    client = AsyncMock(spec=FalkorDBClient)
    client.connected = True

    client.execute_query.return_value = {
        "columns": ["n.name"],
        "rows": [["Alice"]],
        "stats": {"run_time_ms": 0.5},
    }
    client.list_graphs.return_value = ["orders", "tenantA_orders", "tenantB_orders"]
    client.delete_graph.return_value = None
    client.health_check.return_value = {"connected": True, "latency_ms": 1.2}

    return client


@pytest.fixture
def mock_redis_client():
    """Create a mock Redis client."""
    client = AsyncMock(spec=RedisClient)
    client.connected = True

    client.get.return_value = "value"
    client.set.return_value = None
    client.delete.return_value = None
    client.list_keys.return_value = ["shared", "tenantA_session", "tenantB_session"]
    client.health_check.return_value = {"connected": True}

    return client
