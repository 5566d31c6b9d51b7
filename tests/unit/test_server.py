"""
Unit tests for server wiring and the command-line interface.
"""

import asyncio
import json
import sys

import pytest
from click.testing import CliRunner

from falkordb_mcp_server.errors import BackendConnectionError
from falkordb_mcp_server.main import cli
from falkordb_mcp_server.server import FalkorDBMCPServer

ALL_TOOLS = [
    "query_graph",
    "query_graph_readonly",
    "list_graphs",
    "delete_graph",
    "set_key",
    "get_key",
    "delete_key",
    "list_keys",
]


@pytest.fixture
def server(test_config, mock_falkordb_client, mock_redis_client):
    return FalkorDBMCPServer(test_config, mock_falkordb_client, mock_redis_client)


class TestFalkorDBMCPServer:
    """Test server assembly and lifecycle."""

    @pytest.fixture(autouse=True)
    def restore_excepthook(self):
        previous_hook = sys.excepthook
        yield
        sys.excepthook = previous_hook

    def test_create_tools(self, server):
        assert [tool.name for tool in server.create_tools()] == ALL_TOOLS

    def test_disabled_tools_are_skipped(self, test_config, mock_falkordb_client, mock_redis_client):
        test_config.tools.delete_graph.enabled = False
        test_config.tools.delete_key.enabled = False
        server = FalkorDBMCPServer(test_config, mock_falkordb_client, mock_redis_client)

        names = [tool.name for tool in server.create_tools()]

        assert "delete_graph" not in names
        assert "delete_key" not in names
        assert len(names) == 6

    async def test_each_handler_gets_own_tools(self, server):
        first = server.create_handler()
        second = server.create_handler()

        assert first is not second
        assert first.get_tool("query_graph") is not None
        assert [tool.name for tool in first.tools] == ALL_TOOLS

    async def test_start_and_stop(self, server, mock_falkordb_client, mock_redis_client):
        await server.start()
        assert server.running

        await server.stop()
        await server.stop()

        assert not server.running
        mock_falkordb_client.initialize.assert_awaited_once()
        mock_redis_client.initialize.assert_awaited_once()
        mock_falkordb_client.close.assert_awaited_once()
        mock_redis_client.close.assert_awaited_once()

    async def test_start_failure_closes_backends(self, server, mock_falkordb_client, mock_redis_client):
        mock_redis_client.initialize.side_effect = BackendConnectionError("Failed to connect to Redis")

        with pytest.raises(BackendConnectionError):
            await server.start()

        assert not server.running
        mock_falkordb_client.close.assert_awaited_once()
        mock_redis_client.close.assert_awaited_once()

    async def test_fatal_error_requests_shutdown(self, server):
        server._on_fatal(RuntimeError("bug"))

        assert server.exit_code == 1
        assert server._shutdown_event.is_set()

    async def test_health_check(self, server, mock_redis_client):
        mock_redis_client.health_check.return_value = {"connected": False}

        report = await server.health_check()

        assert report["status"] == "degraded"
        assert {check["name"] for check in report["checks"]} == {"falkordb", "redis"}

    async def test_run_http_until_shutdown(self, server, test_config, mock_falkordb_client):
        test_config.server.transport = "http"
        test_config.server.host = "127.0.0.1"
        test_config.server.port = 0

        task = asyncio.create_task(server.run_http())
        while server.session_manager is None or server._runner is None:
            await asyncio.sleep(0.01)
        server.request_shutdown()
        await asyncio.wait_for(task, 5)

        assert not server.running
        mock_falkordb_client.close.assert_awaited_once()


class TestCli:
    """Test the click entry points."""

    def test_init_writes_default_config(self, tmp_path):
        config_path = tmp_path / "config.json"

        result = CliRunner().invoke(cli, ["init", "--config", str(config_path)])

        assert result.exit_code == 0
        assert json.loads(config_path.read_text())["server"]["transport"] == "stdio"

    def test_init_keeps_existing_file_unless_confirmed(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text("{}")

        result = CliRunner().invoke(cli, ["init", "--config", str(config_path)], input="n\n")

        assert result.exit_code == 0
        assert config_path.read_text() == "{}"

    def test_serve_rejects_invalid_config(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"server": {"transport": "carrier-pigeon"}}))

        result = CliRunner().invoke(cli, ["serve", "--config", str(config_path)])

        assert result.exit_code == 1
        assert "Failed to load configuration" in result.output

    def test_serve_rejects_unknown_transport(self):
        result = CliRunner().invoke(cli, ["serve", "--transport", "websocket"])

        assert result.exit_code == 2
