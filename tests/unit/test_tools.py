"""
Unit tests for MCP tools.
"""

import json

import pytest

from falkordb_mcp_server.errors import InputValidationError, OperationError
from falkordb_mcp_server.tenancy import NO_TENANT, TenantContext, TenantGraphResolver
from falkordb_mcp_server.tools import (
    DeleteGraphTool,
    DeleteKeyTool,
    GetKeyTool,
    ListGraphsTool,
    ListKeysTool,
    QueryGraphReadOnlyTool,
    QueryGraphTool,
    SetKeyTool,
)

TENANT_A = TenantContext(tenant_id="tenantA")


class TestQueryGraphTool:
    """Test query graph tool."""

    @pytest.fixture
    def query_tool(self, mock_falkordb_client, resolver):
        return QueryGraphTool(mock_falkordb_client, resolver)

    def test_get_schema(self, query_tool):
        """Test schema generation."""
        schema = query_tool.get_schema()
        assert schema.name == "query_graph"
        assert set(schema.inputSchema.properties) == {"graphName", "query", "readOnly"}
        assert schema.inputSchema.required == ["graphName", "query"]

    async def test_execute_resolves_tenant_graph(self, query_tool, mock_falkordb_client):
        result = await query_tool.execute({"graphName": "orders", "query": "MATCH (n) RETURN n"}, TENANT_A)

        assert not result.is_error
        assert json.loads(result.content[0]["text"])["rows"] == [["Alice"]]
        mock_falkordb_client.execute_query.assert_called_once_with(
            "tenantA_orders", "MATCH (n) RETURN n", read_only=False
        )

    async def test_execute_without_tenant_uses_logical_name(self, query_tool, mock_falkordb_client):
        await query_tool.execute({"graphName": "orders", "query": "RETURN 1"}, NO_TENANT)

        mock_falkordb_client.execute_query.assert_called_once_with("orders", "RETURN 1", read_only=False)

    async def test_read_only_flag(self, query_tool, mock_falkordb_client):
        await query_tool.execute({"graphName": "g", "query": "RETURN 1", "readOnly": True}, NO_TENANT)

        assert mock_falkordb_client.execute_query.call_args.kwargs["read_only"] is True

    async def test_default_read_only_from_config(self, mock_falkordb_client):
        tool = QueryGraphTool(mock_falkordb_client, default_read_only=True)

        await tool.execute({"graphName": "g", "query": "RETURN 1"}, NO_TENANT)

        assert mock_falkordb_client.execute_query.call_args.kwargs["read_only"] is True

    async def test_strict_read_only_overrides_caller(self, mock_falkordb_client):
        tool = QueryGraphTool(mock_falkordb_client, strict_read_only=True)

        await tool.execute({"graphName": "g", "query": "RETURN 1", "readOnly": False}, NO_TENANT)

        assert mock_falkordb_client.execute_query.call_args.kwargs["read_only"] is True

    async def test_execute_empty_query(self, query_tool):
        with pytest.raises(InputValidationError) as exc_info:
            await query_tool.execute({"graphName": "g", "query": "   "}, NO_TENANT)

        assert exc_info.value.message == "Query is required and cannot be empty"

    async def test_call_returns_sanitized_error(self, query_tool, mock_falkordb_client):
        mock_falkordb_client.execute_query.side_effect = OperationError("FalkorDB query failed: syntax")

        result = await query_tool({"graphName": "g", "query": "MATCH"}, NO_TENANT)

        assert result["isError"] is True
        assert result["content"][0]["text"] == "Error: FalkorDB query failed: syntax"

    async def test_call_validates_types(self, query_tool, mock_falkordb_client):
        result = await query_tool({"graphName": "g", "query": "RETURN 1", "readOnly": "yes"}, NO_TENANT)

        assert result["isError"] is True
        assert "readOnly" in result["content"][0]["text"]
        mock_falkordb_client.execute_query.assert_not_called()

    async def test_call_missing_parameter(self, query_tool):
        result = await query_tool({"query": "RETURN 1"}, NO_TENANT)

        assert result["isError"] is True
        assert "graphName" in result["content"][0]["text"]

    async def test_unexpected_error_is_sanitized(self, query_tool, mock_falkordb_client):
        mock_falkordb_client.execute_query.side_effect = RuntimeError(
            "failed reading /etc/falkordb/secret.conf"
        )

        result = await query_tool({"graphName": "g", "query": "RETURN 1"}, NO_TENANT)

        assert result["isError"] is True
        assert "/etc/falkordb" not in result["content"][0]["text"]
        assert "<path>" in result["content"][0]["text"]


class TestQueryGraphReadOnlyTool:
    async def test_always_read_only(self, mock_falkordb_client, resolver):
        tool = QueryGraphReadOnlyTool(mock_falkordb_client, resolver)

        await tool.execute({"graphName": "g", "query": "MATCH (n) RETURN n"}, TENANT_A)

        mock_falkordb_client.execute_query.assert_called_once_with(
            "tenantA_g", "MATCH (n) RETURN n", read_only=True
        )
        assert "readOnly" not in tool.get_schema().inputSchema.properties


class TestGraphAdministrationTools:
    async def test_list_graphs_for_tenant(self, mock_falkordb_client, resolver):
        tool = ListGraphsTool(mock_falkordb_client, resolver)

        result = await tool.execute({}, TENANT_A)

        assert result.content[0]["text"] == "orders"

    async def test_list_graphs_without_tenant_shows_unscoped(self, mock_falkordb_client, resolver):
        tool = ListGraphsTool(mock_falkordb_client, resolver)

        result = await tool.execute({}, NO_TENANT)

        assert result.content[0]["text"] == "orders"

    async def test_list_graphs_single_tenant_mode(self, mock_falkordb_client):
        tool = ListGraphsTool(mock_falkordb_client, TenantGraphResolver())

        result = await tool.execute({}, TENANT_A)

        assert result.content[0]["text"].split("\n") == ["orders", "tenantA_orders", "tenantB_orders"]

    async def test_delete_graph_requires_confirmation(self, mock_falkordb_client, resolver):
        tool = DeleteGraphTool(mock_falkordb_client, resolver)

        result = await tool({"graphName": "orders", "confirmDelete": False}, TENANT_A)

        assert result["isError"] is True
        mock_falkordb_client.delete_graph.assert_not_called()

    async def test_delete_graph(self, mock_falkordb_client, resolver):
        tool = DeleteGraphTool(mock_falkordb_client, resolver)

        result = await tool({"graphName": "orders", "confirmDelete": True}, TENANT_A)

        assert result == {"content": [{"type": "text", "text": "Graph orders deleted"}], "isError": False}
        mock_falkordb_client.delete_graph.assert_called_once_with("tenantA_orders")

    def test_delete_graph_schema_declares_const(self, mock_falkordb_client):
        schema = DeleteGraphTool(mock_falkordb_client).get_schema().to_dict()

        assert schema["inputSchema"]["properties"]["confirmDelete"]["const"] is True


class TestKeyTools:
    async def test_set_key(self, mock_redis_client, resolver):
        tool = SetKeyTool(mock_redis_client, resolver)

        result = await tool({"key": "session", "value": "abc"}, TENANT_A)

        assert result["content"][0]["text"] == "Key session set successfully"
        mock_redis_client.set.assert_called_once_with("tenantA_session", "abc")

    async def test_set_key_requires_value(self, mock_redis_client):
        tool = SetKeyTool(mock_redis_client)

        result = await tool({"key": "session"}, NO_TENANT)

        assert result["isError"] is True
        mock_redis_client.set.assert_not_called()

    async def test_get_key(self, mock_redis_client, resolver):
        tool = GetKeyTool(mock_redis_client, resolver)

        result = await tool({"key": "session"}, TENANT_A)

        assert result["content"][0]["text"] == "Key session is value"
        mock_redis_client.get.assert_called_once_with("tenantA_session")

    async def test_get_missing_key(self, mock_redis_client):
        mock_redis_client.get.return_value = None
        tool = GetKeyTool(mock_redis_client)

        result = await tool({"key": "nothing"}, NO_TENANT)

        assert result["content"][0]["text"] == "Key nothing is null (not found)"

    async def test_get_key_blank(self, mock_redis_client):
        result = await GetKeyTool(mock_redis_client)({"key": "  "}, NO_TENANT)

        assert result["content"][0]["text"] == "Error: Key is required and cannot be empty"

    async def test_delete_key(self, mock_redis_client, resolver):
        tool = DeleteKeyTool(mock_redis_client, resolver)

        result = await tool({"key": "session", "confirmDelete": True}, TENANT_A)

        assert result["isError"] is False
        mock_redis_client.delete.assert_called_once_with("tenantA_session")

    @pytest.mark.parametrize(
        "tool_class, method, arguments, expected",
        [
            (GetKeyTool, "get", {"key": "session"}, "Error: Failed to get key 'session': Redis GET failed: WRONGTYPE"),
            (
                SetKeyTool,
                "set",
                {"key": "session", "value": "abc"},
                "Error: Failed to set key 'session': Redis SET failed: WRONGTYPE",
            ),
            (
                DeleteKeyTool,
                "delete",
                {"key": "session", "confirmDelete": True},
                "Error: Failed to delete key 'session': Redis DEL failed: WRONGTYPE",
            ),
        ],
    )
    async def test_key_failures_name_logical_key(
        self, mock_redis_client, resolver, tool_class, method, arguments, expected
    ):
        backend_message = expected.split(": ", 2)[2]
        getattr(mock_redis_client, method).side_effect = OperationError(backend_message)

        result = await tool_class(mock_redis_client, resolver)(arguments, TENANT_A)

        assert result["content"][0]["text"] == expected
        assert "tenantA" not in result["content"][0]["text"]

    async def test_delete_key_without_confirmation(self, mock_redis_client):
        result = await DeleteKeyTool(mock_redis_client)({"key": "session"}, NO_TENANT)

        assert result["isError"] is True
        mock_redis_client.delete.assert_not_called()

    async def test_list_keys_for_tenant(self, mock_redis_client, resolver):
        tool = ListKeysTool(mock_redis_client, resolver)

        result = await tool.execute({}, TenantContext(tenant_id="tenantB"))

        assert result.content[0]["text"] == "session"
