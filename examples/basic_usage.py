#!/usr/bin/env python3
"""
Basic usage example for FalkorDB MCP Server.

Drives one protocol handler in-process against a local FalkorDB and Redis,
without an MCP client, for development and debugging. Start the backends
first, for example ``docker run -p 6379:6379 falkordb/falkordb``.
"""

import asyncio

from falkordb_mcp_server.config.settings import load_config
from falkordb_mcp_server.server import FalkorDBMCPServer
from falkordb_mcp_server.tenancy import TenantContext


def call(request_id, name, arguments):
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "tools/call",
        "params": {"name": name, "arguments": arguments},
    }


async def main():
    """Run a short session against local backends."""
    print("Starting FalkorDB MCP Server example")

    config = load_config()
    config.multi_tenancy.enabled = True
    config.multi_tenancy.tenant_graph_prefix = True
    server = FalkorDBMCPServer(config)
    tenant = TenantContext(tenant_id="demo")

    try:
        await server.start()
        handler = server.create_handler()

        print("\n1. Initialize")
        response = await handler.dispatch(
            {
                "jsonrpc": "2.0",
                "id": 1,
                "method": "initialize",
                "params": {
                    "protocolVersion": "2025-06-18",
                    "clientInfo": {"name": "basic-usage", "version": "1.0.0"},
                    "capabilities": {},
                },
            }
        )
        server_info = response.result["serverInfo"]
        print(f"   Server: {server_info['name']} v{server_info['version']}")

        print("\n2. List tools")
        response = await handler.dispatch({"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
        for tool in response.result["tools"]:
            print(f"   - {tool['name']}")

        print("\n3. Write and read a graph as tenant 'demo'")
        steps = [
            call(3, "query_graph", {"graphName": "people", "query": "CREATE (:Person {name: 'Alice'})"}),
            call(4, "query_graph_readonly", {"graphName": "people", "query": "MATCH (p:Person) RETURN p.name"}),
            call(5, "list_graphs", {}),
            call(6, "delete_graph", {"graphName": "people", "confirmDelete": True}),
        ]
        for step in steps:
            response = await handler.dispatch(step, tenant)
            print(f"   {step['params']['name']}: {response.result['content'][0]['text']}")

        print("\n4. Health")
        report = await server.health_check()
        print(f"   Status: {report['status']}")
        for check in report["checks"]:
            print(f"   - {check['name']}: {check['status']}")

    finally:
        await server.stop()
        print("\nServer stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nInterrupted")
