"""Protocol engine factory.

Every HTTP session, and the single stdio connection, gets its own lowlevel
``Server`` built here. Instances are never shared between sessions.
"""

from __future__ import annotations

from typing import Any

from mcp import types
from mcp.server.lowlevel import Server

from mcp_hostname_ip import tools
from mcp_hostname_ip.exceptions import UnknownToolError

SERVER_NAME = "hostname-ip-server"
SERVER_VERSION = "1.0.0"


def create_server() -> Server[Any, Any]:
    server: Server[Any, Any] = Server(SERVER_NAME, version=SERVER_VERSION)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return tools.list_tools()

    @server.call_tool()
    async def handle_call_tool(name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        try:
            return await tools.call_tool(name)
        except UnknownToolError as e:
            return tools.error_result(str(e))

    return server
