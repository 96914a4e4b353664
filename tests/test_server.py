"""Tests for the protocol engine and the stdio binding."""

import json
from contextlib import asynccontextmanager
from unittest.mock import patch

import anyio
import pytest
from mcp import types
from mcp.shared.memory import create_connected_server_and_client_session
from mcp.shared.message import SessionMessage

from mcp_hostname_ip.server import SERVER_NAME, create_server
from mcp_hostname_ip.stdio import run_stdio

pytestmark = pytest.mark.anyio


def test_create_server_returns_fresh_engines():
    first = create_server()
    second = create_server()
    assert first is not second
    assert first.name == SERVER_NAME


async def test_engine_lists_tools_in_order():
    async with create_connected_server_and_client_session(create_server()) as client:
        result = await client.list_tools()

    assert [tool.name for tool in result.tools] == ["get_hostname", "get_ip_address"]


async def test_engine_calls_get_hostname():
    with patch("mcp_hostname_ip.tools.socket.gethostname", return_value="build-07"):
        async with create_connected_server_and_client_session(create_server()) as client:
            result = await client.call_tool("get_hostname", {})

    assert not result.isError
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    assert json.loads(content.text) == {"hostname": "build-07"}


async def test_unknown_tool_returns_error_payload():
    async with create_connected_server_and_client_session(create_server()) as client:
        result = await client.call_tool("shutdown_host", {})

    assert result.isError
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    assert json.loads(content.text) == {"error": "Unknown tool: shutdown_host"}


async def test_run_stdio_serves_until_channel_closes(initialize_body: bytes):
    client_send, server_receive = anyio.create_memory_object_stream[SessionMessage | Exception](10)
    server_send, client_receive = anyio.create_memory_object_stream[SessionMessage](10)

    @asynccontextmanager
    async def fake_stdio_server():
        yield server_receive, server_send

    with patch("mcp_hostname_ip.stdio.stdio_server", fake_stdio_server), anyio.fail_after(5):
        async with anyio.create_task_group() as tg:
            tg.start_soon(run_stdio)

            await client_send.send(SessionMessage(types.JSONRPCMessage.model_validate_json(initialize_body)))
            response = await client_receive.receive()
            assert isinstance(response, SessionMessage)
            assert isinstance(response.message.root, types.JSONRPCResponse)
            assert response.message.root.id == 1
            assert response.message.root.result["serverInfo"]["name"] == SERVER_NAME

            await client_send.aclose()

    await client_receive.aclose()
