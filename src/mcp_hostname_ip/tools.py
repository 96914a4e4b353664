"""Tool registry and the two machine-introspection tools.

Both tools answer with a single text content block holding a small JSON
document, e.g. ``{"hostname": "build-07"}``. Failures never escape a tool:
they come back as ``{"error": "..."}`` with ``isError`` set on the result.
"""

from __future__ import annotations

import functools
import ipaddress
import json
import logging
import socket
from collections.abc import Callable
from typing import Any

import anyio.to_thread
import psutil
from mcp import types

from mcp_hostname_ip.exceptions import ToolExecutionError, UnknownToolError

logger = logging.getLogger(__name__)

NO_EXTERNAL_IPV4 = "No external IPv4 address found"

_EMPTY_INPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {},
    "required": [],
}

GET_HOSTNAME = types.Tool(
    name="get_hostname",
    description="Returns the hostname of the machine where the server is running",
    inputSchema=_EMPTY_INPUT_SCHEMA,
)

GET_IP_ADDRESS = types.Tool(
    name="get_ip_address",
    description="Returns the primary IP address of the machine where the server is running",
    inputSchema=_EMPTY_INPUT_SCHEMA,
)

ToolHandler = Callable[[], types.CallToolResult]


def _json_result(payload: dict[str, str], is_error: bool = False) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=json.dumps(payload, indent=2))],
        isError=is_error,
    )


def error_result(message: str) -> types.CallToolResult:
    return _json_result({"error": message}, is_error=True)


def _tool_boundary(func: Callable[[], dict[str, str]]) -> ToolHandler:
    """Turn a payload-returning function into a tool handler that never raises."""

    @functools.wraps(func)
    def wrapper() -> types.CallToolResult:
        try:
            return _json_result(func())
        except ToolExecutionError as e:
            return error_result(str(e))
        except Exception as e:
            logger.exception(f"Tool {func.__name__} failed")
            return error_result(str(e))

    return wrapper


@_tool_boundary
def get_hostname() -> dict[str, str]:
    hostname = socket.gethostname()
    if not hostname:
        raise ToolExecutionError("Operating system returned an empty hostname")
    return {"hostname": hostname}


def _is_internal(address: str) -> bool:
    return ipaddress.IPv4Address(address).is_loopback


def find_external_ipv4(interfaces: dict[str, list[Any]]) -> str | None:
    """Return the first non-loopback IPv4 address, walking interfaces and their
    addresses in the order the OS reported them.
    """
    for addresses in interfaces.values():
        for addr in addresses:
            if addr.family == socket.AF_INET and not _is_internal(addr.address):
                return addr.address
    return None


@_tool_boundary
def get_ip_address() -> dict[str, str]:
    ip_address = find_external_ipv4(psutil.net_if_addrs())
    if ip_address is None:
        raise ToolExecutionError(NO_EXTERNAL_IPV4)
    return {"ipAddress": ip_address}


TOOLS: tuple[types.Tool, ...] = (GET_HOSTNAME, GET_IP_ADDRESS)

_HANDLERS: dict[str, ToolHandler] = {
    GET_HOSTNAME.name: get_hostname,
    GET_IP_ADDRESS.name: get_ip_address,
}


def list_tools() -> list[types.Tool]:
    return list(TOOLS)


def dispatch(name: str) -> ToolHandler:
    """Look up the handler for a tool name.

    Raises:
        UnknownToolError: if no tool with that name is registered
    """
    try:
        return _HANDLERS[name]
    except KeyError:
        raise UnknownToolError(name) from None


async def call_tool(name: str) -> types.CallToolResult:
    """Dispatch a tool call, running the OS query in a worker thread."""
    handler = dispatch(name)
    return await anyio.to_thread.run_sync(handler)
