"""Pipe binding: one engine on stdin/stdout for the life of the process."""

import logging

from mcp.server.stdio import stdio_server

from mcp_hostname_ip.server import create_server

logger = logging.getLogger(__name__)


async def run_stdio() -> None:
    """Serve a single implicit session until stdin closes."""
    server = create_server()
    async with stdio_server() as (read_stream, write_stream):
        logger.info("MCP Hostname/IP Server running on stdio")
        await server.run(read_stream, write_stream, server.create_initialization_options())
