from __future__ import annotations

from typing import Any

import anyio
import click
from pydantic import ValidationError

from mcp_hostname_ip.exceptions import StartupFault
from mcp_hostname_ip.logging import configure_logging
from mcp_hostname_ip.settings import Settings
from mcp_hostname_ip.stdio import run_stdio
from mcp_hostname_ip.streamable_http import run_http


def load_settings(**overrides: Any) -> Settings:
    """Settings from MCP_* environment variables, with non-None overrides applied on top."""
    return Settings(**{key: value for key, value in overrides.items() if value is not None})


@click.command()
@click.option(
    "--transport",
    type=click.Choice(["stdio", "http"]),
    default=None,
    help="Transport type (env: MCP_TRANSPORT, default stdio)",
)
@click.option("--host", default=None, help="Host to bind for HTTP (env: MCP_HOST)")
@click.option("--port", type=int, default=None, help="Port to listen on for HTTP (env: MCP_PORT)")
@click.option(
    "--log-level",
    default=None,
    help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
)
@click.option(
    "--json-response/--sse-response",
    default=None,
    help="Answer HTTP POSTs with JSON instead of SSE streams",
)
def main(
    transport: str | None,
    host: str | None,
    port: int | None,
    log_level: str | None,
    json_response: bool | None,
) -> int:
    try:
        settings = load_settings(
            transport=transport,
            host=host,
            port=port,
            log_level=log_level.upper() if log_level else None,
            json_response=json_response,
        )
    except ValidationError as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e

    configure_logging(settings.log_level)

    try:
        if settings.transport == "http":
            anyio.run(run_http, settings)
        else:
            anyio.run(run_stdio)
    except StartupFault as e:
        raise click.ClickException(str(e)) from e
    except KeyboardInterrupt:
        # Ctrl-C is the normal way to stop the server.
        click.echo("Server stopped", err=True)

    return 0
