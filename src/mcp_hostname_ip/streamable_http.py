"""Streamable HTTP binding: a Starlette app around the session manager."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator

import uvicorn
from starlette.applications import Starlette
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from mcp_hostname_ip.exceptions import StartupFault
from mcp_hostname_ip.session_manager import SessionManager
from mcp_hostname_ip.settings import Settings

logger = logging.getLogger(__name__)


class StreamableHTTPASGIApp:
    """
    ASGI application for the streamable HTTP endpoint.
    """

    def __init__(self, session_manager: SessionManager):
        self.session_manager = session_manager

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await self.session_manager.handle_request(scope, receive, send)


def create_app(settings: Settings, session_manager: SessionManager | None = None) -> Starlette:
    """Build the Starlette app serving the MCP endpoint at settings.streamable_http_path.

    The app's lifespan runs the session manager; lifespan shutdown closes all
    sessions.
    """
    if session_manager is None:
        session_manager = SessionManager(
            json_response=settings.json_response,
            max_body_bytes=settings.max_body_bytes,
            security_settings=settings.transport_security,
        )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        async with session_manager.run():
            yield

    app = Starlette(
        routes=[
            Route(
                settings.streamable_http_path,
                endpoint=StreamableHTTPASGIApp(session_manager),
                methods=["GET", "POST", "DELETE"],
            ),
        ],
        lifespan=lifespan,
    )
    app.state.session_manager = session_manager
    return app


async def run_http(settings: Settings) -> None:
    """Serve the streamable HTTP app until uvicorn receives a shutdown signal.

    uvicorn exits the process with status 1 if the port cannot be bound.

    Raises:
        StartupFault: the server stopped without ever starting, e.g. the
            app lifespan failed
    """
    starlette_app = create_app(settings)

    config = uvicorn.Config(
        starlette_app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    logger.info(f"MCP Hostname/IP Server running on HTTP port {settings.port}")
    logger.info(f"Endpoint: http://{settings.host}:{settings.port}{settings.streamable_http_path}")
    await server.serve()
    if not server.started:
        raise StartupFault(f"HTTP server failed to start on {settings.host}:{settings.port}")
