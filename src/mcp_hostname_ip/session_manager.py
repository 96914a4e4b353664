"""Stateful streamable HTTP session management.

Each logical client conversation gets its own session: a fresh protocol engine
(lowlevel ``Server``) running in a background task, bound to its own
``StreamableHTTPServerTransport``. The manager owns the ``session_id -> Session``
mapping and is the only thing that writes to it.

Session states::

    INITIALIZING --engine ready--> ACTIVE --DELETE / engine exit / shutdown--> CLOSED

A POST without a session header may only carry an ``initialize`` request; that
is the one way a session comes into existence. Every other request must name
an ACTIVE session or is rejected with 400 and no state change.
"""

from __future__ import annotations

import contextlib
import logging
import re
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from enum import Enum
from http import HTTPStatus
from typing import Any
from uuid import uuid4

import anyio
from anyio.abc import TaskGroup, TaskStatus
from mcp.server.lowlevel import Server
from mcp.server.streamable_http import MCP_SESSION_ID_HEADER, StreamableHTTPServerTransport
from mcp.server.transport_security import TransportSecuritySettings
from mcp.types import ErrorData
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.types import Message, Receive, Scope, Send

from mcp_hostname_ip.exceptions import InternalServerFault, InvalidSessionError
from mcp_hostname_ip.http_body import BodyTooLargeError, is_initialize_request, read_request_body, replay_receive
from mcp_hostname_ip.server import create_server
from mcp_hostname_ip.settings import DEFAULT_MAX_BODY_BYTES

logger = logging.getLogger(__name__)

# Session IDs must be visible ASCII (0x21-0x7E)
SESSION_ID_PATTERN = re.compile(r"^[\x21-\x7E]+$")


class SessionState(Enum):
    INITIALIZING = "initializing"
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass(eq=False)
class Session:
    session_id: str
    server: Server[Any, Any]
    transport: StreamableHTTPServerTransport
    state: SessionState = SessionState.INITIALIZING

    def activate(self) -> None:
        if self.state is not SessionState.INITIALIZING:
            raise RuntimeError(f"Session {self.session_id} cannot become active from {self.state.value}")
        self.state = SessionState.ACTIVE


def _jsonrpc_error(error: ErrorData, status_code: int) -> Response:
    return JSONResponse(
        {"jsonrpc": "2.0", "error": error.model_dump(exclude_none=True), "id": None},
        status_code=status_code,
    )


class SessionManager:
    """
    Maps inbound streamable HTTP requests onto per-session protocol engines.

    Only one run() is allowed per instance; all engine tasks live in the task
    group it creates and are torn down when it exits.

    Args:
        server_factory: Builds a new protocol engine for each session
        json_response: Whether transports answer POSTs with JSON instead of SSE
        max_body_bytes: Cap on bodies read to detect initialize requests
        security_settings: Host/Origin validation applied by every session transport
    """

    def __init__(
        self,
        server_factory: Callable[[], Server[Any, Any]] = create_server,
        json_response: bool = False,
        max_body_bytes: int | None = DEFAULT_MAX_BODY_BYTES,
        security_settings: TransportSecuritySettings | None = None,
    ):
        self.server_factory = server_factory
        self.json_response = json_response
        self.max_body_bytes = max_body_bytes
        self.security_settings = security_settings

        self._sessions: dict[str, Session] = {}
        self._issued_session_ids: set[str] = set()
        self._session_creation_lock = anyio.Lock()

        self._task_group: TaskGroup | None = None
        self._run_lock = anyio.Lock()
        self._has_started = False

    @property
    def active_session_count(self) -> int:
        return len(self._sessions)

    def get_session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    @contextlib.asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        """
        Run the session manager; use it in the lifespan of the ASGI app.

        Leaving the context is the shutdown event: every session is closed
        before the task group is cancelled.
        """
        async with self._run_lock:
            if self._has_started:
                raise RuntimeError(
                    "SessionManager .run() can only be called once per instance. "
                    "Create a new instance if you need to run again."
                )
            self._has_started = True

        async with anyio.create_task_group() as tg:
            self._task_group = tg
            logger.info("Session manager started")
            try:
                yield
            finally:
                logger.info("Shutting down server...")
                with anyio.CancelScope(shield=True):
                    await self.shutdown()
                tg.cancel_scope.cancel()
                self._task_group = None

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI entry point: dispatch POST / GET / DELETE to route / resume / terminate."""
        if self._task_group is None:
            raise RuntimeError("Task group is not initialized. Make sure to use run().")

        request = Request(scope, receive)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER)
        response_started = False

        async def tracking_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            if request.method == "POST":
                await self.route(session_id, scope, receive, tracking_send)
            elif request.method == "GET":
                await self.resume(session_id, scope, receive, tracking_send)
            elif request.method == "DELETE":
                await self.terminate(session_id, scope, receive, tracking_send)
            else:
                response: Response = PlainTextResponse(
                    "Method Not Allowed",
                    status_code=HTTPStatus.METHOD_NOT_ALLOWED,
                    headers={"Allow": "GET, POST, DELETE"},
                )
                await response(scope, receive, tracking_send)
        except InvalidSessionError as e:
            if request.method == "POST":
                response = _jsonrpc_error(e.error, HTTPStatus.BAD_REQUEST)
            else:
                response = PlainTextResponse(str(e), status_code=HTTPStatus.BAD_REQUEST)
            await response(scope, receive, tracking_send)
        except BodyTooLargeError as e:
            response = PlainTextResponse(str(e), status_code=HTTPStatus.REQUEST_ENTITY_TOO_LARGE)
            await response(scope, receive, tracking_send)
        except Exception:
            logger.exception(f"Error handling MCP {request.method} request")
            if not response_started:
                await _jsonrpc_error(InternalServerFault().error, HTTPStatus.INTERNAL_SERVER_ERROR)(scope, receive, send)

    async def route(self, session_id: str | None, scope: Scope, receive: Receive, send: Send) -> None:
        """Handle a POST: reuse an active session or open one for an initialize request.

        Raises:
            InvalidSessionError: unknown session ID, or no session ID on a
                request that is not ``initialize``
        """
        session = self._resolve(session_id)
        if session is not None:
            await session.transport.handle_request(scope, receive, send)
            return

        if session_id is not None:
            raise InvalidSessionError()

        body = await read_request_body(Request(scope, receive), max_body_bytes=self.max_body_bytes)
        if not is_initialize_request(body):
            raise InvalidSessionError()

        session = await self._create_session()
        status: int | None = None

        async def recording_send(message: Message) -> None:
            nonlocal status
            if message["type"] == "http.response.start":
                status = message["status"]
            await send(message)

        # The initialize call itself is answered by the new engine.
        try:
            await session.transport.handle_request(scope, replay_receive(body, receive), recording_send)
        finally:
            if status is None or not 200 <= status < 300:
                logger.info(f"Initialize rejected with status {status}; closing session {session.session_id}")
                with anyio.CancelScope(shield=True):
                    await self._close_session(session)

    async def resume(self, session_id: str | None, scope: Scope, receive: Receive, send: Send) -> None:
        """Handle a GET: open the server-to-client SSE stream of an active session."""
        session = self._require_active(session_id)
        await session.transport.handle_request(scope, receive, send)

    async def terminate(self, session_id: str | None, scope: Scope, receive: Receive, send: Send) -> None:
        """Handle a DELETE: the transport terminates itself, then the session is dropped."""
        session = self._require_active(session_id)
        await session.transport.handle_request(scope, receive, send)
        if session.transport.is_terminated:
            logger.info(f"Session {session.session_id} terminated by client")
            self._discard(session)

    async def shutdown(self) -> None:
        """Close every registered session.

        A failure closing one session is logged and does not stop the rest;
        every session leaves the mapping either way.
        """
        while self._sessions:
            await self._close_session(next(iter(self._sessions.values())))

    async def _close_session(self, session: Session) -> None:
        try:
            await session.transport.terminate()
        except Exception:
            logger.exception(f"Error closing transport for session {session.session_id}")
        finally:
            self._discard(session)

    def _resolve(self, session_id: str | None) -> Session | None:
        if session_id is None or not SESSION_ID_PATTERN.fullmatch(session_id):
            return None
        session = self._sessions.get(session_id)
        if session is None or session.state is not SessionState.ACTIVE:
            return None
        return session

    def _require_active(self, session_id: str | None) -> Session:
        session = self._resolve(session_id)
        if session is None:
            raise InvalidSessionError("Invalid or missing session ID")
        return session

    def _new_session_id(self) -> str:
        session_id = uuid4().hex
        while session_id in self._issued_session_ids:
            session_id = uuid4().hex
        self._issued_session_ids.add(session_id)
        return session_id

    async def _create_session(self) -> Session:
        async with self._session_creation_lock:
            session_id = self._new_session_id()
            session = Session(
                session_id=session_id,
                server=self.server_factory(),
                transport=StreamableHTTPServerTransport(
                    mcp_session_id=session_id,
                    is_json_response_enabled=self.json_response,
                    security_settings=self.security_settings,
                ),
            )

            # Registered while INITIALIZING so an engine that exits straight
            # away still finds its entry to remove; lookups skip it until ACTIVE.
            self._sessions[session_id] = session

            assert self._task_group is not None
            await self._task_group.start(self._run_session, session)
            if session.state is SessionState.CLOSED:
                raise InternalServerFault(f"Session {session_id} closed during initialization")
            session.activate()

        logger.info(f"Session initialized with ID: {session_id}")
        return session

    async def _run_session(
        self,
        session: Session,
        *,
        task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED,
    ) -> None:
        """Background task running one session's engine until its transport closes."""
        try:
            async with session.transport.connect() as (read_stream, write_stream):
                task_status.started()
                await session.server.run(
                    read_stream,
                    write_stream,
                    session.server.create_initialization_options(),
                    stateless=False,
                )
        except Exception:
            logger.exception(f"Session {session.session_id} crashed")
        finally:
            self._discard(session)

    def _discard(self, session: Session) -> None:
        # Synchronous, so removal never interleaves with another writer.
        if self._sessions.get(session.session_id) is session:
            del self._sessions[session.session_id]
            logger.info(f"Transport closed for session {session.session_id}")
        session.state = SessionState.CLOSED
