"""Buffering and replaying HTTP request bodies.

A POST without a session header has to be inspected before it can be routed:
only an ``initialize`` request may open a session. The body is read once with
a hard cap, then replayed to the session transport as if it had never been
consumed.
"""

from __future__ import annotations

from dataclasses import dataclass

from mcp import types
from pydantic import ValidationError
from starlette.requests import Request
from starlette.types import Message, Receive

from mcp_hostname_ip.settings import DEFAULT_MAX_BODY_BYTES


@dataclass(frozen=True)
class BodyTooLargeError(Exception):
    max_body_bytes: int

    def __str__(self) -> str:
        return f"Request body exceeds max_body_bytes={self.max_body_bytes}"


async def read_request_body(request: Request, *, max_body_bytes: int | None = DEFAULT_MAX_BODY_BYTES) -> bytes:
    """Read an HTTP request body, raising BodyTooLargeError past max_body_bytes."""
    if max_body_bytes is None:
        return await request.body()

    content_length = request.headers.get("content-length")
    if content_length is not None and content_length.isdigit() and int(content_length) > max_body_bytes:
        raise BodyTooLargeError(max_body_bytes)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > max_body_bytes:
            raise BodyTooLargeError(max_body_bytes)
    return bytes(body)


def replay_receive(body: bytes, receive: Receive) -> Receive:
    """Wrap an ASGI receive so the already-read body is delivered first.

    Later calls fall through to the original receive, which by then only
    yields ``http.disconnect``.
    """
    replayed = False

    async def receive_with_body() -> Message:
        nonlocal replayed
        if not replayed:
            replayed = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return receive_with_body


def is_initialize_request(body: bytes) -> bool:
    """True if body is a single JSON-RPC ``initialize`` request with valid params."""
    try:
        message = types.JSONRPCMessage.model_validate_json(body)
    except ValidationError:
        return False

    request = message.root
    if not isinstance(request, types.JSONRPCRequest) or request.method != "initialize":
        return False
    try:
        types.InitializeRequestParams.model_validate(request.params or {})
    except ValidationError:
        return False
    return True
