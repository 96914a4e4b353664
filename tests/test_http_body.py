from __future__ import annotations

import json

import pytest
from starlette.requests import Request
from starlette.types import Message

from mcp_hostname_ip.http_body import BodyTooLargeError, is_initialize_request, read_request_body, replay_receive


def make_request(*, body_chunks: list[bytes], headers: dict[str, str] | None = None) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/mcp",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
    }

    messages: list[Message] = [
        {
            "type": "http.request",
            "body": chunk,
            "more_body": i < len(body_chunks) - 1,
        }
        for i, chunk in enumerate(body_chunks)
    ]

    async def receive() -> Message:
        if messages:
            return messages.pop(0)
        return {"type": "http.disconnect"}

    return Request(scope, receive)


pytestmark = pytest.mark.anyio


async def test_read_request_body_joins_chunks():
    request = make_request(body_chunks=[b'{"a":', b" 1}"])
    assert await read_request_body(request, max_body_bytes=100) == b'{"a": 1}'


async def test_read_request_body_without_limit():
    request = make_request(body_chunks=[b"x" * 20])
    assert await read_request_body(request, max_body_bytes=None) == b"x" * 20


async def test_read_request_body_rejects_on_content_length():
    request = make_request(body_chunks=[b"{}"], headers={"content-length": "5000"})
    with pytest.raises(BodyTooLargeError) as excinfo:
        await read_request_body(request, max_body_bytes=10)
    assert str(excinfo.value) == "Request body exceeds max_body_bytes=10"


async def test_read_request_body_rejects_while_streaming():
    request = make_request(body_chunks=[b"12345", b"6"])
    with pytest.raises(BodyTooLargeError):
        await read_request_body(request, max_body_bytes=5)


async def test_replay_receive_delivers_body_then_falls_through():
    async def receive() -> Message:
        return {"type": "http.disconnect"}

    replayed = replay_receive(b"payload", receive)
    assert await replayed() == {"type": "http.request", "body": b"payload", "more_body": False}
    assert await replayed() == {"type": "http.disconnect"}


async def test_replayed_body_is_readable_by_a_new_request():
    async def receive() -> Message:
        return {"type": "http.disconnect"}

    request = Request({"type": "http", "method": "POST", "headers": []}, replay_receive(b"abc", receive))
    assert await request.body() == b"abc"


def test_is_initialize_request(initialize_body: bytes):
    assert is_initialize_request(initialize_body)


@pytest.mark.parametrize(
    "body",
    [
        b"",
        b"not json",
        b"[]",
        json.dumps({"jsonrpc": "2.0", "id": 1, "method": "tools/list"}).encode(),
        json.dumps({"jsonrpc": "2.0", "method": "initialize"}).encode(),
        json.dumps({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}}).encode(),
    ],
)
def test_is_not_initialize_request(body: bytes):
    assert not is_initialize_request(body)
