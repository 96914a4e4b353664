import json

import pytest


@pytest.fixture
def anyio_backend():
    return "asyncio"


INITIALIZE_REQUEST = {
    "jsonrpc": "2.0",
    "id": 1,
    "method": "initialize",
    "params": {
        "protocolVersion": "2025-03-26",
        "capabilities": {},
        "clientInfo": {"name": "test-client", "version": "0.1.0"},
    },
}


@pytest.fixture
def initialize_body() -> bytes:
    return json.dumps(INITIALIZE_REQUEST).encode()
