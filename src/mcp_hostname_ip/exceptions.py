"""Custom exceptions for the hostname/IP server."""

from mcp.types import INTERNAL_ERROR, ErrorData

# JSON-RPC "server error" range code the streamable HTTP transport uses for
# session problems.
INVALID_SESSION = -32000


class HostnameServerError(Exception):
    """Base error for the hostname/IP server."""


class ToolExecutionError(HostnameServerError):
    """A tool failed while querying the operating system."""


class UnknownToolError(HostnameServerError):
    """A tool call named a tool that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class InvalidSessionError(HostnameServerError):
    """Missing, unknown or already closed session identifier.

    Surfaced to HTTP clients as 400 Bad Request; never mutates session state.
    """

    error: ErrorData

    def __init__(self, message: str = "Bad Request: No valid session ID provided"):
        super().__init__(message)
        self.error = ErrorData(code=INVALID_SESSION, message=message)


class InternalServerFault(HostnameServerError):
    """Unexpected failure while routing a request to a session."""

    error: ErrorData

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.error = ErrorData(code=INTERNAL_ERROR, message=message)


class StartupFault(HostnameServerError):
    """A transport binding could not be started."""
