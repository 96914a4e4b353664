from __future__ import annotations

from typing import Literal

from mcp.server.transport_security import TransportSecuritySettings
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_BODY_BYTES = 1_000_000

LOOPBACK_HOSTS = ("127.0.0.1", "localhost", "::1")


def loopback_transport_security() -> TransportSecuritySettings:
    """Host/Origin allow-lists for a server bound to a loopback address."""
    return TransportSecuritySettings(
        enable_dns_rebinding_protection=True,
        allowed_hosts=["127.0.0.1:*", "localhost:*", "[::1]:*"],
        allowed_origins=["http://127.0.0.1:*", "http://localhost:*", "http://[::1]:*"],
    )


class Settings(BaseSettings):
    """Server settings.

    All settings can be configured via environment variables with the prefix MCP_.
    For example, MCP_TRANSPORT=http MCP_PORT=8080 serves streamable HTTP on 8080.
    """

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        extra="ignore",
    )

    transport: Literal["stdio", "http"] = "stdio"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # HTTP settings
    host: str = "127.0.0.1"
    port: int = Field(default=3000, ge=0, le=65535)
    streamable_http_path: str = "/mcp"

    json_response: bool = False
    """Answer POSTs with a single JSON body instead of an SSE stream."""

    max_body_bytes: int = Field(default=DEFAULT_MAX_BODY_BYTES, gt=0)
    """Cap on request bodies read while checking for an initialize request."""

    transport_security: TransportSecuritySettings | None = None
    """Host/Origin validation; defaults to loopback-only when bound to a loopback host."""

    @model_validator(mode="after")
    def _default_transport_security(self) -> Settings:
        if self.transport_security is None and self.host in LOOPBACK_HOSTS:
            self.transport_security = loopback_transport_security()
        return self
