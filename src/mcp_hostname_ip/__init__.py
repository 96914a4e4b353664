from mcp_hostname_ip.server import SERVER_NAME, SERVER_VERSION, create_server
from mcp_hostname_ip.session_manager import Session, SessionManager, SessionState

__all__ = [
    "SERVER_NAME",
    "SERVER_VERSION",
    "Session",
    "SessionManager",
    "SessionState",
    "create_server",
]
