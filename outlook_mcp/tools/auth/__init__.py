"""Authentication tools for Outlook MCP server."""

from outlook_mcp.tools.auth.login import outlook_begin_login
from outlook_mcp.tools.auth.logout import outlook_logout
from outlook_mcp.tools.auth.status import outlook_get_auth_status

__all__ = [
    "outlook_begin_login",
    "outlook_get_auth_status",
    "outlook_logout",
]
