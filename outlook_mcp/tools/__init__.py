"""Outlook MCP tools package.

This package contains the MCP tool implementations built on the
credential core. Mail, calendar and folder tools consume the same
TokenStore through get_access_token().
"""

from outlook_mcp.tools.auth import (
    outlook_begin_login,
    outlook_get_auth_status,
    outlook_logout,
)
from outlook_mcp.tools.base import (
    build_error_response,
    build_success_response,
    execute_tool,
    run_tool,
)

__all__ = [
    # Auth tools
    "outlook_begin_login",
    "outlook_get_auth_status",
    "outlook_logout",
    # Base utilities
    "build_success_response",
    "build_error_response",
    "execute_tool",
    "run_tool",
]
