"""FastMCP server for Outlook MCP.

This module builds the FastMCP server instance and registers the
authentication tools. Every tool shares one explicitly constructed
TokenStore; the server lifespan initializes it at startup and disposes
it at shutdown.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from outlook_mcp.auth.tokens import TokenStore
from outlook_mcp.tools import (
    outlook_begin_login,
    outlook_get_auth_status,
    outlook_logout,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "outlook-mcp"


# =============================================================================
# Lifespan Context Manager
# =============================================================================


def make_lifespan(
    store: TokenStore,
) -> Callable[[FastMCP], AbstractAsyncContextManager[dict[str, Any]]]:
    """Build the lifespan context manager for a token store.

    Args:
        store: The token store shared by all tools.

    Returns:
        A lifespan callable accepted by FastMCP.
    """

    @asynccontextmanager
    async def server_lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
        logger.info("Outlook MCP server starting up...")
        await store.initialize()
        if store.using_fallback:
            logger.info("OS keystore unavailable - tokens use encrypted file storage")
        logger.info("Outlook MCP server ready")

        try:
            yield {}
        finally:
            logger.info("Outlook MCP server shutting down...")
            await store.dispose()

    return server_lifespan


# =============================================================================
# Auth Tool Wrappers
# =============================================================================


def _register_auth_tools(mcp: FastMCP, store: TokenStore) -> None:
    """Register all authentication tools with the FastMCP server.

    Args:
        mcp: The FastMCP server instance.
        store: The token store the tools operate on.
    """

    @mcp.tool(
        name="outlook_begin_login",
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
        ),
    )
    async def outlook_begin_login_tool() -> dict[str, Any]:
        """Start signing in to Outlook with OAuth 2.0 + PKCE.

        Returns a Microsoft sign-in URL. Each call replaces the pending
        PKCE verifier, so only the most recent URL can complete sign-in.

        Returns:
            Success: {status, data: {auth_url, state, ...}, message}
            Error: {status, error, error_code}
        """
        return await outlook_begin_login(store)

    @mcp.tool(
        name="outlook_logout",
        annotations=ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
        ),
    )
    async def outlook_logout_tool() -> dict[str, Any]:
        """Sign out of Outlook by clearing stored credentials.

        Returns:
            Success response with logout confirmation.
        """
        return await outlook_logout(store)

    @mcp.tool(
        name="outlook_get_auth_status",
        annotations=ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
        ),
    )
    async def outlook_get_auth_status_tool() -> dict[str, Any]:
        """Check if the user is authenticated with Outlook.

        Returns:
            Success response with authentication status, storage tier and
            token expiry timestamps.
        """
        return await outlook_get_auth_status(store)


def create_server(store: TokenStore) -> FastMCP:
    """Create and configure the FastMCP server instance.

    Args:
        store: The token store shared by all tools.

    Returns:
        Configured FastMCP server instance.
    """
    server = FastMCP(
        name=SERVER_NAME,
        lifespan=make_lifespan(store),
    )

    _register_auth_tools(server, store)
    logger.info("Outlook MCP server created with %d tools registered", 3)

    return server
