"""Outlook logout tool - Clear stored credentials.

This tool removes stored OAuth tokens and their metadata from both the
OS keystore and the encrypted file store.
"""

from __future__ import annotations

import logging
from typing import Any

from outlook_mcp.auth.tokens import TokenStore
from outlook_mcp.tools.base import build_success_response, run_tool

logger = logging.getLogger(__name__)


async def outlook_logout(store: TokenStore) -> dict[str, Any]:
    """Sign out of Outlook by clearing stored credentials.

    The user will need to sign in again using outlook_begin_login.

    Returns:
        Success response with logout confirmation.
    """

    async def _execute() -> dict[str, Any]:
        had_credentials = await store.get_token_metadata() is not None
        await store.clear_tokens()

        if had_credentials:
            logger.info("User logged out successfully")
            return build_success_response(
                data={"logged_out": True},
                message="Successfully logged out. You will need to re-authenticate.",
            )

        logger.debug("Logout called but no credentials were stored")
        return build_success_response(
            data={"logged_out": False},
            message="No credentials were stored. Already logged out.",
        )

    return await run_tool("outlook_logout", {}, _execute)
