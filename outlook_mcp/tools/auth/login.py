"""Outlook login tool - Start a PKCE authorization attempt.

Generates a fresh PKCE verifier, stores it for the code exchange, and
returns the Microsoft sign-in URL carrying the matching S256 challenge.
The code exchange itself is handled by the OAuth orchestrator.
"""

from __future__ import annotations

import logging
from typing import Any

from outlook_mcp.auth.pkce import CODE_CHALLENGE_METHOD, build_authorization_url
from outlook_mcp.auth.tokens import TokenStore
from outlook_mcp.tools.base import build_success_response, run_tool

logger = logging.getLogger(__name__)


async def outlook_begin_login(store: TokenStore) -> dict[str, Any]:
    """Begin interactive sign-in to Outlook.

    Any verifier left over from an earlier attempt is replaced, so only
    the most recent authorization URL can complete.

    Args:
        store: Token store holding the PKCE verifier.

    Returns:
        Success response with auth_url and state, or error response.
    """

    async def _execute() -> dict[str, Any]:
        verifier = store.generate_code_verifier()
        challenge = store.generate_code_challenge(verifier)
        await store.store_pkce_verifier(verifier)

        auth_url, state = build_authorization_url(store.config, challenge)
        logger.info("Started PKCE authorization attempt")

        return build_success_response(
            data={
                "auth_url": auth_url,
                "state": state,
                "code_challenge_method": CODE_CHALLENGE_METHOD,
                "redirect_uri": store.config.redirect_uri,
            },
            message="Open auth_url in a browser to sign in to Outlook.",
        )

    return await run_tool("outlook_begin_login", {}, _execute)
