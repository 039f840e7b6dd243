"""Outlook auth status tool - Check authentication state.

This tool reports whether a fresh access token is available, where the
tokens are kept, and the stored expiry timestamps.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from outlook_mcp.auth.tokens import TokenStore
from outlook_mcp.tools.base import build_success_response, run_tool

logger = logging.getLogger(__name__)

_TIMESTAMP_FIELDS = {
    "accessTokenExpiry": "access_token_expires_at",
    "refreshTokenExpiry": "refresh_token_expires_at",
    "lastRefresh": "last_refresh_at",
}


def _iso(epoch_ms: object) -> str | None:
    if not isinstance(epoch_ms, int):
        return None
    return datetime.fromtimestamp(epoch_ms / 1000, tz=UTC).isoformat()


async def outlook_get_auth_status(store: TokenStore) -> dict[str, Any]:
    """Check if the user is authenticated with Outlook.

    Returns:
        Success response with authentication status:
        - authenticated: True if a fresh access token is available
        - has_tokens: True if tokens were stored (possibly stale)
        - using_fallback_storage: True if the OS keystore is unavailable
        - keystore_status: "available" or "unavailable", from the startup probe
        - access_token_expires_at / refresh_token_expires_at /
          last_refresh_at: ISO timestamps, when tokens exist
    """

    async def _execute() -> dict[str, Any]:
        authenticated = await store.is_authenticated()
        metadata = await store.get_token_metadata()

        data: dict[str, Any] = {
            "authenticated": authenticated,
            "has_tokens": metadata is not None,
            "using_fallback_storage": store.using_fallback,
            "keystore_status": store.keystore_status.value,
        }
        if metadata is not None:
            for raw_key, out_key in _TIMESTAMP_FIELDS.items():
                data[out_key] = _iso(metadata.get(raw_key))

        if authenticated:
            message = "Authenticated with Outlook."
        elif metadata is not None:
            message = "Access token is stale. A token refresh is required."
        else:
            message = "Not authenticated. Use outlook_begin_login to sign in."

        return build_success_response(data=data, message=message)

    return await run_tool("outlook_get_auth_status", {}, _execute)
