"""PKCE (Proof Key for Code Exchange) helpers and authorization URLs.

PKCE binds the authorization code to a client-generated secret, so the
public client never needs a client secret. Only the S256 method is used.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import secrets
from urllib.parse import urlencode

from outlook_mcp.auth.config import AuthConfig

logger = logging.getLogger(__name__)

CODE_CHALLENGE_METHOD = "S256"
VERIFIER_BYTES = 32

MICROSOFT_LOGIN_BASE = "https://login.microsoftonline.com"


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def generate_code_verifier() -> str:
    """Generate a PKCE code verifier (32 random bytes, URL-safe base64)."""
    return _b64url(secrets.token_bytes(VERIFIER_BYTES))


def generate_code_challenge(verifier: str) -> str:
    """Compute the S256 code challenge for a verifier.

    Example:
        >>> generate_code_challenge("dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk")
        'E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM'
    """
    return _b64url(hashlib.sha256(verifier.encode("utf-8")).digest())


def authorize_url(config: AuthConfig) -> str:
    """Authorization endpoint for the configured tenant."""
    return f"{MICROSOFT_LOGIN_BASE}/{config.authority_tenant}/oauth2/v2.0/authorize"


def token_url(config: AuthConfig) -> str:
    """Token endpoint for the configured tenant."""
    return f"{MICROSOFT_LOGIN_BASE}/{config.authority_tenant}/oauth2/v2.0/token"


def build_authorization_url(
    config: AuthConfig,
    code_challenge: str,
    state: str | None = None,
) -> tuple[str, str]:
    """Create the authorization URL for user consent.

    Args:
        config: Auth configuration (client id, tenant, redirect, scopes).
        code_challenge: S256 challenge of the stored verifier.
        state: Optional CSRF state. If not provided, a random one is generated.

    Returns:
        Tuple of (auth_url, state).
    """
    if state is None:
        state = secrets.token_hex(16)

    params = {
        "client_id": config.client_id,
        "response_type": "code",
        "redirect_uri": config.redirect_uri,
        "scope": " ".join(config.scopes),
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": CODE_CHALLENGE_METHOD,
    }

    auth_url = f"{authorize_url(config)}?{urlencode(params)}"
    logger.debug("Created auth URL with state: %s", state[:8] + "...")
    return auth_url, state


__all__ = [
    "CODE_CHALLENGE_METHOD",
    "generate_code_verifier",
    "generate_code_challenge",
    "authorize_url",
    "token_url",
    "build_authorization_url",
]
