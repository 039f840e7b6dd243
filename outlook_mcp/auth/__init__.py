"""Authentication module for Outlook MCP server.

This module provides the credential core for the Microsoft Graph API client:

- Token encryption/decryption for secure storage (AES-256-GCM)
- OS keystore access with an encrypted file-store fallback
- Token freshness checks (refresh window, refresh token expiry)
- PKCE verifier/challenge generation and one-shot verifier storage

Usage:
    >>> from outlook_mcp.auth import AuthConfig, TokenStore
    >>>
    >>> store = TokenStore(AuthConfig.from_env())
    >>> await store.store_tokens(access_token, refresh_token, expires_in)
    >>>
    >>> # Later, on every outbound call
    >>> token = await store.get_access_token()
"""

from outlook_mcp.auth.config import (
    OUTLOOK_SCOPES,
    REFRESH_THRESHOLD_MS,
    REFRESH_TOKEN_TTL_MS,
    AuthConfig,
)
from outlook_mcp.auth.keys import EncryptionKeyProvider, derive_fallback_key
from outlook_mcp.auth.keystore import (
    KeyringKeystore,
    KeystoreAdapter,
    KeystoreStatus,
    NullKeystore,
)
from outlook_mcp.auth.pkce import (
    build_authorization_url,
    generate_code_challenge,
    generate_code_verifier,
    token_url,
)
from outlook_mcp.auth.storage import FallbackStore
from outlook_mcp.auth.tokens import TokenMetadata, TokenStore

__all__ = [
    # Configuration
    "AuthConfig",
    "OUTLOOK_SCOPES",
    "REFRESH_THRESHOLD_MS",
    "REFRESH_TOKEN_TTL_MS",
    # Keystore
    "KeystoreAdapter",
    "KeystoreStatus",
    "KeyringKeystore",
    "NullKeystore",
    # Storage
    "FallbackStore",
    "EncryptionKeyProvider",
    "derive_fallback_key",
    # Tokens
    "TokenStore",
    "TokenMetadata",
    # PKCE
    "generate_code_verifier",
    "generate_code_challenge",
    "build_authorization_url",
    "token_url",
]
