"""Utility functions and helpers for Outlook MCP Server.

This module provides common utilities including custom exceptions and
the token cipher.
"""

from outlook_mcp.utils.encryption import (
    CipherCodec,
    generate_key,
    key_from_base64,
    key_to_base64,
)
from outlook_mcp.utils.errors import (
    AuthenticationError,
    ConfigurationError,
    DecryptionError,
    ExpiredError,
    KeystoreError,
    NoMetadataError,
    NotFoundError,
    OutlookMCPError,
    RefreshRequiredError,
    StorageError,
    TokenError,
    ValidationError,
)

__all__ = [
    # Encryption utilities
    "CipherCodec",
    "generate_key",
    "key_to_base64",
    "key_from_base64",
    # Exception hierarchy
    "OutlookMCPError",
    "AuthenticationError",
    "TokenError",
    "NoMetadataError",
    "RefreshRequiredError",
    "ExpiredError",
    "NotFoundError",
    "DecryptionError",
    "ConfigurationError",
    "StorageError",
    "KeystoreError",
    "ValidationError",
]
