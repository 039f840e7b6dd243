"""Custom exception hierarchy for Outlook MCP Server.

This module defines a structured exception hierarchy for the credential
core: configuration problems, storage and keystore failures, and the
token lifecycle states callers are expected to branch on.

Callers that drive the OAuth flow special-case two of them:

- RefreshRequiredError: perform a silent refresh, then read again.
- ExpiredError: the refresh token is gone, run interactive login.

Everything else is a hard failure of the calling operation.
"""

from __future__ import annotations


class OutlookMCPError(Exception):
    """Base exception for all Outlook MCP Server errors.

    All custom exceptions in the Outlook MCP Server inherit from this base
    class, enabling consistent error handling and catch-all exception
    handling patterns.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary containing additional error context.
    """

    def __init__(self, message: str, details: dict[str, object] | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class AuthenticationError(OutlookMCPError):
    """Exception raised for OAuth and credential-related errors.

    Examples:
        - User has never signed in
        - Session has expired and requires re-authentication
    """

    pass


class TokenError(AuthenticationError):
    """Exception raised for token storage, retrieval, or decryption errors."""

    pass


class NoMetadataError(TokenError):
    """No token metadata is stored - the installation never authenticated."""

    pass


class RefreshRequiredError(TokenError):
    """The access token is inside the refresh window.

    This is a signal rather than a hard failure: the caller should run the
    refresh grant, store the new tokens, and read the access token again.
    """

    pass


class ExpiredError(TokenError):
    """The refresh token itself has expired; full reauthorization is needed."""

    pass


class NotFoundError(TokenError):
    """Metadata exists but the encrypted token is missing from both tiers."""

    pass


class DecryptionError(TokenError):
    """Ciphertext could not be decrypted under the current key.

    Examples:
        - Key mismatch (token directory moved across installations)
        - Tampered or truncated ciphertext
        - Malformed ``ivHex:cipherHex`` blob
    """

    pass


class ConfigurationError(OutlookMCPError):
    """Exception raised when required configuration is missing or unusable.

    Examples:
        - AZURE_CLIENT_ID is not set
        - Encryption key could not be derived
    """

    pass


class StorageError(OutlookMCPError):
    """Exception raised when the on-disk fallback store cannot be accessed."""

    pass


class KeystoreError(OutlookMCPError):
    """Exception raised when the OS keystore backend fails.

    The credential core treats these as recoverable: it falls back to the
    encrypted file store instead of propagating them.
    """

    pass


class ValidationError(OutlookMCPError):
    """Exception raised for input validation errors.

    Attributes:
        field: The name of the field that failed validation, if applicable.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        """Initialize the validation error exception.

        Args:
            message: Human-readable error description.
            field: The name of the field that failed validation.
            details: Optional dictionary containing additional error context.
        """
        super().__init__(message, details)
        self.field = field


__all__ = [
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
