"""Authentication configuration for the Outlook MCP credential core.

Settings come from environment variables (optionally loaded from a .env
file by the entry point):

- AZURE_CLIENT_ID: Application (client) ID. Required.
- AZURE_TENANT_ID: Directory (tenant) ID. Optional.
- OUTLOOK_MCP_SERVICE_NAME: Keystore service name (default "outlook-mcp").
- OUTLOOK_MCP_TOKEN_DIR: Fallback store directory
  (default ~/.outlook-mcp/tokens).
- OUTLOOK_MCP_DISABLE_KEYSTORE: Skip the OS keystore entirely (headless).
- OAUTH_REDIRECT_URI: Redirect URI registered for the app.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

from outlook_mcp.utils.errors import ConfigurationError

# Token lifetimes, in milliseconds
ACCESS_TOKEN_TTL_MS = 60 * 60 * 1000
REFRESH_THRESHOLD_MS = 55 * 60 * 1000
REFRESH_TOKEN_TTL_MS = 90 * 24 * 60 * 60 * 1000
DEFAULT_EXPIRES_IN_SECONDS = ACCESS_TOKEN_TTL_MS // 1000

DEFAULT_SERVICE_NAME = "outlook-mcp"
DEFAULT_TENANT = "common"
DEFAULT_SEED_SUFFIX = "default"
DEFAULT_REDIRECT_URI = "http://localhost:8400/callback"

# Microsoft Graph delegated scopes; offline_access is required for refresh tokens
OUTLOOK_SCOPES = [
    "Mail.Read",
    "Mail.ReadWrite",
    "Mail.Send",
    "Calendars.Read",
    "Calendars.ReadWrite",
    "Contacts.Read",
    "Contacts.ReadWrite",
    "Tasks.Read",
    "Tasks.ReadWrite",
    "User.Read",
    "MailboxSettings.Read",
    "offline_access",
]


def default_token_dir() -> Path:
    """Default location of the encrypted fallback store."""
    return Path.home() / ".outlook-mcp" / "tokens"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("true", "1", "yes")


class AuthConfig(BaseModel):
    """Injected configuration for a TokenStore instance.

    Attributes:
        client_id: Application (client) ID registered with Microsoft Entra.
        tenant_id: Optional tenant ID; also feeds fallback key derivation.
        service_name: Keystore service name shared by all entries.
        storage_dir: Directory of the encrypted fallback store.
        disable_keystore: Never touch the OS keystore.
        redirect_uri: OAuth redirect URI.
        scopes: Delegated scopes requested at authorization time.
    """

    client_id: str = Field(..., min_length=1, description="Application (client) ID")
    tenant_id: str | None = Field(default=None, description="Directory (tenant) ID")
    service_name: str = Field(default=DEFAULT_SERVICE_NAME)
    storage_dir: Path = Field(default_factory=default_token_dir)
    disable_keystore: bool = Field(default=False)
    redirect_uri: str = Field(default=DEFAULT_REDIRECT_URI)
    scopes: list[str] = Field(default_factory=lambda: list(OUTLOOK_SCOPES))

    @property
    def installation_seed(self) -> str:
        """Stable per-installation seed for deterministic key derivation."""
        return self.client_id + (self.tenant_id or DEFAULT_SEED_SUFFIX)

    @property
    def authority_tenant(self) -> str:
        """Tenant segment used in Microsoft identity platform URLs."""
        return self.tenant_id or DEFAULT_TENANT

    @classmethod
    def from_env(cls) -> AuthConfig:
        """Build configuration from environment variables.

        Raises:
            ConfigurationError: If AZURE_CLIENT_ID is not set.
        """
        client_id = os.getenv("AZURE_CLIENT_ID")
        if not client_id:
            raise ConfigurationError(
                "AZURE_CLIENT_ID environment variable not set",
                details={"hint": "Set AZURE_CLIENT_ID to the application (client) ID"},
            )

        token_dir = os.getenv("OUTLOOK_MCP_TOKEN_DIR")
        return cls(
            client_id=client_id,
            tenant_id=os.getenv("AZURE_TENANT_ID") or None,
            service_name=os.getenv("OUTLOOK_MCP_SERVICE_NAME", DEFAULT_SERVICE_NAME),
            storage_dir=Path(token_dir).expanduser() if token_dir else default_token_dir(),
            disable_keystore=_env_flag("OUTLOOK_MCP_DISABLE_KEYSTORE"),
            redirect_uri=os.getenv("OAUTH_REDIRECT_URI", DEFAULT_REDIRECT_URI),
        )


__all__ = [
    "AuthConfig",
    "OUTLOOK_SCOPES",
    "ACCESS_TOKEN_TTL_MS",
    "REFRESH_THRESHOLD_MS",
    "REFRESH_TOKEN_TTL_MS",
    "DEFAULT_EXPIRES_IN_SECONDS",
    "DEFAULT_SERVICE_NAME",
    "default_token_dir",
]
