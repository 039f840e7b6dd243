"""Token persistence and freshness checks for the Outlook MCP server.

TokenStore is the single entry point for OAuth credentials. It:

- encrypts tokens with CipherCodec before they are persisted,
- keeps the token record in the OS keystore when one is reachable and in
  the encrypted fallback store otherwise (never split across tiers),
- keeps token metadata (expiry timestamps) in the fallback store,
- decides whether the access token is still fresh enough to use,
- stores the one-shot PKCE verifier.

Operations that read or replace the token record are serialized by one
lock per store, so a refresh in flight never interleaves with a read.

Usage:
    >>> store = TokenStore(AuthConfig.from_env())
    >>> await store.store_tokens(access, refresh, expires_in=3600)
    >>> try:
    ...     token = await store.get_access_token()
    ... except RefreshRequiredError:
    ...     ...  # run the refresh grant, then store_tokens() again
"""

from __future__ import annotations

import asyncio
import logging
import time
from types import TracebackType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from outlook_mcp.auth import pkce
from outlook_mcp.auth.config import (
    DEFAULT_EXPIRES_IN_SECONDS,
    REFRESH_THRESHOLD_MS,
    REFRESH_TOKEN_TTL_MS,
    AuthConfig,
)
from outlook_mcp.auth.keys import EncryptionKeyProvider
from outlook_mcp.auth.keystore import (
    ACCESS_TOKEN_ACCOUNT,
    REFRESH_TOKEN_ACCOUNT,
    KeyringKeystore,
    KeystoreAdapter,
    KeystoreStatus,
    NullKeystore,
)
from outlook_mcp.auth.storage import (
    FALLBACK_ACCESS_TOKEN_KEY,
    FALLBACK_REFRESH_TOKEN_KEY,
    PKCE_VERIFIER_KEY,
    TOKEN_METADATA_KEY,
    FallbackStore,
)
from outlook_mcp.middleware.audit_logger import AuditLogger, audit_logger
from outlook_mcp.utils.encryption import CipherCodec
from outlook_mcp.utils.errors import (
    DecryptionError,
    ExpiredError,
    KeystoreError,
    NoMetadataError,
    NotFoundError,
    OutlookMCPError,
    RefreshRequiredError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STORAGE_KEYSTORE = "keystore"
STORAGE_FILE = "file"


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


class TokenMetadata(BaseModel):
    """Non-secret token timestamps, persisted with camelCase keys.

    Attributes:
        access_token_expiry: When the access token expires (epoch ms).
        refresh_token_expiry: When the refresh token expires (epoch ms).
        last_refresh: When tokens were last stored (epoch ms).
    """

    model_config = ConfigDict(populate_by_name=True)

    access_token_expiry: int = Field(..., alias="accessTokenExpiry")
    refresh_token_expiry: int = Field(..., alias="refreshTokenExpiry")
    last_refresh: int = Field(..., alias="lastRefresh")

    def to_record(self) -> dict[str, int]:
        """Serialize to the persisted JSON layout."""
        return self.model_dump(by_alias=True)

    def needs_refresh(self, at_ms: int) -> bool:
        """Whether the access token is inside the refresh window."""
        return at_ms > self.access_token_expiry - REFRESH_THRESHOLD_MS

    def refresh_expired(self, at_ms: int) -> bool:
        """Whether the refresh token itself has expired."""
        return at_ms > self.refresh_token_expiry


class TokenStore:
    """Encrypted, two-tier persistence for one installation's OAuth tokens.

    Lifecycle: constructed uninitialized; initialize() (called lazily by
    every public operation) opens the fallback store, probes the keystore
    and obtains the encryption key; dispose() drops the key again.

    Attributes:
        _config: Injected auth configuration.
        _keystore: OS keystore adapter.
        _store: Encrypted fallback store.
        _codec: Cipher, set once initialized.
        _keystore_status: Probe result, set once initialized.

    Example:
        >>> async with TokenStore(config) as store:
        ...     await store.store_tokens("eyJ0...", "M.C5...", 3600)
        ...     await store.is_authenticated()
        True
    """

    def __init__(
        self,
        config: AuthConfig,
        keystore: KeystoreAdapter | None = None,
        store: FallbackStore | None = None,
        audit: AuditLogger | None = None,
    ) -> None:
        """Create an uninitialized token store.

        Args:
            config: Auth configuration (client id, tenant, locations).
            keystore: Keystore adapter. Defaults to the OS keyring, or a
                disabled keystore when config.disable_keystore is set.
            store: Fallback store. Defaults to one at config.storage_dir.
            audit: Audit logger for auth events.
        """
        if keystore is None:
            if config.disable_keystore:
                keystore = NullKeystore()
            else:
                keystore = KeyringKeystore(config.service_name)

        self._config = config
        self._keystore = keystore
        self._store = store if store is not None else FallbackStore(config.storage_dir)
        self._audit = audit if audit is not None else audit_logger
        self._codec: CipherCodec | None = None
        self._keystore_status: KeystoreStatus | None = None
        self._init_lock = asyncio.Lock()
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def config(self) -> AuthConfig:
        """Configuration this store was built with."""
        return self._config

    @property
    def is_ready(self) -> bool:
        """Whether initialize() has completed."""
        return self._codec is not None

    @property
    def keystore_status(self) -> KeystoreStatus | None:
        """Keystore probe result, or None before initialization."""
        return self._keystore_status

    @property
    def using_fallback(self) -> bool:
        """Whether tokens are kept in the encrypted file store."""
        return self._keystore_status is KeystoreStatus.UNAVAILABLE

    async def initialize(self) -> None:
        """Open storage, probe the keystore and obtain the key. Idempotent."""
        if self._codec is not None:
            return

        async with self._init_lock:
            if self._codec is not None:
                return

            await self._store.open()
            status = await self._keystore.probe()
            provider = EncryptionKeyProvider(self._keystore, status)
            key = await provider.get_or_create_key(self._config.installation_seed)

            self._keystore_status = status
            self._codec = CipherCodec(key)
            logger.info("TokenStore initialized (keystore=%s)", status.value)

    async def dispose(self) -> None:
        """Forget the encryption key and return to the uninitialized state."""
        async with self._init_lock:
            self._codec = None
            self._keystore_status = None
        logger.debug("TokenStore disposed")

    async def __aenter__(self) -> TokenStore:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.dispose()

    def _require_codec(self) -> CipherCodec:
        if self._codec is None:
            # dispose() raced with an operation
            raise StorageError("TokenStore is not initialized")
        return self._codec

    # -------------------------------------------------------------------------
    # Tokens
    # -------------------------------------------------------------------------

    async def store_tokens(
        self,
        access_token: str,
        refresh_token: str | None = None,
        expires_in: int | None = DEFAULT_EXPIRES_IN_SECONDS,
    ) -> None:
        """Encrypt and persist a token record and its metadata.

        The record goes to the keystore when it is available. If any
        keystore write fails, the whole record is written to the fallback
        store instead. Metadata is overwritten on every call.

        Args:
            access_token: New access token.
            refresh_token: New refresh token, if the server issued one.
            expires_in: Access token lifetime in seconds.

        Raises:
            ValidationError: If expires_in is not a whole number of
                milliseconds. Nothing is written in that case.
            StorageError: If the fallback store cannot be written. If only
                the metadata write fails, the new token record is removed
                again so it is never read under the previous metadata.
        """
        await self.initialize()
        if expires_in is None:
            expires_in = DEFAULT_EXPIRES_IN_SECONDS

        async with self._lock:
            codec = self._require_codec()
            metadata = self._build_metadata(expires_in)
            encrypted_access = codec.encrypt(access_token)
            encrypted_refresh = codec.encrypt(refresh_token) if refresh_token else None

            storage = await self._write_record(encrypted_access, encrypted_refresh)
            try:
                await self._store.set(TOKEN_METADATA_KEY, metadata.to_record())
            except StorageError:
                logger.error("Metadata write failed, discarding the new token record")
                await self._discard_record()
                raise

        if storage == STORAGE_FILE:
            logger.info("Tokens stored securely in encrypted file storage")
        else:
            logger.info("Tokens stored in OS keystore")
        self._audit.log_auth_event(
            "store_tokens",
            details={
                "storage": storage,
                "expires_in": expires_in,
                "has_refresh_token": refresh_token is not None,
            },
        )

    async def _write_record(
        self, encrypted_access: str, encrypted_refresh: str | None
    ) -> str:
        """Write the whole record to exactly one tier and clear the other."""
        if self._keystore_status is KeystoreStatus.AVAILABLE:
            try:
                await self._keystore.set(ACCESS_TOKEN_ACCOUNT, encrypted_access)
                if encrypted_refresh is not None:
                    await self._keystore.set(REFRESH_TOKEN_ACCOUNT, encrypted_refresh)
                else:
                    await self._keystore.delete(REFRESH_TOKEN_ACCOUNT)
            except KeystoreError as e:
                logger.warning(
                    "Keystore write failed, using encrypted file storage: %s", e
                )
                await self._discard_keystore_record()
            else:
                await self._store.delete(FALLBACK_ACCESS_TOKEN_KEY)
                await self._store.delete(FALLBACK_REFRESH_TOKEN_KEY)
                return STORAGE_KEYSTORE

        await self._store.set(FALLBACK_ACCESS_TOKEN_KEY, encrypted_access)
        if encrypted_refresh is not None:
            await self._store.set(FALLBACK_REFRESH_TOKEN_KEY, encrypted_refresh)
        else:
            await self._store.delete(FALLBACK_REFRESH_TOKEN_KEY)
        return STORAGE_FILE

    @staticmethod
    def _build_metadata(expires_in: int) -> TokenMetadata:
        issued_at = now_ms()
        try:
            return TokenMetadata(
                access_token_expiry=issued_at + expires_in * 1000,
                refresh_token_expiry=issued_at + REFRESH_TOKEN_TTL_MS,
                last_refresh=issued_at,
            )
        except (TypeError, PydanticValidationError) as e:
            raise ValidationError(
                "Token lifetime must be a whole number of milliseconds",
                field="expires_in",
                details={"expires_in": repr(expires_in)},
            ) from e

    async def _discard_keystore_record(self) -> None:
        """Best-effort removal of keystore token entries."""
        for account in (ACCESS_TOKEN_ACCOUNT, REFRESH_TOKEN_ACCOUNT):
            try:
                await self._keystore.delete(account)
            except KeystoreError as e:
                logger.debug("Could not delete keystore entry %s: %s", account, e)

    async def _discard_record(self) -> None:
        """Best-effort removal of the token record from both tiers."""
        if self._keystore_status is KeystoreStatus.AVAILABLE:
            await self._discard_keystore_record()

        for key in (FALLBACK_ACCESS_TOKEN_KEY, FALLBACK_REFRESH_TOKEN_KEY):
            try:
                await self._store.delete(key)
            except StorageError as e:
                logger.warning("Could not delete fallback entry %s: %s", key, e)

    async def _load_metadata(self) -> TokenMetadata:
        raw = await self._store.get(TOKEN_METADATA_KEY)
        if raw is None:
            raise NoMetadataError("No token metadata found")

        try:
            return TokenMetadata.model_validate(raw)
        except PydanticValidationError as e:
            logger.error("Token metadata is corrupted: %s", e)
            raise StorageError(
                "Token metadata is corrupted",
                details={"error_count": e.error_count()},
            ) from e

    async def _read_secret(self, account: str, fallback_key: str) -> str | None:
        """Read and decrypt a token from the keystore, then the fallback store."""
        codec = self._require_codec()

        if self._keystore_status is KeystoreStatus.AVAILABLE:
            try:
                blob = await self._keystore.get(account)
            except KeystoreError as e:
                logger.warning("Keystore read failed, trying file storage: %s", e)
                blob = None
            if blob:
                return codec.decrypt(blob)

        blob = await self._store.get(fallback_key)
        if blob is None:
            return None
        if not isinstance(blob, str):
            raise DecryptionError(
                "Stored token has an unexpected format",
                details={"key": fallback_key, "type": type(blob).__name__},
            )
        return codec.decrypt(blob)

    async def get_access_token(self) -> str:
        """Return the decrypted access token if it is still fresh.

        Raises:
            NoMetadataError: If tokens were never stored.
            RefreshRequiredError: If the token is inside the refresh window.
            NotFoundError: If the encrypted token is missing from both tiers.
            DecryptionError: If the token cannot be decrypted.
        """
        await self.initialize()

        async with self._lock:
            metadata = await self._load_metadata()
            if metadata.needs_refresh(now_ms()):
                raise RefreshRequiredError(
                    "Access token needs refresh",
                    details={"access_token_expiry": metadata.access_token_expiry},
                )

            token = await self._read_secret(ACCESS_TOKEN_ACCOUNT, FALLBACK_ACCESS_TOKEN_KEY)
            if token is None:
                raise NotFoundError("No access token found")
            return token

    async def get_refresh_token(self) -> str:
        """Return the decrypted refresh token if it has not expired.

        Raises:
            NoMetadataError: If tokens were never stored.
            ExpiredError: If the refresh token has expired.
            NotFoundError: If the encrypted token is missing from both tiers.
            DecryptionError: If the token cannot be decrypted.
        """
        await self.initialize()

        async with self._lock:
            metadata = await self._load_metadata()
            if metadata.refresh_expired(now_ms()):
                raise ExpiredError(
                    "Refresh token has expired",
                    details={"refresh_token_expiry": metadata.refresh_token_expiry},
                )

            token = await self._read_secret(REFRESH_TOKEN_ACCOUNT, FALLBACK_REFRESH_TOKEN_KEY)
            if token is None:
                raise NotFoundError("No refresh token found")
            return token

    async def clear_tokens(self) -> None:
        """Remove the token record from both tiers and delete metadata."""
        await self.initialize()

        async with self._lock:
            if self._keystore_status is KeystoreStatus.AVAILABLE:
                await self._discard_keystore_record()

            await self._store.delete(FALLBACK_ACCESS_TOKEN_KEY)
            await self._store.delete(FALLBACK_REFRESH_TOKEN_KEY)
            await self._store.delete(TOKEN_METADATA_KEY)

        logger.info("Cleared stored tokens")
        self._audit.log_auth_event("clear_tokens")

    async def is_authenticated(self) -> bool:
        """Whether a fresh access token is available."""
        try:
            await self.get_access_token()
        except OutlookMCPError as e:
            logger.debug("Not authenticated: %s", type(e).__name__)
            return False
        return True

    async def get_token_metadata(self) -> dict[str, Any] | None:
        """Raw stored metadata record, for diagnostics."""
        await self.initialize()
        return await self._store.get(TOKEN_METADATA_KEY)

    # -------------------------------------------------------------------------
    # PKCE
    # -------------------------------------------------------------------------

    @staticmethod
    def generate_code_verifier() -> str:
        """Generate a PKCE code verifier."""
        return pkce.generate_code_verifier()

    @staticmethod
    def generate_code_challenge(verifier: str) -> str:
        """Compute the S256 challenge for a verifier."""
        return pkce.generate_code_challenge(verifier)

    async def store_pkce_verifier(self, verifier: str) -> None:
        """Persist the verifier for the authorization attempt in progress."""
        await self.initialize()
        await self._store.set(PKCE_VERIFIER_KEY, verifier)
        self._audit.log_auth_event("pkce_verifier_stored")

    async def get_pkce_verifier(self) -> str | None:
        """Consume the stored verifier.

        The entry is deleted in the same step it is read, so a verifier can
        be handed out at most once.

        Returns:
            The verifier, or None if there is none (or it was already used).
        """
        await self.initialize()
        verifier = await self._store.pop(PKCE_VERIFIER_KEY)
        self._audit.log_auth_event(
            "pkce_verifier_consumed", success=verifier is not None
        )
        if verifier is None:
            return None
        return str(verifier)


__all__ = [
    "TokenStore",
    "TokenMetadata",
    "now_ms",
    "STORAGE_KEYSTORE",
    "STORAGE_FILE",
]
