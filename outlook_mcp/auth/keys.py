"""Encryption key management for token storage.

The 32-byte token encryption key is created once per installation:

1. If the OS keystore is available, the key lives there (base64).
   A missing key is generated and written back best-effort.
2. If the keystore is unavailable or cannot be read, the key is derived
   deterministically as SHA-256 of the installation seed, so the same
   installation always rederives the same key without write access to
   any secret store.

The derived key is weaker than a random one and is never rotated.
"""

from __future__ import annotations

import hashlib
import logging

from outlook_mcp.auth.keystore import (
    ENCRYPTION_KEY_ACCOUNT,
    KeystoreAdapter,
    KeystoreStatus,
)
from outlook_mcp.utils.encryption import (
    KEY_SIZE_BYTES,
    generate_key,
    key_from_base64,
    key_to_base64,
)
from outlook_mcp.utils.errors import ConfigurationError, KeystoreError, ValidationError

logger = logging.getLogger(__name__)


def derive_fallback_key(installation_seed: str) -> bytes:
    """Derive the deterministic fallback key for an installation.

    Args:
        installation_seed: Stable identifier (client id + tenant id).

    Returns:
        SHA-256 digest of the seed (32 bytes).

    Raises:
        ConfigurationError: If the seed is empty.
    """
    if not installation_seed:
        raise ConfigurationError(
            "Cannot derive encryption key - installation seed is empty",
            details={"hint": "Set AZURE_CLIENT_ID"},
        )

    key = hashlib.sha256(installation_seed.encode("utf-8")).digest()
    if len(key) != KEY_SIZE_BYTES:
        raise ConfigurationError(
            "Derived encryption key has unexpected length",
            details={"expected_length": KEY_SIZE_BYTES, "actual_length": len(key)},
        )
    return key


class EncryptionKeyProvider:
    """Obtains or creates the symmetric key used by CipherCodec.

    Attributes:
        _keystore: Keystore adapter holding the key when available.
        _status: Result of the keystore probe done by the owner.
    """

    def __init__(self, keystore: KeystoreAdapter, status: KeystoreStatus) -> None:
        self._keystore = keystore
        self._status = status

    async def get_or_create_key(self, installation_seed: str) -> bytes:
        """Return the installation's encryption key.

        Never fails while the seed is non-empty: every keystore problem
        resolves to the deterministic fallback key.

        Args:
            installation_seed: Stable identifier used for fallback derivation.

        Returns:
            A 32-byte encryption key.
        """
        if self._status is KeystoreStatus.UNAVAILABLE:
            logger.debug("Keystore unavailable, deriving fallback encryption key")
            return derive_fallback_key(installation_seed)

        try:
            stored = await self._keystore.get(ENCRYPTION_KEY_ACCOUNT)
        except KeystoreError as e:
            logger.warning("Keystore read failed, deriving fallback key: %s", e)
            return derive_fallback_key(installation_seed)

        if stored:
            try:
                return key_from_base64(stored)
            except ValidationError as e:
                logger.warning("Stored encryption key is invalid, deriving fallback key: %s", e)
                return derive_fallback_key(installation_seed)

        key = generate_key()
        try:
            await self._keystore.set(ENCRYPTION_KEY_ACCOUNT, key_to_base64(key))
            logger.info("Generated new encryption key and stored it in the OS keystore")
        except KeystoreError as e:
            logger.warning("Could not persist new encryption key to keystore: %s", e)
        return key


__all__ = [
    "EncryptionKeyProvider",
    "derive_fallback_key",
]
