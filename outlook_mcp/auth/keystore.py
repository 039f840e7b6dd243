"""OS keystore adapters for secret storage.

The credential core keeps three secrets in the platform keystore (macOS
Keychain, Windows Credential Manager, Secret Service on Linux) when one
is reachable:

- the base64-encoded encryption key,
- the encrypted access token,
- the encrypted refresh token.

Each entry is addressed by a fixed service name and a per-purpose account
name. Availability is probed once at initialization and reported as an
explicit KeystoreStatus so callers branch on it deliberately.

All adapter methods are async. The keyring library is synchronous, so
calls run in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum

import keyring
import keyring.errors
from keyring.backends import fail, null

from outlook_mcp.utils.errors import KeystoreError

logger = logging.getLogger(__name__)

# Per-purpose account names under the configured service
ENCRYPTION_KEY_ACCOUNT = "encryption-key"
ACCESS_TOKEN_ACCOUNT = "access-token"
REFRESH_TOKEN_ACCOUNT = "refresh-token"

_PROBE_ACCOUNT = "availability-probe"


class KeystoreStatus(str, Enum):
    """Result of probing the OS keystore.

    Attributes:
        AVAILABLE: Keystore reachable; secrets are stored there.
        UNAVAILABLE: Sandboxed or headless; the encrypted file store is used.
    """

    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class KeystoreAdapter(ABC):
    """Polymorphic interface to an OS-level secret store."""

    @abstractmethod
    async def probe(self) -> KeystoreStatus:
        """Report whether the keystore can be used. Never raises."""

    @abstractmethod
    async def get(self, account: str) -> str | None:
        """Read a secret, or None if the entry does not exist.

        Raises:
            KeystoreError: If the backend fails.
        """

    @abstractmethod
    async def set(self, account: str, value: str) -> None:
        """Create or overwrite a secret.

        Raises:
            KeystoreError: If the backend fails.
        """

    @abstractmethod
    async def delete(self, account: str) -> bool:
        """Delete a secret. Returns False if it did not exist.

        Raises:
            KeystoreError: If the backend fails.
        """


class KeyringKeystore(KeystoreAdapter):
    """Keystore backed by the ``keyring`` library.

    Attributes:
        service_name: Service under which every entry is stored.

    Example:
        >>> keystore = KeyringKeystore("outlook-mcp")
        >>> if await keystore.probe() is KeystoreStatus.AVAILABLE:
        ...     await keystore.set("access-token", blob)
    """

    def __init__(self, service_name: str) -> None:
        self.service_name = service_name

    async def probe(self) -> KeystoreStatus:
        backend = keyring.get_keyring()
        # null.Keyring accepts writes and silently drops them
        if isinstance(backend, (fail.Keyring, null.Keyring)):
            logger.info("No OS keystore backend available, using encrypted file storage")
            return KeystoreStatus.UNAVAILABLE

        try:
            await self.get(_PROBE_ACCOUNT)
        except KeystoreError as e:
            logger.info("OS keystore unreachable (%s), using encrypted file storage", e)
            return KeystoreStatus.UNAVAILABLE

        logger.debug("OS keystore available: %s", type(backend).__name__)
        return KeystoreStatus.AVAILABLE

    async def get(self, account: str) -> str | None:
        try:
            return await asyncio.to_thread(
                keyring.get_password, self.service_name, account
            )
        except Exception as e:
            raise KeystoreError(
                "Failed to read from OS keystore",
                details={"account": account, "error_type": type(e).__name__},
            ) from e

    async def set(self, account: str, value: str) -> None:
        try:
            await asyncio.to_thread(
                keyring.set_password, self.service_name, account, value
            )
        except Exception as e:
            raise KeystoreError(
                "Failed to write to OS keystore",
                details={"account": account, "error_type": type(e).__name__},
            ) from e

    async def delete(self, account: str) -> bool:
        try:
            await asyncio.to_thread(
                keyring.delete_password, self.service_name, account
            )
            return True
        except keyring.errors.PasswordDeleteError:
            return False
        except Exception as e:
            raise KeystoreError(
                "Failed to delete from OS keystore",
                details={"account": account, "error_type": type(e).__name__},
            ) from e


class NullKeystore(KeystoreAdapter):
    """Keystore that is never available.

    Used when the keystore is disabled by configuration, so the credential
    core runs entirely on the encrypted file store.
    """

    async def probe(self) -> KeystoreStatus:
        return KeystoreStatus.UNAVAILABLE

    async def get(self, account: str) -> str | None:
        raise KeystoreError("OS keystore disabled", details={"account": account})

    async def set(self, account: str, value: str) -> None:
        raise KeystoreError("OS keystore disabled", details={"account": account})

    async def delete(self, account: str) -> bool:
        raise KeystoreError("OS keystore disabled", details={"account": account})


__all__ = [
    "KeystoreStatus",
    "KeystoreAdapter",
    "KeyringKeystore",
    "NullKeystore",
    "ENCRYPTION_KEY_ACCOUNT",
    "ACCESS_TOKEN_ACCOUNT",
    "REFRESH_TOKEN_ACCOUNT",
]
