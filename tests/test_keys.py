"""Tests for encryption key management."""

from __future__ import annotations

import hashlib

import pytest

from outlook_mcp.auth.keys import EncryptionKeyProvider, derive_fallback_key
from outlook_mcp.auth.keystore import ENCRYPTION_KEY_ACCOUNT, KeystoreStatus
from outlook_mcp.utils.encryption import key_from_base64, key_to_base64
from outlook_mcp.utils.errors import ConfigurationError


SEED = "test-client-idtest-tenant-id"


class TestDeriveFallbackKey:
    """Tests for deterministic key derivation."""

    def test_is_sha256_of_seed(self) -> None:
        """Derived key is SHA-256 of the seed."""
        assert derive_fallback_key(SEED) == hashlib.sha256(SEED.encode()).digest()

    def test_is_deterministic(self) -> None:
        """Same seed always yields the same key."""
        assert derive_fallback_key(SEED) == derive_fallback_key(SEED)

    def test_differs_per_seed(self) -> None:
        """Different installations get different keys."""
        assert derive_fallback_key("a") != derive_fallback_key("b")

    def test_empty_seed_raises(self) -> None:
        """An empty seed cannot be used."""
        with pytest.raises(ConfigurationError):
            derive_fallback_key("")


class TestEncryptionKeyProvider:
    """Tests for get_or_create_key."""

    @pytest.mark.asyncio
    async def test_unavailable_keystore_derives_key(self, make_keystore) -> None:
        """With no keystore the derived key is used and the keystore is not touched."""
        keystore = make_keystore(KeystoreStatus.UNAVAILABLE)
        keystore.fail_all = True
        provider = EncryptionKeyProvider(keystore, KeystoreStatus.UNAVAILABLE)

        assert await provider.get_or_create_key(SEED) == derive_fallback_key(SEED)

    @pytest.mark.asyncio
    async def test_returns_stored_key(self, make_keystore) -> None:
        """An existing keystore key is decoded and returned."""
        keystore = make_keystore()
        keystore.entries[ENCRYPTION_KEY_ACCOUNT] = key_to_base64(b"s" * 32)
        provider = EncryptionKeyProvider(keystore, KeystoreStatus.AVAILABLE)

        assert await provider.get_or_create_key(SEED) == b"s" * 32

    @pytest.mark.asyncio
    async def test_generates_and_stores_missing_key(self, make_keystore) -> None:
        """A missing key is generated and written to the keystore."""
        keystore = make_keystore()
        provider = EncryptionKeyProvider(keystore, KeystoreStatus.AVAILABLE)

        key = await provider.get_or_create_key(SEED)

        assert len(key) == 32
        assert key != derive_fallback_key(SEED)
        assert key_from_base64(keystore.entries[ENCRYPTION_KEY_ACCOUNT]) == key

    @pytest.mark.asyncio
    async def test_generated_key_is_reused(self, make_keystore) -> None:
        """A second provider on the same keystore finds the stored key."""
        keystore = make_keystore()
        first = await EncryptionKeyProvider(
            keystore, KeystoreStatus.AVAILABLE
        ).get_or_create_key(SEED)
        second = await EncryptionKeyProvider(
            keystore, KeystoreStatus.AVAILABLE
        ).get_or_create_key(SEED)

        assert first == second

    @pytest.mark.asyncio
    async def test_write_failure_is_swallowed(self, make_keystore) -> None:
        """A failed key write still returns the generated key."""
        keystore = make_keystore()
        keystore.fail_writes = True
        provider = EncryptionKeyProvider(keystore, KeystoreStatus.AVAILABLE)

        key = await provider.get_or_create_key(SEED)

        assert len(key) == 32
        assert ENCRYPTION_KEY_ACCOUNT not in keystore.entries

    @pytest.mark.asyncio
    async def test_read_failure_derives_key(self, make_keystore) -> None:
        """A keystore that fails on read falls back to the derived key."""
        keystore = make_keystore()
        keystore.fail_all = True
        provider = EncryptionKeyProvider(keystore, KeystoreStatus.AVAILABLE)

        assert await provider.get_or_create_key(SEED) == derive_fallback_key(SEED)

    @pytest.mark.asyncio
    async def test_invalid_stored_key_derives_key(self, make_keystore) -> None:
        """A stored key of the wrong size is not used."""
        keystore = make_keystore()
        keystore.entries[ENCRYPTION_KEY_ACCOUNT] = "c2hvcnQ="
        provider = EncryptionKeyProvider(keystore, KeystoreStatus.AVAILABLE)

        assert await provider.get_or_create_key(SEED) == derive_fallback_key(SEED)
