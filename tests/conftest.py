"""Pytest configuration and fixtures for Outlook MCP server tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from outlook_mcp.auth.config import AuthConfig
from outlook_mcp.auth.keystore import KeystoreAdapter, KeystoreStatus
from outlook_mcp.auth.storage import TOKEN_METADATA_KEY, FallbackStore
from outlook_mcp.auth.tokens import TokenStore
from outlook_mcp.middleware.audit_logger import AuditLogger
from outlook_mcp.utils.errors import KeystoreError


class InMemoryKeystore(KeystoreAdapter):
    """Dict-backed keystore with switchable failures."""

    def __init__(self, status: KeystoreStatus = KeystoreStatus.AVAILABLE) -> None:
        self.entries: dict[str, str] = {}
        self.status = status
        self.fail_all = False
        self.fail_writes = False
        self.fail_accounts: set[str] = set()
        self.probe_calls = 0

    def _check(self, account: str) -> None:
        if self.fail_all or account in self.fail_accounts:
            raise KeystoreError("Simulated keystore failure", details={"account": account})

    async def probe(self) -> KeystoreStatus:
        self.probe_calls += 1
        return self.status

    async def get(self, account: str) -> str | None:
        self._check(account)
        return self.entries.get(account)

    async def set(self, account: str, value: str) -> None:
        self._check(account)
        if self.fail_writes:
            raise KeystoreError("Simulated keystore write failure")
        self.entries[account] = value

    async def delete(self, account: str) -> bool:
        self._check(account)
        return self.entries.pop(account, None) is not None


async def update_metadata(store: FallbackStore, **fields: Any) -> None:
    """Overwrite fields of the stored metadata record (e.g. to backdate it)."""
    raw = await store.get(TOKEN_METADATA_KEY)
    assert raw is not None
    raw.update(fields)
    await store.set(TOKEN_METADATA_KEY, raw)


@pytest.fixture
def token_dir(tmp_path: Path) -> Path:
    """Directory for the encrypted fallback store."""
    return tmp_path / "tokens"


@pytest.fixture
def auth_config(token_dir: Path) -> AuthConfig:
    """Auth configuration pointing at a temporary token directory."""
    return AuthConfig(
        client_id="test-client-id",
        tenant_id="test-tenant-id",
        storage_dir=token_dir,
    )


@pytest.fixture
def quiet_audit() -> AuditLogger:
    """Audit logger that writes nothing."""
    return AuditLogger(enabled=False)


@pytest.fixture
def memory_keystore() -> InMemoryKeystore:
    """Working in-memory keystore."""
    return InMemoryKeystore()


@pytest.fixture
def failing_keystore() -> InMemoryKeystore:
    """Keystore that passes the probe but fails on every call."""
    keystore = InMemoryKeystore()
    keystore.fail_all = True
    return keystore


@pytest.fixture
def fallback_store(token_dir: Path) -> FallbackStore:
    """Fallback store in the temporary token directory."""
    return FallbackStore(token_dir)


@pytest.fixture
def token_store(
    auth_config: AuthConfig,
    memory_keystore: InMemoryKeystore,
    fallback_store: FallbackStore,
    quiet_audit: AuditLogger,
) -> TokenStore:
    """TokenStore backed by a working keystore."""
    return TokenStore(
        auth_config,
        keystore=memory_keystore,
        store=fallback_store,
        audit=quiet_audit,
    )


@pytest.fixture
def file_only_store(
    auth_config: AuthConfig,
    failing_keystore: InMemoryKeystore,
    fallback_store: FallbackStore,
    quiet_audit: AuditLogger,
) -> TokenStore:
    """TokenStore whose keystore fails on every call."""
    return TokenStore(
        auth_config,
        keystore=failing_keystore,
        store=fallback_store,
        audit=quiet_audit,
    )


@pytest.fixture
def make_keystore() -> type[InMemoryKeystore]:
    """Factory for in-memory keystores."""
    return InMemoryKeystore


@pytest.fixture
def edit_metadata():
    """Helper that overwrites stored metadata fields."""
    return update_metadata
