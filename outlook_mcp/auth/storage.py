"""Encrypted fallback store with file-based persistence.

This module provides the disk-backed key-value store used for all
non-secret metadata and, when the OS keystore is unavailable, for the
encrypted tokens themselves. Values are JSON documents, one file per key.
Secrets are encrypted by the caller before they reach this store.

Storage location: ~/.outlook-mcp/tokens/{key}.json

Security considerations:
- File permissions are set to 0600 (owner read/write only)
- Writes are atomic (temp file + rename), readers never see partial files
- Keys are sanitized to prevent path traversal attacks
- pop() claims an entry with an atomic rename, so a value can be
  consumed at most once even across processes
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import secrets
from pathlib import Path
from typing import Any

from outlook_mcp.utils.errors import StorageError

logger = logging.getLogger(__name__)

# Fixed keys used by the credential core
TOKEN_METADATA_KEY = "token-metadata"
FALLBACK_ACCESS_TOKEN_KEY = "fallback_access_token"
FALLBACK_REFRESH_TOKEN_KEY = "fallback_refresh_token"
PKCE_VERIFIER_KEY = "pkce_verifier"

_SUFFIX = ".json"


class FallbackStore:
    """File-based key-value store for token metadata and fallback secrets.

    Attributes:
        _base_dir: Directory where entry files are stored.

    Example:
        >>> store = FallbackStore(Path("/tmp/tokens"))
        >>> await store.open()
        >>> await store.set("token-metadata", {"lastRefresh": 0})
        >>> await store.get("token-metadata")
        {'lastRefresh': 0}
    """

    def __init__(self, base_dir: Path) -> None:
        """Initialize the store. No I/O happens until open().

        Args:
            base_dir: Directory for entry files.
        """
        self._base_dir = base_dir

    @property
    def base_dir(self) -> Path:
        """Directory holding the entry files."""
        return self._base_dir

    async def open(self) -> None:
        """Create the storage directory if needed. Idempotent.

        Raises:
            StorageError: If the directory cannot be created.
        """
        try:
            await asyncio.to_thread(
                self._base_dir.mkdir, mode=0o700, parents=True, exist_ok=True
            )
        except OSError as e:
            logger.error("Cannot create token directory %s: %s", self._base_dir, e)
            raise StorageError(
                "Failed to open token storage directory",
                details={"path": str(self._base_dir), "error": str(e)},
            ) from e
        logger.info("FallbackStore opened at %s", self._base_dir)

    def _entry_path(self, key: str) -> Path:
        """Get the file path for an entry.

        Only alphanumeric characters, hyphens, underscores and periods are
        kept, and leading periods are stripped so temp files and claimed
        files can never collide with an entry.

        Raises:
            StorageError: If the key contains no valid characters.
        """
        # Sanitize key to prevent path traversal
        safe_key = "".join(c for c in key if c.isalnum() or c in "-_.").lstrip(".")

        if not safe_key:
            raise StorageError(
                "Invalid storage key - contains no valid characters",
                details={"original_key": key[:50]},  # Truncate for safety
            )

        return self._base_dir / f"{safe_key}{_SUFFIX}"

    async def get(self, key: str) -> Any | None:
        """Read an entry.

        Returns:
            The stored value, or None if the entry does not exist.

        Raises:
            StorageError: If the file cannot be read or parsed.
        """
        path = self._entry_path(key)
        return await asyncio.to_thread(self._read_entry, path, key)

    async def set(self, key: str, value: Any) -> None:
        """Create or overwrite an entry atomically.

        Raises:
            StorageError: If the value cannot be serialized or written.
        """
        path = self._entry_path(key)
        await asyncio.to_thread(self._write_entry, path, key, value)

    async def delete(self, key: str) -> bool:
        """Delete an entry.

        Returns:
            True if an entry was deleted, False if none existed.

        Raises:
            StorageError: If the file cannot be removed.
        """
        path = self._entry_path(key)
        return await asyncio.to_thread(self._delete_entry, path, key)

    async def pop(self, key: str) -> Any | None:
        """Read and delete an entry in one atomic step.

        Returns:
            The stored value, or None if the entry did not exist or was
            consumed by a concurrent caller.

        Raises:
            StorageError: If the entry cannot be claimed or read.
        """
        path = self._entry_path(key)
        return await asyncio.to_thread(self._pop_entry, path, key)

    async def exists(self, key: str) -> bool:
        """Check if an entry exists."""
        path = self._entry_path(key)
        return await asyncio.to_thread(path.exists)

    async def keys(self) -> list[str]:
        """List the keys of all stored entries."""
        paths = await asyncio.to_thread(lambda: list(self._base_dir.glob(f"*{_SUFFIX}")))
        return sorted(p.name[: -len(_SUFFIX)] for p in paths if not p.name.startswith("."))

    # -------------------------------------------------------------------------
    # Blocking helpers (run in a worker thread)
    # -------------------------------------------------------------------------

    def _read_entry(self, path: Path, key: str) -> Any | None:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug("No entry found for key %s", key)
            return None
        except OSError as e:
            logger.error("Failed to read entry %s: %s", key, e)
            raise StorageError(
                f"Failed to read stored entry: {e}",
                details={"key": key, "error_type": type(e).__name__},
            ) from e

        try:
            document = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Invalid JSON in entry %s: %s", key, e)
            raise StorageError(
                "Stored entry contains invalid JSON",
                details={"key": key, "error": str(e)},
            ) from e

        if not isinstance(document, dict) or "value" not in document:
            raise StorageError(
                "Stored entry has an unexpected format",
                details={"key": key},
            )
        return document["value"]

    def _write_entry(self, path: Path, key: str, value: Any) -> None:
        tmp = path.with_name(f".{path.name}.{secrets.token_hex(4)}.tmp")
        try:
            payload = json.dumps({"key": key, "value": value}, indent=2)
        except (TypeError, ValueError) as e:
            raise StorageError(
                "Value is not JSON serializable",
                details={"key": key, "error_type": type(e).__name__},
            ) from e

        try:
            path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8")

            # Restrict permissions to owner read/write only (0600)
            tmp.chmod(0o600)
            os.replace(tmp, path)
            logger.debug("Saved entry %s", key)

        except PermissionError as e:
            logger.error("Permission denied writing entry file: %s", e)
            tmp.unlink(missing_ok=True)
            raise StorageError(
                "Permission denied writing entry file",
                details={"path": str(path), "error": str(e)},
            ) from e
        except OSError as e:
            logger.error("Failed to save entry %s: %s", key, e)
            tmp.unlink(missing_ok=True)
            raise StorageError(
                f"Failed to save entry: {e}",
                details={"key": key, "error_type": type(e).__name__},
            ) from e

    def _delete_entry(self, path: Path, key: str) -> bool:
        try:
            path.unlink()
            logger.debug("Deleted entry %s", key)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error("Failed to delete entry %s: %s", key, e)
            raise StorageError(
                f"Failed to delete entry: {e}",
                details={"key": key, "error_type": type(e).__name__},
            ) from e

    def _pop_entry(self, path: Path, key: str) -> Any | None:
        claimed = path.with_name(f".{path.name}.{secrets.token_hex(8)}.claimed")
        try:
            # Only one caller can win the rename
            os.rename(path, claimed)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(
                f"Failed to claim entry: {e}",
                details={"key": key, "error_type": type(e).__name__},
            ) from e

        try:
            return self._read_entry(claimed, key)
        finally:
            claimed.unlink(missing_ok=True)


__all__ = [
    "FallbackStore",
    "TOKEN_METADATA_KEY",
    "FALLBACK_ACCESS_TOKEN_KEY",
    "FALLBACK_REFRESH_TOKEN_KEY",
    "PKCE_VERIFIER_KEY",
]
