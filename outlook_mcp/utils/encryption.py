"""AES-256-GCM encryption utilities for secure token storage.

This module provides the cipher used for every secret the credential core
persists. Secrets are strings in and strings out: the encrypted form is
``hex(iv) + ":" + hex(ciphertext)``, which is safe to put in a keystore
entry or a JSON file.

GCM mode provides both confidentiality and integrity protection, so a
wrong key or a tampered blob fails loudly with DecryptionError instead of
yielding garbage plaintext.

Security considerations:
- Keys must be 256 bits (32 bytes) for AES-256
- A fresh random 16-byte IV is generated for every encryption
- Never reuse an IV with the same key
"""

from __future__ import annotations

import base64
import binascii
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from outlook_mcp.utils.errors import DecryptionError, ValidationError

logger = logging.getLogger(__name__)

# Constants
KEY_SIZE_BITS = 256
KEY_SIZE_BYTES = KEY_SIZE_BITS // 8  # 32 bytes
IV_SIZE_BYTES = 16
BLOB_SEPARATOR = ":"


def generate_key() -> bytes:
    """Generate a cryptographically secure 256-bit encryption key.

    Returns:
        A 32-byte (256-bit) key suitable for AES-256-GCM encryption.

    Example:
        >>> key = generate_key()
        >>> len(key)
        32
    """
    return AESGCM.generate_key(bit_length=KEY_SIZE_BITS)


def key_to_base64(key: bytes) -> str:
    """Encode a key for storage in a text-only secret store."""
    _validate_key(key)
    return base64.b64encode(key).decode("ascii")


def key_from_base64(encoded: str) -> bytes:
    """Decode a base64-encoded encryption key.

    Args:
        encoded: Base64 text as produced by key_to_base64().

    Returns:
        A 32-byte encryption key.

    Raises:
        ValidationError: If the text is not valid base64 or does not decode
            to exactly 32 bytes.
    """
    try:
        key = base64.b64decode(encoded.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValidationError(
            "Invalid base64 key encoding",
            field="key",
            details={"error_message": str(e)},
        ) from e

    _validate_key(key)
    return key


class CipherCodec:
    """Symmetric encrypt/decrypt of opaque secret strings.

    Holds the key only; no plaintext outlives a call.

    Example:
        >>> codec = CipherCodec(generate_key())
        >>> blob = codec.encrypt("eyJ0eXAi...")
        >>> codec.decrypt(blob)
        'eyJ0eXAi...'
    """

    def __init__(self, key: bytes) -> None:
        """Initialize the codec.

        Args:
            key: A 32-byte (256-bit) encryption key.

        Raises:
            ValidationError: If the key is not exactly 32 bytes.
        """
        _validate_key(key)
        self._aesgcm = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a string into ``ivHex:cipherHex`` form.

        Args:
            plaintext: The secret to encrypt.

        Returns:
            The encrypted blob. The ciphertext part includes the GCM tag.
        """
        iv = os.urandom(IV_SIZE_BYTES)
        ciphertext = self._aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)
        return f"{iv.hex()}{BLOB_SEPARATOR}{ciphertext.hex()}"

    def decrypt(self, blob: str) -> str:
        """Decrypt an ``ivHex:cipherHex`` blob.

        Args:
            blob: Encrypted blob as produced by encrypt().

        Returns:
            The original plaintext.

        Raises:
            DecryptionError: If the blob is malformed, the IV has the wrong
                length, or authentication fails (wrong key or tampering).
        """
        iv_hex, sep, cipher_hex = blob.partition(BLOB_SEPARATOR)
        if not sep or not iv_hex or not cipher_hex:
            raise DecryptionError(
                "Invalid encrypted token format - expected ivHex:cipherHex",
                details={"length": len(blob)},
            )

        try:
            iv = bytes.fromhex(iv_hex)
            ciphertext = bytes.fromhex(cipher_hex)
        except ValueError as e:
            raise DecryptionError(
                "Invalid encrypted token format - invalid hex encoding",
                details={"error_message": str(e)},
            ) from e

        if len(iv) != IV_SIZE_BYTES:
            raise DecryptionError(
                f"Invalid IV length: expected {IV_SIZE_BYTES} bytes, got {len(iv)}",
                details={"expected_length": IV_SIZE_BYTES, "actual_length": len(iv)},
            )

        try:
            plaintext = self._aesgcm.decrypt(iv, ciphertext, None)
        except InvalidTag as e:
            logger.error("Token decryption failed - key mismatch or corrupted data")
            raise DecryptionError(
                "Failed to decrypt data - invalid key or corrupted ciphertext",
                details={"error_type": type(e).__name__},
            ) from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionError(
                "Decrypted data is not valid UTF-8",
                details={"error_message": str(e)},
            ) from e


def _validate_key(key: bytes) -> None:
    """Validate that the key is the correct length for AES-256.

    Args:
        key: The encryption key to validate.

    Raises:
        ValidationError: If the key is not exactly 32 bytes.
    """
    if len(key) != KEY_SIZE_BYTES:
        raise ValidationError(
            f"Invalid key length: expected {KEY_SIZE_BYTES} bytes, got {len(key)}",
            field="key",
            details={"expected_length": KEY_SIZE_BYTES, "actual_length": len(key)},
        )


__all__ = [
    "CipherCodec",
    "generate_key",
    "key_to_base64",
    "key_from_base64",
    "KEY_SIZE_BYTES",
    "IV_SIZE_BYTES",
]
