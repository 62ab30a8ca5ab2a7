"""
Vault Crypto Core — Authenticated encryption and serialization of vault contents.

The whole vault is one AEAD unit:
    serialize(contents) → XChaCha20-Poly1305(static key) → [nonce 24B][ciphertext][tag 16B]

Security Note:
    Never log plaintext or ciphertext values.
    Nonces are random 192-bit; collisions are negligible for the lifetime of a
    vault, so no nonce counter is persisted.
"""
import logging
from collections.abc import Mapping
from typing import Any

import orjson
from Crypto.Cipher import ChaCha20_Poly1305
from Crypto.Random import get_random_bytes

from ..data import VaultContents
from ..exceptions import AuthenticationError, ConfigurationError, FormatError

logger = logging.getLogger("sec.vault")

NONCE_SIZE = 24  # 192-bit nonce selects XChaCha20
TAG_SIZE = 16  # Poly1305 tag
KEY_LENGTH = 32  # 256-bit static key


def _new_cipher(key: bytes, nonce: bytes) -> Any:
    """Return an XChaCha20-Poly1305 cipher object for one message."""
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_LENGTH:
        raise ConfigurationError(
            f"vault key must be exactly {KEY_LENGTH} bytes"
        )
    return ChaCha20_Poly1305.new(key=bytes(key), nonce=nonce)


# ---------------------------------------------------------------------------
# Contents serialization
# ---------------------------------------------------------------------------

def serialize_contents(contents: VaultContents) -> bytes:
    """Serialize vault contents to canonical bytes for encryption.

    The flat form is a JSON object of string → string, with the PIN verifier
    under the reserved name. Keys are sorted so equal contents always yield
    equal plaintext.

    Args:
        contents: Vault contents to serialize.

    Returns:
        orjson-encoded bytes.

    Raises:
        FormatError: If a name or value cannot be encoded as UTF-8.
    """
    try:
        return orjson.dumps(contents.to_mapping(), option=orjson.OPT_SORT_KEYS)
    except orjson.JSONEncodeError as err:
        raise FormatError(f"vault contents cannot be serialized: {err}") from err


def deserialize_contents(data: bytes) -> VaultContents:
    """Parse decrypted bytes back into vault contents.

    Args:
        data: Plaintext produced by serialize_contents.

    Returns:
        Reconstructed VaultContents.

    Raises:
        FormatError: If data is not a JSON object mapping strings to strings.
    """
    try:
        parsed = orjson.loads(data)
    except orjson.JSONDecodeError as err:
        raise FormatError(f"vault contents are not valid JSON: {err}") from err
    if parsed is None:
        # empty vault written as null
        return VaultContents()
    if not isinstance(parsed, Mapping):
        raise FormatError(
            f"vault contents must be a JSON object, got {type(parsed).__name__}"
        )
    for name, value in parsed.items():
        if not isinstance(value, str):
            raise FormatError(
                f"value of {name!r} must be a string, got {type(value).__name__}"
            )
    return VaultContents.from_mapping(parsed)


def export_plaintext(contents: VaultContents) -> bytes:
    """Render the secrets as indented JSON for export.

    The PIN verifier is never included.

    Raises:
        FormatError: If a name or value cannot be encoded as UTF-8.
    """
    try:
        return orjson.dumps(
            dict(contents), option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS,
        )
    except orjson.JSONEncodeError as err:
        raise FormatError(f"vault contents cannot be serialized: {err}") from err


# ---------------------------------------------------------------------------
# Vault encryption
# ---------------------------------------------------------------------------

def encrypt(contents: VaultContents, key: bytes) -> bytes:
    """Encrypt vault contents under the static key.

    Format: [nonce 24B][ciphertext][Poly1305 tag 16B]

    Args:
        contents: Vault contents to encrypt.
        key: Raw 32-byte static key.

    Returns:
        Vault file bytes.

    Raises:
        ConfigurationError: If key is not 32 bytes.
    """
    nonce = get_random_bytes(NONCE_SIZE)
    cipher = _new_cipher(key, nonce)
    ciphertext, tag = cipher.encrypt_and_digest(serialize_contents(contents))
    return nonce + ciphertext + tag


def decrypt(data: bytes, key: bytes) -> VaultContents:
    """Decrypt and authenticate vault file bytes.

    Args:
        data: Vault file bytes in format [nonce 24B][ciphertext][tag 16B].
        key: Raw 32-byte static key.

    Returns:
        Decrypted VaultContents.

    Raises:
        FormatError: If data is shorter than a nonce, or the authenticated
            plaintext is not a valid contents document.
        AuthenticationError: If the tag does not verify (wrong key,
            corruption, or tampering).
        ConfigurationError: If key is not 32 bytes.
    """
    if len(data) < NONCE_SIZE:
        raise FormatError(
            f"vault data too short: {len(data)} bytes "
            f"(minimum {NONCE_SIZE})"
        )
    nonce = data[:NONCE_SIZE]
    cipher = _new_cipher(key, nonce)
    if len(data) < NONCE_SIZE + TAG_SIZE:
        # no room for a tag, so nothing can authenticate
        raise AuthenticationError("vault authentication failed")
    ciphertext = data[NONCE_SIZE:-TAG_SIZE]
    tag = data[-TAG_SIZE:]
    try:
        plaintext = cipher.decrypt_and_verify(ciphertext, tag)
    except ValueError as err:
        raise AuthenticationError("vault authentication failed") from err
    return deserialize_contents(plaintext)
