"""
Vault Key Management — The long-lived static key, kept beside the vault.

The key file holds exactly 32 raw bytes with owner-only permissions. It is
generated on first use and never regenerated: a key file with the wrong
length is reported and left as it is.

Security Note:
    Never log key material. Only log the key file path.
"""
import os
import errno
import secrets
import logging
from pathlib import Path
from typing import Optional

from .config import expand_path
from .crypto import KEY_LENGTH
from ..exceptions import ConfigurationError, StorageError

logger = logging.getLogger("sec.vault")


def generate_key() -> bytes:
    """Generate a random 32-byte static key."""
    return secrets.token_bytes(KEY_LENGTH)


class KeyManager:
    """Owns the static key file; no other component reads or writes it."""

    def __init__(self, key_path: os.PathLike | str):
        self.key_path: Path = expand_path(key_path)
        self._key: Optional[bytes] = None

    def _read_key(self) -> Optional[bytes]:
        """Return the key file contents, or None if the file is absent."""
        try:
            with open(self.key_path, "rb") as fp:
                return fp.read()
        except FileNotFoundError:
            return None
        except OSError as err:
            raise StorageError(self.key_path, "read", err.strerror or str(err)) from err

    def _create_key(self) -> bytes:
        """Write a fresh key with mode 0600, refusing to clobber a file."""
        key = generate_key()
        parent = self.key_path.parent
        try:
            parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            fd = os.open(
                self.key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600,
            )
        except OSError as err:
            if err.errno == errno.EEXIST:
                # created concurrently by another invocation
                raise ConfigurationError(
                    f"key file {self.key_path} appeared while creating it; retry"
                ) from err
            raise StorageError(self.key_path, "create", err.strerror or str(err)) from err
        try:
            with os.fdopen(fd, "wb") as fp:
                fp.write(key)
                fp.flush()
                os.fsync(fp.fileno())
        except OSError as err:
            self.key_path.unlink(missing_ok=True)
            raise StorageError(self.key_path, "write", err.strerror or str(err)) from err
        logger.info("Created new vault key at %s", self.key_path)
        return key

    def get_or_create_key(self) -> bytes:
        """Return the static key, generating and persisting it on first run.

        Returns:
            Raw 32-byte key.

        Raises:
            ConfigurationError: If the key file exists with a length other
                than 32 bytes. The file is left untouched.
            StorageError: If the key file cannot be read or created.
        """
        if self._key is not None:
            return self._key
        key = self._read_key()
        if key is None:
            key = self._create_key()
        elif len(key) != KEY_LENGTH:
            raise ConfigurationError(
                f"invalid key file length: {self.key_path} holds {len(key)} bytes, "
                f"expected {KEY_LENGTH}; fix or move it manually"
            )
        else:
            logger.debug("Loaded vault key from %s", self.key_path)
        self._key = key
        return key
