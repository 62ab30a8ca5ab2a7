"""
VaultStore — The encrypted vault file on disk.

Loads and saves VaultContents through the crypto core. Saves are atomic:
bytes go to a temporary file in the destination directory, are fsynced, and
then renamed over the vault, so an interrupted save never leaves a truncated
or half-written vault behind.

Known limitation:
    There is no inter-process locking. Two invocations saving the same
    vault race, and the last rename wins.
"""
import os
import logging
import tempfile
from pathlib import Path

from .config import expand_path
from .crypto import encrypt, decrypt
from ..data import VaultContents
from ..exceptions import StorageError

logger = logging.getLogger("sec.vault")


class VaultStore:
    """Reads and writes one encrypted vault file per call."""

    def load(self, path: os.PathLike | str, key: bytes) -> VaultContents:
        """Load and decrypt the vault at ``path``.

        A missing file is a first run and yields empty contents.

        Args:
            path: Vault file path.
            key: Raw 32-byte static key.

        Returns:
            Decrypted VaultContents.

        Raises:
            FormatError, AuthenticationError: Propagated from decryption.
            StorageError: If the file exists but cannot be read.
        """
        path = expand_path(path)
        try:
            with open(path, "rb") as fp:
                data = fp.read()
        except FileNotFoundError:
            logger.debug("No vault at %s, starting empty", path)
            return VaultContents()
        except OSError as err:
            raise StorageError(path, "read", err.strerror or str(err)) from err
        contents = decrypt(data, key)
        logger.debug("Vault loaded from %s: %d secret(s)", path, len(contents))
        return contents

    def save(self, path: os.PathLike | str, contents: VaultContents, key: bytes) -> None:
        """Encrypt ``contents`` and atomically replace the vault at ``path``.

        Args:
            path: Vault file path.
            contents: Contents to persist.
            key: Raw 32-byte static key.

        Raises:
            ConfigurationError: If key is not 32 bytes.
            StorageError: If writing or renaming fails. The previous vault
                file, if any, is left intact.
        """
        path = expand_path(path)
        data = encrypt(contents, key)
        self._write_atomic(path, data)
        contents.is_changed = False
        logger.debug("Vault saved to %s: %d secret(s)", path, len(contents))

    @staticmethod
    def _write_atomic(path: Path, data: bytes) -> None:
        """Write bytes to a sibling temp file, fsync, and rename over path.

        mkstemp creates the file with mode 0600, which the rename keeps.
        """
        directory = path.parent
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=directory, prefix=f".{path.name}.", suffix=".tmp",
            )
        except OSError as err:
            raise StorageError(path, "write", err.strerror or str(err)) from err
        try:
            with os.fdopen(fd, "wb") as fp:
                fp.write(data)
                fp.flush()
                os.fsync(fp.fileno())
            os.replace(tmp_name, path)
        except OSError as err:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(path, "write", err.strerror or str(err)) from err
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
