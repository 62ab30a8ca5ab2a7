"""
VaultEngine — The operations consumed by the command line.

Provides the public API for the vault:
- ``unlock_and_load()`` — key → decrypt vault → verify PIN if one is set
- ``get(contents, name)`` / ``list_names(contents)`` — read secrets
- ``set(contents, name, value)`` / ``delete(contents, name)`` — mutate and persist
- ``set_pin`` / ``change_pin`` / ``remove_pin`` — manage the PIN and persist
- ``export_plaintext`` / ``import_plaintext`` — plaintext JSON interchange

Every mutation is applied to a copy, saved atomically, and only then
committed to the caller's contents, so a failed save leaves memory and disk
as they were.

Security Note:
    Never log secret values. Only log names, paths, and operations.
"""
import os
import logging
from collections.abc import Callable
from typing import Optional

from .config import VaultConfig, expand_path
from .keys import KeyManager
from .pin import PinChallenge, PinGuard, PinSource, TerminalPinSource
from .crypto import deserialize_contents, export_plaintext as render_plaintext
from .store import VaultStore
from ..data import VaultContents
from ..exceptions import StorageError

logger = logging.getLogger("sec.vault")


class VaultEngine:
    """Orchestrates key management, storage, and PIN gating.

    One engine serves one command invocation: it remembers the vault path
    and the PIN grant obtained by ``unlock_and_load()``.
    """

    def __init__(
        self,
        config: Optional[VaultConfig] = None,
        pin_source: Optional[PinSource] = None,
    ):
        self.config = config or VaultConfig.from_env()
        self.keys = KeyManager(self.config.key_path)
        self.store = VaultStore()
        self.guard = PinGuard.from_config(self.config)
        self.pin_source = pin_source or TerminalPinSource()
        self.path = self.config.vault_path
        self._grant: Optional[PinChallenge] = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def unlock_and_load(self, path: Optional[os.PathLike | str] = None) -> VaultContents:
        """Load the vault and verify the PIN if one is set.

        Args:
            path: Vault file; defaults to the configured ``vault_path``.

        Returns:
            Decrypted VaultContents.

        Raises:
            ConfigurationError: If the key file is unusable.
            FormatError, AuthenticationError: If the vault cannot be decrypted.
            TooManyAttemptsError: If PIN verification fails.
            StorageError: On I/O failure.
        """
        if path is not None:
            self.path = expand_path(path)
        key = self.keys.get_or_create_key()
        contents = self.store.load(self.path, key)
        if self.guard.is_set(contents):
            self._grant = self.guard.verify(contents, self.pin_source)
        else:
            self._grant = self.guard.challenge(contents)
        return contents

    # ------------------------------------------------------------------
    # Persistence helper
    # ------------------------------------------------------------------

    def _commit(
        self, contents: VaultContents, mutate: Callable[[VaultContents], None],
    ) -> None:
        """Apply ``mutate`` to a copy, save it, then update ``contents``."""
        updated = contents.copy()
        mutate(updated)
        self.store.save(self.path, updated, self.keys.get_or_create_key())
        contents.replace_with(updated)

    # ------------------------------------------------------------------
    # Secrets
    # ------------------------------------------------------------------

    def get(self, contents: VaultContents, name: str) -> Optional[str]:
        """Return the secret value, or None if absent."""
        return contents.get(name)

    def set(self, contents: VaultContents, name: str, value: str) -> None:
        """Store a secret and persist the vault.

        Raises:
            ValueError: If name is empty or reserved.
        """
        def _set(updated: VaultContents) -> None:
            updated[name] = value

        self._commit(contents, _set)
        logger.debug("Vault set: key=%s", name)

    def delete(self, contents: VaultContents, name: str) -> bool:
        """Delete a secret and persist the vault.

        Deleting an absent secret is a no-op and writes nothing.

        Returns:
            True if the secret existed.
        """
        if name not in contents:
            logger.debug("Vault delete: key=%s absent", name)
            return False

        def _delete(updated: VaultContents) -> None:
            del updated[name]

        self._commit(contents, _delete)
        logger.debug("Vault delete: key=%s", name)
        return True

    def list_names(self, contents: VaultContents) -> list[str]:
        """Secret names, never including the reserved PIN entry."""
        return contents.names()

    # ------------------------------------------------------------------
    # PIN management
    # ------------------------------------------------------------------

    def _grant_for(self, contents: VaultContents) -> PinChallenge:
        """Reuse the unlock grant if it still matches, else verify again."""
        if self._grant is not None and self._grant.grants(contents):
            return self._grant
        self._grant = self.guard.verify(contents, self.pin_source)
        return self._grant

    def set_pin(self, contents: VaultContents, pin: str) -> None:
        """Install a PIN and persist.

        Raises:
            PinAlreadySetError: If the vault already has a PIN.
        """
        self._commit(contents, lambda updated: self.guard.set_pin(updated, pin))

    def change_pin(self, contents: VaultContents, pin: str) -> None:
        """Replace the PIN and persist; verifies the current PIN if needed."""
        grant = self._grant_for(contents)
        self._commit(
            contents, lambda updated: self.guard.change_pin(updated, pin, grant),
        )

    def remove_pin(self, contents: VaultContents) -> None:
        """Remove the PIN and persist; verifies the current PIN if needed."""
        grant = self._grant_for(contents)
        self._commit(contents, lambda updated: self.guard.remove_pin(updated, grant))
        self._grant = self.guard.challenge(contents)

    # ------------------------------------------------------------------
    # Plaintext interchange
    # ------------------------------------------------------------------

    def export_plaintext(self, contents: VaultContents) -> bytes:
        """Return every secret as indented JSON, without the PIN verifier.

        Raises:
            TooManyAttemptsError: If a needed PIN verification fails.
        """
        self._grant_for(contents)
        logger.debug("Vault export: %d secret(s)", len(contents))
        return render_plaintext(contents)

    def import_plaintext(self, contents: VaultContents, path: os.PathLike | str) -> int:
        """Merge a plaintext JSON file of secrets into the vault and persist.

        Imported values replace existing ones with the same name. A reserved
        PIN entry in the file is ignored.

        Args:
            contents: Unlocked vault contents.
            path: Plaintext JSON object mapping names to values.

        Returns:
            Number of secrets imported.

        Raises:
            StorageError: If the file cannot be read.
            FormatError: If the file is not a JSON object of strings.
            ValueError: If the file holds an empty name.
            TooManyAttemptsError: If a needed PIN verification fails.
        """
        self._grant_for(contents)
        path = expand_path(path)
        try:
            with open(path, "rb") as fp:
                data = fp.read()
        except OSError as err:
            raise StorageError(path, "read", err.strerror or str(err)) from err
        imported = deserialize_contents(data)
        if not imported:
            logger.debug("Vault import: nothing in %s", path)
            return 0

        def _merge(updated: VaultContents) -> None:
            for name, value in imported.items():
                updated[name] = value

        self._commit(contents, _merge)
        logger.info("Imported %d secret(s) from %s", len(imported), path)
        return len(imported)
