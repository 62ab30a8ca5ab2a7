"""
PinGuard — PIN verifier management and bounded-retry verification.

The verifier is an Argon2id hash (argon2-cffi ``PasswordHasher``) stored in
``VaultContents.pin_verifier``. Verification is an explicit state machine:

    ATTEMPTING(n) ── match ──────────────→ AUTHORIZED
    ATTEMPTING(n) ── mismatch, n+1 < max → ATTEMPTING(n+1)
    ATTEMPTING(n) ── mismatch, n+1 = max → LOCKED

A vault with no verifier starts AUTHORIZED. An AUTHORIZED challenge is the
grant required to change or remove the PIN.

Security Note:
    The PIN gates this tool's willingness to reveal or modify secrets; it
    does not encrypt them. Anyone holding the key file can decrypt the vault.
    Never log PINs or verifiers.
"""
import abc
import enum
import logging
from typing import Optional

import click
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from .config import DEFAULT_MAX_PIN_ATTEMPTS
from ..data import VaultContents
from ..exceptions import (
    FormatError,
    PinAlreadySetError,
    TooManyAttemptsError,
    UnauthorizedError,
)

logger = logging.getLogger("sec.vault")


class PinState(enum.Enum):
    ATTEMPTING = "attempting"
    AUTHORIZED = "authorized"
    LOCKED = "locked"


class PinSource(abc.ABC):
    """Where PIN attempts come from.

    Subclasses implement ``read``; ``rejected`` is told about each mismatch.
    """

    @abc.abstractmethod
    def read(self, prompt: str) -> str:
        """Return one PIN attempt."""

    def rejected(self, remaining: int) -> None:
        pass


class TerminalPinSource(PinSource):
    """Reads PINs from the terminal without echo."""

    def read(self, prompt: str) -> str:
        return click.prompt(prompt, hide_input=True, show_default=False)

    def rejected(self, remaining: int) -> None:
        click.echo("Incorrect PIN.", err=True)


class PinChallenge:
    """One bounded verification against a fixed verifier."""

    def __init__(
        self,
        verifier: Optional[str],
        hasher: PasswordHasher,
        max_attempts: int = DEFAULT_MAX_PIN_ATTEMPTS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.verifier = verifier
        self.max_attempts = max_attempts
        self.attempts = 0
        self._hasher = hasher
        self.state = PinState.AUTHORIZED if verifier is None else PinState.ATTEMPTING

    def __repr__(self) -> str:
        return (
            f'<PinChallenge [{self.state.value}] '
            f'attempts={self.attempts}/{self.max_attempts}>'
        )

    @property
    def authorized(self) -> bool:
        return self.state is PinState.AUTHORIZED

    @property
    def remaining(self) -> int:
        if self.state is not PinState.ATTEMPTING:
            return 0
        return self.max_attempts - self.attempts

    def _matches(self, pin: str) -> bool:
        try:
            # argon2 compares digests in constant time
            return self._hasher.verify(self.verifier, pin)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError) as err:
            raise FormatError("stored PIN verifier is malformed") from err

    def submit(self, pin: str) -> PinState:
        """Check one PIN attempt and advance the state machine.

        Returns:
            The new state.

        Raises:
            TooManyAttemptsError: If the challenge is already LOCKED.
        """
        if self.state is PinState.AUTHORIZED:
            return self.state
        if self.state is PinState.LOCKED:
            raise TooManyAttemptsError(self.attempts)
        self.attempts += 1
        if self._matches(pin):
            self.state = PinState.AUTHORIZED
        elif self.attempts >= self.max_attempts:
            self.state = PinState.LOCKED
        return self.state

    def grants(self, contents: VaultContents) -> bool:
        """True if this challenge authorizes changes to ``contents``' PIN."""
        return self.authorized and self.verifier == contents.pin_verifier


class PinGuard:
    """Derives, stores, and verifies the vault PIN."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_PIN_ATTEMPTS,
        hasher: Optional[PasswordHasher] = None,
    ):
        self.max_attempts = max_attempts
        self.hasher = hasher or PasswordHasher()

    @classmethod
    def from_config(cls, config) -> "PinGuard":
        return cls(
            max_attempts=config.max_pin_attempts,
            hasher=PasswordHasher(
                time_cost=config.pin_time_cost,
                memory_cost=config.pin_memory_cost,
                parallelism=config.pin_parallelism,
            ),
        )

    def is_set(self, contents: VaultContents) -> bool:
        return contents.pin_verifier is not None

    def hash_pin(self, pin: str) -> str:
        """Return a salted Argon2id verifier for ``pin``.

        Raises:
            ValueError: If pin is empty.
        """
        if not pin:
            raise ValueError("PIN cannot be empty")
        return self.hasher.hash(pin)

    def challenge(self, contents: VaultContents) -> PinChallenge:
        """Start a verification against the current verifier."""
        return PinChallenge(contents.pin_verifier, self.hasher, self.max_attempts)

    def verify(self, contents: VaultContents, source: PinSource) -> PinChallenge:
        """Prompt for the PIN until it matches or attempts run out.

        Returns immediately, without prompting, if no PIN is set.

        Args:
            contents: Vault contents holding the verifier.
            source: Where PIN attempts are read from.

        Returns:
            An authorized PinChallenge (the grant).

        Raises:
            TooManyAttemptsError: After max_attempts consecutive mismatches.
            FormatError: If the stored verifier is malformed.
        """
        challenge = self.challenge(contents)
        while challenge.state is PinState.ATTEMPTING:
            pin = source.read("Enter PIN")
            state = challenge.submit(pin)
            if state is PinState.ATTEMPTING:
                logger.warning(
                    "Incorrect PIN (%d attempt(s) left)", challenge.remaining,
                )
                source.rejected(challenge.remaining)
        if challenge.state is PinState.LOCKED:
            logger.warning("PIN locked after %d attempt(s)", challenge.attempts)
            source.rejected(0)
            raise TooManyAttemptsError(challenge.attempts)
        return challenge

    def _require_grant(self, contents: VaultContents, grant: Optional[PinChallenge]) -> None:
        if grant is None or not grant.grants(contents):
            raise UnauthorizedError("PIN verification required")

    def set_pin(self, contents: VaultContents, pin: str) -> None:
        """Install a PIN on a vault that has none.

        Raises:
            PinAlreadySetError: If a verifier already exists.
        """
        if self.is_set(contents):
            raise PinAlreadySetError(
                "PIN already set. Use change-pin or remove-pin instead."
            )
        contents.pin_verifier = self.hash_pin(pin)
        contents.is_changed = True
        logger.info("PIN set")

    def change_pin(
        self, contents: VaultContents, pin: str, grant: Optional[PinChallenge],
    ) -> None:
        """Replace the PIN; requires a grant from ``verify``.

        Raises:
            UnauthorizedError: If grant is missing or for another verifier.
        """
        self._require_grant(contents, grant)
        contents.pin_verifier = self.hash_pin(pin)
        contents.is_changed = True
        logger.info("PIN changed")

    def remove_pin(self, contents: VaultContents, grant: Optional[PinChallenge]) -> None:
        """Remove the PIN; requires a grant from ``verify``.

        Raises:
            UnauthorizedError: If grant is missing or for another verifier.
        """
        self._require_grant(contents, grant)
        contents.pin_verifier = None
        contents.is_changed = True
        logger.info("PIN removed")
