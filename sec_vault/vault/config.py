"""
Vault Configuration — File locations and validated tuning settings.

Reads overrides from environment variables:
    SEC_FILE = <path to the encrypted vault file>
    SEC_KEY_FILE = <path to the 32-byte static key file>
    SEC_PIN_ATTEMPTS = <integer, consecutive PIN mismatches allowed>

Security Note:
    Never log key material. Only log file paths.
"""
import os
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..exceptions import ConfigurationError

logger = logging.getLogger("sec.vault")

DEFAULT_VAULT_FILE = "~/.sec.enc"
DEFAULT_KEY_FILE = "~/.sec.key"
DEFAULT_MAX_PIN_ATTEMPTS = 3


def expand_path(path: os.PathLike | str) -> Path:
    """Expand a leading ``~`` to the current user's home directory.

    Args:
        path: Path as given on the command line or in the environment.

    Returns:
        Expanded path (not resolved; relative paths stay relative).
    """
    return Path(os.fspath(path)).expanduser()


class VaultConfig(BaseModel):
    """Validated vault configuration."""

    vault_path: Path = Field(default=DEFAULT_VAULT_FILE, validate_default=True)
    key_path: Path = Field(default=DEFAULT_KEY_FILE, validate_default=True)
    max_pin_attempts: int = Field(default=DEFAULT_MAX_PIN_ATTEMPTS, ge=1)
    # Argon2id cost for the PIN verifier; memory_cost is in KiB.
    pin_time_cost: int = Field(default=3, ge=1)
    pin_memory_cost: int = Field(default=65536, ge=8)
    pin_parallelism: int = Field(default=4, ge=1)

    @field_validator("vault_path", "key_path", mode="before")
    @classmethod
    def validate_path(cls, v):
        """Expand ``~`` in configured paths."""
        if v is None or v == "":
            raise ValueError("path cannot be empty")
        return expand_path(v)

    @model_validator(mode="after")
    def validate_distinct_files(self) -> "VaultConfig":
        """Ensure the vault file would never overwrite the key file."""
        if self.vault_path == self.key_path:
            raise ValueError(
                f"vault_path and key_path must differ (both {self.vault_path})"
            )
        if self.pin_memory_cost < 8 * self.pin_parallelism:
            raise ValueError(
                "pin_memory_cost must be at least 8 KiB per lane "
                f"({8 * self.pin_parallelism})"
            )
        return self

    @classmethod
    def from_env(cls, vault_path: Optional[str] = None, **overrides) -> "VaultConfig":
        """Create VaultConfig from defaults, environment, and explicit values.

        Explicit arguments win over the environment, which wins over defaults.

        Args:
            vault_path: Vault file path, typically from ``--file``.
            overrides: Any other VaultConfig field.

        Returns:
            Populated VaultConfig instance.

        Raises:
            ConfigurationError: If a value fails validation.
        """
        values = {}
        env_file = os.environ.get("SEC_FILE")
        if env_file:
            values["vault_path"] = env_file
        env_key = os.environ.get("SEC_KEY_FILE")
        if env_key:
            values["key_path"] = env_key
        env_attempts = os.environ.get("SEC_PIN_ATTEMPTS")
        if env_attempts:
            values["max_pin_attempts"] = env_attempts
        if vault_path:
            values["vault_path"] = vault_path
        values.update(overrides)
        try:
            config = cls(**values)
        except ValidationError as err:
            raise ConfigurationError(f"invalid configuration: {err}") from err
        logger.debug(
            "Vault config: vault=%s key=%s attempts=%d",
            config.vault_path, config.key_path, config.max_pin_attempts,
        )
        return config
