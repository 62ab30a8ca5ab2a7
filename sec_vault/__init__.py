"""sec — a local encrypted vault of named secrets, optionally gated by a PIN."""
from .version import __version__
from .data import PIN_KEY, VaultContents
from .exceptions import (
    VaultError,
    ConfigurationError,
    FormatError,
    AuthenticationError,
    PinAlreadySetError,
    UnauthorizedError,
    TooManyAttemptsError,
    StorageError,
)
from .vault import VaultConfig, VaultEngine

__all__ = [
    "__version__",
    "PIN_KEY",
    "VaultContents",
    "VaultError",
    "ConfigurationError",
    "FormatError",
    "AuthenticationError",
    "PinAlreadySetError",
    "UnauthorizedError",
    "TooManyAttemptsError",
    "StorageError",
    "VaultConfig",
    "VaultEngine",
]
