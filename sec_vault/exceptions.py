"""
Vault Exception Classes
"""


class VaultError(Exception):
    """Base exception for vault operations"""
    pass


class ConfigurationError(VaultError):
    """Raised when key material or settings are unusable as found"""
    pass


class FormatError(VaultError):
    """Raised when vault bytes or decrypted contents are malformed"""
    pass


class AuthenticationError(VaultError):
    """Raised when AEAD tag verification rejects the vault file"""
    pass


class PinAlreadySetError(VaultError):
    """Raised when setting a PIN on a vault that already has one"""
    pass


class UnauthorizedError(VaultError):
    """Raised when a PIN change or removal lacks a successful verification"""
    pass


class TooManyAttemptsError(VaultError):
    """Raised after the maximum number of consecutive PIN mismatches"""

    def __init__(self, attempts: int):
        super().__init__(f"too many incorrect PIN attempts ({attempts})")
        self.attempts = attempts


class StorageError(VaultError):
    """Raised when reading or writing a vault or key file fails"""

    def __init__(self, path, operation: str, reason: str):
        super().__init__(f"cannot {operation} {path}: {reason}")
        self.path = path
        self.operation = operation
