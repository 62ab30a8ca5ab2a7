"""Vault engine — Encrypted secret storage gated by an optional PIN.

Security Note (Threat Model):
    The static key lives beside the vault on the same machine, and the whole
    vault is decrypted before the PIN is checked. The PIN therefore gates
    this tool's willingness to show or change secrets; it does not protect
    confidentiality against anyone who can read the key file. Protection
    against local filesystem or process-memory access is out of scope.
"""

from .config import VaultConfig, expand_path
from .crypto import encrypt, decrypt
from .engine import VaultEngine
from .keys import KeyManager, generate_key
from .pin import PinChallenge, PinGuard, PinSource, PinState, TerminalPinSource
from .store import VaultStore

__all__ = [
    "VaultConfig",
    "expand_path",
    "encrypt",
    "decrypt",
    "VaultEngine",
    "KeyManager",
    "generate_key",
    "PinChallenge",
    "PinGuard",
    "PinSource",
    "PinState",
    "TerminalPinSource",
    "VaultStore",
]
