"""
Shared pytest fixtures for the sec test suite.

Every fixture points the vault and key files at ``tmp_path`` so tests never
touch ``~/.sec.enc`` or ``~/.sec.key``, and lowers the Argon2 cost so PIN
hashing stays fast.
"""
import pytest

from sec_vault.vault import PinSource, VaultConfig, generate_key


class ScriptedPinSource(PinSource):
    """PinSource that replays a fixed list of PIN attempts."""

    def __init__(self, *pins: str):
        self.pins = list(pins)
        self.prompts = 0
        self.rejections: list[int] = []

    def read(self, prompt: str) -> str:
        self.prompts += 1
        if not self.pins:
            raise AssertionError("PIN requested but none scripted")
        return self.pins.pop(0)

    def rejected(self, remaining: int) -> None:
        self.rejections.append(remaining)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep SEC_* variables from the developer's shell out of tests."""
    for name in ("SEC_FILE", "SEC_KEY_FILE", "SEC_PIN_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config(tmp_path):
    """VaultConfig with files in tmp_path and a cheap Argon2 cost."""
    return VaultConfig(
        vault_path=tmp_path / "vault.enc",
        key_path=tmp_path / "vault.key",
        pin_time_cost=1,
        pin_memory_cost=8,
        pin_parallelism=1,
    )


@pytest.fixture
def key():
    return generate_key()


@pytest.fixture
def pins():
    """Factory for scripted PIN sources: ``pins("0000", "1234")``."""
    return ScriptedPinSource
