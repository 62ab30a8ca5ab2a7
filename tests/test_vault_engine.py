"""
Tests for VaultEngine.

Tests cover:
- End-to-end set / get / delete across separate engine instances
- Listing never includes the reserved PIN entry
- Idempotent delete
- PIN gating on unlock, and set / change / remove PIN persistence
- Failed saves leave memory and disk unchanged
- Key file violations abort every operation
- Plaintext export and import
"""
import os

import orjson
import pytest

from sec_vault.data import PIN_KEY, VaultContents
from sec_vault.exceptions import (
    ConfigurationError,
    FormatError,
    PinAlreadySetError,
    StorageError,
    TooManyAttemptsError,
)
from sec_vault.vault import VaultEngine
from sec_vault.vault.crypto import decrypt


@pytest.fixture
def engine(config, pins):
    return VaultEngine(config, pin_source=pins())


def _reopen(config, source):
    """A new engine, as a new command invocation would build."""
    engine = VaultEngine(config, pin_source=source)
    return engine, engine.unlock_and_load()


class TestSecrets:

    def test_first_run_is_empty(self, engine, config):
        contents = engine.unlock_and_load()
        assert engine.list_names(contents) == []
        assert config.key_path.exists()
        assert not config.vault_path.exists()

    def test_end_to_end(self, config, pins):
        engine, contents = _reopen(config, pins())
        engine.set(contents, "db-password", "s3cr3t")

        engine, contents = _reopen(config, pins())
        assert engine.get(contents, "db-password") == "s3cr3t"
        engine.delete(contents, "db-password")

        engine, contents = _reopen(config, pins())
        assert engine.get(contents, "db-password") is None

    def test_set_updates_caller_contents(self, engine):
        contents = engine.unlock_and_load()
        engine.set(contents, "a", "1")
        assert contents["a"] == "1"
        assert contents.is_changed is False

    def test_set_overwrites(self, config, engine, pins):
        contents = engine.unlock_and_load()
        engine.set(contents, "a", "1")
        engine.set(contents, "a", "2")
        _, reloaded = _reopen(config, pins())
        assert reloaded == {"a": "2"}

    def test_set_rejects_reserved_name(self, engine):
        contents = engine.unlock_and_load()
        with pytest.raises(ValueError):
            engine.set(contents, PIN_KEY, "x")

    def test_delete_absent_is_noop(self, engine, config):
        contents = engine.unlock_and_load()
        engine.set(contents, "keep", "me")
        before = config.vault_path.read_bytes()
        assert engine.delete(contents, "missing") is False
        assert engine.delete(contents, "missing") is False
        assert contents == {"keep": "me"}
        # nothing rewritten
        assert config.vault_path.read_bytes() == before

    def test_delete_reports_existing(self, engine):
        contents = engine.unlock_and_load()
        engine.set(contents, "a", "1")
        assert engine.delete(contents, "a") is True
        assert "a" not in contents

    def test_delete_stored_empty_name(self, engine, config, pins):
        key = engine.keys.get_or_create_key()
        engine.store.save(
            config.vault_path, VaultContents.from_mapping({"": "x", "a": "1"}), key,
        )
        contents = engine.unlock_and_load()
        assert engine.list_names(contents) == ["", "a"]
        assert engine.delete(contents, "") is True
        _, reloaded = _reopen(config, pins())
        assert reloaded == {"a": "1"}

    def test_set_rejects_unencodable_value(self, engine, config):
        contents = engine.unlock_and_load()
        engine.set(contents, "a", "1")
        before = config.vault_path.read_bytes()
        with pytest.raises(ValueError):
            engine.set(contents, "name", "\udcff")
        with pytest.raises(ValueError):
            engine.set(contents, "\udcff", "x")
        assert contents == {"a": "1"}
        assert config.vault_path.read_bytes() == before

    def test_explicit_path(self, engine, tmp_path):
        other = tmp_path / "other.enc"
        contents = engine.unlock_and_load(other)
        engine.set(contents, "a", "1")
        assert other.exists()
        assert not engine.config.vault_path.exists()


class TestListing:

    def test_list_excludes_pin_entry(self, engine, config, pins):
        contents = engine.unlock_and_load()
        engine.set(contents, "a", "1")
        engine.set_pin(contents, "1234")

        engine, contents = _reopen(config, pins("1234"))
        assert engine.list_names(contents) == ["a"]
        # still stored under the reserved name on disk
        key = config.key_path.read_bytes()
        raw = decrypt(config.vault_path.read_bytes(), key).to_mapping()
        assert PIN_KEY in raw


class TestPinGating:

    def test_unlock_prompts_when_pin_set(self, engine, config, pins):
        contents = engine.unlock_and_load()
        engine.set_pin(contents, "1234")

        source = pins("1234")
        _reopen(config, source)
        assert source.prompts == 1

    def test_unlock_without_pin_never_prompts(self, config, pins):
        source = pins()
        _reopen(config, source)
        assert source.prompts == 0

    def test_too_many_attempts_leaves_vault_unchanged(self, engine, config, pins):
        contents = engine.unlock_and_load()
        engine.set(contents, "a", "1")
        engine.set_pin(contents, "1234")
        before = config.vault_path.read_bytes()

        with pytest.raises(TooManyAttemptsError):
            _reopen(config, pins("0", "1", "2"))
        assert config.vault_path.read_bytes() == before

    def test_set_pin_twice(self, engine):
        contents = engine.unlock_and_load()
        engine.set_pin(contents, "1234")
        with pytest.raises(PinAlreadySetError):
            engine.set_pin(contents, "5678")

    def test_change_pin_reuses_unlock_grant(self, engine, config, pins):
        contents = engine.unlock_and_load()
        engine.set_pin(contents, "1234")

        source = pins("1234")
        engine, contents = _reopen(config, source)
        engine.change_pin(contents, "5678")
        assert source.prompts == 1

        _reopen(config, pins("5678"))
        with pytest.raises(TooManyAttemptsError):
            _reopen(config, pins("1234", "1234", "1234"))

    def test_change_pin_after_set_verifies(self, engine, pins):
        contents = engine.unlock_and_load()
        engine.set_pin(contents, "1234")
        engine.pin_source = pins("1234")
        engine.change_pin(contents, "5678")
        assert engine.pin_source.prompts == 1

    def test_remove_pin(self, engine, config, pins):
        contents = engine.unlock_and_load()
        engine.set(contents, "a", "1")
        engine.set_pin(contents, "1234")

        engine, contents = _reopen(config, pins("1234"))
        engine.remove_pin(contents)

        source = pins()
        engine, contents = _reopen(config, source)
        assert source.prompts == 0
        assert contents == {"a": "1"}


class TestFailures:

    def test_failed_save_rolls_back_memory(self, engine, config, monkeypatch):
        contents = engine.unlock_and_load()
        engine.set(contents, "a", "1")

        def failing_replace(src, dst):
            raise OSError(13, "Permission denied")

        with monkeypatch.context() as m:
            m.setattr(os, "replace", failing_replace)
            with pytest.raises(StorageError):
                engine.set(contents, "b", "2")
            with pytest.raises(StorageError):
                engine.delete(contents, "a")
            with pytest.raises(StorageError):
                engine.set_pin(contents, "1234")

        assert contents == {"a": "1"}
        assert contents.pin_verifier is None

    @pytest.mark.parametrize("length", [31, 33])
    def test_bad_key_file_aborts_everything(self, config, pins, length):
        config.key_path.write_bytes(b"x" * length)
        for _ in range(2):
            with pytest.raises(ConfigurationError):
                VaultEngine(config, pin_source=pins()).unlock_and_load()
        assert config.key_path.read_bytes() == b"x" * length
        assert not config.vault_path.exists()


class TestPlaintextInterchange:

    def test_export_excludes_verifier(self, engine, config, pins):
        contents = engine.unlock_and_load()
        engine.set(contents, "a", "1")
        engine.set_pin(contents, "1234")

        engine, contents = _reopen(config, pins("1234"))
        exported = orjson.loads(engine.export_plaintext(contents))
        assert exported == {"a": "1"}

    def test_import_merges_and_persists(self, engine, config, pins, tmp_path):
        contents = engine.unlock_and_load()
        engine.set(contents, "a", "old")
        engine.set(contents, "keep", "me")
        source = tmp_path / "plain.json"
        source.write_bytes(b'{"a": "new", "b": "2"}')

        assert engine.import_plaintext(contents, source) == 2
        assert contents == {"a": "new", "b": "2", "keep": "me"}
        _, reloaded = _reopen(config, pins())
        assert reloaded == {"a": "new", "b": "2", "keep": "me"}

    def test_import_ignores_pin_entry(self, engine, config, pins, tmp_path):
        contents = engine.unlock_and_load()
        engine.set_pin(contents, "1234")
        source = tmp_path / "plain.json"
        source.write_bytes(b'{"a": "1", "__meta__pin_hash": "forged"}')

        engine, contents = _reopen(config, pins("1234"))
        verifier = contents.pin_verifier
        assert engine.import_plaintext(contents, source) == 1
        assert contents.pin_verifier == verifier

    def test_import_requires_pin(self, engine, config, pins, tmp_path):
        contents = engine.unlock_and_load()
        engine.set_pin(contents, "1234")
        source = tmp_path / "plain.json"
        source.write_bytes(b'{"a": "1"}')
        before = config.vault_path.read_bytes()

        engine.pin_source = pins("0", "1", "2")
        with pytest.raises(TooManyAttemptsError):
            engine.import_plaintext(contents, source)
        assert config.vault_path.read_bytes() == before

    def test_import_missing_file(self, engine, config, tmp_path):
        contents = engine.unlock_and_load()
        with pytest.raises(StorageError) as exc_info:
            engine.import_plaintext(contents, tmp_path / "missing.json")
        assert exc_info.value.operation == "read"
        assert not config.vault_path.exists()

    @pytest.mark.parametrize("payload", [b"not json", b"[1, 2]", b'{"a": 1}'])
    def test_import_bad_json(self, engine, config, tmp_path, payload):
        contents = engine.unlock_and_load()
        engine.set(contents, "a", "1")
        before = config.vault_path.read_bytes()
        source = tmp_path / "plain.json"
        source.write_bytes(payload)
        with pytest.raises(FormatError):
            engine.import_plaintext(contents, source)
        assert contents == {"a": "1"}
        assert config.vault_path.read_bytes() == before

    def test_import_empty_name_rejected(self, engine, config, tmp_path):
        contents = engine.unlock_and_load()
        source = tmp_path / "plain.json"
        source.write_bytes(b'{"": "x", "a": "1"}')
        with pytest.raises(ValueError):
            engine.import_plaintext(contents, source)
        assert contents.empty is True
        assert not config.vault_path.exists()
