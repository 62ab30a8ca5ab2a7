from typing import Optional
from collections.abc import Iterator, Mapping, MutableMapping

# Reserved entry name holding the PIN verifier in the serialized vault.
PIN_KEY = "__meta__pin_hash"


class VaultContents(MutableMapping[str, str]):
    """Vault dict-like object.

    Holds user secrets (stored in _entries) separately from the PIN
    verifier (stored in pin_verifier). Both are encrypted together as one
    unit, but only _entries is reachable through the mapping interface, so
    iteration and listing never expose the verifier.

    The reserved name is only materialized by ``to_mapping()``, the flat
    form that gets serialized.
    """

    def __init__(
        self,
        entries: Optional[Mapping[str, str]] = None,
        pin_verifier: Optional[str] = None,
    ) -> None:
        self._entries: dict[str, str] = {}
        self._changed = False
        self.pin_verifier = pin_verifier
        if entries:
            for name, value in entries.items():
                self._validate_name(name)
                self._entries[name] = value

    def __repr__(self) -> str:
        # never show values
        return (
            f'<VaultContents [pin:{self.pin_set}, changed:{self._changed}] '
            f'names={sorted(self._entries)!r}>'
        )

    # --- Validation ---

    @staticmethod
    def _check_reserved(name: str) -> None:
        if name == PIN_KEY:
            raise ValueError(f"Secret name {PIN_KEY!r} is reserved")

    @staticmethod
    def _check_encodable(text: str, what: str) -> None:
        try:
            text.encode("utf-8")
        except UnicodeEncodeError as err:
            # lone surrogates, e.g. from undecodable argv bytes
            raise ValueError(f"Secret {what} must be valid UTF-8") from err

    @classmethod
    def _validate_name(cls, name: str) -> None:
        """Validate a secret name.

        Raises:
            ValueError: If name is empty, not a string, not valid UTF-8,
                or reserved.
        """
        if not isinstance(name, str) or not name:
            raise ValueError("Secret name must be a non-empty string")
        cls._check_encodable(name, "name")
        cls._check_reserved(name)

    # --- Serialization helpers ---

    def to_mapping(self) -> dict[str, str]:
        """Return the flat mapping that gets serialized, verifier included."""
        mapping = dict(self._entries)
        if self.pin_verifier is not None:
            mapping[PIN_KEY] = self.pin_verifier
        return mapping

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> "VaultContents":
        """Split a flat serialized mapping into entries and verifier."""
        entries = dict(mapping)
        verifier = entries.pop(PIN_KEY, None)
        contents = cls(pin_verifier=verifier)
        # stored names are trusted as-is, even ones set() would reject
        contents._entries.update(entries)
        return contents

    def copy(self) -> "VaultContents":
        clone = type(self)(pin_verifier=self.pin_verifier)
        clone._entries = dict(self._entries)
        clone._changed = self._changed
        return clone

    def replace_with(self, other: "VaultContents") -> None:
        """Take over the entries and verifier of ``other``."""
        self._entries = dict(other._entries)
        self.pin_verifier = other.pin_verifier
        self._changed = other._changed

    # --- Properties ---

    @property
    def pin_set(self) -> bool:
        return self.pin_verifier is not None

    @property
    def empty(self) -> bool:
        return not self._entries and self.pin_verifier is None

    @property
    def is_changed(self) -> bool:
        return self._changed

    @is_changed.setter
    def is_changed(self, value: bool) -> None:
        self._changed = value

    def names(self) -> list[str]:
        """Secret names in storage order, verifier excluded."""
        return list(self._entries)

    # --- Magic Methods ---

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __setitem__(self, key: str, value: str) -> None:
        self._validate_name(key)
        if not isinstance(value, str):
            raise TypeError("Secret value must be a string")
        self._check_encodable(value, "value")
        self._entries[key] = value
        self._changed = True

    def __delitem__(self, key: str) -> None:
        # names loaded from disk are not re-validated
        self._check_reserved(key)
        del self._entries[key]
        self._changed = True

    def __eq__(self, other: object) -> bool:
        if isinstance(other, VaultContents):
            return (
                self._entries == other._entries
                and self.pin_verifier == other.pin_verifier
            )
        if isinstance(other, Mapping):
            return self.pin_verifier is None and self._entries == dict(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]
