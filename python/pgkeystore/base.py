"""Keystore base class (abstract).

Callers should depend on this type, so alternative keystore implementations
can be injected without changing application logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pgkeystore.keycodec import PrivateKey


class KeystoreBase(ABC):
    @abstractmethod
    def has(self, name: str) -> bool:
        """Return whether a key with the given name exists."""
        ...

    @abstractmethod
    def put(self, name: str, key: PrivateKey) -> None:
        """Store a key. Raises KeyExistsError if the name is taken."""
        ...

    @abstractmethod
    def get(self, name: str) -> PrivateKey:
        """Retrieve a key. Raises NoSuchKeyError if absent."""
        ...

    @abstractmethod
    def delete(self, name: str) -> None:
        """Remove a key. Deleting an absent name is not an error."""
        ...

    @abstractmethod
    def list(self) -> list[str]:
        """List stored key names (order unspecified)."""
        ...

    def close(self) -> None:
        """Release any resources held by the keystore."""

    def __enter__(self) -> "KeystoreBase":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
