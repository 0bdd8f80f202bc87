"""Keystore errors.

Every failure surfaced by the adapter is a ``KeystoreError``. Argument and
codec errors also subclass ``ValueError`` so callers that only care about
"bad input" can catch that.
"""


class KeystoreError(Exception):
    """Base keystore error."""


class InvalidKeyNameError(KeystoreError, ValueError):
    """Key name is empty or not a string."""


class InvalidConfigError(KeystoreError, ValueError):
    """Adapter configuration failed validation."""


class KeyExistsError(KeystoreError):
    """A key with the same name is already stored."""


class NoSuchKeyError(KeystoreError, KeyError):
    """No key is stored under the requested name."""

    def __str__(self) -> str:
        # KeyError repr()s its argument
        return Exception.__str__(self)


class KeySerializationError(KeystoreError, ValueError):
    """The key codec could not marshal a private key."""


class KeyDeserializationError(KeystoreError, ValueError):
    """Stored bytes could not be decoded back into a private key."""


class StoreConnectionError(KeystoreError):
    """The connection pool to the backing database could not be established."""


class QueryError(KeystoreError):
    """Any other backing-store failure (the driver error is chained as __cause__)."""
