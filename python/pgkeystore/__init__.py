from pgkeystore.base import KeystoreBase
from pgkeystore.config import DEFAULT_TABLE, KeystoreConfig, dsn_from_env
from pgkeystore.errors import (
    InvalidConfigError,
    InvalidKeyNameError,
    KeyDeserializationError,
    KeyExistsError,
    KeySerializationError,
    KeystoreError,
    NoSuchKeyError,
    QueryError,
    StoreConnectionError,
)
from pgkeystore.keycodec import generate_key, key_equals, marshal_private_key, unmarshal_private_key
from pgkeystore.keystore import SQLKeystore, create_table_sql

__all__ = [
    "DEFAULT_TABLE",
    "KeystoreBase",
    "KeystoreConfig",
    "SQLKeystore",
    "create_table_sql",
    "dsn_from_env",
    "generate_key",
    "key_equals",
    "marshal_private_key",
    "unmarshal_private_key",
    "KeystoreError",
    "InvalidConfigError",
    "InvalidKeyNameError",
    "KeyExistsError",
    "NoSuchKeyError",
    "KeySerializationError",
    "KeyDeserializationError",
    "StoreConnectionError",
    "QueryError",
]
