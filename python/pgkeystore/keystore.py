"""SQLKeystore: named private keys in a (name, data) table behind a pooled engine."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import ArgumentError, IntegrityError, SQLAlchemyError

from common.logger import get_logger
from pgkeystore.base import KeystoreBase
from pgkeystore.config import KeystoreConfig, validate_table_name
from pgkeystore.errors import (
    InvalidKeyNameError,
    KeyDeserializationError,
    KeyExistsError,
    NoSuchKeyError,
    QueryError,
    StoreConnectionError,
)
from pgkeystore.keycodec import PrivateKey, marshal_private_key, unmarshal_private_key


def create_table_sql(table: str = "keys", dialect: str = "postgresql") -> str:
    """DDL for the keys table. The keystore itself never runs this."""
    validate_table_name(table)
    blob = "BLOB" if dialect == "sqlite" else "BYTEA"
    return f"CREATE TABLE IF NOT EXISTS {table} (name TEXT NOT NULL PRIMARY KEY, data {blob})"


# Names are fetched as raw bytes so a single undecodable row cannot fail the whole scan.
_NAME_AS_BYTES = {
    "sqlite": "CAST(name AS BLOB)",
    "postgresql": "convert_to(name, 'UTF8')",
}

_BINARY = (bytes, bytearray, memoryview)


class SQLKeystore(KeystoreBase):
    """Keystore backed by a relational table (PostgreSQL in production, SQLite for local use)."""

    def __init__(
        self,
        dsn: str,
        config: Union[KeystoreConfig, Mapping[str, Any], None] = None,
        **overrides: Any,
    ):
        if config is None or isinstance(config, Mapping):
            config = KeystoreConfig.from_mapping(config)
        if overrides:
            config = config.replace(**overrides)
        self.config: KeystoreConfig = config
        self._log = get_logger(__name__)
        self._engine: Optional[Engine] = self._connect(dsn)
        self._log.info(
            "keystore: open ok url=%s table=%s",
            self._engine.url.render_as_string(hide_password=True),
            self.table,
        )

    def _connect(self, dsn: str) -> Engine:
        try:
            url = make_url(dsn)
        except (ArgumentError, ValueError, TypeError) as e:
            raise StoreConnectionError(f"Malformed connection string: {e}") from e

        kwargs: dict[str, Any] = {"pool_pre_ping": self.config.pool_pre_ping}
        if url.get_backend_name() != "sqlite":
            kwargs.update(
                pool_size=self.config.pool_size,
                max_overflow=self.config.max_overflow,
                pool_timeout=self.config.pool_timeout,
            )

        try:
            engine = create_engine(url, **kwargs)
        except (SQLAlchemyError, ImportError) as e:
            raise StoreConnectionError(f"Could not create connection pool: {e}") from e

        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            engine.dispose()
            raise StoreConnectionError(f"Could not connect to database: {e}") from e
        return engine

    @property
    def table(self) -> str:
        return self.config.table

    @property
    def engine(self) -> Engine:
        """The underlying pooled engine."""
        if self._engine is None:
            raise QueryError("keystore is closed")
        return self._engine

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._log.info("keystore: closed table=%s", self.table)

    def has(self, name: str) -> bool:
        sql = text(f"SELECT EXISTS(SELECT 1 FROM {self.table} WHERE name = :name)")
        try:
            with self.engine.connect() as conn:
                row = conn.execute(sql, {"name": name}).first()
        except (SQLAlchemyError, ValueError) as e:
            self._log.warning("keystore: has failed name=%s err=%s", name, e)
            raise QueryError(f"has {name!r} failed: {e}") from e
        if row is None:
            raise NoSuchKeyError(f"no such key: {name}")
        self._log.debug("keystore: has name=%s exists=%s", name, bool(row[0]))
        return bool(row[0])

    def put(self, name: str, key: PrivateKey) -> None:
        """Store a key under a new name. Existing keys are never overwritten."""
        if not isinstance(name, str) or name == "":
            raise InvalidKeyNameError("key name must be at least one character")
        if "\x00" in name:
            raise InvalidKeyNameError("key name must not contain NUL characters")
        data = marshal_private_key(key)

        # Uniqueness is enforced by the primary key, not by a prior lookup.
        sql = text(f"INSERT INTO {self.table} (name, data) VALUES (:name, :data)")
        try:
            with self.engine.begin() as conn:
                conn.execute(sql, {"name": name, "data": data})
        except IntegrityError as e:
            raise KeyExistsError(f"key by that name already exists: {name}") from e
        except (SQLAlchemyError, ValueError) as e:
            self._log.warning("keystore: put failed name=%s err=%s", name, e)
            raise QueryError(f"put {name!r} failed: {e}") from e
        self._log.debug("keystore: put ok name=%s", name)

    def get(self, name: str) -> PrivateKey:
        sql = text(f"SELECT data FROM {self.table} WHERE name = :name")
        try:
            with self.engine.connect() as conn:
                row = conn.execute(sql, {"name": name}).first()
        except (SQLAlchemyError, ValueError) as e:
            self._log.warning("keystore: get failed name=%s err=%s", name, e)
            raise QueryError(f"get {name!r} failed: {e}") from e
        if row is None:
            raise NoSuchKeyError(f"no such key: {name}")
        if row[0] is None:
            raise KeyDeserializationError(f"key {name!r} has no stored data")
        if not isinstance(row[0], _BINARY):
            raise KeyDeserializationError(f"key {name!r} has non-binary stored data")
        self._log.debug("keystore: get ok name=%s", name)
        return unmarshal_private_key(bytes(row[0]))

    def delete(self, name: str) -> None:
        sql = text(f"DELETE FROM {self.table} WHERE name = :name")
        try:
            with self.engine.begin() as conn:
                result = conn.execute(sql, {"name": name})
        except (SQLAlchemyError, ValueError) as e:
            self._log.warning("keystore: delete failed name=%s err=%s", name, e)
            raise QueryError(f"delete {name!r} failed: {e}") from e
        self._log.debug("keystore: delete name=%s rows=%d", name, result.rowcount)

    def list(self) -> list[str]:
        column = _NAME_AS_BYTES.get(self.engine.dialect.name, "name")
        sql = text(f"SELECT {column} FROM {self.table}")
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(sql).fetchall()
        except (SQLAlchemyError, ValueError) as e:
            self._log.warning("keystore: list failed err=%s", e)
            raise QueryError(f"list failed: {e}") from e

        names: list[str] = []
        for row in rows:
            value = row[0]
            if isinstance(value, _BINARY):
                try:
                    value = bytes(value).decode("utf-8")
                except UnicodeDecodeError:
                    self._log.debug("keystore: list skipping undecodable name=%r", bytes(value))
                    continue
            if not isinstance(value, str):
                self._log.debug("keystore: list skipping non-text name=%r", value)
                continue
            names.append(value)
        self._log.debug("keystore: list ok keys=%d", len(names))
        return names
