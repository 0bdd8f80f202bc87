"""Keystore adapter configuration.

Env:
- PGKS_DSN / DATABASE_URL: SQLAlchemy database URL
- PGKS_TABLE: table holding the keys (default: keys)
- PGKS_POOL_SIZE, PGKS_MAX_OVERFLOW, PGKS_POOL_TIMEOUT: connection pool sizing
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from pgkeystore.errors import InvalidConfigError

DEFAULT_TABLE = "keys"

# Optionally schema-qualified; each part fits PostgreSQL's 63-byte identifier limit.
_TABLE_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


def validate_table_name(table: str) -> str:
    if not isinstance(table, str) or not _TABLE_RE.match(table):
        raise InvalidConfigError(f"Invalid table name: {table!r}")
    return table


@dataclass(frozen=True)
class KeystoreConfig:
    table: str = DEFAULT_TABLE
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: float = 30.0
    pool_pre_ping: bool = True

    def __post_init__(self) -> None:
        validate_table_name(self.table)
        if self.pool_size < 1:
            raise InvalidConfigError(f"pool_size must be >= 1, got {self.pool_size}")
        if self.max_overflow < 0:
            raise InvalidConfigError(f"max_overflow must be >= 0, got {self.max_overflow}")
        if self.pool_timeout <= 0:
            raise InvalidConfigError(f"pool_timeout must be > 0, got {self.pool_timeout}")

    @staticmethod
    def from_mapping(mapping: Optional[Mapping[str, Any]] = None) -> "KeystoreConfig":
        """Build a config from a plain mapping. An empty ``table`` keeps the default."""
        known = {f.name for f in fields(KeystoreConfig)}
        values = dict(mapping or {})
        unknown = sorted(set(values) - known)
        if unknown:
            raise InvalidConfigError(f"Unknown keystore option(s): {', '.join(unknown)}")
        if not values.get("table"):
            values.pop("table", None)
        return KeystoreConfig(**values)

    @staticmethod
    def from_env() -> "KeystoreConfig":
        values: dict[str, Any] = {"table": os.getenv("PGKS_TABLE") or DEFAULT_TABLE}
        try:
            if os.getenv("PGKS_POOL_SIZE"):
                values["pool_size"] = int(os.environ["PGKS_POOL_SIZE"])
            if os.getenv("PGKS_MAX_OVERFLOW"):
                values["max_overflow"] = int(os.environ["PGKS_MAX_OVERFLOW"])
            if os.getenv("PGKS_POOL_TIMEOUT"):
                values["pool_timeout"] = float(os.environ["PGKS_POOL_TIMEOUT"])
        except ValueError as e:
            raise InvalidConfigError(f"Invalid pool setting in environment: {e}") from e
        return KeystoreConfig(**values)

    def replace(self, **overrides: Any) -> "KeystoreConfig":
        """Return a copy with non-empty overrides applied."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in overrides.items() if v not in (None, "")})
        return KeystoreConfig.from_mapping(values)


def dsn_from_env() -> Optional[str]:
    return os.getenv("PGKS_DSN") or os.getenv("DATABASE_URL")
