"""Central level-based logger (standard library `logging`).

Env:
- LOG_LEVEL: DEBUG|INFO|WARNING|ERROR|CRITICAL (default: INFO)
"""

from __future__ import annotations

import logging
import os
from typing import Optional

DEFAULT_LOGGER_NAME = "pgkeystore"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def level_from_env() -> int:
    raw = (os.getenv("LOG_LEVEL") or "INFO").upper().strip()
    level = getattr(logging, raw, logging.INFO)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a configured logger.

    The root logger is configured once; later calls only re-apply LOG_LEVEL.
    """
    level = level_from_env()
    root = logging.getLogger()
    if not getattr(root, "_pgkeystore_configured", False):
        logging.basicConfig(level=level, format=LOG_FORMAT)
        setattr(root, "_pgkeystore_configured", True)
    root.setLevel(level)
    return logging.getLogger(name or DEFAULT_LOGGER_NAME)
