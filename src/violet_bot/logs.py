"""
Logging setup and structured event lines.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any


def configure_logging(logger: logging.Logger) -> None:
    level_name = (os.getenv("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logger.setLevel(level)
    root = logging.getLogger()
    if root.level and root.level > level:
        root.setLevel(level)


def log_event(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Emit one JSON line: {"msg": ..., **fields}."""
    try:
        rec = {"msg": msg, **fields}
        logger.info(json.dumps(rec, ensure_ascii=False, default=str))
    except (TypeError, ValueError):
        # Fallback to plain log
        logger.info("%s | %s", msg, fields)
