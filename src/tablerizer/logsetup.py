#!/usr/bin/env python3
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any


_PATCHED = False


def setup_logging() -> logging.Logger:
    """Configure file logging for the 'tablerizer' logger.

    Environment variables:
    - TABLERIZER_LOG_DIR (default: ./logs)
    - TABLERIZER_LOG_LEVEL (default: DEBUG)
    - TABLERIZER_LOG_MAX_BYTES (default: 10485760 i.e., 10MB)
    - TABLERIZER_LOG_BACKUPS (default: 5)
    """
    log_dir = os.environ.get("TABLERIZER_LOG_DIR", os.path.join(os.getcwd(), "logs"))
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, "tablerizer.log")

    level_name = os.environ.get("TABLERIZER_LOG_LEVEL", "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)
    max_bytes = int(os.environ.get("TABLERIZER_LOG_MAX_BYTES", 10 * 1024 * 1024))
    backups = int(os.environ.get("TABLERIZER_LOG_BACKUPS", 5))

    logger = logging.getLogger("tablerizer")
    logger.setLevel(level)
    logger.propagate = False  # keep stdout clean for the YAML envelope

    # Re-running main() in one process (tests) may point at a new directory
    for h in list(logger.handlers):
        if isinstance(h, RotatingFileHandler) and h.baseFilename != os.path.abspath(log_file):
            logger.removeHandler(h)
            h.close()
    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backups)
        handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s %(levelname)s [%(process)d] %(name)s %(module)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        handler.setLevel(level)
        logger.addHandler(handler)
    logger.debug("Logging initialized: %s level=%s", log_file, level_name)

    # Connection-level events from the driver go to the same file
    for name in ("psycopg", "psycopg.pq"):
        psy_logger = logging.getLogger(name)
        psy_logger.setLevel(level)
        psy_logger.propagate = False
        psy_logger.handlers = [h for h in psy_logger.handlers if not isinstance(h, RotatingFileHandler)]
        for h in logger.handlers:
            psy_logger.addHandler(h)
    return logger


def _format_params(params: Any, limit: int = 400) -> str:
    try:
        s = repr(params)
    except Exception:
        return "<unreprable params>"
    if len(s) > limit:
        return s[:limit] + "... (truncated)"
    return s


def _squash(query: Any) -> str:
    return " ".join(str(query).split())


def install_psycopg_query_logging(logger: logging.Logger) -> None:
    """Wrap psycopg.Cursor.execute so every catalog query is logged at DEBUG."""
    global _PATCHED
    if _PATCHED:
        return

    import psycopg

    orig = psycopg.Cursor.execute

    def execute(self, query, params=None, *args, **kwargs):  # type: ignore[no-untyped-def]
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("SQL: %s | params: %s", _squash(query), _format_params(params))
        return orig(self, query, params, *args, **kwargs)

    psycopg.Cursor.execute = execute  # type: ignore[method-assign]
    _PATCHED = True
