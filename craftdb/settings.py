"""Application settings loaded from environment (and .env).

This module provides a small Settings holder backed by environment variables.
Keep this file simple and import `settings` from other modules.
"""
from __future__ import annotations

from dataclasses import dataclass
import os
import sys
from pathlib import Path

DB_SUFFIX = ".sqlite3"


def _get(name: str, default: str | None = None) -> str | None:
    v = os.getenv(name)
    if v is None:
        return default
    return v


def _program_dir() -> Path:
    """Directory of the invoking program, falling back to the cwd for REPL use."""
    argv0 = sys.argv[0] if sys.argv else ""
    if not argv0 or argv0 == "-c":
        return Path.cwd()
    return Path(argv0).resolve().parent


@dataclass
class Settings:
    # Storage
    # DB_DIR defaults to the directory of the invoking program so a database
    # named on the command line lands next to the script that uses it.
    DB_DIR: str | None = _get("DB_DIR")
    DB_NAME: str = _get("DB_NAME", "recipes")
    # Full path to the database file for the HTTP server; overrides DB_DIR/DB_NAME
    DB_PATH: str | None = _get("DB_PATH")
    # sqlite busy timeout, in seconds
    DB_TIMEOUT: float = float(_get("DB_TIMEOUT", "30"))

    # Logging configuration
    # LOG_LEVEL can be DEBUG, INFO, WARNING, ERROR, or CRITICAL
    LOG_LEVEL: str = _get("LOG_LEVEL", "INFO")
    # Optional path to write logs to a file; if unset, logs go to stderr
    LOG_FILE: str | None = _get("LOG_FILE", None)


settings = Settings()


def resolve_db_path(name: str | None = None, base_dir: str | Path | None = None) -> Path:
    """Return the on-disk path for database `name`.

    `name` may be given with or without the `.sqlite3` suffix. A name that
    already looks like a path (absolute, or containing a separator) is used
    as-is. Otherwise the file lives in `base_dir`, then `settings.DB_DIR`, then
    the directory of the invoking program.
    """
    name = name or settings.DB_NAME
    if name == ":memory:":
        return Path(name)
    candidate = Path(name)
    if candidate.suffix != DB_SUFFIX:
        candidate = candidate.with_name(candidate.name + DB_SUFFIX)
    if candidate.is_absolute() or len(candidate.parts) > 1:
        return candidate
    root = Path(base_dir) if base_dir is not None else None
    if root is None and settings.DB_DIR:
        root = Path(settings.DB_DIR)
    if root is None:
        root = _program_dir()
    return root / candidate
