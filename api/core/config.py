"""
Environment-driven settings and logging setup.

Every setting is read at call time so tests (and long-running workers) pick
up environment changes without a restart.
"""

from __future__ import annotations

import logging
import os

_logging_configured = False


def env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip() or default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def storage_backend() -> str:
    return env_str("STORAGE_BACKEND", "file").lower()


def data_dir() -> str:
    return env_str("DATA_DIR", "./data")


def public_base_url() -> str:
    return env_str("PUBLIC_BASE_URL", "https://shortstories.app").rstrip("/")


def log_level() -> str:
    return env_str("LOG_LEVEL", "INFO").upper()


def configure_logging() -> None:
    global _logging_configured
    if _logging_configured:
        return None
    logging.basicConfig(
        level=log_level(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    _logging_configured = True
