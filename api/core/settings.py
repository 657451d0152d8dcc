"""
Environment-backed settings.

Values are read on every call so tests can monkeypatch the environment.
"""

from __future__ import annotations

import os

from .db import ConfigurationError

CONNECTION_STRING_ENV = "POSTGRESQL_ADDRESS"


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def database_url() -> str:
    url = os.environ.get(CONNECTION_STRING_ENV, "").strip()
    if not url:
        raise ConfigurationError(f"missing env var {CONNECTION_STRING_ENV!r}")
    return url


def connect_timeout_s() -> float:
    return _env_float("DB_CONNECT_TIMEOUT_S", 5.0)


def connect_retry_s() -> float:
    return _env_float("DB_CONNECT_RETRY_S", 1.0)


def host() -> str:
    return _env_str("HOST", "0.0.0.0")


def port() -> int:
    return _env_int("PORT", 7999)


def log_level() -> str:
    return _env_str("LOG_LEVEL", "DEBUG").upper()
