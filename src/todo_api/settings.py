from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List

from dotenv import find_dotenv, load_dotenv


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables (and a .env file if present).

    Env vars:
    - PERSISTENCE_BACKEND: 'memory' (default) or 'sqlite'
    - SQLITE_DB_PATH: path to sqlite db file. Default './data/tasks.db'
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: logging level name (default: INFO)
    - MIGRATION_MAX_RETRIES: attempts for the startup schema migration (default: 5)
    - MIGRATION_RETRY_BASE_DELAY: backoff base in seconds between attempts (default: 2)
    """

    persistence_backend: str
    sqlite_db_path: str
    cors_allow_origins: List[str]
    log_level: str
    migration_max_retries: int
    migration_retry_base_delay: float


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_float(value: str, default: float) -> float:
    try:
        return float(value.strip())
    except ValueError:
        return default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    load_dotenv(find_dotenv(usecwd=True), override=False)

    backend = _get_env("PERSISTENCE_BACKEND", "memory").strip().lower()
    if backend not in {"memory", "sqlite"}:
        backend = "memory"

    sqlite_path = _get_env("SQLITE_DB_PATH", "./data/tasks.db").strip()
    origins = _parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*"))
    log_level = _get_env("LOG_LEVEL", "INFO").strip().upper()

    return Settings(
        persistence_backend=backend,
        sqlite_db_path=sqlite_path,
        cors_allow_origins=origins,
        log_level=log_level,
        migration_max_retries=max(_parse_int(_get_env("MIGRATION_MAX_RETRIES", "5"), 5), 1),
        migration_retry_base_delay=_parse_float(_get_env("MIGRATION_RETRY_BASE_DELAY", "2"), 2.0),
    )
