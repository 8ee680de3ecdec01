import os
import logging
from dataclasses import dataclass
from typing import Optional

from app.db_config import DBConfig

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_STALE_DAYS = 14


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"[config] Ignoring non-integer {name}={raw!r}, using {default}")
        return default
    if value < 1:
        logger.warning(f"[config] {name} must be >= 1, using {default}")
        return default
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"[config] Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


def _flag_env(name: str) -> bool:
    return os.getenv(name, "false").strip().lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class IngestSettings:
    """Operator settings for an ingestion or reaper run"""
    db_url: Optional[str]
    concurrency: int = DEFAULT_CONCURRENCY
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    stale_days: int = DEFAULT_STALE_DAYS
    relevance_config_path: Optional[str] = None
    close_missing: bool = False

    @classmethod
    def from_env(cls) -> "IngestSettings":
        return cls(
            db_url=DBConfig().db_url,
            concurrency=_int_env("JOBINGEST_CONCURRENCY", DEFAULT_CONCURRENCY),
            http_timeout=_float_env("JOBINGEST_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            stale_days=_int_env("JOBINGEST_STALE_DAYS", DEFAULT_STALE_DAYS),
            relevance_config_path=os.getenv("JOBINGEST_RELEVANCE_CONFIG") or None,
            close_missing=_flag_env("JOBINGEST_CLOSE_MISSING"),
        )


class Capabilities:
    @staticmethod
    def is_db_enabled() -> bool:
        return DBConfig().is_db_enabled

    @staticmethod
    def is_admin_configured() -> bool:
        return bool(os.getenv("JOBINGEST_ADMIN_TOKEN"))

    @classmethod
    def get_status(cls) -> dict:
        db = cls.is_db_enabled()
        admin = cls.is_admin_configured()
        return {
            "status": "green" if db and admin else "amber",
            "components": {
                "db": db,
                "admin": admin,
            },
        }


def get_env_presence() -> dict:
    required_vars = [
        "JOBINGEST_ENV",
        "JOBINGEST_DB_URL",
        "DATABASE_URL",
        "JOBINGEST_CONCURRENCY",
        "JOBINGEST_HTTP_TIMEOUT",
        "JOBINGEST_USER_AGENT",
        "JOBINGEST_STALE_DAYS",
        "JOBINGEST_RELEVANCE_CONFIG",
        "JOBINGEST_MIN_RELEVANCE_SCORE",
        "JOBINGEST_CLOSE_MISSING",
        "JOBINGEST_ADMIN_TOKEN",
        "LOG_LEVEL",
    ]

    return {var: bool(os.getenv(var)) for var in required_vars}
