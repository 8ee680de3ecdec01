"""
Database configuration module.
Prefers JOBINGEST_DB_URL and falls back to DATABASE_URL.
"""

import os
import logging
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


class DBConfig:
    """PostgreSQL connection settings resolved from the environment"""

    def __init__(self):
        self.ingest_db_url = os.getenv("JOBINGEST_DB_URL")
        self.database_url = os.getenv("DATABASE_URL")

        if self.ingest_db_url and self.database_url:
            logger.info("[db_config] Both JOBINGEST_DB_URL and DATABASE_URL are set, using JOBINGEST_DB_URL")

        if self.db_url:
            try:
                parsed = urlparse(self.db_url)
                logger.info(
                    f"[db_config] Database configured: {parsed.scheme}://{parsed.username}:***@"
                    f"{parsed.hostname}:{parsed.port or 5432}{parsed.path}"
                )
            except ValueError as e:
                logger.info(f"[db_config] Database configured (unable to parse for logging: {e})")
        else:
            logger.warning("[db_config] JOBINGEST_DB_URL not set - database connections will fail")

    @property
    def db_url(self) -> str | None:
        return self.ingest_db_url or self.database_url

    @property
    def is_db_enabled(self) -> bool:
        return bool(self.db_url)

