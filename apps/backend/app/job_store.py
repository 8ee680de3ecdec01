"""
PostgreSQL persistence for the ingestion pipeline.

JobStore owns every SQL statement the pipeline issues: job upserts keyed on
(source, source_id), company upserts keyed on normalized_name, source health
updates, the run log and the closing of stale or vanished postings.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2.extras import Json, RealDictCursor
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.source_health import build_health_snapshot
from core.errors import ConfigError, PersistenceError
from core.text import normalize_company_name, normalize_for_deduplication
from fetchers.base import JobSource, RunStats
from processors.base import StandardizedJob

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10
DUPLICATE_SIMILARITY = 0.8
MAX_DUPLICATE_MATCHES = 5

SOURCE_COLUMNS = """
    id, name, type, is_enabled, config, company_website, logo_url, last_fetched, latest_run
"""


class JobStore:
    """Synchronous psycopg2 store; one short-lived connection per operation"""

    def __init__(self, db_url: Optional[str]):
        if not db_url:
            raise ConfigError("Database URL not configured (set JOBINGEST_DB_URL)")
        self.db_url = db_url

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=8),
        retry=retry_if_exception_type(psycopg2.OperationalError),
        reraise=True
    )
    def _get_db_conn(self):
        """Get database connection, retrying transient connect failures"""
        return psycopg2.connect(self.db_url, connect_timeout=CONNECT_TIMEOUT)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def upsert_job(self, job: StandardizedJob) -> str:
        """
        Insert or refresh a job by (source, source_id).

        Returns:
            'created' or 'updated'

        Raises:
            PersistenceError: if the title or company cannot be normalized
        """
        normalized_title = normalize_for_deduplication(job.title)
        normalized_company = normalize_company_name(job.company_name)
        if not normalized_title or not normalized_company:
            raise PersistenceError(
                f"Cannot normalize title/company for {job.source}:{job.source_id} "
                f"({job.title!r} / {job.company_name!r})"
            )

        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute("""
                    INSERT INTO companies (name, normalized_name, website, logo_url)
                    VALUES (%s, %s, %s, %s)
                    ON CONFLICT (normalized_name) DO UPDATE SET
                        website = COALESCE(companies.website, EXCLUDED.website),
                        logo_url = COALESCE(companies.logo_url, EXCLUDED.logo_url),
                        updated_at = NOW()
                    RETURNING id
                """, (job.company_name, normalized_company, job.company_website, job.company_logo))
                company_id = cur.fetchone()['id']

                cur.execute("""
                    INSERT INTO jobs (
                        source, source_id, company_id, title, normalized_title,
                        description, requirements, responsibilities, benefits,
                        skills, tags, job_type, experience_level, workplace_type,
                        hiring_region, location, country, application_url,
                        published_at, relevance_score, status, created_at, updated_at
                    ) VALUES (
                        %s, %s, %s, %s, %s,
                        %s, %s, %s, %s,
                        %s, %s, %s, %s, %s,
                        %s, %s, %s, %s,
                        %s, %s, 'ACTIVE', NOW(), NOW()
                    )
                    ON CONFLICT (source, source_id) DO UPDATE SET
                        company_id = EXCLUDED.company_id,
                        title = EXCLUDED.title,
                        normalized_title = EXCLUDED.normalized_title,
                        description = EXCLUDED.description,
                        requirements = EXCLUDED.requirements,
                        responsibilities = EXCLUDED.responsibilities,
                        benefits = EXCLUDED.benefits,
                        skills = EXCLUDED.skills,
                        tags = EXCLUDED.tags,
                        job_type = EXCLUDED.job_type,
                        experience_level = EXCLUDED.experience_level,
                        workplace_type = EXCLUDED.workplace_type,
                        hiring_region = EXCLUDED.hiring_region,
                        location = EXCLUDED.location,
                        country = EXCLUDED.country,
                        application_url = EXCLUDED.application_url,
                        published_at = EXCLUDED.published_at,
                        relevance_score = EXCLUDED.relevance_score,
                        status = 'ACTIVE',
                        updated_at = NOW()
                    RETURNING id, (xmax = 0) AS created
                """, (
                    job.source, job.source_id, company_id, job.title, normalized_title,
                    job.description, job.requirements, job.responsibilities, job.benefits,
                    job.skills, job.tags, job.job_type.value, job.experience_level.value,
                    job.workplace_type.value,
                    job.hiring_region.value if job.hiring_region else None,
                    job.location, job.country, job.application_url,
                    job.published_at, job.relevance_score,
                ))
                row = cur.fetchone()
                conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        outcome = 'created' if row['created'] else 'updated'
        logger.info(f"[job_store] {outcome.capitalize()} job {job.source}:{job.source_id} ({job.title})")

        if outcome == 'created':
            self.log_potential_duplicates(job, row['id'], company_id, normalized_title)
        return outcome

    def log_potential_duplicates(self, job: StandardizedJob, job_id: Any, company_id: Any, normalized_title: str) -> int:
        """
        Log ACTIVE jobs of the same company with a similar normalized title.

        Detection only: nothing is merged or closed. Requires pg_trgm; any
        failure is logged and swallowed so it can never fail the upsert.
        """
        try:
            conn = self._get_db_conn()
        except psycopg2.Error as e:
            logger.warning(f"[job_store] Duplicate check skipped for {job.source}:{job.source_id}: {e}")
            return 0
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute("""
                    SELECT id, source, source_id, title,
                           similarity(normalized_title, %s) AS score
                    FROM jobs
                    WHERE company_id = %s
                      AND id <> %s
                      AND status = 'ACTIVE'
                      AND similarity(normalized_title, %s) >= %s
                    ORDER BY score DESC
                    LIMIT %s
                """, (normalized_title, company_id, job_id, normalized_title,
                      DUPLICATE_SIMILARITY, MAX_DUPLICATE_MATCHES))
                matches = cur.fetchall()
        except psycopg2.Error as e:
            logger.warning(f"[job_store] Duplicate check failed for {job.source}:{job.source_id}: {e}")
            conn.rollback()
            return 0
        finally:
            conn.close()

        for match in matches:
            logger.warning(
                f"[job_store] Potential duplicate: {job.source}:{job.source_id} '{job.title}' ~ "
                f"{match['source']}:{match['source_id']} '{match['title']}' (similarity {float(match['score']):.2f})"
            )
        return len(matches)

    def find_stale_jobs(self, cutoff: datetime) -> List[Dict[str, Any]]:
        """ACTIVE jobs whose updated_at is older than cutoff"""
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute("""
                    SELECT id, source, source_id, title, updated_at
                    FROM jobs
                    WHERE status = 'ACTIVE' AND updated_at < %s
                    ORDER BY updated_at
                """, (cutoff,))
                return [dict(row) for row in cur.fetchall()]
        finally:
            conn.close()

    def close_stale_jobs(self, ids: List[Any], cutoff: datetime) -> int:
        """
        Close the given jobs.

        The status and updated_at guards skip any job refreshed by a concurrent
        ingestion run after it was selected.

        Returns:
            Number of rows actually closed
        """
        if not ids:
            return 0
        conn = self._get_db_conn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    UPDATE jobs
                    SET status = 'CLOSED', closed_at = NOW()
                    WHERE id = ANY(%s)
                      AND status = 'ACTIVE'
                      AND updated_at < %s
                """, (list(ids), cutoff))
                closed = cur.rowcount
                conn.commit()
                return closed
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def close_missing_jobs(self, source: JobSource, active_ids: List[str]) -> int:
        """
        Close ACTIVE jobs of this source's company and type whose source_id was not
        returned by the latest fetch. An empty id list closes nothing.
        """
        if not active_ids:
            return 0
        normalized_company = normalize_company_name(source.name)
        conn = self._get_db_conn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    UPDATE jobs j
                    SET status = 'CLOSED', closed_at = NOW()
                    FROM companies c
                    WHERE j.company_id = c.id
                      AND c.normalized_name = %s
                      AND j.source = %s
                      AND j.status = 'ACTIVE'
                      AND NOT (j.source_id = ANY(%s))
                """, (normalized_company, source.type.value, list(active_ids)))
                closed = cur.rowcount
                conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        if closed:
            logger.info(f"[job_store] Closed {closed} job(s) no longer listed by source {source.id} ({source.name})")
        return closed

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def _rows_to_sources(self, rows) -> List[JobSource]:
        sources = []
        for row in rows:
            try:
                sources.append(JobSource.from_row(row))
            except ValueError as e:
                logger.warning(f"[job_store] Skipping invalid job source {row.get('id')}: {e}")
        return sources

    def list_sources(self) -> List[JobSource]:
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(f"SELECT {SOURCE_COLUMNS} FROM job_sources ORDER BY name")
                return self._rows_to_sources(cur.fetchall())
        finally:
            conn.close()

    def list_enabled_sources(self) -> List[JobSource]:
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(f"SELECT {SOURCE_COLUMNS} FROM job_sources WHERE is_enabled = TRUE ORDER BY name")
                return self._rows_to_sources(cur.fetchall())
        finally:
            conn.close()

    def get_source(self, source_id: str) -> Optional[JobSource]:
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(f"SELECT {SOURCE_COLUMNS} FROM job_sources WHERE id::text = %s", (str(source_id),))
                row = cur.fetchone()
        finally:
            conn.close()
        return JobSource.from_row(row) if row else None

    def toggle_source(self, source_id: str) -> Optional[JobSource]:
        """Flip is_enabled. Returns the updated source, or None if unknown."""
        conn = self._get_db_conn()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(f"""
                    UPDATE job_sources
                    SET is_enabled = NOT is_enabled, updated_at = NOW()
                    WHERE id::text = %s
                    RETURNING {SOURCE_COLUMNS}
                """, (str(source_id),))
                row = cur.fetchone()
                conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        if not row:
            return None
        source = JobSource.from_row(row)
        logger.info(f"[job_store] Source {source.id} ({source.name}) is_enabled={source.is_enabled}")
        return source

    def update_source_health(
        self,
        source_id: str,
        stats: RunStats,
        started_at: datetime,
        finished_at: datetime,
        message: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Persist last_fetched and the latest_run snapshot, and append a source_runs row.

        Returns:
            The snapshot written to latest_run
        """
        snapshot = build_health_snapshot(stats, started_at, finished_at, message)
        conn = self._get_db_conn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    UPDATE job_sources
                    SET last_fetched = %s, latest_run = %s, updated_at = NOW()
                    WHERE id::text = %s
                """, (finished_at, Json(snapshot), str(source_id)))
                cur.execute("""
                    INSERT INTO source_runs (
                        source_id, started_at, finished_at, duration_ms, status,
                        found, relevant, processed, errors, message
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """, (
                    str(source_id), started_at, finished_at, snapshot['duration_ms'], snapshot['status'],
                    stats.found, stats.relevant, stats.processed, stats.errors, snapshot['message'],
                ))
                conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.debug(f"[job_store] Source {source_id} health updated: {snapshot['status']}")
        return snapshot
