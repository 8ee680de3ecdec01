"""
Stale-job reaper: closes ACTIVE jobs that no ingestion run has refreshed recently.

Runs as an independent batch job. The close statement re-checks status and
updated_at, so jobs refreshed by a concurrent ingestion run are left alone.
"""
import os
import sys
import logging
import argparse
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from app.config import DEFAULT_STALE_DAYS, IngestSettings
from app.job_store import JobStore

logger = logging.getLogger(__name__)

MAX_LOGGED_CANDIDATES = 20


def deactivate_stale(store: JobStore, days_threshold: int = DEFAULT_STALE_DAYS, dry_run: bool = False,
                     now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Close jobs whose updated_at is older than days_threshold.

    Returns:
        {'cutoff', 'candidates', 'closed', 'dry_run'}
    """
    if days_threshold < 1:
        raise ValueError("days_threshold must be >= 1")

    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days_threshold)
    stale = store.find_stale_jobs(cutoff)
    logger.info(f"[reaper] Found {len(stale)} ACTIVE job(s) not updated since {cutoff.isoformat()}")

    for job in stale[:MAX_LOGGED_CANDIDATES]:
        logger.info(f"[reaper] Candidate {job['source']}:{job['source_id']} '{job['title']}' (updated {job['updated_at']})")
    if len(stale) > MAX_LOGGED_CANDIDATES:
        logger.info(f"[reaper] ... and {len(stale) - MAX_LOGGED_CANDIDATES} more")

    if dry_run or not stale:
        if dry_run:
            logger.info(f"[reaper] Dry run: {len(stale)} job(s) would be closed")
        return {'cutoff': cutoff.isoformat(), 'candidates': len(stale), 'closed': 0, 'dry_run': dry_run}

    closed = store.close_stale_jobs([job['id'] for job in stale], cutoff)
    if closed != len(stale):
        logger.warning(
            f"[reaper] Closed {closed} of {len(stale)} candidate(s); "
            f"the rest were refreshed or closed since selection"
        )
    else:
        logger.info(f"[reaper] Closed {closed} stale job(s)")

    return {'cutoff': cutoff.isoformat(), 'candidates': len(stale), 'closed': closed, 'dry_run': False}


def main(argv=None) -> int:
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    settings = IngestSettings.from_env()

    parser = argparse.ArgumentParser(description="Close jobs that have not been refreshed recently")
    parser.add_argument("--days", type=int, default=settings.stale_days,
                        help=f"Staleness threshold in days (default: {settings.stale_days})")
    parser.add_argument("--dry-run", action="store_true", help="Report candidates without closing them")
    args = parser.parse_args(argv)

    if args.days < 1:
        parser.error("--days must be >= 1")

    try:
        store = JobStore(settings.db_url)
        deactivate_stale(store, days_threshold=args.days, dry_run=args.dry_run)
    except Exception as e:
        logger.error(f"[reaper] Fatal error: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
