"""
Ingestion orchestrator: runs every enabled job source with bounded concurrency
"""
import os
import sys
import logging
import asyncio
import argparse
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.config import IngestSettings
from app.job_store import JobStore
from app.source_health import ERROR, HEALTHY, WARNING, build_health_snapshot
from core.net import HTTPClient
from core.relevance import RelevanceConfig, load_relevance_config
from fetchers.base import FetcherResult, JobSource, RunStats
from fetchers.registry import get_handlers
from processors.adapter import ProcessingAdapter

logger = logging.getLogger(__name__)


class IngestionOrchestrator:
    """Runs fetchers per source and records each source's health"""

    def __init__(
        self,
        store: JobStore,
        relevance: RelevanceConfig,
        http_client: Optional[HTTPClient] = None,
        concurrency: int = 5,
        close_missing: bool = False,
    ):
        self.store = store
        self.relevance = relevance
        self.http_client = http_client or HTTPClient()
        self.concurrency = concurrency
        self.close_missing = close_missing
        self.adapter = ProcessingAdapter(store, relevance, self.http_client)

    def _build_fetcher(self, source: JobSource):
        handlers = get_handlers(source.type)
        return handlers.fetcher(self.adapter, self.relevance, self.http_client)

    async def run_source_once(self, source: JobSource) -> Dict[str, Any]:
        """
        Fetch one source and persist its health.

        Never raises: an unhandled fetcher exception marks the run fatal, and a
        failed health update is logged.
        """
        started_at = datetime.now(timezone.utc)
        logger.info(f"[orchestrator] Starting source {source.id} ({source.name}, {source.type.value})")

        try:
            fetcher = self._build_fetcher(source)
            result = await fetcher.fetch_source(source)
        except Exception as e:
            logger.error(f"[orchestrator] Source {source.id} ({source.name}) failed: {e}", exc_info=True)
            result = FetcherResult(stats=RunStats(fatal=True), message=f"Unhandled error: {e}")

        stats = result.stats
        if self.close_missing:
            self._close_missing(source, result)

        finished_at = datetime.now(timezone.utc)
        try:
            snapshot = self.store.update_source_health(source.id, stats, started_at, finished_at, result.message)
        except Exception as e:
            logger.error(f"[orchestrator] Failed to update health for source {source.id}: {e}", exc_info=True)
            snapshot = build_health_snapshot(stats, started_at, finished_at, result.message)

        logger.info(
            f"[orchestrator] Finished source {source.id} ({source.name}): {snapshot['status']} "
            f"found={stats.found} relevant={stats.relevant} processed={stats.processed} "
            f"errors={stats.errors} ({snapshot['duration_ms']}ms)"
        )
        return {'source_id': source.id, 'name': source.name, **snapshot}

    def _close_missing(self, source: JobSource, result: FetcherResult):
        stats = result.stats
        if stats.errors or stats.fatal or not result.found_source_ids:
            logger.debug(f"[orchestrator] Skipping missing-job close for source {source.id}: run not clean")
            return
        try:
            self.store.close_missing_jobs(source, sorted(result.found_source_ids))
        except Exception as e:
            logger.error(f"[orchestrator] Failed to close missing jobs for source {source.id}: {e}")

    async def run_all(self, concurrency: Optional[int] = None) -> Dict[str, Any]:
        """
        Run every enabled source, at most `concurrency` at a time.

        Returns:
            {'sources', 'found', 'relevant', 'processed', 'errors',
             'healthy', 'warning', 'error', 'results'}
        """
        width = concurrency or self.concurrency
        sources = self.store.list_enabled_sources()
        logger.info(f"[orchestrator] Running {len(sources)} enabled source(s) with concurrency {width}")

        semaphore = asyncio.Semaphore(width)

        async def run_with_semaphore(source: JobSource):
            async with semaphore:
                return await self.run_source_once(source)

        tasks = [run_with_semaphore(source) for source in sources]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        results: List[Dict[str, Any]] = []
        for source, outcome in zip(sources, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"[orchestrator] Source {source.id} ({source.name}) aborted: {outcome}")
                results.append({'source_id': source.id, 'name': source.name, 'status': ERROR,
                                'found': 0, 'relevant': 0, 'processed': 0, 'errors': 1})
            else:
                results.append(outcome)

        summary = summarize_results(results)
        logger.info(
            f"[orchestrator] Run complete: sources={summary['sources']} found={summary['found']} "
            f"relevant={summary['relevant']} processed={summary['processed']} errors={summary['errors']} "
            f"healthy={summary['healthy']} warning={summary['warning']} error={summary['error']}"
        )
        return summary

    async def run_source(self, source_id: str) -> Dict[str, Any]:
        """
        Run a single source by id (admin re-run).

        Raises:
            LookupError: if no source has this id
        """
        source = self.store.get_source(source_id)
        if source is None:
            raise LookupError(f"Job source {source_id} not found")
        return await self.run_source_once(source)


def summarize_results(results: List[Dict[str, Any]]) -> Dict[str, Any]:
    summary = {
        'sources': len(results),
        'found': sum(r.get('found', 0) for r in results),
        'relevant': sum(r.get('relevant', 0) for r in results),
        'processed': sum(r.get('processed', 0) for r in results),
        'errors': sum(r.get('errors', 0) for r in results),
        'healthy': sum(1 for r in results if r.get('status') == HEALTHY),
        'warning': sum(1 for r in results if r.get('status') == WARNING),
        'error': sum(1 for r in results if r.get('status') == ERROR),
        'results': results,
    }
    return summary


# Global instance
_orchestrator: Optional[IngestionOrchestrator] = None


def get_orchestrator() -> IngestionOrchestrator:
    """
    Get or create the orchestrator from environment settings.

    Raises:
        ConfigError: if the database URL or relevance config is missing
    """
    global _orchestrator
    if _orchestrator is None:
        settings = IngestSettings.from_env()
        _orchestrator = IngestionOrchestrator(
            store=JobStore(settings.db_url),
            relevance=load_relevance_config(settings.relevance_config_path),
            http_client=HTTPClient(timeout=settings.http_timeout),
            concurrency=settings.concurrency,
            close_missing=settings.close_missing,
        )
    return _orchestrator


def main(argv=None) -> int:
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    parser = argparse.ArgumentParser(description="Fetch jobs from all enabled sources")
    parser.add_argument("--concurrency", type=int, help="Number of sources processed in parallel")
    parser.add_argument("--source-id", type=str, help="Run a single source instead of all enabled sources")
    args = parser.parse_args(argv)

    if args.concurrency is not None and args.concurrency < 1:
        parser.error("--concurrency must be >= 1")

    try:
        orchestrator = get_orchestrator()
        if args.source_id:
            result = asyncio.run(orchestrator.run_source(args.source_id))
            logger.info(f"[orchestrator] Source {args.source_id} finished with status {result['status']}")
        else:
            asyncio.run(orchestrator.run_all(args.concurrency))
    except LookupError as e:
        logger.error(f"[orchestrator] {e}")
        return 1
    except Exception as e:
        logger.error(f"[orchestrator] Fatal error: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
