"""
Processing adapter: the single seam between fetchers and persistence.

process_raw_job dispatches a raw record to the processor for its source type and
upserts the StandardizedJob on success. It never raises: every failure is
logged and reported as False.
"""
import logging
from typing import Any, Dict, Optional

from core.net import HTTPClient
from core.relevance import RelevanceConfig
from fetchers.base import JobSource, SourceType
from fetchers.registry import get_handlers
from processors.base import JobProcessor

logger = logging.getLogger(__name__)


class ProcessingAdapter:
    """Dispatches raw jobs to processors and forwards results to the job store"""

    def __init__(self, store, relevance: RelevanceConfig, http_client: Optional[HTTPClient] = None):
        """
        Args:
            store: JobStore (anything with upsert_job(job) -> 'created' | 'updated')
            relevance: Immutable relevance configuration shared by all processors
            http_client: HTTP client for processors that fetch detail pages
        """
        self.store = store
        self.relevance = relevance
        self.http_client = http_client or HTTPClient()
        self._processors: Dict[SourceType, JobProcessor] = {}

    def get_processor(self, source_type) -> Optional[JobProcessor]:
        try:
            source_type = SourceType(source_type)
            handlers = get_handlers(source_type)
        except (ValueError, KeyError):
            logger.error(f"[adapter] No processor registered for source type '{source_type}'")
            return None

        if source_type not in self._processors:
            self._processors[source_type] = handlers.processor(self.relevance, self.http_client)
        return self._processors[source_type]

    async def process_raw_job(self, source_type, raw: Dict[str, Any], source: JobSource) -> bool:
        """
        Process and persist one raw job.

        Returns:
            True if the job was created or updated, False if rejected or not saved
        """
        processor = self.get_processor(source_type)
        if processor is None:
            return False

        try:
            result = await processor.process_job(raw, source)
        except Exception as e:
            logger.error(f"[adapter] Processor for {source_type} raised on source {source.id}: {e}", exc_info=True)
            return False

        if not result.success or result.job is None:
            logger.info(f"[adapter] Job not processed ({source.name}): {result.error}")
            return False

        job = result.job
        try:
            outcome = self.store.upsert_job(job)
        except Exception as e:
            logger.error(f"[adapter] Failed to save job {job.source}:{job.source_id}: {e}", exc_info=True)
            return False

        logger.debug(f"[adapter] Job {job.source}:{job.source_id} {outcome}")
        return True
