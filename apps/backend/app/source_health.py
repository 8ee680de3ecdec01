"""
Source health classification.

A run is classified from its counters:
- Error: any fetch/transport/parse error, or a fatal exception
- Warning: postings were found but none passed the gate or none were saved
- Healthy: everything else, including an empty board
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from core.secrets import redact_config
from fetchers.base import RunStats

logger = logging.getLogger(__name__)

HEALTHY = 'Healthy'
WARNING = 'Warning'
ERROR = 'Error'

MAX_MESSAGE_LENGTH = 500


def classify_health(stats: RunStats) -> str:
    if stats.errors > 0 or stats.fatal:
        return ERROR
    if stats.found > 0 and (stats.relevant == 0 or stats.processed == 0):
        return WARNING
    return HEALTHY


def build_health_snapshot(
    stats: RunStats,
    started_at: datetime,
    finished_at: datetime,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Health snapshot stored in job_sources.latest_run.

    Returns:
        {'status', 'found', 'relevant', 'processed', 'errors',
         'started_at', 'finished_at', 'duration_ms', 'message'}
    """
    duration_ms = int((finished_at - started_at).total_seconds() * 1000)
    return {
        'status': classify_health(stats),
        'found': stats.found,
        'relevant': stats.relevant,
        'processed': stats.processed,
        'errors': stats.errors,
        'started_at': started_at.isoformat(),
        'finished_at': finished_at.isoformat(),
        'duration_ms': max(duration_ms, 0),
        'message': message[:MAX_MESSAGE_LENGTH] if message else None,
    }


def summarize_source(source) -> Dict[str, Any]:
    """Admin view of one JobSource: identity plus its last recorded health"""
    latest_run = source.latest_run or None
    return {
        'id': source.id,
        'name': source.name,
        'type': source.type.value,
        'is_enabled': source.is_enabled,
        'config': redact_config(source.config),
        'last_fetched': source.last_fetched.isoformat() if source.last_fetched else None,
        'status': latest_run.get('status') if latest_run else None,
        'latest_run': latest_run,
    }
