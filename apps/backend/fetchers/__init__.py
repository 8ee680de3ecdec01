"""
Source fetchers for job boards.

Each fetcher lists the postings of one configured JobSource, applies a first-pass
relevance gate and hands admitted records to the processing adapter.
"""

from .base import FetcherResult, JobFetcher, JobSource, RunStats, SourceType

__all__ = [
    'FetcherResult',
    'JobFetcher',
    'JobSource',
    'RunStats',
    'SourceType',
]
