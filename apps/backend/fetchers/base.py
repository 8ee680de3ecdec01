"""
Base fetcher interface for job sources.

A fetcher retrieves the posting list for one configured JobSource, applies a
first-pass relevance gate and forwards each admitted raw record to the processing
adapter. Errors are counted only for fetch/transport/parse failures; a record the
adapter reports as not saved is a warning, not an error.
"""
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from core.errors import ConfigError, ParseError, TransportError
from core.net import MAX_BODY_KB, HTTPClient, build_auth, describe_status
from core.relevance import RelevanceConfig
from core.secrets import find_missing_secrets, resolve_secrets

logger = logging.getLogger(__name__)

DETERMINED_REGION_KEY = '_determined_hiring_region'
STRUCTURED_REGION_KEY = '_structured_hiring_region'

# Board APIs return every posting in one document (Greenhouse ?content=true can pass 5MB)
MAX_JSON_BODY_KB = 32 * 1024


class SourceType(str, Enum):
    GREENHOUSE = 'greenhouse'
    ASHBY = 'ashby'
    LEVER = 'lever'


class JobSource(BaseModel):
    """A configured upstream job board (one row of job_sources)."""
    id: str
    name: str
    type: SourceType
    is_enabled: bool = True
    config: Dict[str, Any] = Field(default_factory=dict)
    company_website: Optional[str] = None
    logo_url: Optional[str] = None
    last_fetched: Optional[datetime] = None
    latest_run: Optional[Dict[str, Any]] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'JobSource':
        data = dict(row)
        data['id'] = str(data['id'])
        # psycopg2 returns jsonb as dict, but text columns may still hold JSON strings
        for key in ('config', 'latest_run'):
            if isinstance(data.get(key), str):
                data[key] = json.loads(data[key])
        if data.get('config') is None:
            data['config'] = {}
        return cls(**data)

    def config_value(self, key: str) -> Optional[str]:
        value = (self.config or {}).get(key)
        if isinstance(value, str):
            value = resolve_secrets(value).strip()
        return value or None


@dataclass
class RunStats:
    """Per-source run counters."""
    found: int = 0
    relevant: int = 0
    processed: int = 0
    errors: int = 0
    fatal: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FetcherResult:
    found_source_ids: Set[str] = field(default_factory=set)
    stats: RunStats = field(default_factory=RunStats)
    message: Optional[str] = None


class JobFetcher(ABC):
    """
    Base class for source fetchers.

    Subclasses implement fetch_records (network + payload parsing), record_id and
    passes_gate. fetch_source drives the common loop and keeps the counters.
    """

    source_type: SourceType

    def __init__(self, adapter, relevance: RelevanceConfig, http_client: Optional[HTTPClient] = None):
        """
        Args:
            adapter: ProcessingAdapter used to process and persist admitted records
            relevance: Immutable relevance configuration
            http_client: Shared HTTP client (a new one is created if omitted)
        """
        self.adapter = adapter
        self.relevance = relevance
        self.http_client = http_client or HTTPClient()

    @abstractmethod
    async def fetch_records(self, source: JobSource) -> List[Dict[str, Any]]:
        """
        Retrieve and parse the raw posting list.

        Raises:
            ConfigError, TransportError, ParseError
        """
        pass

    @abstractmethod
    def record_id(self, raw: Dict[str, Any]) -> Optional[str]:
        """Upstream identifier of a raw record, when the list view carries one."""
        pass

    @abstractmethod
    def passes_gate(self, raw: Dict[str, Any], source: JobSource) -> bool:
        """First-pass relevance gate. May annotate raw with the determined hiring region."""
        pass

    async def fetch_source(self, source: JobSource) -> FetcherResult:
        """
        Fetch one source and forward admitted records to the adapter.

        Returns:
            FetcherResult with the set of upstream ids seen and the run counters
        """
        result = FetcherResult()
        stats = result.stats
        tag = self.source_type.value

        try:
            records = await self.fetch_records(source)
        except ConfigError as e:
            logger.error(f"[{tag}] Config error for source {source.id} ({source.name}): {e}")
            stats.errors = 1
            result.message = f"Config error: {e}"
            return result
        except TransportError as e:
            logger.error(f"[{tag}] Fetch failed for source {source.id} ({source.name}): {e}")
            stats.errors = 1
            result.message = str(e)
            return result
        except ParseError as e:
            logger.error(f"[{tag}] Could not parse payload for source {source.id} ({source.name}): {e}")
            stats.errors = 1
            result.message = f"Parse error: {e}"
            return result

        stats.found = len(records)
        if not records:
            logger.warning(f"[{tag}] No job postings found for source {source.id} ({source.name})")
            return result

        for raw in records:
            source_id = None
            try:
                source_id = self.record_id(raw)
                if source_id:
                    result.found_source_ids.add(source_id)

                if not self.passes_gate(raw, source):
                    continue
                stats.relevant += 1

                saved = await self.adapter.process_raw_job(self.source_type, raw, source)
                if saved:
                    stats.processed += 1
                else:
                    logger.warning(f"[{tag}] Adapter reported job not saved: {source_id or raw.get('title')}")
            except Exception as e:
                stats.errors += 1
                logger.error(f"[{tag}] Error handling job {source_id or '?'} from source {source.id}: {e}", exc_info=True)

        logger.info(
            f"[{tag}] Source {source.id} ({source.name}): found={stats.found} relevant={stats.relevant} "
            f"processed={stats.processed} errors={stats.errors}"
        )
        return result

    def require_config(self, source: JobSource, key: str) -> str:
        value = source.config_value(key)
        if not value:
            raise ConfigError(f"Missing '{key}' in config for source {source.id}")
        return value

    async def get(self, url: str, source: JobSource, max_size_kb: int = MAX_BODY_KB) -> bytes:
        """
        GET a URL with the source's auth settings.

        Raises:
            TransportError: on transport failure, non-2xx status or a body over max_size_kb
        """
        raw_auth = (source.config or {}).get('auth')
        missing = find_missing_secrets(raw_auth)
        if missing:
            raise ConfigError(f"Missing secrets for source {source.id}: {', '.join(missing)}")

        auth_config = resolve_secrets(raw_auth)
        auth_header, extra_headers, query_params = build_auth(auth_config)

        status, _headers, body, size = await self.http_client.fetch(
            url,
            headers=extra_headers,
            params=query_params,
            auth_header=auth_header,
            max_size_kb=max_size_kb,
        )
        if not 200 <= status < 300:
            message, category = describe_status(status, url)
            logger.warning(f"[{self.source_type.value}] {message} (category: {category})")
            raise TransportError(message, status=status, url=url)
        if size > len(body):
            message = f"Response from {url} exceeded the {max_size_kb}KB size limit ({size} bytes)"
            logger.error(f"[{self.source_type.value}] {message}")
            raise TransportError(message, status=status, url=url)
        return body

    async def get_json(self, url: str, source: JobSource) -> Any:
        body = await self.get(url, source, max_size_kb=MAX_JSON_BODY_KB)
        try:
            return json.loads(body.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ParseError(f"Invalid JSON response from {url}: {e}")
