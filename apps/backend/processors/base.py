"""
Base processor interface and the canonical job model.

A processor maps one raw record into a StandardizedJob, or reports why it could
not (ProcessedJobResult.success False with an error message).
"""
import os
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from core.net import HTTPClient
from core.relevance import RelevanceConfig
from core.scorer import score
from core.text import parse_date

logger = logging.getLogger(__name__)

MISSING_SOURCE_ID = "Missing jobUrl to use as sourceId"
IRRELEVANT = "Job determined irrelevant"
BELOW_THRESHOLD = "Relevance score below threshold"


class JobType(str, Enum):
    FULL_TIME = 'FULL_TIME'
    PART_TIME = 'PART_TIME'
    CONTRACT = 'CONTRACT'
    INTERNSHIP = 'INTERNSHIP'
    FREELANCE = 'FREELANCE'
    UNKNOWN = 'UNKNOWN'


class ExperienceLevel(str, Enum):
    ENTRY = 'ENTRY'
    MID = 'MID'
    SENIOR = 'SENIOR'
    LEAD = 'LEAD'


class WorkplaceType(str, Enum):
    REMOTE = 'REMOTE'
    HYBRID = 'HYBRID'
    ON_SITE = 'ON_SITE'
    UNKNOWN = 'UNKNOWN'


class HiringRegion(str, Enum):
    WORLDWIDE = 'WORLDWIDE'
    LATAM = 'LATAM'
    BRAZIL = 'BRAZIL'


class StandardizedJob(BaseModel):
    """Canonical job record. (source, source_id) is the natural key."""
    source: str
    source_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: str = ''
    requirements: Optional[str] = None
    responsibilities: Optional[str] = None
    benefits: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    job_type: JobType = JobType.UNKNOWN
    experience_level: ExperienceLevel = ExperienceLevel.MID
    workplace_type: WorkplaceType = WorkplaceType.UNKNOWN
    hiring_region: Optional[HiringRegion] = None
    location: str = 'Location Unknown'
    country: Optional[str] = None
    application_url: Optional[str] = None
    company_name: str = Field(min_length=1)
    company_website: Optional[str] = None
    company_logo: Optional[str] = None
    published_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    relevance_score: int = 0
    status: str = 'ACTIVE'

    @field_validator('title', 'company_name', 'source_id')
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError('must not be blank')
        return value

    @field_validator('location')
    @classmethod
    def _location_not_blank(cls, value: str) -> str:
        return value.strip() or 'Location Unknown'


@dataclass
class ProcessedJobResult:
    success: bool
    job: Optional[StandardizedJob] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> 'ProcessedJobResult':
        return cls(success=False, error=error)


def published_or_now(*values: Any) -> datetime:
    """First parseable date among values, else the current time."""
    for value in values:
        parsed = parse_date(value)
        if parsed is not None:
            return parsed
    return datetime.now(timezone.utc)


def min_relevance_score() -> Optional[int]:
    """Score floor from JOBINGEST_MIN_RELEVANCE_SCORE, None when unset."""
    raw = os.getenv('JOBINGEST_MIN_RELEVANCE_SCORE')
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"[processor] Ignoring non-integer JOBINGEST_MIN_RELEVANCE_SCORE={raw!r}")
        return None


class JobProcessor(ABC):
    """Base class for per-source-type processors."""

    def __init__(self, relevance: RelevanceConfig, http_client: Optional[HTTPClient] = None):
        self.relevance = relevance
        self.http_client = http_client or HTTPClient()

    @abstractmethod
    async def process_job(self, raw: Dict[str, Any], source) -> ProcessedJobResult:
        """
        Map a raw record from `source` (a JobSource) to a StandardizedJob.
        """
        pass

    def score_job(self, title: str, description: str, location: str) -> int:
        return score(
            {'title': title, 'description': description, 'location': location},
            self.relevance.scoring,
        )

    def apply_score_floor(self, job: StandardizedJob) -> Optional[ProcessedJobResult]:
        """Rejection result when a score floor is configured and the job is below it."""
        floor = min_relevance_score()
        if floor is not None and job.relevance_score < floor:
            logger.info(f"[processor] Job {job.source_id} scored {job.relevance_score} (< {floor}), rejected")
            return ProcessedJobResult.failed(BELOW_THRESHOLD)
        return None

    def company_fields(self, source) -> Dict[str, Optional[str]]:
        """Company metadata comes from the owning JobSource."""
        return {
            'company_name': source.name,
            'company_website': source.company_website,
            'company_logo': source.logo_url,
        }
