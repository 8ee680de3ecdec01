"""
Greenhouse job board fetcher.

Reads https://boards-api.greenhouse.io/v1/boards/{boardToken}/jobs?content=true and
admits jobs whose metadata, location/offices or content show a worldwide or
LATAM hiring region.

Check order:
1. Metadata fields (REMOTE_METADATA_FIELDS): reject > latam > global. A metadata
   LATAM match accepts immediately; a metadata global match only counts when the
   location and content checks are inconclusive.
2. Location name, then offices when the name is ambiguous.
3. Title and content keywords.
"""
import re
import html
import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from core.errors import ParseError
from core.relevance import GreenhouseFilter, MetadataFieldRule
from core.text import strip_html
from fetchers.base import DETERMINED_REGION_KEY, STRUCTURED_REGION_KEY, JobFetcher, JobSource, SourceType

logger = logging.getLogger(__name__)

API_URL = "https://boards-api.greenhouse.io/v1/boards/{board_token}/jobs?content=true"

LATAM_METADATA_VALUES = ('latam', 'americas', 'brazil', 'brasil')
GLOBAL_METADATA_VALUES = ('worldwide', 'global', 'anywhere')

RESTRICTION_PHRASES = [
    'must be located in', 'must reside in', 'eligible to work in', 'must be based in',
    'currently located in', 'currently residing in', 'position based in',
    'based in', 'located in', 'residing in', 'resident of', 'based out of',
    'authorized to work in', 'must possess work authorization for',
    'applicants must be residents of', 'open to candidates in', 'open only to candidates in',
    'position is based in', 'role is based in', 'this role is based in',
    'you must be located in', 'you must reside in', 'must work from',
    'requirement to live in', 'requirement to be based in',
    'restricted to residents of', 'candidate must be in', 'hiring in', 'hiring only in',
    'we can hire in', 'we can only hire in', 'will only consider applicants in',
    'must be physically located in', 'must be authorized to work permanently in',
    'work authorization in',
]

WORD_SPLIT = re.compile(r'[\s\-()/,]+')


class Verdict(str, Enum):
    ACCEPT_GLOBAL = 'global'
    ACCEPT_LATAM = 'latam'
    REJECT = 'reject'
    UNKNOWN = 'unknown'


def _first_substring(text: str, keywords: Iterable[str]) -> Optional[str]:
    if not text:
        return None
    for keyword in keywords:
        if keyword and keyword in text:
            return keyword
    return None


def _first_word_match(text: str, keywords: Iterable[str]) -> Optional[str]:
    """First keyword that appears in text delimited by non-word characters."""
    if not text:
        return None
    for keyword in keywords:
        if keyword and re.search(rf'(?<!\w){re.escape(keyword)}(?!\w)', text):
            return keyword
    return None


class GreenhouseFetcher(JobFetcher):
    """Fetcher for Greenhouse board API sources (config key: boardToken)"""

    source_type = SourceType.GREENHOUSE

    async def fetch_records(self, source: JobSource) -> List[Dict[str, Any]]:
        board_token = self.require_config(source, 'boardToken')
        url = API_URL.format(board_token=board_token)
        logger.info(f"[greenhouse] Fetching board '{board_token}' for source {source.id}")

        payload = await self.get_json(url, source)
        if not isinstance(payload, dict) or not isinstance(payload.get('jobs'), list):
            raise ParseError(f"Invalid response structure from Greenhouse API ({url})")
        return payload['jobs']

    def record_id(self, raw: Dict[str, Any]) -> Optional[str]:
        job_id = raw.get('id')
        return str(job_id) if job_id is not None else None

    def passes_gate(self, raw: Dict[str, Any], source: JobSource) -> bool:
        relevant, reason, region = self.check_relevance(raw)
        job_ref = f"{raw.get('id')} ({raw.get('title')})"
        if not relevant:
            logger.debug(f"[greenhouse] Job {job_ref} skipped: {reason}")
            return False

        raw[DETERMINED_REGION_KEY] = region
        if reason.startswith('Metadata('):
            raw[STRUCTURED_REGION_KEY] = region
        logger.info(f"[greenhouse] Relevant job {job_ref}: {reason}")
        return True

    def check_relevance(self, job: Dict[str, Any]) -> Tuple[bool, str, Optional[str]]:
        """
        Run the metadata, location and content checks.

        Returns:
            (relevant, reason, region) where region is 'global' or 'latam' when relevant
        """
        rules = self.relevance.greenhouse
        title = job.get('title') or ''
        location_name = (job.get('location') or {}).get('name')
        offices = job.get('offices') or []

        metadata_verdict = self.check_metadata(job.get('metadata') or [], rules)
        if metadata_verdict == Verdict.REJECT:
            return False, 'Metadata indicates restriction', None
        if metadata_verdict == Verdict.ACCEPT_LATAM:
            return True, 'Metadata(LATAM)', 'latam'

        location_verdict = self.check_location(location_name, offices, rules)
        if location_verdict == Verdict.REJECT:
            office_names = ', '.join(str(o.get('name')) for o in offices if o.get('name'))
            return False, f'Location/office indicates restriction or is non-remote: "{location_name}" / offices: {office_names}', None
        if location_verdict == Verdict.ACCEPT_LATAM:
            return True, 'Location/Office(LATAM)', 'latam'
        if location_verdict == Verdict.ACCEPT_GLOBAL:
            return True, 'Location/Office(Global)', 'global'

        content_verdict = self.check_content(title, job.get('content'), rules)
        if content_verdict == Verdict.REJECT:
            return False, 'Content indicates restriction (region/timezone/citizenship/phrase)', None
        if content_verdict == Verdict.ACCEPT_LATAM:
            return True, 'Content(LATAM)', 'latam'
        if content_verdict == Verdict.ACCEPT_GLOBAL:
            return True, 'Content(Global)', 'global'

        if metadata_verdict == Verdict.ACCEPT_GLOBAL:
            return True, 'Metadata(Global) with inconclusive location/content', 'global'

        return False, 'Inconclusive: no LATAM/Global signal found after all checks', None

    def check_metadata(self, metadata: List[Dict[str, Any]], rules: GreenhouseFilter) -> Verdict:
        if not metadata or not rules.metadata_fields:
            return Verdict.UNKNOWN

        has_latam = False
        has_global = False

        for item in metadata:
            rule = rules.metadata_rule(item.get('name') or '')
            if rule is None:
                continue

            raw_value = item.get('value')
            if isinstance(raw_value, str):
                values = [raw_value.lower()]
            elif isinstance(raw_value, list):
                values = [v.lower() for v in raw_value if isinstance(v, str)]
            else:
                continue

            for value in values:
                verdict = self._metadata_value_verdict(rule, value)
                if verdict == Verdict.REJECT:
                    logger.debug(f"[greenhouse] Metadata '{rule.name}' = '{value}' -> reject")
                    return Verdict.REJECT
                if verdict == Verdict.ACCEPT_LATAM:
                    has_latam = True
                elif verdict == Verdict.ACCEPT_GLOBAL:
                    has_global = True

        if has_latam:
            return Verdict.ACCEPT_LATAM
        if has_global:
            return Verdict.ACCEPT_GLOBAL
        return Verdict.UNKNOWN

    def _metadata_value_verdict(self, rule: MetadataFieldRule, value: str) -> Verdict:
        if rule.type == 'boolean':
            if rule.positive_value and value == rule.positive_value:
                return Verdict.ACCEPT_GLOBAL
            if rule.negative_value and value == rule.negative_value:
                return Verdict.REJECT
            return Verdict.UNKNOWN

        if _first_substring(value, rule.disallowed_values):
            return Verdict.REJECT

        allowed = _first_substring(value, rule.allowed_values)
        if allowed:
            if allowed in LATAM_METADATA_VALUES:
                return Verdict.ACCEPT_LATAM
            if allowed in GLOBAL_METADATA_VALUES:
                return Verdict.ACCEPT_GLOBAL
            # allowed, but neither worldwide nor LATAM
            return Verdict.REJECT

        positive = _first_substring(value, rule.positive_values)
        if positive:
            return Verdict.ACCEPT_LATAM if positive in LATAM_METADATA_VALUES else Verdict.ACCEPT_GLOBAL

        return Verdict.UNKNOWN

    def check_location(self, location_name: Optional[str], offices: List[Dict[str, Any]], rules: GreenhouseFilter) -> Verdict:
        name = (location_name or '').strip().lower()
        words = [w for w in WORD_SPLIT.split(name) if len(w) > 2]

        has_worldwide_word = any(w in ('worldwide', 'global', 'anywhere') for w in words)
        has_latam_word = any(w in ('latam', 'latin') for w in words)
        has_americas_word = any(w in ('americas', 'america') for w in words)
        has_home_based = 'home' in words and ('based' in words or 'base' in words)
        has_remote_word = 'remote' in words

        negative = _first_word_match(name, rules.location_negative)
        if negative:
            logger.debug(f"[greenhouse] Location '{location_name}' rejected: negative keyword '{negative}'")
            return Verdict.REJECT

        if _first_word_match(name, rules.latam_countries):
            return Verdict.ACCEPT_LATAM
        if _first_substring(name, rules.location_latam):
            return Verdict.ACCEPT_LATAM
        if _first_substring(name, rules.location_global):
            return Verdict.ACCEPT_GLOBAL

        if has_worldwide_word:
            return Verdict.ACCEPT_GLOBAL
        if has_latam_word:
            return Verdict.ACCEPT_LATAM
        # "Americas" may mean North America only, but usually includes LATAM
        if has_americas_word:
            return Verdict.ACCEPT_LATAM

        if _first_substring(name, rules.location_ambiguous) or not name or has_home_based:
            return self._check_offices(location_name, offices, rules)

        if has_remote_word:
            return Verdict.UNKNOWN

        logger.debug(f"[greenhouse] Location '{location_name}' rejected: specific, not Global/LATAM")
        return Verdict.REJECT

    def _check_offices(self, location_name: Optional[str], offices: List[Dict[str, Any]], rules: GreenhouseFilter) -> Verdict:
        office_names = []
        for office in offices:
            for key in ('name', 'location'):
                value = office.get(key)
                if isinstance(value, str) and value.strip():
                    office_names.append(value.strip().lower())

        if not office_names:
            return Verdict.UNKNOWN

        negatives = [n for n in office_names if _first_word_match(n, rules.location_negative)]
        if len(negatives) == len(office_names):
            logger.debug(f"[greenhouse] Location '{location_name}' rejected: all offices are restricted")
            return Verdict.REJECT

        if any(_first_substring(n, rules.location_latam) or _first_word_match(n, rules.latam_countries)
               for n in office_names):
            return Verdict.ACCEPT_LATAM
        if any(_first_substring(n, rules.location_global) for n in office_names):
            return Verdict.ACCEPT_GLOBAL
        if negatives:
            logger.debug(f"[greenhouse] Location '{location_name}' rejected: restricted office '{negatives[0]}'")
            return Verdict.REJECT

        return Verdict.UNKNOWN

    def check_content(self, title: str, content: Optional[str], rules: GreenhouseFilter) -> Verdict:
        title_lower = (title or '').lower()
        # Greenhouse returns entity-escaped HTML in "content"
        clean = strip_html(html.unescape(content or ''))
        full_text = f"{title_lower}\n{clean}".lower()

        if _first_word_match(title_lower, rules.location_negative):
            return Verdict.REJECT

        positive_latam = _first_substring(full_text, rules.content_latam)
        positive_global = _first_substring(full_text, rules.content_global)

        region_hit = _first_word_match(full_text, rules.content_negative_region)
        if region_hit:
            logger.debug(f"[greenhouse] Content rejected: '{region_hit}'")
            return Verdict.REJECT

        timezone_hit = _first_word_match(full_text, rules.content_negative_timezone)
        if timezone_hit and not (positive_latam or positive_global):
            logger.debug(f"[greenhouse] Content rejected: timezone '{timezone_hit}' without Global/LATAM signal")
            return Verdict.REJECT

        if positive_latam:
            return Verdict.ACCEPT_LATAM
        if positive_global:
            return Verdict.ACCEPT_GLOBAL

        if rules.location_negative and self._has_restriction_phrase(full_text, rules):
            return Verdict.REJECT

        return Verdict.UNKNOWN

    def _has_restriction_phrase(self, text: str, rules: GreenhouseFilter) -> bool:
        phrases = '|'.join(re.escape(p) for p in RESTRICTION_PHRASES)
        locations = '|'.join(re.escape(loc) for loc in rules.location_negative)
        pattern = re.compile(rf'({phrases})[\s\W]{{0,5}}(?:the\s+)?({locations})(?!\w)', re.IGNORECASE)

        match = pattern.search(text)
        if match:
            logger.debug(f"[greenhouse] Content rejected: restriction phrase '{match.group(0)}'")
            return True
        return False
