"""
Ashby posting API fetcher.

Every job in the payload counts as found; only listed jobs (isListed not False)
reach the relevance gate.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from core.errors import ParseError
from core.text import strip_html, normalize_text
from fetchers.base import DETERMINED_REGION_KEY, JobFetcher, JobSource, SourceType
from fetchers.greenhouse import _first_substring, _first_word_match

logger = logging.getLogger(__name__)

API_URL = "https://api.ashbyhq.com/posting-api/job-board/{board_name}?includeCompensation=true"


class AshbyFetcher(JobFetcher):
    """Fetcher for Ashby job boards (config key: jobBoardName)"""

    source_type = SourceType.ASHBY

    async def fetch_records(self, source: JobSource) -> List[Dict[str, Any]]:
        board_name = self.require_config(source, 'jobBoardName')
        url = API_URL.format(board_name=board_name)
        logger.info(f"[ashby] Fetching job board '{board_name}' for source {source.id}")

        payload = await self.get_json(url, source)
        if not isinstance(payload, dict) or not isinstance(payload.get('jobs'), list):
            raise ParseError(f"API response is missing 'jobs' array ({url})")
        return payload['jobs']

    def record_id(self, raw: Dict[str, Any]) -> Optional[str]:
        value = raw.get('id') or raw.get('jobUrl')
        return str(value) if value else None

    def passes_gate(self, raw: Dict[str, Any], source: JobSource) -> bool:
        job_ref = f"{raw.get('id') or raw.get('jobUrl')} ({raw.get('title')})"
        if raw.get('isListed') is False:
            logger.debug(f"[ashby] Job not listed: {job_ref}")
            return False

        relevant, reason, region = self.check_relevance(raw)
        if not relevant:
            logger.debug(f"[ashby] Job {job_ref} skipped: {reason}")
            return False

        raw[DETERMINED_REGION_KEY] = region
        logger.info(f"[ashby] Relevant job {job_ref}: {reason}")
        return True

    def _negative_keywords(self) -> Tuple[str, ...]:
        rules = self.relevance.greenhouse
        combined = rules.location_negative + rules.content_negative_region
        return tuple(dict.fromkeys(combined))

    def location_identifiers(self, job: Dict[str, Any]) -> List[str]:
        """Lowercased location names, address parts, country codes and the title, deduplicated."""
        identifiers = []
        locations = list(job.get('locations') or []) + list(job.get('secondaryLocations') or [])
        # single-location payloads carry "location"/"address" at the top level
        if job.get('location') or job.get('address'):
            locations.append({'name': job.get('location'), 'address': job.get('address')})

        for loc in locations:
            if not isinstance(loc, dict):
                continue
            address = loc.get('address') or {}
            if isinstance(address, dict) and 'postalAddress' in address:
                address = address.get('postalAddress') or {}
            values = [
                loc.get('name') or loc.get('location'),
                address.get('addressLocality') or address.get('city'),
                address.get('addressRegion') or address.get('state'),
                address.get('rawAddress'),
                address.get('addressCountry') or address.get('country'),
                address.get('countryCode'),
            ]
            identifiers.extend(str(v).strip().lower() for v in values if v)

        title = (job.get('title') or '').lower()
        if title:
            identifiers.append(title)
        return list(dict.fromkeys(i for i in identifiers if i))

    def check_relevance(self, job: Dict[str, Any]) -> Tuple[bool, str, Optional[str]]:
        """
        Returns:
            (relevant, reason, region) where region is 'global' or 'latam' when relevant
        """
        regions = self.relevance.regions
        if job.get('isRemote') is False:
            return False, 'Marked as non-remote in ATS (isRemote: false)', None

        latam_keywords = regions.latam + regions.brazil
        negative_keywords = self._negative_keywords()

        has_latam = False
        has_americas = False
        has_global = False
        negative_hit = None

        for identifier in self.location_identifiers(job):
            if not has_latam and (identifier in regions.latam_country_codes
                                  or _first_substring(identifier, latam_keywords)):
                has_latam = True
            if not has_americas and 'americas' in identifier:
                has_americas = True
            if not (has_latam or has_americas or has_global) and _first_substring(identifier, regions.remote):
                has_global = True
            if negative_hit is None:
                match = _first_word_match(identifier, negative_keywords)
                if match and match != 'americas':
                    negative_hit = match

        if has_latam:
            return True, 'Location/Title(LATAM signal)', 'latam'
        if has_americas and not negative_hit:
            return True, 'Location/Title(Americas signal)', 'latam'

        location_global = (has_global or job.get('isRemote') is True) and not negative_hit
        if not location_global and negative_hit:
            return False, f'Location/Title restriction: {negative_hit}', None

        content = normalize_text(f"{job.get('title') or ''}\n{job.get('descriptionPlain') or strip_html(job.get('descriptionHtml'))}")

        latam_hit = _first_substring(content, latam_keywords)
        if latam_hit:
            return True, f'Content(LATAM keyword: {latam_hit})', 'latam'

        content_negative = _first_word_match(content, negative_keywords)
        if content_negative:
            return False, f'Content restriction keyword: {content_negative}', None

        global_hit = _first_substring(content, regions.remote)
        if global_hit:
            return True, f'Content(Global keyword: {global_hit})', 'global'

        if location_global:
            return True, 'Location(Global signal) with inconclusive content', 'global'

        return False, 'Inconclusive: no LATAM/Global signal found', None
