"""
Ashby processor: posting API job JSON -> StandardizedJob.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from core.job_utils import (
    build_location_string,
    detect_experience_level,
    extract_skills,
    map_employment_type,
    parse_sections,
)
from core.text import strip_html
from fetchers.base import DETERMINED_REGION_KEY
from processors.base import (
    IRRELEVANT,
    MISSING_SOURCE_ID,
    JobProcessor,
    ProcessedJobResult,
    StandardizedJob,
    WorkplaceType,
    published_or_now,
)
from processors.classify import classify_location

logger = logging.getLogger(__name__)


def _address_parts(address: Optional[Dict[str, Any]]) -> Tuple[Optional[str], Optional[str], Optional[str], Optional[str]]:
    """(city, state, country code, country) from either Ashby address shape."""
    if not isinstance(address, dict):
        return None, None, None, None
    if 'postalAddress' in address:
        address = address.get('postalAddress') or {}
    city = address.get('city') or address.get('addressLocality')
    state = address.get('state') or address.get('addressRegion')
    country = address.get('country') or address.get('addressCountry')
    return city, state, address.get('countryCode'), country


def location_fragments(job: Dict[str, Any]) -> Tuple[List[str], List[str], Optional[str]]:
    """
    Location name and "city, state, countryCode" fragments in discovery order.

    Returns:
        (fragments, country_codes, first_country)
    """
    entries = list(job.get('locations') or [])
    if job.get('location') or job.get('address'):
        entries.insert(0, {'name': job.get('location'), 'address': job.get('address')})
    entries.extend(job.get('secondaryLocations') or [])

    fragments = []
    codes = []
    first_country = None
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        name = entry.get('name') or entry.get('location')
        if name:
            fragments.append(str(name))
        city, state, code, country = _address_parts(entry.get('address'))
        address_text = ', '.join(str(p) for p in (city, state, code) if p)
        if address_text:
            fragments.append(address_text)
        if code:
            codes.append(str(code))
        if first_country is None and (country or code):
            first_country = country or code

    return fragments, codes, first_country


class AshbyProcessor(JobProcessor):
    source = 'ashby'

    async def process_job(self, raw: Dict[str, Any], source) -> ProcessedJobResult:
        source_id = raw.get('id') or raw.get('jobUrl')
        if not source_id:
            logger.warning(f"[ashby] Could not determine a unique sourceId for '{raw.get('title')}'")
            return ProcessedJobResult.failed(MISSING_SOURCE_ID)
        source_id = str(source_id)

        if raw.get('isListed') is False:
            logger.debug(f"[ashby] Job {source_id} is not listed")
            return ProcessedJobResult.failed(IRRELEVANT)

        try:
            title = (raw.get('title') or '').strip()
            fragments, codes, country = location_fragments(raw)
            determined = raw.get(DETERMINED_REGION_KEY)

            classification = classify_location(
                self.relevance.regions,
                title=title,
                locations=fragments,
                is_remote=raw.get('isRemote'),
                country_codes=codes,
                determined_region=determined,
                workplace_hint=raw.get('workplaceType'),
                job_ref=f"ashby:{source_id}",
            )
            if classification is None:
                return ProcessedJobResult.failed(IRRELEVANT)

            text = raw.get('descriptionPlain') or strip_html(raw.get('descriptionHtml'))
            sections = parse_sections(text)
            analysis_text = f"{title} {text}"
            skills = extract_skills(analysis_text)

            is_remote = bool(raw.get('isRemote')) or bool(determined) or classification.rule == 'remote'
            workplace = classification.workplace_type
            # a LATAM/Brazil address alone does not make the posting remote
            if workplace == WorkplaceType.REMOTE and not is_remote:
                workplace = WorkplaceType.UNKNOWN
            location = build_location_string(fragments, is_remote=is_remote)
            team = [raw.get(k) for k in ('department', 'team') if isinstance(raw.get(k), str)]

            job = StandardizedJob(
                source=self.source,
                source_id=source_id,
                title=title,
                description=sections['description'] or text,
                requirements=sections['requirements'] or None,
                responsibilities=sections['responsibilities'] or None,
                benefits=sections['benefits'] or None,
                skills=skills,
                tags=list(dict.fromkeys(skills + team)),
                job_type=map_employment_type(raw.get('employmentType')),
                experience_level=detect_experience_level(analysis_text),
                workplace_type=workplace,
                hiring_region=classification.hiring_region,
                location=location,
                country=country,
                application_url=raw.get('applyUrl') or raw.get('jobUrl'),
                published_at=published_or_now(raw.get('publishedAt'), raw.get('updatedAt')),
                relevance_score=self.score_job(title, text, location),
                **self.company_fields(source),
            )
        except Exception as e:
            logger.error(f"[ashby] Error processing job {source_id}: {e}", exc_info=True)
            return ProcessedJobResult.failed(str(e))

        rejected = self.apply_score_floor(job)
        if rejected:
            return rejected
        return ProcessedJobResult(success=True, job=job)
