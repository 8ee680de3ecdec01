"""
Lever processor.

The listing page only gives a pointer ({source_id, title, application_url,
location, department, commitment}), so each posting page is fetched and its
description sections are parsed here.
"""
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from core.errors import TransportError
from core.job_utils import (
    build_location_string,
    detect_experience_level,
    detect_job_type,
    extract_skills,
    match_section_heading,
)
from core.text import parse_date, strip_html
from fetchers.lever import source_id_from_url
from processors.base import (
    IRRELEVANT,
    MISSING_SOURCE_ID,
    JobProcessor,
    ProcessedJobResult,
    StandardizedJob,
    WorkplaceType,
)
from processors.classify import classify_location, workplace_from_hint

logger = logging.getLogger(__name__)

MAX_JOB_AGE_DAYS = 30

SECTION_HEADINGS = ['h2', 'h3', 'h4']
# Blocks read separately, before and after the titled sections
SPECIAL_BLOCKS = ('job-description', 'closing-description')


def job_type_from_commitment(commitment: Optional[str]) -> Optional[str]:
    if not commitment:
        return None
    value = commitment.lower()
    if 'part' in value:
        return 'PART_TIME'
    if 'contract' in value:
        return 'CONTRACT'
    if 'intern' in value:
        return 'INTERNSHIP'
    return 'FULL_TIME'


def parse_posting_page(html: str) -> Dict[str, Any]:
    """
    Parse a Lever posting page.

    Returns:
        {'description', 'requirements', 'responsibilities', 'benefits',
         'location', 'commitment', 'workplace', 'date_posted'}
    """
    soup = BeautifulSoup(html, 'lxml')
    sections: Dict[str, List[str]] = {'description': [], 'requirements': [], 'responsibilities': [], 'benefits': []}

    intro = soup.select_one('[data-qa="job-description"]')
    if intro:
        text = strip_html(str(intro))
        if text:
            sections['description'].append(text)

    for block in soup.select('.section-wrapper .section, .posting-page .section'):
        if block.get('data-qa') in SPECIAL_BLOCKS or block.select_one('[data-qa="job-description"]'):
            continue
        heading = block.find(SECTION_HEADINGS)
        heading_text = heading.get_text(' ', strip=True) if heading else ''
        if heading:
            heading.decompose()
        body = strip_html(str(block))
        if not body:
            continue
        section = match_section_heading(heading_text) if heading_text else None
        if section is None:
            sections['description'].append(f"{heading_text}\n\n{body}" if heading_text else body)
        else:
            sections[section].append(body)

    closing = soup.select_one('[data-qa="closing-description"]')
    if closing:
        text = strip_html(str(closing))
        if text:
            sections['description'].append(text)

    def category(selector: str) -> Optional[str]:
        found = soup.select_one(f'.posting-categories {selector}') or soup.select_one(selector)
        return found.get_text(' ', strip=True).rstrip('/').strip() if found else None

    date_posted = None
    for script in soup.find_all('script', type='application/ld+json'):
        try:
            data = json.loads(script.string or '')
        except (TypeError, ValueError):
            continue
        if isinstance(data, dict) and data.get('datePosted'):
            date_posted = data['datePosted']
            break

    parsed = {name: '\n\n'.join(parts) for name, parts in sections.items()}
    parsed.update({
        'location': category('.location'),
        'commitment': category('.commitment'),
        'workplace': category('.workplaceTypes'),
        'date_posted': date_posted,
    })
    return parsed


class LeverProcessor(JobProcessor):
    source = 'lever'

    async def process_job(self, raw: Dict[str, Any], source) -> ProcessedJobResult:
        application_url = raw.get('application_url')
        source_id = raw.get('source_id') or source_id_from_url(application_url)
        if not source_id or not application_url:
            logger.warning(f"[lever] Could not determine a sourceId for '{raw.get('title')}'")
            return ProcessedJobResult.failed(MISSING_SOURCE_ID)

        try:
            status, _headers, body, _size = await self.http_client.fetch(application_url)
        except TransportError as e:
            logger.error(f"[lever] Failed to fetch job page {application_url}: {e}")
            return ProcessedJobResult.failed(str(e))

        if not 200 <= status < 300:
            logger.warning(f"[lever] Job page {application_url} returned {status}")
            return ProcessedJobResult.failed(f"Failed to fetch job page HTML (Status: {status})")

        try:
            page = parse_posting_page(body.decode('utf-8', errors='replace'))
            title = (raw.get('title') or '').strip()
            location_text = raw.get('location') or page['location']
            workplace_text = raw.get('workplace') or page['workplace']

            classification = classify_location(
                self.relevance.regions,
                title=title,
                locations=[location_text],
                workplace_hint=workplace_text,
                job_ref=f"lever:{source_id}",
            )
            remote = (workplace_from_hint(workplace_text) == WorkplaceType.REMOTE
                      or 'remote' in (location_text or '').lower())
            if not remote or classification is None or classification.workplace_type != WorkplaceType.REMOTE:
                logger.info(f"[lever] Job {source_id} is not remote ({location_text!r} / {workplace_text!r})")
                return ProcessedJobResult.failed(IRRELEVANT)

            published_at = parse_date(raw.get('created_at')) or parse_date(page['date_posted'])
            if published_at and published_at < datetime.now(timezone.utc) - timedelta(days=MAX_JOB_AGE_DAYS):
                logger.info(f"[lever] Job {source_id} published {published_at.date()} is older than {MAX_JOB_AGE_DAYS} days")
                return ProcessedJobResult.failed(f"Job older than {MAX_JOB_AGE_DAYS} days")

            full_text = '\n\n'.join(p for p in (page['description'], page['responsibilities'],
                                                 page['requirements'], page['benefits']) if p)
            analysis_text = f"{title} {full_text}"
            skills = extract_skills(analysis_text)
            commitment = raw.get('commitment') or page['commitment']
            location = build_location_string([location_text], is_remote=True)

            job = StandardizedJob(
                source=self.source,
                source_id=str(source_id),
                title=title,
                description=page['description'] or full_text,
                requirements=page['requirements'] or None,
                responsibilities=page['responsibilities'] or None,
                benefits=page['benefits'] or None,
                skills=skills,
                tags=list(dict.fromkeys(skills + [d for d in [raw.get('department')] if d])),
                job_type=job_type_from_commitment(commitment) or detect_job_type(analysis_text),
                experience_level=detect_experience_level(analysis_text),
                workplace_type=classification.workplace_type,
                hiring_region=classification.hiring_region,
                location=location,
                application_url=application_url,
                published_at=published_at or datetime.now(timezone.utc),
                relevance_score=self.score_job(title, full_text, location),
                **self.company_fields(source),
            )
        except Exception as e:
            logger.error(f"[lever] Error processing job {source_id}: {e}", exc_info=True)
            return ProcessedJobResult.failed(str(e))

        rejected = self.apply_score_floor(job)
        if rejected:
            return rejected
        return ProcessedJobResult(success=True, job=job)
