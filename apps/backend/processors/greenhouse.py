"""
Greenhouse processor: board API job JSON -> StandardizedJob.
"""
import html
import logging
from typing import Any, Dict

from core.job_utils import (
    build_location_string,
    detect_experience_level,
    detect_job_type,
    extract_skills,
    parse_sections,
)
from core.text import strip_html
from fetchers.base import DETERMINED_REGION_KEY, STRUCTURED_REGION_KEY
from processors.base import (
    IRRELEVANT,
    MISSING_SOURCE_ID,
    JobProcessor,
    ProcessedJobResult,
    StandardizedJob,
    published_or_now,
)
from processors.classify import classify_location

logger = logging.getLogger(__name__)


class GreenhouseProcessor(JobProcessor):
    source = 'greenhouse'

    async def process_job(self, raw: Dict[str, Any], source) -> ProcessedJobResult:
        job_id = raw.get('id')
        source_id = str(job_id) if job_id not in (None, '') else raw.get('absolute_url')
        if not source_id:
            logger.warning(f"[greenhouse] Could not determine a sourceId for '{raw.get('title')}'")
            return ProcessedJobResult.failed(MISSING_SOURCE_ID)

        try:
            title = (raw.get('title') or '').strip()
            location_name = (raw.get('location') or {}).get('name')
            office_names = [o.get('name') for o in raw.get('offices') or [] if o.get('name')]

            classification = classify_location(
                self.relevance.regions,
                title=title,
                locations=[location_name, *office_names],
                structured_region=raw.get(STRUCTURED_REGION_KEY),
                determined_region=raw.get(DETERMINED_REGION_KEY),
                job_ref=f"greenhouse:{source_id}",
            )
            if classification is None:
                return ProcessedJobResult.failed(IRRELEVANT)

            content = strip_html(html.unescape(raw.get('content') or ''))
            sections = parse_sections(content)
            analysis_text = f"{title} {content}"
            skills = extract_skills(analysis_text)
            departments = [d.get('name') for d in raw.get('departments') or [] if d.get('name')]
            location = build_location_string([location_name, *office_names], is_remote=True)

            job = StandardizedJob(
                source=self.source,
                source_id=source_id,
                title=title,
                description=sections['description'] or content,
                requirements=sections['requirements'] or None,
                responsibilities=sections['responsibilities'] or None,
                benefits=sections['benefits'] or None,
                skills=skills,
                tags=list(dict.fromkeys(skills + departments)),
                job_type=detect_job_type(analysis_text),
                experience_level=detect_experience_level(analysis_text),
                workplace_type=classification.workplace_type,
                hiring_region=classification.hiring_region,
                location=location,
                application_url=raw.get('absolute_url'),
                published_at=published_or_now(raw.get('updated_at'), raw.get('first_published')),
                relevance_score=self.score_job(title, content, location),
                **self.company_fields(source),
            )
        except Exception as e:
            logger.error(f"[greenhouse] Error processing job {source_id}: {e}", exc_info=True)
            return ProcessedJobResult.failed(str(e))

        rejected = self.apply_score_floor(job)
        if rejected:
            return rejected
        return ProcessedJobResult(success=True, job=job)
