"""
Workplace type and hiring region classification.

Structured signals are consulted first (explicit remote flag, country codes,
Greenhouse metadata). When none applies, free text from the title and every
location fragment is searched with an ordered rule list:

    remote keyword -> LATAM keyword -> Brazil keyword -> no match

The first rule that matches decides; later rules are not evaluated. The region a
fetcher gate derived from posting text is only a fallback after these rules.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from core.relevance import RegionKeywords
from core.text import normalize_text
from processors.base import HiringRegion, WorkplaceType

logger = logging.getLogger(__name__)

BRAZIL_CODE = 'br'

HYBRID_HINTS = ('hybrid',)
ON_SITE_HINTS = ('on-site', 'onsite', 'on site', 'in-office', 'in office')

DETERMINED_REGIONS = {
    'latam': HiringRegion.LATAM,
    'global': HiringRegion.WORLDWIDE,
    'brazil': HiringRegion.BRAZIL,
}


@dataclass(frozen=True)
class Classification:
    workplace_type: WorkplaceType
    hiring_region: HiringRegion
    rule: str


def workplace_from_hint(hint: Optional[str]) -> Optional[WorkplaceType]:
    if not hint:
        return None
    text = hint.lower()
    if any(h in text for h in HYBRID_HINTS):
        return WorkplaceType.HYBRID
    if any(h in text for h in ON_SITE_HINTS):
        return WorkplaceType.ON_SITE
    if 'remote' in text:
        return WorkplaceType.REMOTE
    return None


def _region_from_codes(codes: Iterable[str], regions: RegionKeywords) -> Optional[HiringRegion]:
    lowered = [c.strip().lower() for c in codes if c]
    if BRAZIL_CODE in lowered:
        return HiringRegion.BRAZIL
    if any(c in regions.latam_country_codes for c in lowered):
        return HiringRegion.LATAM
    return None


def _first_keyword(text: str, keywords: Iterable[str]) -> Optional[str]:
    for keyword in keywords:
        term = normalize_text(keyword)
        if term and term in text:
            return keyword
    return None


def _free_text_region(text: str, regions: RegionKeywords) -> Optional[Tuple[HiringRegion, str]]:
    if _first_keyword(text, regions.remote):
        return HiringRegion.WORLDWIDE, 'remote'
    if _first_keyword(text, regions.latam):
        return HiringRegion.LATAM, 'latam'
    if _first_keyword(text, regions.brazil):
        return HiringRegion.BRAZIL, 'brazil'
    return None


def classify_location(
    regions: RegionKeywords,
    title: Optional[str] = None,
    locations: Iterable[Optional[str]] = (),
    is_remote: Optional[bool] = None,
    country_codes: Iterable[str] = (),
    structured_region: Optional[str] = None,
    determined_region: Optional[str] = None,
    workplace_hint: Optional[str] = None,
    job_ref: str = '',
) -> Optional[Classification]:
    """
    Classify a posting.

    Args:
        regions: Region keyword tables from the relevance config
        title: Posting title
        locations: Primary and secondary location fragments
        is_remote: Explicit remote flag from the ATS, if any
        country_codes: Structured ISO country codes from addresses
        structured_region: Region read from structured ATS fields (Greenhouse metadata)
        determined_region: Region the fetcher gate derived from free text; used only
            when no free-text rule matches
        workplace_hint: Free-form workplace text (e.g. Lever "Hybrid")
        job_ref: Identifier used in log lines

    Returns:
        Classification, or None when no rule qualifies the posting
    """
    hinted = workplace_from_hint(workplace_hint)
    codes = list(country_codes)

    if is_remote is False and hinted is None:
        logger.debug(f"[classify] {job_ref} explicitly not remote")
        return None

    def result(region: HiringRegion, rule: str) -> Classification:
        workplace = hinted or WorkplaceType.REMOTE
        logger.info(f"[classify] {job_ref} matched {rule} rule -> {workplace.value}/{region.value}")
        return Classification(workplace_type=workplace, hiring_region=region, rule=rule)

    text = normalize_text(' '.join(part for part in [title or '', *locations] if part))
    fallback = DETERMINED_REGIONS.get((determined_region or '').lower())

    # Structured signals
    code_region = _region_from_codes(codes, regions)
    structured = code_region or DETERMINED_REGIONS.get((structured_region or '').lower())
    if is_remote is True:
        if structured is not None:
            return result(structured, 'remote flag')
        matched = _free_text_region(text, regions) if text else None
        return result(matched[0] if matched else (fallback or HiringRegion.WORLDWIDE), 'remote flag')

    if structured is not None:
        return result(structured, 'country code' if code_region else 'metadata')

    # Free text, first match wins
    matched = _free_text_region(text, regions) if text else None
    if matched:
        return result(*matched)

    if fallback is not None:
        return result(fallback, 'fetcher region')

    logger.debug(f"[classify] {job_ref} matched no region rule")
    return None
