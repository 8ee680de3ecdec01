"""
Lever hosted job board fetcher.

Scrapes https://jobs.lever.co/{companyIdentifier}. The listing page only carries
title, link, location, team and commitment; LeverProcessor fetches each posting
page for the full content.
"""
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from core.errors import ParseError
from fetchers.base import JobFetcher, JobSource, SourceType

logger = logging.getLogger(__name__)

BASE_URL = "https://jobs.lever.co"

POSTING_SELECTOR = '.posting'
TITLE_SELECTORS = ['a.posting-title h5', '[data-qa="posting-name"]', 'h5']
LINK_SELECTOR = 'a.posting-title[href]'


def _select_text(element, selectors: List[str]) -> Optional[str]:
    for selector in selectors:
        found = element.select_one(selector)
        if found:
            text = found.get_text(' ', strip=True)
            if text:
                return text
    return None


def source_id_from_url(url: Optional[str]) -> Optional[str]:
    """Last non-empty path segment of a posting URL."""
    if not url:
        return None
    segments = [s for s in urlparse(url).path.split('/') if s]
    # /{company}/{id}/apply -> {id}
    if segments and segments[-1] == 'apply':
        segments = segments[:-1]
    return segments[-1] if segments else None


class LeverFetcher(JobFetcher):
    """Fetcher for Lever hosted job boards (config key: companyIdentifier)"""

    source_type = SourceType.LEVER

    async def fetch_records(self, source: JobSource) -> List[Dict[str, Any]]:
        company = self.require_config(source, 'companyIdentifier')
        url = f"{BASE_URL}/{company}"
        logger.info(f"[lever] Fetching listing page {url} for source {source.id}")

        body = await self.get(url, source)
        try:
            html = body.decode('utf-8', errors='replace')
            return self.parse_listing(html, source)
        except Exception as e:
            raise ParseError(f"Could not parse Lever listing page {url}: {e}")

    def parse_listing(self, html: str, source: JobSource) -> List[Dict[str, Any]]:
        """
        Extract one raw record per .posting block.

        Postings without a link are kept (they count as found) with
        application_url None.
        """
        soup = BeautifulSoup(html, 'lxml')
        records = []

        for posting in soup.select(POSTING_SELECTOR):
            link = posting.select_one(LINK_SELECTOR)
            href = link.get('href', '').strip() if link else ''
            application_url = urljoin(BASE_URL + '/', href) if href else None

            records.append({
                'source_id': source_id_from_url(application_url) or posting.get('data-qa-posting-id'),
                'title': _select_text(posting, TITLE_SELECTORS),
                'application_url': application_url,
                'location': _select_text(posting, ['.posting-categories .location', '.location', '.sort-by-location']),
                'department': _select_text(posting, ['.posting-categories .department', '.department', '.sort-by-team']),
                'commitment': _select_text(posting, ['.posting-categories .commitment', '.commitment', '.sort-by-commitment']),
                'workplace': _select_text(posting, ['.posting-categories .workplaceTypes', '.workplaceTypes']),
                'company_name': source.name,
            })

        return records

    def record_id(self, raw: Dict[str, Any]) -> Optional[str]:
        return raw.get('source_id') if raw.get('application_url') else None

    def passes_gate(self, raw: Dict[str, Any], source: JobSource) -> bool:
        if not raw.get('application_url'):
            logger.warning(f"[lever] Skipping posting - could not find job link. (title: {raw.get('title')}, source: {source.id})")
            return False
        return True
