"""
Text normalization helpers shared by fetchers, processors and the scorer.

- strip_html: markup -> plain text with paragraph breaks kept
- parse_date: tolerant date parsing (ISO-8601, epoch, RFC-2822, dateutil formats)
- normalize_for_deduplication / normalize_company_name: stable comparison keys
- normalize_text: light normalization used for keyword scoring
"""
import re
import html as html_lib
import logging
import unicodedata
from datetime import datetime, timezone
from typing import Any, Optional

from bs4 import BeautifulSoup
from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

BLOCK_TAGS = [
    'p', 'div', 'section', 'article', 'li', 'ul', 'ol', 'tr', 'table',
    'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'blockquote', 'pre', 'hr',
]
NON_TEXT_TAGS = ['script', 'style', 'noscript', 'template', 'textarea', 'option']

PARAGRAPH_SPLIT = re.compile(r'\n\s*\n')
WHITESPACE = re.compile(r'\s+')
TAG_PATTERN = re.compile(r'<[^>]*>')
PUNCTUATION = re.compile(r'[^\w\s]|_')

COMPANY_SUFFIXES = re.compile(r'\s\b(inc|llc|ltd|corp|corporation|sa|ltda|gmbh)\b')

# Epoch values above this are milliseconds (Lever createdAt)
EPOCH_MS_THRESHOLD = 10 ** 11


def _collapse_paragraphs(text: str) -> str:
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    paragraphs = []
    for block in PARAGRAPH_SPLIT.split(text):
        block = WHITESPACE.sub(' ', block).strip()
        if block:
            paragraphs.append(block)
    return '\n\n'.join(paragraphs)


def strip_html(html: Optional[str]) -> str:
    """
    Convert an HTML fragment into plain text.

    Tags are removed, entities decoded, block elements become paragraph breaks
    ("\\n\\n") and every other whitespace run collapses to a single space.
    Never raises: if parsing fails the tags are stripped with a regex instead.
    """
    if not html:
        return ''

    try:
        soup = BeautifulSoup(html, 'lxml')
        for tag in soup.find_all(NON_TEXT_TAGS):
            tag.decompose()
        for br in soup.find_all('br'):
            br.replace_with('\n')
        for tag in soup.find_all(BLOCK_TAGS):
            tag.insert_before('\n\n')
            tag.insert_after('\n\n')
        return _collapse_paragraphs(soup.get_text())
    except Exception as e:
        logger.warning(f"[text] HTML parse failed, falling back to regex strip: {e}")
        text = html_lib.unescape(TAG_PATTERN.sub(' ', str(html)))
        return WHITESPACE.sub(' ', text).strip()


def parse_date(raw: Any) -> Optional[datetime]:
    """
    Parse a date value from an upstream payload.

    Accepts datetime objects, ISO-8601 strings (with or without 'Z'), epoch
    seconds / milliseconds (int or digit string) and anything dateutil can read.
    Returns a timezone-aware datetime (naive values are taken as UTC), or None
    when the value cannot be parsed.
    """
    if raw is None or isinstance(raw, bool):
        return None

    parsed: Optional[datetime] = None

    try:
        if isinstance(raw, datetime):
            parsed = raw
        elif isinstance(raw, (int, float)):
            parsed = _from_epoch(raw)
        elif isinstance(raw, str):
            value = raw.strip()
            if not value:
                return None
            if value.isdigit():
                parsed = _from_epoch(int(value))
            else:
                try:
                    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
                except ValueError:
                    parsed = date_parser.parse(value)
        else:
            return None
    except (ValueError, OverflowError, OSError, TypeError):
        logger.debug(f"[text] Unparseable date: {raw!r}")
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _from_epoch(value: float) -> datetime:
    if value > EPOCH_MS_THRESHOLD:
        value = value / 1000.0
    return datetime.fromtimestamp(value, tz=timezone.utc)


def strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize('NFKD', text)
    return ''.join(c for c in decomposed if not unicodedata.combining(c))


def normalize_for_deduplication(text: Optional[str]) -> str:
    """Lowercase, drop diacritics and punctuation, collapse whitespace."""
    if not text:
        return ''
    value = strip_diacritics(text).lower()
    value = PUNCTUATION.sub('', value)
    return WHITESPACE.sub(' ', value).strip()


def normalize_company_name(name: Optional[str]) -> str:
    """Deduplication key for a company name, without legal suffixes."""
    normalized = normalize_for_deduplication(name)
    return COMPANY_SUFFIXES.sub('', normalized).strip()


def normalize_text(text: Optional[str]) -> str:
    """Lowercase and collapse whitespace. Punctuation is kept so regex patterns still apply."""
    if not text:
        return ''
    return WHITESPACE.sub(' ', text.lower()).strip()
