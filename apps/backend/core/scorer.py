"""
Keyword/regex relevance scorer.

score() sums the weights of every keyword found as a substring and every regex
pattern that matches, across the four signal groups of a ScoringSignals value.
The result is an unclamped signed integer; callers decide what counts as relevant.
"""
import logging
from typing import Dict, Optional

from core.relevance import ScoringSignals
from core.text import normalize_text

logger = logging.getLogger(__name__)


def score(job_text: Dict[str, Optional[str]], signals: Optional[ScoringSignals]) -> int:
    """
    Score a job's title/description/location against the configured signals.

    Args:
        job_text: {'title': str, 'description': str | None, 'location': str | None}
        signals: immutable ScoringSignals (patterns pre-compiled; invalid ones score 0)

    Returns:
        Signed integer score
    """
    if signals is None:
        return 0

    title = job_text.get('title') or ''
    description = job_text.get('description') or ''
    location = job_text.get('location') or ''
    combined = normalize_text(f"{title} {description} {location}")

    total = 0
    for _name, group in signals.groups():
        for keyword in group.keywords:
            term = normalize_text(keyword.term)
            if term and term in combined:
                total += keyword.weight

        for pattern in group.patterns:
            if pattern.compiled is None:
                continue
            if pattern.compiled.search(combined):
                total += pattern.weight

    return total
