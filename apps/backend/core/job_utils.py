"""
Keyword heuristics for job text: skills, job type, experience level, sections, location.
"""
import re
import logging
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

COMMON_SKILLS = [
    'javascript', 'typescript', 'python', 'java', 'c++', 'c#', 'ruby', 'php',
    'react', 'vue', 'angular', 'node.js', 'express', 'django', 'flask',
    'aws', 'azure', 'gcp', 'docker', 'kubernetes', 'terraform',
    'sql', 'mongodb', 'postgresql', 'mysql', 'redis',
    'git', 'ci/cd', 'agile', 'scrum',
]

# Ashby / generic ATS employment type values
EMPLOYMENT_TYPE_MAP = {
    'fulltime': 'FULL_TIME',
    'parttime': 'PART_TIME',
    'contract': 'CONTRACT',
    'intern': 'INTERNSHIP',
    'temporary': 'CONTRACT',
}

LEAD_KEYWORDS = ['vp', 'director', 'manager', 'lead', 'head of']
SENIOR_KEYWORDS = ['senior', 'sr.', 'principal', 'specialist']
ENTRY_KEYWORDS = ['junior', 'jr.', 'entry', 'associate', 'graduate', 'intern', 'internship']

SECTION_MARKERS = {
    'requirements': [
        'requirements', 'qualifications', "what you'll need", 'what you will need',
        "what we're looking for", 'what we are looking for', 'who you are', 'must have',
    ],
    'responsibilities': [
        'responsibilities', "what you'll do", 'what you will do', 'your role',
        'in this role', 'day to day', 'day-to-day',
    ],
    'benefits': [
        'benefits', 'what we offer', 'perks', 'why join', 'compensation',
    ],
}
MAX_HEADING_LENGTH = 60
MAX_HEADING_WORDS = 6

LOCATION_UNKNOWN = 'Location Unknown'
LOCATION_SEPARATOR = ' | '


def _keyword_pattern(keyword: str) -> re.Pattern:
    escaped = re.escape(keyword.lower())
    # "sr." / "jr." / "c++" end in a non-word char, so no trailing boundary
    if not keyword[-1].isalnum():
        return re.compile(rf'(?<![\w]){escaped}')
    return re.compile(rf'(?<![\w]){escaped}\b')


_SKILL_PATTERNS = [(skill, _keyword_pattern(skill)) for skill in COMMON_SKILLS]


def _has_any(text: str, keywords: Iterable[str]) -> bool:
    return any(_keyword_pattern(k).search(text) for k in keywords)


def extract_skills(text: Optional[str]) -> List[str]:
    """Skills from the fixed vocabulary that appear as whole words, in vocabulary order."""
    if not text:
        return []
    lower = text.lower()
    return [skill for skill, pattern in _SKILL_PATTERNS if pattern.search(lower)]


def detect_job_type(text: Optional[str]) -> str:
    lower = (text or '').lower()

    if 'part time' in lower or 'part-time' in lower:
        return 'PART_TIME'
    if 'contract' in lower:
        return 'CONTRACT'
    if 'internship' in lower or 'intern ' in lower:
        return 'INTERNSHIP'
    if 'freelance' in lower:
        return 'FREELANCE'

    return 'FULL_TIME'


def map_employment_type(value: Optional[str]) -> str:
    """Map an ATS employment type (FullTime, PartTime, Contract, Intern, Temporary) to a job type."""
    if not value:
        return 'UNKNOWN'
    key = re.sub(r'[\s_\-]', '', str(value)).lower()
    return EMPLOYMENT_TYPE_MAP.get(key, 'UNKNOWN')


def detect_experience_level(text: Optional[str]) -> str:
    """
    Experience level from title/description text.

    Checked in order LEAD, SENIOR, ENTRY; anything else is MID, so
    "Senior Associate" is SENIOR and "Associate Director" is LEAD.
    """
    lower = (text or '').lower()

    if _has_any(lower, LEAD_KEYWORDS):
        return 'LEAD'
    if _has_any(lower, SENIOR_KEYWORDS):
        return 'SENIOR'
    if _has_any(lower, ENTRY_KEYWORDS):
        return 'ENTRY'

    return 'MID'


def match_section_heading(line: str) -> Optional[str]:
    """Return the section name when a short line reads like a section heading."""
    candidate = line.strip().lower().rstrip(':').strip()
    if not candidate or len(candidate) > MAX_HEADING_LENGTH:
        return None
    if len(candidate.split()) > MAX_HEADING_WORDS or candidate.endswith('.'):
        return None
    for section, markers in SECTION_MARKERS.items():
        if any(marker in candidate for marker in markers):
            return section
    return None


def parse_sections(text: Optional[str]) -> Dict[str, str]:
    """
    Split plain job text into description / requirements / responsibilities / benefits.

    Paragraphs (separated by blank lines) that look like headings switch the
    current section; "Requirements: ..." style inline headings are handled too.
    Text before the first heading is the description.
    """
    sections = {'description': [], 'requirements': [], 'responsibilities': [], 'benefits': []}
    if not text:
        return {name: '' for name in sections}

    current = 'description'
    for block in re.split(r'\n\s*\n', text):
        block = block.strip()
        if not block:
            continue

        first_line, _, rest = block.partition('\n')
        heading, colon, inline_rest = first_line.partition(':')
        section = match_section_heading(heading) if colon else None
        if section is not None:
            rest = '\n'.join(part for part in [inline_rest.strip(), rest] if part)
        elif not colon:
            section = match_section_heading(first_line)

        if section is not None:
            current = section
            if rest.strip():
                sections[current].append(rest.strip())
            continue

        sections[current].append(block)

    return {name: '\n\n'.join(parts) for name, parts in sections.items()}


def build_location_string(fragments: Iterable[Optional[str]], is_remote: bool = False) -> str:
    """
    Join distinct non-empty location fragments in discovery order.

    Falls back to "Remote" for remote jobs and "Location Unknown" otherwise,
    so the result is never empty.
    """
    seen = []
    keys = set()
    for fragment in fragments:
        if not fragment:
            continue
        value = str(fragment).strip()
        key = value.lower()
        if value and key not in keys:
            keys.add(key)
            seen.append(value)

    if seen:
        return LOCATION_SEPARATOR.join(seen)
    return 'Remote' if is_remote else LOCATION_UNKNOWN
