"""
Relevance configuration: scoring signals, region keyword tables and the Greenhouse
location/content/metadata filters.

Loaded once from JSON into frozen dataclasses and passed explicitly to the scorer,
fetchers and processors. To change the configuration build a new RelevanceConfig.
"""
import os
import re
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

from core.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / 'relevance_config.json'

SIGNAL_GROUPS = ('positive_location', 'negative_location', 'positive_content', 'negative_content')


@dataclass(frozen=True)
class KeywordSignal:
    term: str
    weight: int


@dataclass(frozen=True)
class PatternSignal:
    pattern: str
    weight: int
    compiled: Optional[re.Pattern] = field(default=None, compare=False)

    @property
    def is_valid(self) -> bool:
        return self.compiled is not None


@dataclass(frozen=True)
class SignalGroup:
    keywords: Tuple[KeywordSignal, ...] = ()
    patterns: Tuple[PatternSignal, ...] = ()


@dataclass(frozen=True)
class ScoringSignals:
    positive_location: SignalGroup = SignalGroup()
    negative_location: SignalGroup = SignalGroup()
    positive_content: SignalGroup = SignalGroup()
    negative_content: SignalGroup = SignalGroup()
    # "group: pattern" for every pattern that failed to compile
    invalid_patterns: Tuple[str, ...] = ()

    def groups(self) -> Iterator[Tuple[str, SignalGroup]]:
        for name in SIGNAL_GROUPS:
            yield name, getattr(self, name)

    @classmethod
    def from_dict(cls, raw: Optional[Dict[str, Any]]) -> 'ScoringSignals':
        """
        Build signals from {group: {keywords: [{term, weight}], patterns: [{pattern, weight}]}}.

        Patterns are compiled case-insensitively here. A pattern that fails to
        compile is kept with compiled=None (it scores 0), logged, and listed in
        invalid_patterns.
        """
        raw = raw or {}
        groups = {}
        invalid = []

        for name in SIGNAL_GROUPS:
            group_raw = raw.get(name) or {}
            keywords = tuple(
                KeywordSignal(term=str(k['term']), weight=int(k['weight']))
                for k in group_raw.get('keywords') or []
                if k.get('term')
            )
            patterns = []
            for p in group_raw.get('patterns') or []:
                pattern_text = str(p.get('pattern', ''))
                try:
                    compiled = re.compile(pattern_text, re.IGNORECASE)
                except re.error as e:
                    logger.warning(f"[scorer] Skipping invalid pattern {pattern_text!r} in {name}: {e}")
                    invalid.append(f"{name}: {pattern_text}")
                    compiled = None
                patterns.append(PatternSignal(pattern=pattern_text, weight=int(p.get('weight', 0)), compiled=compiled))
            groups[name] = SignalGroup(keywords=keywords, patterns=tuple(patterns))

        if invalid:
            logger.warning(f"[scorer] {len(invalid)} invalid pattern(s) in scoring signals")

        return cls(invalid_patterns=tuple(invalid), **groups)


@dataclass(frozen=True)
class RegionKeywords:
    """Free-text keyword tables for the remote > LATAM > Brazil classification."""
    remote: Tuple[str, ...] = ()
    latam: Tuple[str, ...] = ()
    brazil: Tuple[str, ...] = ()
    negative: Tuple[str, ...] = ()
    latam_country_codes: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MetadataFieldRule:
    name: str
    type: str  # 'boolean' | 'string'
    positive_value: Optional[str] = None
    negative_value: Optional[str] = None
    allowed_values: Tuple[str, ...] = ()
    disallowed_values: Tuple[str, ...] = ()
    positive_values: Tuple[str, ...] = ()


@dataclass(frozen=True)
class GreenhouseFilter:
    location_global: Tuple[str, ...] = ()
    location_latam: Tuple[str, ...] = ()
    location_negative: Tuple[str, ...] = ()
    location_ambiguous: Tuple[str, ...] = ()
    latam_countries: Tuple[str, ...] = ()
    content_global: Tuple[str, ...] = ()
    content_latam: Tuple[str, ...] = ()
    content_negative_region: Tuple[str, ...] = ()
    content_negative_timezone: Tuple[str, ...] = ()
    metadata_fields: Tuple[MetadataFieldRule, ...] = ()

    def metadata_rule(self, field_name: str) -> Optional[MetadataFieldRule]:
        name = (field_name or '').strip().lower()
        for rule in self.metadata_fields:
            if rule.name.lower() == name:
                return rule
        return None


@dataclass(frozen=True)
class RelevanceConfig:
    scoring: ScoringSignals
    regions: RegionKeywords
    greenhouse: GreenhouseFilter


def _lower_tuple(values: Any) -> Tuple[str, ...]:
    return tuple(str(v).lower() for v in (values or []) if v)


def _lower_or_none(value: Any) -> Optional[str]:
    return str(value).lower() if value else None


def build_relevance_config(raw: Dict[str, Any]) -> RelevanceConfig:
    """Build an immutable RelevanceConfig from the parsed JSON document."""
    regions_raw = raw.get('REGION_KEYWORDS') or {}
    regions = RegionKeywords(
        remote=_lower_tuple(regions_raw.get('REMOTE')),
        latam=_lower_tuple(regions_raw.get('LATAM')),
        brazil=_lower_tuple(regions_raw.get('BRAZIL')),
        negative=_lower_tuple(regions_raw.get('NEGATIVE')),
        latam_country_codes=_lower_tuple(regions_raw.get('LATAM_COUNTRY_CODES')),
    )

    location = raw.get('LOCATION_KEYWORDS') or {}
    content = raw.get('CONTENT_KEYWORDS') or {}
    metadata_rules = []
    for name, rule in (raw.get('REMOTE_METADATA_FIELDS') or {}).items():
        metadata_rules.append(MetadataFieldRule(
            name=name,
            type=str(rule.get('type', 'string')).lower(),
            positive_value=_lower_or_none(rule.get('positiveValue')),
            negative_value=_lower_or_none(rule.get('negativeValue')),
            allowed_values=_lower_tuple(rule.get('allowedValues')),
            disallowed_values=_lower_tuple(rule.get('disallowedValues')),
            positive_values=_lower_tuple(rule.get('positiveValues')),
        ))

    greenhouse = GreenhouseFilter(
        location_global=_lower_tuple(location.get('STRONG_POSITIVE_GLOBAL')),
        location_latam=_lower_tuple(location.get('STRONG_POSITIVE_LATAM')),
        location_negative=_lower_tuple(location.get('STRONG_NEGATIVE_RESTRICTION')),
        location_ambiguous=_lower_tuple(location.get('AMBIGUOUS')),
        latam_countries=_lower_tuple(location.get('ACCEPT_EXACT_LATAM_COUNTRIES')),
        content_global=_lower_tuple(content.get('STRONG_POSITIVE_GLOBAL')),
        content_latam=_lower_tuple(content.get('STRONG_POSITIVE_LATAM')),
        content_negative_region=_lower_tuple(content.get('STRONG_NEGATIVE_REGION')),
        content_negative_timezone=_lower_tuple(content.get('STRONG_NEGATIVE_TIMEZONE')),
        metadata_fields=tuple(metadata_rules),
    )

    return RelevanceConfig(
        scoring=ScoringSignals.from_dict(raw.get('SCORING_SIGNALS')),
        regions=regions,
        greenhouse=greenhouse,
    )


def load_relevance_config(path: Optional[str] = None) -> RelevanceConfig:
    """
    Load the relevance configuration.

    Path resolution: explicit argument, then JOBINGEST_RELEVANCE_CONFIG, then the
    packaged relevance_config.json. Raises ConfigError if the file is missing or
    not valid JSON.
    """
    config_path = Path(path or os.getenv('JOBINGEST_RELEVANCE_CONFIG') or DEFAULT_CONFIG_PATH)

    try:
        raw = json.loads(config_path.read_text(encoding='utf-8'))
    except FileNotFoundError:
        raise ConfigError(f"Relevance config not found: {config_path}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"Relevance config is not valid JSON ({config_path}): {e}")

    config = build_relevance_config(raw)
    logger.info(
        f"[relevance] Loaded relevance config from {config_path} "
        f"(invalid patterns: {len(config.scoring.invalid_patterns)})"
    )
    return config
