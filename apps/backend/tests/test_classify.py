"""
Tests for workplace type / hiring region classification.
"""
import logging

import pytest

from processors.base import HiringRegion, WorkplaceType
from processors.classify import classify_location, workplace_from_hint


@pytest.fixture
def regions(relevance):
    return relevance.regions


class TestFreeTextRules:

    def test_remote_rule_wins_over_latam(self, regions):
        result = classify_location(regions, title="Backend Engineer", locations=["Remote - LATAM"])
        assert result.workplace_type == WorkplaceType.REMOTE
        assert result.hiring_region == HiringRegion.WORLDWIDE
        assert result.rule == 'remote'

    def test_latam_keyword(self, regions):
        result = classify_location(regions, title="Backend Engineer", locations=["Latin America"])
        assert result.hiring_region == HiringRegion.LATAM
        assert result.rule == 'latam'

    def test_brazil_keyword(self, regions):
        result = classify_location(regions, title="Designer", locations=["São Paulo, SP"])
        assert result.hiring_region == HiringRegion.BRAZIL
        assert result.rule == 'brazil'

    def test_secondary_locations_are_searched(self, regions):
        result = classify_location(regions, title="Designer", locations=["Lisbon", "Curitiba"])
        assert result.hiring_region == HiringRegion.BRAZIL

    def test_title_is_searched(self, regions):
        result = classify_location(regions, title="Remote Support Agent", locations=["Lisbon"])
        assert result.hiring_region == HiringRegion.WORLDWIDE

    def test_no_match(self, regions):
        assert classify_location(regions, title="Office Manager", locations=["Berlin, Germany"]) is None

    def test_no_text(self, regions):
        assert classify_location(regions) is None

    def test_match_is_logged(self, regions, caplog):
        with caplog.at_level(logging.INFO):
            classify_location(regions, title="Engineer", locations=["Remote"], job_ref="lever:abc")
        assert any("lever:abc" in r.message and "remote rule" in r.message for r in caplog.records)


class TestStructuredSignals:

    def test_explicit_not_remote(self, regions):
        assert classify_location(regions, title="Remote Engineer", is_remote=False) is None

    def test_remote_flag_defaults_to_worldwide(self, regions):
        result = classify_location(regions, title="Engineer", locations=["Berlin"], is_remote=True)
        assert result.hiring_region == HiringRegion.WORLDWIDE
        assert result.rule == 'remote flag'

    def test_remote_flag_with_country_code(self, regions):
        result = classify_location(regions, title="Engineer", is_remote=True, country_codes=["AR"])
        assert result.hiring_region == HiringRegion.LATAM

    def test_remote_flag_with_determined_region(self, regions):
        result = classify_location(regions, title="Engineer", is_remote=True, determined_region='latam')
        assert result.hiring_region == HiringRegion.LATAM

    def test_brazil_country_code(self, regions):
        result = classify_location(regions, title="Engineer", country_codes=["BR"])
        assert result.hiring_region == HiringRegion.BRAZIL
        assert result.rule == 'country code'

    def test_determined_region_is_last_resort(self, regions):
        result = classify_location(regions, title="Engineer", locations=["Toronto"], determined_region='latam')
        assert result.hiring_region == HiringRegion.LATAM
        assert result.rule == 'fetcher region'

    def test_free_text_beats_determined_region(self, regions):
        result = classify_location(regions, title="Engineer", locations=["Remote - LATAM"], determined_region='latam')
        assert result.hiring_region == HiringRegion.WORLDWIDE
        assert result.rule == 'remote'

    def test_remote_flag_uses_ordered_text_rules(self, regions):
        result = classify_location(regions, title="Engineer", locations=["Remote - Brazil"], is_remote=True,
                                   determined_region='latam')
        assert result.hiring_region == HiringRegion.WORLDWIDE

    def test_metadata_region(self, regions):
        result = classify_location(regions, title="Engineer", locations=["Remote"], structured_region='latam')
        assert result.hiring_region == HiringRegion.LATAM
        assert result.rule == 'metadata'

    def test_workplace_hint_kept(self, regions):
        result = classify_location(regions, title="Engineer", locations=["São Paulo"], workplace_hint="Hybrid")
        assert result.workplace_type == WorkplaceType.HYBRID
        assert result.hiring_region == HiringRegion.BRAZIL

    def test_hint_overrides_not_remote_flag(self, regions):
        result = classify_location(regions, title="Engineer", locations=["Curitiba"], is_remote=False,
                                   workplace_hint="OnSite")
        assert result.workplace_type == WorkplaceType.ON_SITE


class TestWorkplaceHint:

    @pytest.mark.parametrize("hint,expected", [
        ("Remote", WorkplaceType.REMOTE),
        ("Hybrid", WorkplaceType.HYBRID),
        ("OnSite", WorkplaceType.ON_SITE),
        ("On-site", WorkplaceType.ON_SITE),
        ("Flexible", None),
        (None, None),
    ])
    def test_hints(self, hint, expected):
        assert workplace_from_hint(hint) == expected
