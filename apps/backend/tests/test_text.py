"""
Unit tests for text normalization helpers.
"""
from datetime import datetime, timezone

import pytest

from core.text import (
    normalize_company_name,
    normalize_for_deduplication,
    normalize_text,
    parse_date,
    strip_html,
)


class TestStripHtml:
    """Test HTML to plain text conversion."""

    def test_block_elements_become_paragraphs(self):
        html = "<p>Hello&nbsp;<b>world</b></p><ul><li>One</li><li>Two</li></ul>"
        assert strip_html(html) == "Hello world\n\nOne\n\nTwo"

    def test_scripts_and_styles_removed(self):
        html = "<div>Visible<script>var x = 1;</script><style>p {color: red}</style></div>"
        assert strip_html(html) == "Visible"

    def test_entities_decoded(self):
        assert strip_html("<p>R&amp;D &lt;team&gt;</p>") == "R&D <team>"

    def test_line_breaks_kept(self):
        assert strip_html("<p>Line one<br>Line two</p>") == "Line one Line two"

    def test_empty_input(self):
        assert strip_html(None) == ""
        assert strip_html("") == ""

    def test_plain_text_passthrough(self):
        assert strip_html("Just   text") == "Just text"


class TestParseDate:
    """Test tolerant date parsing."""

    def test_iso_with_z(self):
        assert parse_date("2026-10-01T12:00:00Z") == datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)

    def test_iso_with_offset(self):
        parsed = parse_date("2026-10-01T12:00:00-04:00")
        assert parsed == datetime(2026, 10, 1, 16, 0, tzinfo=timezone.utc)

    def test_naive_value_is_utc(self):
        assert parse_date("2026-10-01 08:30").tzinfo == timezone.utc

    def test_epoch_milliseconds(self):
        assert parse_date(1760000000000) == datetime.fromtimestamp(1760000000, tz=timezone.utc)

    def test_epoch_seconds_string(self):
        assert parse_date("1760000000") == datetime.fromtimestamp(1760000000, tz=timezone.utc)

    def test_datetime_passthrough(self):
        value = datetime(2026, 1, 2, tzinfo=timezone.utc)
        assert parse_date(value) is value

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", True, {"a": 1}])
    def test_unparseable_returns_none(self, value):
        assert parse_date(value) is None


class TestNormalization:
    """Test comparison keys."""

    def test_dedup_key_strips_diacritics_and_punctuation(self):
        assert normalize_for_deduplication("  Sênior   Engineer (Remote)! ") == "senior engineer remote"

    def test_dedup_key_empty(self):
        assert normalize_for_deduplication(None) == ""
        assert normalize_for_deduplication("!!!") == ""

    def test_company_suffix_removed(self):
        assert normalize_company_name("Acme, Inc.") == "acme"
        assert normalize_company_name("Nubank Ltda.") == "nubank"

    def test_company_leading_suffix_word_kept(self):
        assert normalize_company_name("Inc Labs") == "inc labs"

    def test_normalize_text_keeps_punctuation(self):
        assert normalize_text("  Remote\n - LATAM ") == "remote - latam"
