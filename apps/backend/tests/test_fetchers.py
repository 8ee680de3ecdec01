"""
Tests for source fetchers: the shared fetch loop, the Greenhouse/Ashby relevance
gates and the Lever listing scraper. HTTP is mocked at HTTPClient.fetch.
"""
import json
import logging
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from core.errors import TransportError
from core.net import HTTPClient
from fetchers.ashby import AshbyFetcher
from fetchers.base import DETERMINED_REGION_KEY, MAX_JSON_BODY_KB, SourceType
from fetchers.greenhouse import GreenhouseFetcher, Verdict
from fetchers.lever import LeverFetcher, source_id_from_url


@pytest.fixture
def greenhouse(adapter, relevance, http_client):
    return GreenhouseFetcher(adapter, relevance, http_client)


@pytest.fixture
def ashby(adapter, relevance, http_client):
    return AshbyFetcher(adapter, relevance, http_client)


@pytest.fixture
def lever(adapter, relevance, http_client):
    return LeverFetcher(adapter, relevance, http_client)


class TestFetchLoop:
    """Shared JobFetcher.fetch_source behavior, exercised through Greenhouse."""

    @pytest.mark.asyncio
    async def test_counts_and_forwarding(self, greenhouse, adapter, http_client, make_source,
                                         make_response, fixture_json):
        http_client.fetch.return_value = make_response(fixture_json('greenhouse_jobs.json'))
        source = make_source('greenhouse', {'boardToken': 'acme'})

        result = await greenhouse.fetch_source(source)

        assert result.stats.found == 4
        assert result.stats.relevant == 2
        assert result.stats.processed == 2
        assert result.stats.errors == 0
        assert result.found_source_ids == {'4011001', '4011002', '4011003', '4011004'}

        url = http_client.fetch.call_args.args[0]
        assert url == "https://boards-api.greenhouse.io/v1/boards/acme/jobs?content=true"

        calls = adapter.process_raw_job.call_args_list
        assert [c.args[0] for c in calls] == [SourceType.GREENHOUSE, SourceType.GREENHOUSE]
        assert calls[0].args[1]['id'] == 4011001
        assert calls[0].args[1][DETERMINED_REGION_KEY] == 'latam'
        assert calls[1].args[1]['id'] == 4011003
        assert calls[1].args[1][DETERMINED_REGION_KEY] == 'global'
        assert calls[0].args[2] is source

    @pytest.mark.asyncio
    async def test_http_500_is_one_error(self, greenhouse, adapter, http_client, make_source, make_response):
        http_client.fetch.return_value = make_response("upstream down", status=500)

        result = await greenhouse.fetch_source(make_source('greenhouse', {'boardToken': 'acme'}))

        assert result.stats.found == 0
        assert result.stats.errors == 1
        assert "500" in result.message
        adapter.process_raw_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_transport_failure_is_one_error(self, greenhouse, adapter, http_client, make_source):
        http_client.fetch.side_effect = TransportError("Timeout fetching board", url="https://example")

        result = await greenhouse.fetch_source(make_source('greenhouse', {'boardToken': 'acme'}))

        assert result.stats.errors == 1
        assert result.stats.found == 0
        adapter.process_raw_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_truncated_body_is_reported_not_parsed(self, greenhouse, adapter, http_client, make_source):
        http_client.fetch.return_value = (200, {}, b'{"jobs": [{"id": 1, "tit', 40 * 1024 * 1024)

        result = await greenhouse.fetch_source(make_source('greenhouse', {'boardToken': 'acme'}))

        assert result.stats.errors == 1
        assert "size limit" in result.message
        assert http_client.fetch.call_args.kwargs['max_size_kb'] == MAX_JSON_BODY_KB
        adapter.process_raw_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_large_board_parsed_in_full(self, adapter, relevance, make_source, fixture_json):
        payload = fixture_json('greenhouse_jobs.json')
        payload['jobs'][2]['content'] += "&lt;p&gt;" + "x" * (5 * 1024 * 1024) + "&lt;/p&gt;"
        url = "https://boards-api.greenhouse.io/v1/boards/acme/jobs?content=true"
        response = httpx.Response(200, content=json.dumps(payload).encode(), request=httpx.Request("GET", url))
        fetcher = GreenhouseFetcher(adapter, relevance, HTTPClient(timeout=5))

        with patch.object(httpx.AsyncClient, 'request', new=AsyncMock(return_value=response)):
            result = await fetcher.fetch_source(make_source('greenhouse', {'boardToken': 'acme'}))

        assert result.stats.errors == 0
        assert result.stats.found == 4

    @pytest.mark.asyncio
    async def test_missing_config_makes_no_network_call(self, greenhouse, http_client, make_source):
        result = await greenhouse.fetch_source(make_source('greenhouse', {}))

        assert result.stats.errors == 1
        assert result.message.startswith("Config error")
        http_client.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_secret_makes_no_network_call(self, greenhouse, http_client, make_source, monkeypatch):
        monkeypatch.delenv("GH_TEST_TOKEN", raising=False)
        source = make_source('greenhouse', {
            'boardToken': 'acme',
            'auth': {'type': 'bearer', 'token': '{{SECRET:GH_TEST_TOKEN}}'},
        })

        result = await greenhouse.fetch_source(source)

        assert result.stats.errors == 1
        assert "GH_TEST_TOKEN" in result.message
        http_client.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_auth_secret_resolved(self, greenhouse, http_client, make_source, make_response, monkeypatch):
        monkeypatch.setenv("GH_TEST_TOKEN", "s3cret")
        http_client.fetch.return_value = make_response({'jobs': []})
        source = make_source('greenhouse', {
            'boardToken': 'acme',
            'auth': {'type': 'bearer', 'token': '{{SECRET:GH_TEST_TOKEN}}'},
        })

        await greenhouse.fetch_source(source)

        assert http_client.fetch.call_args.kwargs['auth_header'] == "Bearer s3cret"

    @pytest.mark.asyncio
    async def test_invalid_json_is_parse_error(self, greenhouse, http_client, make_source, make_response):
        http_client.fetch.return_value = make_response("<html>maintenance</html>")

        result = await greenhouse.fetch_source(make_source('greenhouse', {'boardToken': 'acme'}))

        assert result.stats.errors == 1
        assert result.message.startswith("Parse error")

    @pytest.mark.asyncio
    async def test_missing_jobs_array_is_parse_error(self, greenhouse, http_client, make_source, make_response):
        http_client.fetch.return_value = make_response({'error': 'not found'})

        result = await greenhouse.fetch_source(make_source('greenhouse', {'boardToken': 'acme'}))

        assert result.stats.errors == 1
        assert result.stats.found == 0

    @pytest.mark.asyncio
    async def test_empty_board_warns(self, greenhouse, http_client, make_source, make_response, caplog):
        http_client.fetch.return_value = make_response({'jobs': []})

        with caplog.at_level(logging.WARNING):
            result = await greenhouse.fetch_source(make_source('greenhouse', {'boardToken': 'acme'}))

        assert result.stats.found == 0
        assert result.stats.errors == 0
        assert any("No job postings found" in r.message for r in caplog.records)

    @pytest.mark.asyncio
    async def test_adapter_rejection_is_not_an_error(self, greenhouse, adapter, http_client, make_source,
                                                     make_response, fixture_json):
        adapter.process_raw_job.return_value = False
        http_client.fetch.return_value = make_response(fixture_json('greenhouse_jobs.json'))

        result = await greenhouse.fetch_source(make_source('greenhouse', {'boardToken': 'acme'}))

        assert result.stats.relevant == 2
        assert result.stats.processed == 0
        assert result.stats.errors == 0

    @pytest.mark.asyncio
    async def test_adapter_exception_counts_error_and_continues(self, greenhouse, adapter, http_client,
                                                                make_source, make_response, fixture_json):
        adapter.process_raw_job.side_effect = [RuntimeError("boom"), True]
        http_client.fetch.return_value = make_response(fixture_json('greenhouse_jobs.json'))

        result = await greenhouse.fetch_source(make_source('greenhouse', {'boardToken': 'acme'}))

        assert result.stats.errors == 1
        assert result.stats.processed == 1
        assert adapter.process_raw_job.await_count == 2


class TestGreenhouseRelevance:

    def job(self, location="Remote", content="", metadata=None, offices=None, title="Engineer"):
        return {
            'id': 1,
            'title': title,
            'location': {'name': location},
            'offices': offices or [],
            'metadata': metadata or [],
            'content': content,
        }

    def test_latam_location(self, greenhouse):
        assert greenhouse.check_relevance(self.job("Remote - LATAM")) == (True, 'Location/Office(LATAM)', 'latam')

    def test_exact_latam_country(self, greenhouse):
        relevant, _reason, region = greenhouse.check_relevance(self.job("Brazil"))
        assert relevant and region == 'latam'

    def test_worldwide_word(self, greenhouse):
        relevant, _reason, region = greenhouse.check_relevance(self.job("Worldwide"))
        assert relevant and region == 'global'

    def test_negative_location(self, greenhouse):
        relevant, reason, region = greenhouse.check_relevance(self.job("Remote - US"))
        assert not relevant
        assert region is None
        assert "Remote - US" in reason

    def test_specific_city_rejected(self, greenhouse):
        relevant, _reason, _region = greenhouse.check_relevance(self.job("Lisbon"))
        assert not relevant

    def test_offices_all_restricted(self, greenhouse):
        job = self.job("Remote", offices=[{'name': 'London'}, {'name': 'New York'}])
        assert greenhouse.check_location('Remote', job['offices'], greenhouse.relevance.greenhouse) == Verdict.REJECT

    def test_offices_with_latam_country(self, greenhouse):
        job = self.job("Remote", offices=[{'name': 'Brazil'}, {'name': 'London'}])
        relevant, _reason, region = greenhouse.check_relevance(job)
        assert relevant and region == 'latam'

    def test_metadata_boolean_negative(self, greenhouse):
        job = self.job("Remote - LATAM", metadata=[{'name': 'Remote Eligible', 'value': 'No'}])
        assert greenhouse.check_relevance(job) == (False, 'Metadata indicates restriction', None)

    def test_metadata_latam_accepts_immediately(self, greenhouse):
        job = self.job("New York", metadata=[{'name': 'Location Type', 'value': 'LATAM'}])
        assert greenhouse.check_relevance(job) == (True, 'Metadata(LATAM)', 'latam')

    def test_metadata_disallowed_value(self, greenhouse):
        job = self.job("Remote", metadata=[{'name': 'Location Type', 'value': 'Hybrid'}])
        relevant, _reason, _region = greenhouse.check_relevance(job)
        assert not relevant

    def test_metadata_global_needs_inconclusive_location_and_content(self, greenhouse):
        job = self.job("Remote", content="&lt;p&gt;Build things.&lt;/p&gt;",
                       metadata=[{'name': 'Remote Eligible', 'value': 'Yes'}])
        relevant, reason, region = greenhouse.check_relevance(job)
        assert relevant and region == 'global'
        assert reason.startswith('Metadata(Global)')

    def test_inconclusive_rejected(self, greenhouse):
        job = self.job("Remote", content="&lt;p&gt;Build things.&lt;/p&gt;")
        relevant, reason, _region = greenhouse.check_relevance(job)
        assert not relevant
        assert reason.startswith('Inconclusive')

    def test_timezone_without_positive_signal(self, greenhouse):
        job = self.job("Remote", content="&lt;p&gt;Core hours overlap with PST.&lt;/p&gt;")
        assert not greenhouse.check_relevance(job)[0]

    def test_timezone_with_latam_signal(self, greenhouse):
        job = self.job("Remote", content="&lt;p&gt;Hiring across Latin America, overlap with EST.&lt;/p&gt;")
        assert greenhouse.check_relevance(job) == (True, 'Content(LATAM)', 'latam')

    def test_restriction_phrase(self, greenhouse):
        job = self.job("Remote", content="&lt;p&gt;You must be based in Canada.&lt;/p&gt;")
        relevant, reason, _region = greenhouse.check_relevance(job)
        assert not relevant
        assert reason.startswith('Content indicates restriction')

    def test_negative_title(self, greenhouse):
        job = self.job("Remote", title="Account Manager, UK", content="&lt;p&gt;Work from anywhere&lt;/p&gt;")
        assert not greenhouse.check_relevance(job)[0]


class TestAshbyRelevance:

    @pytest.mark.asyncio
    async def test_fixture_counts(self, ashby, adapter, http_client, make_source, make_response, fixture_json):
        http_client.fetch.return_value = make_response(fixture_json('ashby_jobs.json'))

        result = await ashby.fetch_source(make_source('ashby', {'jobBoardName': 'acme'}))

        assert result.stats.found == 3
        assert result.stats.relevant == 1
        assert result.stats.processed == 1
        assert len(result.found_source_ids) == 3
        raw = adapter.process_raw_job.call_args.args[1]
        assert raw['title'] == "Frontend Engineer"
        assert raw[DETERMINED_REGION_KEY] == 'latam'
        assert "acme?includeCompensation=true" in http_client.fetch.call_args.args[0]

    def test_not_remote(self, ashby):
        relevant, reason, _region = ashby.check_relevance({'title': 'Engineer', 'isRemote': False, 'location': 'Remote'})
        assert not relevant
        assert 'isRemote' in reason

    def test_country_code(self, ashby):
        job = {
            'title': 'Engineer',
            'locations': [{'name': 'Office', 'address': {'postalAddress': {'addressCountry': 'MX'}}}],
        }
        assert ashby.check_relevance(job)[2] == 'latam'

    def test_americas_location(self, ashby):
        assert ashby.check_relevance({'title': 'Engineer', 'location': 'Remote (Americas)'}) == (
            True, 'Location/Title(LATAM signal)', 'latam')

    def test_negative_location(self, ashby):
        relevant, reason, _region = ashby.check_relevance({'title': 'Engineer', 'location': 'London'})
        assert not relevant
        assert 'london' in reason

    def test_remote_flag_with_inconclusive_content(self, ashby):
        job = {'title': 'Engineer', 'isRemote': True, 'location': 'Remote', 'descriptionPlain': 'Build things.'}
        assert ashby.check_relevance(job) == (True, 'Location(Global signal) with inconclusive content', 'global')

    def test_content_negative_blocks_global(self, ashby):
        job = {'title': 'Engineer', 'isRemote': True, 'location': 'Remote',
               'descriptionPlain': 'Candidates must reside in the US.'}
        assert not ashby.check_relevance(job)[0]

    def test_content_latam_overrides_negative(self, ashby):
        job = {'title': 'Engineer', 'isRemote': True, 'location': 'Remote',
               'descriptionPlain': 'Team spread over Brazil and the US.'}
        assert ashby.check_relevance(job)[2] == 'latam'

    def test_unlisted_job_skipped(self, ashby, make_source):
        raw = {'id': 'x', 'title': 'Engineer', 'isListed': False, 'isRemote': True, 'location': 'Remote - Brazil'}
        assert ashby.passes_gate(raw, make_source('ashby')) is False
        assert DETERMINED_REGION_KEY not in raw


class TestLeverListing:

    @pytest.mark.asyncio
    async def test_postings_without_link_count_as_found(self, lever, adapter, http_client, make_source,
                                                         make_response, fixture_text, caplog):
        adapter.process_raw_job.return_value = False
        http_client.fetch.return_value = make_response(fixture_text('lever_listing.html'))

        with caplog.at_level(logging.WARNING):
            result = await lever.fetch_source(make_source('lever', {'companyIdentifier': 'acme'}))

        assert result.stats.found == 3
        assert result.stats.relevant == 2
        assert adapter.process_raw_job.await_count == 2
        assert result.stats.processed == 0
        assert result.stats.errors == 0
        assert result.found_source_ids == {
            '11111111-aaaa-bbbb-cccc-000000000001',
            '11111111-aaaa-bbbb-cccc-000000000002',
        }
        assert any("could not find job link" in r.message for r in caplog.records)
        assert http_client.fetch.call_args.args[0] == "https://jobs.lever.co/acme"

    @pytest.mark.asyncio
    async def test_relevant_postings_processed(self, lever, adapter, http_client, make_source,
                                               make_response, fixture_text):
        http_client.fetch.return_value = make_response(fixture_text('lever_listing.html'))

        result = await lever.fetch_source(make_source('lever', {'companyIdentifier': 'acme'}))

        assert result.stats.found == 3
        assert result.stats.relevant == 2
        assert result.stats.processed == 2
        assert result.stats.errors == 0
        assert len(result.found_source_ids) == 2

    def test_parse_listing(self, lever, make_source, fixture_text):
        records = lever.parse_listing(fixture_text('lever_listing.html'), make_source('lever'))

        assert len(records) == 3
        first, second, third = records
        assert first == {
            'source_id': '11111111-aaaa-bbbb-cccc-000000000001',
            'title': 'Backend Engineer',
            'application_url': 'https://jobs.lever.co/acme/11111111-aaaa-bbbb-cccc-000000000001',
            'location': 'Remote - LATAM',
            'department': 'Engineering',
            'commitment': 'Full-time',
            'workplace': 'Remote',
            'company_name': 'Acme Inc',
        }
        assert second['application_url'] == 'https://jobs.lever.co/acme/11111111-aaaa-bbbb-cccc-000000000002'
        assert second['workplace'] is None
        assert third['application_url'] is None
        assert third['title'] == 'Sales Lead'

    @pytest.mark.parametrize("url,expected", [
        ("https://jobs.lever.co/acme/abc-123", "abc-123"),
        ("https://jobs.lever.co/acme/abc-123/", "abc-123"),
        ("https://jobs.lever.co/acme/abc-123/apply", "abc-123"),
        (None, None),
    ])
    def test_source_id_from_url(self, url, expected):
        assert source_id_from_url(url) == expected
