"""
Tests for the processing adapter (processor dispatch + persistence).
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fetchers.base import DETERMINED_REGION_KEY, SourceType
from processors.adapter import ProcessingAdapter
from processors.base import ProcessedJobResult, StandardizedJob
from processors.greenhouse import GreenhouseProcessor


@pytest.fixture(autouse=True)
def no_score_floor(monkeypatch):
    monkeypatch.delenv("JOBINGEST_MIN_RELEVANCE_SCORE", raising=False)


@pytest.fixture
def store():
    mock = MagicMock()
    mock.upsert_job.return_value = 'created'
    return mock


@pytest.fixture
def processing(store, relevance, http_client):
    return ProcessingAdapter(store, relevance, http_client)


@pytest.fixture
def raw_job(fixture_json):
    raw = fixture_json('greenhouse_jobs.json')['jobs'][0]
    raw[DETERMINED_REGION_KEY] = 'latam'
    return raw


class TestProcessingAdapter:

    @pytest.mark.asyncio
    async def test_success_upserts_job(self, processing, store, raw_job, make_source):
        saved = await processing.process_raw_job(SourceType.GREENHOUSE, raw_job, make_source('greenhouse'))

        assert saved is True
        job = store.upsert_job.call_args.args[0]
        assert isinstance(job, StandardizedJob)
        assert job.source_id == '4011001'

    @pytest.mark.asyncio
    async def test_string_type_accepted(self, processing, store, raw_job, make_source):
        assert await processing.process_raw_job('greenhouse', raw_job, make_source('greenhouse')) is True

    @pytest.mark.asyncio
    async def test_unknown_type(self, processing, store, raw_job, make_source):
        saved = await processing.process_raw_job('workday', raw_job, make_source('greenhouse'))

        assert saved is False
        store.upsert_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_processor_exception(self, processing, store, raw_job, make_source):
        with patch.object(GreenhouseProcessor, 'process_job', new=AsyncMock(side_effect=RuntimeError("boom"))):
            saved = await processing.process_raw_job(SourceType.GREENHOUSE, raw_job, make_source('greenhouse'))

        assert saved is False
        store.upsert_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_job_not_saved(self, processing, store, raw_job, make_source):
        rejected = ProcessedJobResult.failed("Job determined irrelevant")
        with patch.object(GreenhouseProcessor, 'process_job', new=AsyncMock(return_value=rejected)):
            saved = await processing.process_raw_job(SourceType.GREENHOUSE, raw_job, make_source('greenhouse'))

        assert saved is False
        store.upsert_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_failure(self, processing, store, raw_job, make_source):
        store.upsert_job.side_effect = Exception("connection reset")

        saved = await processing.process_raw_job(SourceType.GREENHOUSE, raw_job, make_source('greenhouse'))

        assert saved is False

    def test_processors_are_cached(self, processing):
        first = processing.get_processor(SourceType.ASHBY)
        assert processing.get_processor('ashby') is first
        assert first.http_client is processing.http_client
