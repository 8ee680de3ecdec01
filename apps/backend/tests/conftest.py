"""
Shared fixtures for ingestion tests.
"""
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.net import HTTPClient
from core.relevance import load_relevance_config
from fetchers.base import JobSource

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(scope="session")
def relevance():
    """Relevance config shipped with the package."""
    return load_relevance_config()


@pytest.fixture
def fixture_text():
    def _read(name: str) -> str:
        return (FIXTURES_DIR / name).read_text(encoding="utf-8")
    return _read


@pytest.fixture
def fixture_json(fixture_text):
    def _load(name: str):
        return json.loads(fixture_text(name))
    return _load


@pytest.fixture
def make_source():
    def _make(source_type: str = "greenhouse", config=None, **overrides) -> JobSource:
        data = {
            "id": "src-1",
            "name": "Acme Inc",
            "type": source_type,
            "is_enabled": True,
            "config": config if config is not None else {},
            "company_website": "https://acme.example",
            "logo_url": "https://acme.example/logo.png",
        }
        data.update(overrides)
        return JobSource(**data)
    return _make


@pytest.fixture
def http_client():
    """HTTPClient whose fetch is an AsyncMock returning (status, headers, body, size)."""
    client = MagicMock(spec=HTTPClient)
    client.fetch = AsyncMock()
    return client


@pytest.fixture
def adapter():
    """Adapter double that accepts every job."""
    mock = MagicMock()
    mock.process_raw_job = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def make_response():
    """Build an HTTPClient.fetch return value from a dict, str or bytes body."""
    def _make(body, status: int = 200):
        if isinstance(body, (dict, list)):
            body = json.dumps(body)
        if isinstance(body, str):
            body = body.encode("utf-8")
        return status, {}, body, len(body)
    return _make
