"""Shared fixtures for the import pipeline tests."""
import json
import pytest
import requests
from requests.structures import CaseInsensitiveDict

from src.config.settings import Settings


@pytest.fixture
def make_response():
    """Factory for real requests.Response objects with canned status, body and headers."""
    def _make_response(status_code=200, json_data=None, headers=None, url="https://api.test/"):
        response = requests.Response()
        response.status_code = status_code
        response.headers = CaseInsensitiveDict(headers or {})
        response._content = json.dumps(json_data).encode("utf-8") if json_data is not None else b""
        response.encoding = "utf-8"
        response.url = url
        return response
    return _make_response


@pytest.fixture
def settings():
    """Real settings with test credentials; no .env file is read."""
    return Settings(
        _env_file=None,
        gladly_api_url="https://example.gladly.com/",
        gladly_username="agent@example.com",
        gladly_api_token="gladly-token",
        enterpret_api_url="https://api.enterpret.test",
        enterpret_api_key="enterpret-key",
        batch_size=2,
        max_retries=0,
        retry_delay=0,
    )
