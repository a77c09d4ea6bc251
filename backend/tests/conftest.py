"""
Memo Bridge Backend — Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Scrapbox is replaced by an httpx.MockTransport that replays scripted
       responses and records every outbound request. Endpoint tests drive
       the FastAPI app in-process through httpx's ASGITransport.

Fixture Hierarchy:
    ├── test_settings:  Settings with known credentials, no .env lookup
    ├── scrapbox:       ScrapboxStub (scripted responses + recorded requests)
    ├── http_client:    httpx.AsyncClient wired to the stub
    └── test_client:    httpx.AsyncClient wired to create_app(...)
"""

import os
from typing import List

import httpx
import pytest
import pytest_asyncio

# Override settings for testing BEFORE any app imports
os.environ["API_TOKEN"] = "test-token"
os.environ["SCRAPBOX_PROJECT"] = "test-project"
os.environ["SCRAPBOX_SID"] = "test-sid"
os.environ["LOG_LEVEL"] = "WARNING"

from memo_bridge.config import Settings  # noqa: E402
from memo_bridge.main import create_app  # noqa: E402

TITLE_PATTERN = r"^メモ_\d{4}-\d{2}-\d{2}_\d{4}$"

PROJECT_PAGE_HTML = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="csrf-token" content="csrf-123">
  <title>test-project</title>
</head>
<body><div id="app"></div></body>
</html>
"""


class ScrapboxStub:
    """
    Stand-in for scrapbox.io.

    Responses are queued with add() and returned in order; each outbound
    request is appended to `requests`. Running out of responses fails the
    test loudly.
    """

    def __init__(self):
        self.responses: List[httpx.Response] = []
        self.requests: List[httpx.Request] = []

    def add(self, status_code: int = 200, **kwargs) -> "ScrapboxStub":
        self.responses.append(httpx.Response(status_code, **kwargs))
        return self

    def add_error(self, exc: Exception) -> "ScrapboxStub":
        self.responses.append(exc)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        # Read the body now; multipart streams cannot be replayed later
        request.read()
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"Unexpected upstream request: {request.method} {request.url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_settings(**overrides) -> Settings:
    values = {
        "api_token": "test-token",
        "scrapbox_project": "test-project",
        "scrapbox_sid": "test-sid",
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def test_settings() -> Settings:
    """Default settings: page-scrape CSRF, JSON import, token required."""
    return make_settings()


@pytest.fixture
def scrapbox() -> ScrapboxStub:
    return ScrapboxStub()


@pytest_asyncio.fixture
async def http_client(scrapbox):
    """httpx.AsyncClient whose every request is answered by the stub."""
    async with httpx.AsyncClient(transport=httpx.MockTransport(scrapbox.handler)) as client:
        yield client


@pytest_asyncio.fixture
async def test_client(test_settings, http_client):
    """
    Async HTTP client talking to a freshly built app.

    Usage:
        async def test_options(test_client):
            response = await test_client.options("/")
            assert response.status_code == 204
    """
    app = create_app(settings=test_settings, http_client=http_client)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def auth_headers(token: str = "test-token") -> dict:
    return {"Authorization": f"Bearer {token}"}
