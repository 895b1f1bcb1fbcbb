"""Shared test fixtures for all test modules."""

from collections.abc import AsyncGenerator

import httpx
import pytest

from newrelic_exporter.adapters.http.client import NewRelicAPI
from tests.upstream import make_api, newrelic_handler


@pytest.fixture
def recorded_requests() -> list[httpx.Request]:
    """List collecting every request served by the ``api`` fixture."""
    return []


@pytest.fixture
async def api(recorded_requests: list[httpx.Request]) -> AsyncGenerator[NewRelicAPI]:
    """API client backed by the repository fixtures."""
    client = make_api(newrelic_handler(recorded_requests))
    yield client
    await client.aclose()


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            app = create_asgi_app(exporter)
            async with asgi_test_client(app) as client:
                response = await client.get("/metrics")
    """

    def _get_client(app):
        """Return an AsyncClient context manager for the given app."""
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client
