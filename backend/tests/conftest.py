"""
Pytest configuration and fixtures for Live Preview backend tests.
"""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from backend.main import app
from backend.middleware.rate_limit import rate_limiter
from backend.services.preview_store import preview_store


@pytest.fixture(autouse=True)
def reset_state():
    """Each test starts with no sessions and an empty rate limit window."""
    preview_store.clear()
    rate_limiter.reset()
    yield
    preview_store.clear()
    rate_limiter.reset()


@pytest_asyncio.fixture(loop_scope="session")
async def async_client():
    """Async HTTP client wired straight to the ASGI app."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
