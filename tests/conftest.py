"""
Shared pytest fixtures and configuration.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from pomouno.api.app import create_app
from pomouno.config import config
from pomouno.storage.gateway import MemoryGateway
from pomouno.storage.local_store import LocalStore


@pytest.fixture
def gateway():
    return MemoryGateway()


@pytest.fixture
def store(gateway):
    return LocalStore(gateway)


@pytest.fixture
def app(tmp_path, monkeypatch):
    """A fresh app whose store lives in a temp dir; the ticker never fires on its own."""
    monkeypatch.setattr(config, "data_dir", tmp_path)
    monkeypatch.setattr(config, "sync_url", "")
    monkeypatch.setattr(config, "tick_interval_ms", 3_600_000)
    return create_app()


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client wired directly to the ASGI app (no server needed)."""
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
