"""Shared pytest fixtures for LocalS3 tests.

Every test gets its own storage root under ``tmp_path``. The storage is
attached to ``app.state`` by hand because the lifespan context doesn't run
with ASGITransport.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from locals3.config import LocalS3Config, ServerConfig, StorageConfig
from locals3.server import create_app
from locals3.storage.local import LocalStorage


@pytest.fixture
def config(tmp_path) -> LocalS3Config:
    """Create a test LocalS3Config rooted in a temp directory."""
    return LocalS3Config(
        server=ServerConfig(host="127.0.0.1", port=8082),
        storage=StorageConfig(root=str(tmp_path / "buckets")),
    )


@pytest.fixture
async def storage(config):
    """Create and initialize the local storage for the test root."""
    backend = LocalStorage(config.storage.root)
    await backend.init()
    yield backend
    await backend.close()


@pytest.fixture
def app(config, storage):
    """Create a FastAPI application wired to the test storage."""
    application = create_app(config)
    application.state.storage = storage
    return application


@pytest.fixture
async def make_client(app):
    """Factory for clients; ``make_client("photos")`` addresses that bucket.

    Without a bucket the client talks to the bare ``localhost`` host.
    """
    clients: list[AsyncClient] = []

    def _make(bucket: str | None = None) -> AsyncClient:
        host = f"{bucket}.localhost" if bucket else "localhost"
        ac = AsyncClient(transport=ASGITransport(app=app), base_url=f"http://{host}")
        clients.append(ac)
        return ac

    yield _make

    for ac in clients:
        await ac.aclose()


@pytest.fixture
def client(make_client) -> AsyncClient:
    """Client for the bare host (no bucket subdomain)."""
    return make_client()
