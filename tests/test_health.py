"""Tests for health check and root endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

pytestmark = pytest.mark.asyncio


class BrokenSession:
    async def __aenter__(self):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    async def __aexit__(self, *exc_info):
        return False


async def test_health_check(async_client):
    """Health is public and reports the database as connected."""
    response = await async_client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == "1.0.0"
    assert data["database"] == "connected"


async def test_health_check_database_down(test_settings, revocation_store):
    """Health reports 503 when the database is unreachable."""
    from linkshelf.main import create_app

    app = create_app(
        test_settings,
        session_factory=lambda: BrokenSession(),
        revocation_store=revocation_store,
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["database"] == "disconnected"


async def test_root_is_public(async_client):
    response = await async_client.get("/")

    assert response.status_code == 200
    assert response.json()["name"] == "LinkShelf"
