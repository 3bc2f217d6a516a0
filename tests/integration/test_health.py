"""Tests for the health check endpoint."""

import pytest
from httpx import ASGITransport, AsyncClient

from hybridapi.main import app


@pytest.mark.asyncio
async def test_health_check_returns_200():
    """Health endpoint reports status, version, environment and routing defaults."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert "environment" in data
    assert data["default_mode"] in {"remote_only", "local_only", "remote_first", "local_first", "bidirectional"}
    assert isinstance(data["cache_enabled"], bool)
