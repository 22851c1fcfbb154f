"""Health endpoint and request-id middleware."""

from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import OperationalError

from babydiary import __version__
from babydiary.database import get_db_session


class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"
        assert body["version"] == __version__

    @pytest.mark.asyncio
    async def test_unreachable_database_is_503(self, app, client):
        broken = AsyncMock()
        broken.execute = AsyncMock(side_effect=OperationalError("SELECT 1", {}, Exception("connection refused")))

        async def broken_session():
            yield broken

        app.dependency_overrides[get_db_session] = broken_session
        response = await client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"


class TestRequestId:

    @pytest.mark.asyncio
    async def test_generated_when_missing(self, client):
        response = await client.get("/health")
        assert len(response.headers["X-Request-ID"]) == 8

    @pytest.mark.asyncio
    async def test_client_id_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "upload-42"})
        assert response.headers["X-Request-ID"] == "upload-42"

    @pytest.mark.asyncio
    async def test_error_responses_carry_id(self, client):
        response = await client.get("/api/auth/me", headers={"X-Request-ID": "trace-me"})
        assert response.status_code == 401
        assert response.headers["X-Request-ID"] == "trace-me"
