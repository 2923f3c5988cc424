"""
Tests for the batch data and portal listing endpoints.
"""

import pytest
from httpx import AsyncClient

from portal_catalog.services.portal_client import PortalNetworkError
from fakes import FakePortalClient, make_id


@pytest.mark.asyncio
async def test_batch_data(client: AsyncClient, portal: FakePortalClient):
    """Test each result is independent and failures come back unavailable."""
    portal.add_dataset(make_id(1), rows=6)
    portal.add_dataset(make_id(2), rows=None)
    portal.failing.add(make_id(3))

    response = await client.post(
        "/api/v1/data/batch",
        json={"ids": [make_id(1), make_id(2), make_id(3)], "limit": 2},
    )
    assert response.status_code == 200

    data = response.json()
    assert data["available"] == 1
    assert len(data["results"][make_id(1)]["records"]) == 2
    assert data["results"][make_id(1)]["total_records"] == 6
    assert data["results"][make_id(2)]["available"] is False
    assert data["results"][make_id(3)]["available"] is False


@pytest.mark.asyncio
async def test_batch_data_requires_ids(client: AsyncClient):
    """Test an empty id list is rejected."""
    response = await client.post("/api/v1/data/batch", json={"ids": []})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_portal_listing(client: AsyncClient, portal: FakePortalClient):
    """Test the upstream listing is paged and cached per query."""
    portal.packages = [{"id": make_id(i), "title": f"مجموعة {i}"} for i in range(1, 31)]

    response = await client.get("/api/v1/portal/datasets", params={"page": 1, "limit": 20})
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 30
    assert data["has_more"] is True
    assert len(data["datasets"]) == 20
    assert data["source"] == "api"

    response = await client.get("/api/v1/portal/datasets", params={"page": 1, "limit": 20})
    assert response.json()["source"] == "cache"
    assert portal.count("search_packages") == 1


@pytest.mark.asyncio
async def test_portal_listing_unreachable(client: AsyncClient, portal: FakePortalClient):
    """Test an unreachable portal maps to 502."""

    async def unreachable(*args, **kwargs):
        raise PortalNetworkError("Connection error: unreachable")

    portal.search_packages = unreachable

    response = await client.get("/api/v1/portal/datasets")
    assert response.status_code == 502
    assert response.json()["detail"] == "The data portal could not be reached"
