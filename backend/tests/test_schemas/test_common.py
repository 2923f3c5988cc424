"""Tests for common schemas."""

from portal_catalog.api.utils import paginated
from portal_catalog.schemas.common import (
    HealthResponse,
    PaginatedResponse,
    PaginationParams,
)


class TestPaginationParams:
    """Test pagination parameter handling."""

    def test_default_values(self):
        """Test default pagination values."""
        params = PaginationParams()
        assert params.page == 1
        assert params.page_size == 20

    def test_offset_calculation(self):
        """Test offset calculation from page number."""
        assert PaginationParams(page=1, page_size=20).offset == 0
        assert PaginationParams(page=2, page_size=20).offset == 20
        assert PaginationParams(page=3, page_size=10).offset == 20


class TestPaginatedResponse:
    """Test paginated response wrapper."""

    def test_pages_calculation(self):
        """Test total pages calculation."""
        response = PaginatedResponse[str](items=["a", "b"], total=100, page=1, page_size=20)
        assert response.pages == 5

    def test_pages_with_remainder(self):
        """Test pages calculation with non-even division."""
        response = PaginatedResponse[str](items=["a"], total=21, page=1, page_size=20)
        assert response.pages == 2

    def test_empty_response(self):
        """Test empty response returns 0 pages."""
        response = PaginatedResponse[str](items=[], total=0, page=1, page_size=20)
        assert response.pages == 0
        assert response.has_more is False

    def test_paginated_helper_sets_has_more(self):
        """Test the API helper derives has_more from the pagination."""
        first = paginated(["a"], 50, PaginationParams(page=2, page_size=20))
        assert first.has_more is True
        assert first.page == 2

        last = paginated(["a"], 50, PaginationParams(page=3, page_size=20))
        assert last.has_more is False


class TestSimpleResponses:
    """Test health schema."""

    def test_health_version_optional(self):
        health = HealthResponse(status="healthy", app="Portal Catalog")
        assert health.version is None
