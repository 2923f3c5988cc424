"""
Typed Pydantic models for JSONB columns.

These models define the expected structure of JSONB fields in our models.

Usage in service layer:
    resources = [Resource.model_validate(r) for r in dataset.resources]
    dataset.resources = [r.model_dump() for r in resources]
"""

from __future__ import annotations

from pydantic import BaseModel, Field

__all__ = [
    "Resource",
    "DatasetExtraData",
    "select_tabular_resource",
]


class Resource(BaseModel):
    """One downloadable representation of a dataset (datasets.resources item)."""

    id: str | None = None
    name: str | None = None
    format: str | None = None
    url: str | None = None
    size: int | None = None

    @property
    def is_tabular(self) -> bool:
        """CSV by declared format or by URL suffix."""
        if self.format and self.format.strip().lower() == "csv":
            return True
        return bool(self.url) and self.url.lower().split("?", 1)[0].endswith(".csv")


class DatasetExtraData(BaseModel):
    """
    Structure for datasets.extra_data JSONB column.

    Portal-specific metadata that does not warrant its own column.
    """

    tags: list[str] = Field(default_factory=list)
    update_frequency: str | None = None
    portal_created_at: str | None = None
    portal_updated_at: str | None = None
    # Which upstream endpoint the last metadata came from
    metadata_source: str | None = None

    schema_version: int = 1


def select_tabular_resource(resources: list[Resource]) -> Resource | None:
    """First tabular resource that has a URL, or None."""
    for resource in resources:
        if resource.url and resource.is_tabular:
            return resource
    return None
