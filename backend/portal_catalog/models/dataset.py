"""
Dataset model - one table published by the upstream open-data portal.

Design notes:
- external_id is the portal's identifier and the only key used for upserts
- record_count is an estimate written by metadata sync and refreshed after
  a successful on-demand fetch; it is never authoritative
- resources JSONB holds the downloadable representations (see schemas.jsonb_types.Resource)
- the record data itself is never stored here, only in the cache
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import Column, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field

from portal_catalog.models.base import BaseTableModel
from portal_catalog.schemas.enums import SyncStatus

__all__ = ["Dataset", "PLACEHOLDER_CATEGORY"]

PLACEHOLDER_CATEGORY = "Other"


class Dataset(BaseTableModel, table=True):
    """A cataloged portal dataset, created as a placeholder by discovery."""

    __tablename__ = "datasets"
    __table_args__ = (
        UniqueConstraint("external_id", name="uq_datasets_external_id"),
        Index("idx_datasets_external_id", "external_id"),
        Index("idx_datasets_category", "category"),
        Index("idx_datasets_sync_status", "sync_status"),
    )

    # Identification
    external_id: str = Field(
        sa_column=Column(String(64), nullable=False),
        max_length=64,
        description="Portal dataset identifier (UUID-shaped, lowercase)",
    )
    name: str = Field(
        sa_column=Column(String(500), nullable=False),
        max_length=500,
        description="Default display name",
    )
    name_localized: str | None = Field(
        default=None,
        sa_column=Column(String(500), nullable=True),
        description="Localized display name (Arabic on the default portal)",
    )

    # Description
    description: str | None = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )
    description_localized: str | None = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )

    # Classification and attribution
    category: str = Field(
        default=PLACEHOLDER_CATEGORY,
        sa_column=Column(String(255), nullable=False, server_default=PLACEHOLDER_CATEGORY),
    )
    source: str | None = Field(
        default=None,
        sa_column=Column(String(500), nullable=True),
        description="Publishing organization",
    )
    source_url: str | None = Field(
        default=None,
        sa_column=Column(String(500), nullable=True),
        description="Canonical view page on the portal",
    )

    # Estimated size
    record_count: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default="0"),
    )

    resources: list[dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSONB, nullable=False, server_default="[]"),
    )

    # Sync tracking
    sync_status: str = Field(
        default=SyncStatus.PENDING,
        sa_column=Column(String(20), nullable=False, server_default=SyncStatus.PENDING.value),
    )
    last_sync_at: datetime | None = Field(
        default=None,
        sa_column=Column(sa.DateTime(timezone=True), nullable=True),
        description="Last successful metadata sync",
    )
    last_sync_attempt_at: datetime | None = Field(
        default=None,
        sa_column=Column(sa.DateTime(timezone=True), nullable=True),
    )
    sync_error: str | None = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )
    # Consecutive failures; reset on success
    sync_failures: int = Field(
        default=0,
        sa_column=Column(Integer, nullable=False, server_default="0"),
    )

    # Tags, update frequency, portal timestamps
    extra_data: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSONB, nullable=False, server_default="{}"),
    )

    @property
    def display_name(self) -> str:
        """Localized name when known, otherwise the default name."""
        return self.name_localized or self.name
