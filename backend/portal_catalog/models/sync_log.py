"""
SyncLog model - audit trail of discovery and sync jobs.

Design notes:
- NO soft delete - job logs are permanent records
- dataset_external_id is a plain string so logs survive dataset removal
"""

from __future__ import annotations

import uuid as uuid_lib
from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from portal_catalog.models.base import utc_now

__all__ = ["SyncLog"]


class SyncLog(SQLModel, table=True):
    """
    Permanent record of one background job run.

    Unlike catalog rows, sync logs are NEVER deleted.
    """

    __tablename__ = "sync_logs"
    __table_args__ = (
        Index("idx_sync_logs_job_type", "job_type"),
        Index("idx_sync_logs_dataset", "dataset_external_id"),
        Index("idx_sync_logs_created", "created_at"),
    )

    # Primary key - no soft delete
    id: int | None = Field(
        default=None,
        sa_column=Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True),
    )
    uuid: uuid_lib.UUID = Field(
        default_factory=uuid_lib.uuid4,
        unique=True,
        index=True,
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    # What ran
    job_type: str = Field(
        sa_column=Column(String(50), nullable=False),
        max_length=50,
    )
    status: str = Field(
        sa_column=Column(String(20), nullable=False),
        max_length=20,
    )
    dataset_external_id: str | None = Field(
        default=None,
        sa_column=Column(String(64), nullable=True),
    )

    # Outcome counts
    records_count: int = Field(default=0)
    new_records: int = Field(default=0)
    duration_ms: int | None = Field(default=None)

    error: str | None = Field(
        default=None,
        sa_column=Column(Text, nullable=True),
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSONB, nullable=False, server_default="{}"),
    )

    started_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    completed_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
