"""Work database models for derived, recomputable data.

This module defines SQLAlchemy models for the work.db database, which stores
cached directory summaries keyed by snapshot and aggregation mode.

IMPORTANT: snapshot_key is not a foreign key. For index snapshots it holds
the snapshot_uid from index.db, never the snapshot_id: rowids restart when
index.db is recreated, uids do not. Other snapshot sources store their own
identities here (git stores commit shas).
"""

from typing import Optional
from sqlalchemy import String, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Schema version (increment on breaking changes)
WORK_SCHEMA_VERSION = "3.0.0"


class WorkBase(DeclarativeBase):
    pass


class DirSummaryCache(WorkBase):
    """Cached directory summary payload for one snapshot and mode.

    The payload carries its own format version; rows with an outdated
    payload are replaced, never merged.
    """

    __tablename__ = "dir_summary_cache"

    snapshot_key: Mapped[str] = mapped_column(String, primary_key=True)
    mode: Mapped[str] = mapped_column(String, primary_key=True)  # 'dir-summary' | 'dir-summary-recursive'
    payload: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[str] = mapped_column(String, nullable=False)
    updated_at: Mapped[Optional[str]]

    __table_args__ = (Index("idx_dir_summary_snapshot", "snapshot_key"),)


class Meta(WorkBase):
    """Metadata key-value store for work.db.

    Used for storing schema_version and other database-level metadata.
    """

    __tablename__ = "meta"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[Optional[str]]
