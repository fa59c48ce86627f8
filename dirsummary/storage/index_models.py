"""Index database models for filesystem snapshots.

This module defines SQLAlchemy models for the index.db database, which stores
immutable snapshots of filesystem state.

IMPORTANT: Snapshots are write-once, read-many. Once created via
ingest_filesystem(), they MUST NOT be modified. A snapshot's file listing is
what directory summaries are computed from, so mutating it would silently
invalidate every cached summary keyed by its snapshot_uid.
"""

import uuid
from typing import List, Optional
from sqlalchemy import (
    String,
    Integer,
    Float,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column

# Schema version (increment on breaking changes)
INDEX_SCHEMA_VERSION = "1.1.0"


class IndexBase(DeclarativeBase):
    pass


class Snapshot(IndexBase):
    """Immutable snapshot of filesystem state.

    To capture a new state of the filesystem, create a new snapshot instead
    of modifying an existing one. Snapshot ids increase monotonically, which
    is what ``HEAD~N`` references walk back through.

    snapshot_id is a rowid local to one index.db and may be handed out again
    when the database is recreated; snapshot_uid is unique across databases
    and is what cached summaries are keyed by.
    """

    __tablename__ = "snapshot"

    snapshot_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_uid: Mapped[str] = mapped_column(
        String, nullable=False, unique=True, default=lambda: uuid.uuid4().hex
    )
    created_at: Mapped[str] = mapped_column(String, nullable=False)
    root_path: Mapped[str] = mapped_column(String, nullable=False)
    root_abs_path: Mapped[str] = mapped_column(String, nullable=False)
    label: Mapped[Optional[str]] = mapped_column(String, unique=True)
    reference_hash: Mapped[Optional[str]] = mapped_column(String)
    notes: Mapped[Optional[str]] = mapped_column(String)

    # Relationships
    nodes: Mapped[List["Node"]] = relationship(
        back_populates="snapshot", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_snapshot_root", "root_abs_path"),)


class Node(IndexBase):
    """Filesystem node (file or directory) within a snapshot.

    CRITICAL Path Namespace:
    - rel_path always uses "/" separators, relative to the snapshot root
    - file_source distinguishes between filesystem paths and ZIP content paths
    - Unique constraint on (snapshot_id, rel_path, file_source) prevents collisions
    - Example: real directory "a.zip/" and ZIP file "a.zip" can coexist

    ZIP archives are stored as file nodes (file_source='zip_file'); their
    members hang below them with file_source='zip_content' and rel_paths
    that pass through the archive name, e.g. "maps/pack.zip/forest.png".
    """

    __tablename__ = "node"

    node_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_id: Mapped[int] = mapped_column(ForeignKey("snapshot.snapshot_id"), nullable=False)
    parent_node_id: Mapped[Optional[int]] = mapped_column(ForeignKey("node.node_id"), nullable=True)
    kind: Mapped[str] = mapped_column(String, CheckConstraint("kind IN ('file', 'dir')"), nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    rel_path: Mapped[str] = mapped_column(String, nullable=False)
    abs_path: Mapped[str] = mapped_column(String, nullable=False)
    ext: Mapped[Optional[str]] = mapped_column(String)
    size: Mapped[Optional[int]] = mapped_column(Integer)
    mtime: Mapped[Optional[float]] = mapped_column(Float)
    depth: Mapped[int] = mapped_column(Integer, nullable=False)

    # CRITICAL: file_source must be NOT NULL to ensure unique constraint works
    # Values: 'filesystem' | 'zip_file' | 'zip_content'
    file_source: Mapped[str] = mapped_column(String, nullable=False, default="filesystem")

    # Relationships
    snapshot: Mapped["Snapshot"] = relationship(back_populates="nodes")
    parent: Mapped[Optional["Node"]] = relationship(remote_side=[node_id], backref="children")

    __table_args__ = (
        Index("idx_node_snapshot", "snapshot_id"),
        Index("idx_node_parent", "snapshot_id", "parent_node_id"),
        Index("idx_node_kind", "snapshot_id", "kind"),
        Index("idx_node_path", "snapshot_id", "rel_path", "file_source", unique=True),
    )


class Meta(IndexBase):
    """Metadata key-value store for index.db.

    Used for storing schema_version and other database-level metadata.
    """

    __tablename__ = "meta"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[Optional[str]] = mapped_column(String)
