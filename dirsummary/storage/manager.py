"""Storage manager for index.db and work.db databases.

This module provides the main interface for interacting with the two-database
architecture: filesystem snapshots (index.db) and cached directory summaries
(work.db). Classifier tables are managed separately via YAML files loaded
in-memory (see dirsummary/utils/config.py).
"""

from enum import Enum
from dataclasses import dataclass

from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Iterator
from datetime import datetime, timezone
import logging

from sqlalchemy import create_engine, delete, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from dirsummary.utils.config import compute_reference_hash

from dirsummary.storage.index_models import (
    IndexBase,
    Snapshot,
    Meta as IndexMeta,
    INDEX_SCHEMA_VERSION,
)
from dirsummary.storage.work_models import (
    WorkBase,
    DirSummaryCache,
    Meta as WorkMeta,
    WORK_SCHEMA_VERSION,
)

logger = logging.getLogger(__name__)

# Default paths
DATA_DIR = Path("data")


# CRITICAL: Set PRAGMAs per connection, not per engine
# SQLite requires these settings on every new connection
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Set SQLite PRAGMAs for every new connection.

    CRITICAL: This must be done per connection, not just once during engine init.
    Without this, new connections will silently disable foreign key enforcement.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


class NodeKind(str, Enum):
    """Allowed values for Node.kind."""

    FILE = "file"
    DIR = "dir"


class FileSource(str, Enum):
    """Allowed values for Node.file_source."""

    FILESYSTEM = "filesystem"
    ZIP_FILE = "zip_file"
    ZIP_CONTENT = "zip_content"


@dataclass(frozen=True)
class IngestionJob:
    """Context payload for an ingestion job."""

    storage: "StorageManager"
    snapshot_id: int


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _sqlite_url(path: Path) -> str:
    # Handle in-memory database path
    if str(path) == ":memory:":
        return "sqlite:///:memory:"
    return f"sqlite:///{path}"


class StorageManager:
    """Manager for index.db and work.db databases.

    This class is the single source of truth for all database configuration and
    provides session management for both SQLite databases:

    - index.db: Immutable filesystem snapshots (always initialized)
    - work.db: Cached directory summaries (initialized by default, disable with initialize_work=False)

    Usage:
        # For summary operations (index + work)
        manager = StorageManager(path)

        # For read-only operations (index only)
        manager = StorageManager(path, initialize_work=False)

    IMPORTANT:
    - Snapshots in index.db are immutable after creation
    - Cross-database references (snapshot_id) are validated at application level
    - Schema versions are checked on initialization
    - Session methods will raise RuntimeError if the database was not initialized
    """

    def __init__(
        self,
        database_path: Path | None,
        initialize_work: bool = True,
    ):
        """Initialize storage manager.

        Args:
            database_path: Directory where the databases live (defaults to ./data)
            initialize_work: Whether to initialize work.db (default: True)
        """
        if database_path is None:
            database_path = DATA_DIR
        database_path = Path(database_path)
        self.index_path = database_path / "index.db"
        self.work_path = database_path / "work.db"

        self._initialize_work = initialize_work

        self.index_engine: Engine | None = None
        self.work_engine: Engine | None = None

        self._ensure_databases()

    def _ensure_databases(self):
        """Ensure database files exist and schemas are initialized based on flags."""
        self.index_path.parent.mkdir(parents=True, exist_ok=True)

        self.index_engine = create_engine(_sqlite_url(self.index_path))
        IndexBase.metadata.create_all(self.index_engine)
        self._verify_schema_version(
            self.index_engine,
            IndexMeta,
            INDEX_SCHEMA_VERSION,
            db_name="index.db",
            remedy=f"Delete {self.index_path} and re-run gather to regenerate snapshots.",
        )

        if self._initialize_work:
            self.work_path.parent.mkdir(parents=True, exist_ok=True)
            self.work_engine = create_engine(_sqlite_url(self.work_path))
            WorkBase.metadata.create_all(self.work_engine)
            self._verify_schema_version(
                self.work_engine,
                WorkMeta,
                WORK_SCHEMA_VERSION,
                db_name="work.db",
                remedy=f"Delete {self.work_path} to recreate (cached summaries are recomputed).",
            )

    def _verify_schema_version(
        self, engine, meta_model, expected: str, *, db_name: str, remedy: str
    ):
        """Verify a database's schema version matches code version.

        New databases get the current version recorded.

        Raises:
            RuntimeError: If schema version mismatch detected
        """
        Session = sessionmaker(bind=engine)
        session = Session()

        try:
            meta = session.query(meta_model).filter_by(key="schema_version").first()

            if meta is None:
                meta = meta_model(key="schema_version", value=expected)
                session.add(meta)
                session.commit()
            elif meta.value != expected:
                raise RuntimeError(
                    f"{db_name} schema version mismatch: "
                    f"database is v{meta.value}, code expects v{expected}. "
                    f"{remedy}"
                )
        finally:
            session.close()

    @contextmanager
    def get_index_session(self, read_only: bool = False) -> Iterator[Session]:
        """Get SQLAlchemy session for index.db.

        Args:
            read_only: If True, returns session that raises error on flush/commit.
                      Use for snapshot queries to prevent accidental mutations.

        Returns:
            Context manager yielding a SQLAlchemy session
        """
        Session = sessionmaker(bind=self.index_engine)
        session = Session()

        if read_only:
            # Prevent writes by raising on flush
            @event.listens_for(session, "before_flush")
            def prevent_flush(session, flush_context, instances):
                raise RuntimeError(
                    "Cannot modify index.db with read-only session. "
                    "Snapshots are immutable after creation."
                )

        try:
            yield session
        finally:
            session.close()

    @contextmanager
    def get_work_session(self) -> Iterator[Session]:
        """Get SQLAlchemy session for work.db.

        Raises:
            RuntimeError: If work database was not initialized
        """
        if not self._initialize_work or self.work_engine is None:
            raise RuntimeError(
                "Work database not initialized. "
                "Create StorageManager with initialize_work=True"
            )

        Session = sessionmaker(bind=self.work_engine)
        session = Session()
        try:
            yield session
        finally:
            session.close()

    def _validate_snapshot_exists(self, snapshot_id: int) -> bool:
        """Check if snapshot exists in index.db."""
        with self.get_index_session(read_only=True) as session:
            return (
                session.query(Snapshot).filter_by(snapshot_id=snapshot_id).first()
                is not None
            )

    def delete_snapshot(self, snapshot_id: int):
        """Delete a snapshot and every summary cached for it."""
        with self.get_index_session() as session:
            snapshot = (
                session.query(Snapshot).filter_by(snapshot_id=snapshot_id).first()
            )
            if snapshot is None:
                return
            snapshot_uid = snapshot.snapshot_uid
            session.delete(snapshot)  # Cascades to nodes
            session.commit()

        if self._initialize_work:
            with self.get_work_session() as session:
                session.execute(
                    delete(DirSummaryCache).where(
                        DirSummaryCache.snapshot_key == snapshot_uid
                    )
                )
                session.commit()

    @contextmanager
    def ingestion_job(
        self,
        root_path: Path,
        label: Optional[str] = None,
        notes: Optional[str] = None,
        reference_hash: Optional[str] = None,
    ) -> Iterator[IngestionJob]:
        """Create a snapshot for a new ingestion job.

        The snapshot row is committed up front so nodes can reference it.
        If the job body raises, the partial snapshot is deleted again so
        no half-captured snapshot is ever summarized.
        """
        root_path_value = Path(root_path)

        with self.get_index_session() as index_session:
            snapshot = Snapshot(
                created_at=utc_now(),
                root_path=str(root_path_value),
                root_abs_path=str(root_path_value.resolve()),
                label=label,
                reference_hash=reference_hash or compute_reference_hash(),
                notes=notes,
            )
            index_session.add(snapshot)
            index_session.commit()
            snapshot_id = snapshot.snapshot_id

        job = IngestionJob(storage=self, snapshot_id=snapshot_id)

        try:
            yield job
        except Exception:
            logger.error(f"Ingestion of snapshot {snapshot_id} failed, removing it")
            self.delete_snapshot(snapshot_id)
            raise
