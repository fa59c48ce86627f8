"""work.db backed cache store for directory summary payloads."""

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from dirsummary.errors import StoreReadError, StoreWriteError
from dirsummary.storage.manager import StorageManager, utc_now
from dirsummary.storage.work_models import DirSummaryCache

logger = logging.getLogger(__name__)

MODE_DIRECT = "dir-summary"
MODE_RECURSIVE = "dir-summary-recursive"


def summary_mode(recursive: bool) -> str:
    return MODE_RECURSIVE if recursive else MODE_DIRECT


class SummaryStore:
    """Cache of summary payloads for one aggregation mode.

    Direct and recursive summaries of the same snapshot are separate
    entries; a store instance only ever reads and writes its own mode.
    """

    def __init__(self, storage: StorageManager, recursive: bool = False):
        self.storage = storage
        self.mode = summary_mode(recursive)

    def get(self, identity) -> str | None:
        """Stored payload for ``identity``, or None if nothing is cached.

        Raises:
            StoreReadError: If work.db cannot be queried
        """
        try:
            with self.storage.get_work_session() as session:
                return session.execute(
                    select(DirSummaryCache.payload).where(
                        DirSummaryCache.snapshot_key == str(identity),
                        DirSummaryCache.mode == self.mode,
                    )
                ).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreReadError(
                f"Failed to read {self.mode} for snapshot {identity}: {e}"
            ) from e

    def put(self, identity, payload: str, force: bool = False) -> None:
        """Store ``payload`` for ``identity``.

        Args:
            identity: Snapshot identity the payload was computed from
            payload: Encoded DirSummaries
            force: Replace an existing entry instead of failing

        Raises:
            StoreWriteError: If an entry exists and force is False, or the
                database write fails
        """
        key = str(identity)
        try:
            with self.storage.get_work_session() as session:
                row = session.get(DirSummaryCache, (key, self.mode))
                now = utc_now()
                if row is None:
                    session.add(
                        DirSummaryCache(
                            snapshot_key=key,
                            mode=self.mode,
                            payload=payload,
                            created_at=now,
                        )
                    )
                elif force:
                    row.payload = payload
                    row.updated_at = now
                else:
                    raise StoreWriteError(
                        f"{self.mode} for snapshot {key} already cached; "
                        f"use force to overwrite"
                    )
                session.commit()
        except SQLAlchemyError as e:
            raise StoreWriteError(
                f"Failed to write {self.mode} for snapshot {key}: {e}"
            ) from e
        logger.info(f"Stored {self.mode} for snapshot {key}")

    def clear(self, identity=None) -> int:
        """Remove cached entries of this mode, for one snapshot or all.

        Returns:
            Number of removed entries
        """
        stmt = delete(DirSummaryCache).where(DirSummaryCache.mode == self.mode)
        if identity is not None:
            stmt = stmt.where(DirSummaryCache.snapshot_key == str(identity))
        try:
            with self.storage.get_work_session() as session:
                result = session.execute(stmt)
                session.commit()
                return result.rowcount
        except SQLAlchemyError as e:
            raise StoreWriteError(f"Failed to clear {self.mode}: {e}") from e
