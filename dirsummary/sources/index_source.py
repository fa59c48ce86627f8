"""Snapshots captured into index.db as a summary source."""

import logging
import re

from sqlalchemy import select

from dirsummary.errors import ListingError, ResolutionError
from dirsummary.storage.index_models import Node, Snapshot
from dirsummary.storage.manager import NodeKind, StorageManager
from dirsummary.storage.summary_store import SummaryStore

logger = logging.getLogger(__name__)

DEFAULT_REFERENCE = "HEAD"

_HEAD_RE = re.compile(r"^HEAD(?:~(\d*)|(\^+))?$")
_UID_RE = re.compile(r"^[0-9a-f]{32}$")


def _head_offset(reference: str) -> int | None:
    """Offset from the newest snapshot for HEAD, HEAD~N and HEAD^^ forms."""
    match = _HEAD_RE.match(reference)
    if not match:
        return None
    tilde, carets = match.groups()
    if carets:
        return len(carets)
    if tilde is not None:
        return int(tilde) if tilde else 1
    return 0


class IndexSnapshotSource:
    """Resolve and list snapshots stored in index.db.

    References:
    - ``HEAD``: the newest snapshot; ``HEAD~N`` / ``HEAD^`` walk back by id
    - a snapshot id, e.g. ``12``
    - a snapshot uid (32 hex digits)
    - a snapshot label given at gather time

    Every reference resolves to the snapshot's uid, which stays unique when
    index.db is recreated and its snapshot ids start over.
    """

    name = "index"

    def __init__(self, storage: StorageManager):
        self.storage = storage

    def resolve(self, reference: str = DEFAULT_REFERENCE) -> str:
        reference = (reference or DEFAULT_REFERENCE).strip()

        with self.storage.get_index_session(read_only=True) as session:
            offset = _head_offset(reference)
            if offset is not None:
                snapshot_uid = session.execute(
                    select(Snapshot.snapshot_uid)
                    .order_by(Snapshot.snapshot_id.desc())
                    .offset(offset)
                    .limit(1)
                ).scalar_one_or_none()
                if snapshot_uid is None:
                    reason = (
                        "no snapshots found, run gather first"
                        if offset == 0
                        else f"fewer than {offset + 1} snapshots"
                    )
                    raise ResolutionError(reference, reason)
                return snapshot_uid

            if reference.isdigit():
                snapshot_uid = session.execute(
                    select(Snapshot.snapshot_uid).where(
                        Snapshot.snapshot_id == int(reference)
                    )
                ).scalar_one_or_none()
                if snapshot_uid is not None:
                    return snapshot_uid

            if _UID_RE.match(reference):
                snapshot_uid = session.execute(
                    select(Snapshot.snapshot_uid).where(
                        Snapshot.snapshot_uid == reference
                    )
                ).scalar_one_or_none()
                if snapshot_uid is not None:
                    return snapshot_uid

            snapshot_uid = session.execute(
                select(Snapshot.snapshot_uid).where(Snapshot.label == reference)
            ).scalar_one_or_none()
            if snapshot_uid is None:
                raise ResolutionError(reference, f"no such snapshot in {self.storage.index_path}")
            return snapshot_uid

    def list_files(self, snapshot_uid: str) -> list[str]:
        with self.storage.get_index_session(read_only=True) as session:
            snapshot_id = session.execute(
                select(Snapshot.snapshot_id).where(Snapshot.snapshot_uid == snapshot_uid)
            ).scalar_one_or_none()
            if snapshot_id is None:
                raise ListingError(snapshot_uid, "snapshot does not exist")

            paths = list(
                session.execute(
                    select(Node.rel_path)
                    .where(
                        Node.snapshot_id == snapshot_id,
                        Node.kind == NodeKind.FILE.value,
                    )
                    .order_by(Node.rel_path)
                ).scalars()
            )
        logger.info(f"Snapshot {snapshot_id} has {len(paths)} files")
        return paths

    def store_for(self, recursive: bool) -> SummaryStore:
        return SummaryStore(self.storage, recursive=recursive)

    def list_snapshots(self) -> list[Snapshot]:
        with self.storage.get_index_session(read_only=True) as session:
            snapshots = list(
                session.execute(
                    select(Snapshot).order_by(Snapshot.snapshot_id.desc())
                ).scalars()
            )
            for snapshot in snapshots:
                session.expunge(snapshot)
            return snapshots
