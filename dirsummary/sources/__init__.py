"""Snapshot sources: resolve a reference, list the files of a snapshot.

Each source also provides the cache store that fits it, via
``store_for(recursive)``.
"""

from dirsummary.sources.git_source import GitNotesStore, GitSnapshotSource
from dirsummary.sources.index_source import IndexSnapshotSource

__all__ = ["GitNotesStore", "GitSnapshotSource", "IndexSnapshotSource"]
