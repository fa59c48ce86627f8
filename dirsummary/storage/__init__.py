"""Storage module for filesystem snapshots and cached summaries.

This module implements the two-database architecture:
1. Filesystem index (data/index.db) - Immutable snapshots of filesystem
2. Work database (data/work.db) - Cached directory summaries keyed by snapshot

Classifier tables are managed separately via YAML files in dirsummary/config/
(see dirsummary/utils/config.py).
"""

from dirsummary.storage.manager import StorageManager

__all__ = ["StorageManager"]
