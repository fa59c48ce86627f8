"""Per-directory file type summaries of file tree snapshots."""

__version__ = "0.1.0"
