"""Path based file type classification.

The classifier never opens files: snapshots only record paths, and the
same path must always classify the same way so cached summaries stay
meaningful.
"""

import logging
import mimetypes
from pathlib import PurePosixPath
from typing import NamedTuple

from dirsummary.utils.config import Config, get_config

logger = logging.getLogger(__name__)


class FileClassification(NamedTuple):
    """Type of one file. An empty ``type_label`` means unclassified."""

    type_label: str
    display_label: str


UNCLASSIFIED = FileClassification("", "")


class FileTypeClassifier:
    """Classify files by name using the configured extension tables.

    Lookup order:
    1. exact file name (``Makefile``, ``Dockerfile``)
    2. compound extension, longest first (``.tar.gz`` before ``.gz``)
    3. the ``mimetypes`` registry, labelled by the lowercase extension
    """

    def __init__(self, config: Config | None = None):
        self.config = config or get_config()
        self._max_parts = self.config.max_extension_parts

    def __call__(self, path: str) -> FileClassification:
        return self.classify(path)

    def classify(self, path: str) -> FileClassification:
        name = PurePosixPath(path).name
        if not name:
            return UNCLASSIFIED

        by_name = self.config.file_name_types.get(name)
        if by_name:
            return FileClassification(*by_name)

        suffixes = [s.lower() for s in PurePosixPath(name).suffixes]
        if not suffixes:
            return UNCLASSIFIED

        for size in range(min(self._max_parts, len(suffixes)), 0, -1):
            ext = "".join(suffixes[-size:])
            known = self.config.extension_types.get(ext)
            if known:
                return FileClassification(*known)

        return self._classify_by_mimetype(name, suffixes[-1])

    def _classify_by_mimetype(self, name: str, ext: str) -> FileClassification:
        mime_type, _ = mimetypes.guess_type(name, strict=False)
        if not mime_type:
            return UNCLASSIFIED

        major = mime_type.split("/", 1)[0]
        kind = self.config.mime_display.get(major, "file")
        label = ext.lstrip(".")
        if not label:
            return UNCLASSIFIED
        return FileClassification(label, f"{label.upper()} {kind}")
