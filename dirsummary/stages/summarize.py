"""Fold classified files into per-directory file type counts.

Directories are plain path strings with ``/`` separators and the root is
``""``. Parents are computed lexically by dropping the last path segment,
so the directory tree is never materialized.
"""

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor

from dirsummary.classify.file_types import FileClassification
from dirsummary.data_models.summary import (
    DIR_SUMMARY_VERSION,
    DirSummaries,
    PerTypeCount,
)

logger = logging.getLogger(__name__)

ROOT_DIR = ""

Classify = Callable[[str], FileClassification]


class _Counter:
    """Mutable accumulator for one (directory, type) entry."""

    __slots__ = ("count", "display_name")

    def __init__(self, display_name: str):
        self.count = 0
        self.display_name = display_name


# directory -> type label -> counter
_Accumulator = dict[str, dict[str, _Counter]]


def _segments(path: str) -> list[str]:
    return [part for part in path.split("/") if part and part != "."]


def parent_dir(path: str) -> str:
    """Directory containing ``path``; top level entries live in ``""``."""
    return "/".join(_segments(path)[:-1])


def ancestor_dirs(directory: str) -> list[str]:
    """``directory`` itself followed by every ancestor, ending with the root.

    >>> ancestor_dirs("a/b")
    ['a/b', 'a', '']
    >>> ancestor_dirs("")
    ['']
    """
    parts = _segments(directory)
    return ["/".join(parts[:depth]) for depth in range(len(parts), -1, -1)]


def _add(acc: _Accumulator, directory: str, type_label: str, display_name: str, count: int):
    entries = acc.setdefault(directory, {})
    counter = entries.get(type_label)
    if counter is None:
        # first write wins for the display name
        counter = entries[type_label] = _Counter(display_name)
    counter.count += count


def _freeze(acc: _Accumulator) -> dict[str, dict[str, PerTypeCount]]:
    return {
        directory: {
            type_label: PerTypeCount(count=c.count, display_name=c.display_name)
            for type_label, c in entries.items()
        }
        for directory, entries in acc.items()
    }


def _classify_all(
    file_paths: list[str], classify: Classify, workers: int
) -> Iterable[FileClassification]:
    if workers <= 1 or len(file_paths) < 2:
        return map(classify, file_paths)
    # map() keeps input order, so the fold below sees files in listing order
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(classify, file_paths))


def build_direct_summaries(
    file_paths: Iterable[str], classify: Classify, workers: int = 1
) -> dict[str, dict[str, PerTypeCount]]:
    """Count classified files by the directory that directly contains them.

    Files with an empty type label are skipped and never create a directory
    entry on their own.

    Args:
        file_paths: Every file path of the snapshot, relative to its root
        classify: Callable returning the FileClassification of a path
        workers: Threads used for classification (1 = sequential)

    Returns:
        Mapping of directory -> type label -> PerTypeCount (direct files only)
    """
    paths = list(file_paths)
    acc: _Accumulator = {}
    skipped = 0

    for path, classification in zip(paths, _classify_all(paths, classify, workers)):
        if not classification.type_label:
            skipped += 1
            continue
        _add(
            acc,
            parent_dir(path),
            classification.type_label,
            classification.display_label,
            1,
        )

    logger.info(
        f"Classified {len(paths) - skipped}/{len(paths)} files "
        f"into {len(acc)} directories"
    )
    return _freeze(acc)


def roll_up(
    direct: dict[str, dict[str, PerTypeCount]],
) -> dict[str, dict[str, PerTypeCount]]:
    """Add every directory's counts into all of its ancestors.

    Must be applied exactly once, to direct counts: the output has the same
    shape as the input, and rolling it up again would count files twice.
    """
    acc: _Accumulator = {}
    for directory, entries in direct.items():
        for type_label, info in entries.items():
            for ancestor in ancestor_dirs(directory):
                _add(acc, ancestor, type_label, info.display_name, info.count)
    return _freeze(acc)


def compute_dir_summaries(
    file_paths: Iterable[str],
    classify: Classify,
    recursive: bool = False,
    workers: int = 1,
) -> DirSummaries:
    """Build the DirSummaries for one snapshot listing."""
    summaries = build_direct_summaries(file_paths, classify, workers=workers)
    if recursive:
        summaries = roll_up(summaries)
    return DirSummaries(version=DIR_SUMMARY_VERSION, summaries=summaries)
