"""Serve a directory summary from cache or recompute it.

Each invocation makes one decision, REUSE or RECOMPUTE, from the stored
payload alone. That decision is ``determine_validity`` and needs no I/O;
``dir_summary`` wires it to a snapshot source and a cache store.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from dirsummary.classify.file_types import FileClassification
from dirsummary.data_models.summary import (
    DIR_SUMMARY_VERSION,
    DirSummaries,
    encode,
    is_reusable,
    try_decode,
)
from dirsummary.errors import MalformedPayload, StoreWriteError
from dirsummary.stages.summarize import compute_dir_summaries

logger = logging.getLogger(__name__)


class CacheDecision(str, Enum):
    REUSE = "reuse"
    RECOMPUTE = "recompute"


@dataclass(frozen=True)
class DirSummaryOutcome:
    """Result of one invocation, whichever way it was produced."""

    identity: Any
    decision: CacheDecision
    result: DirSummaries
    payload: str
    cache_written: bool = False


def determine_validity(
    no_cache: bool,
    stored_payload: str | None,
    expected_version: int = DIR_SUMMARY_VERSION,
) -> tuple[CacheDecision, DirSummaries | None]:
    """Decide whether a stored payload can be served.

    Returns:
        (REUSE, decoded summary) when caching is on and the stored payload
        decodes to ``expected_version``; (RECOMPUTE, None) otherwise.
    """
    if no_cache:
        return CacheDecision.RECOMPUTE, None
    if stored_payload is None:
        logger.info("No cached summary found")
        return CacheDecision.RECOMPUTE, None

    decoded = try_decode(stored_payload)
    if isinstance(decoded, MalformedPayload):
        logger.info(f"Cached summary is unreadable, recomputing: {decoded}")
        return CacheDecision.RECOMPUTE, None
    if not is_reusable(decoded, expected_version):
        logger.info(
            f"Cached summary is v{decoded.version}, "
            f"code expects v{expected_version}, recomputing"
        )
        return CacheDecision.RECOMPUTE, None
    return CacheDecision.REUSE, decoded


def dir_summary(
    reference: str,
    *,
    source,
    store,
    classify: Callable[[str], FileClassification],
    recursive: bool = False,
    no_cache: bool = False,
    workers: int = 1,
) -> DirSummaryOutcome:
    """Produce the directory summary for ``reference``.

    Args:
        reference: Human reference resolved through ``source``
        source: Object with ``resolve(reference)`` and ``list_files(identity)``
        store: Object with ``get(identity)`` and ``put(identity, payload, force)``,
            bound to the same aggregation mode as ``recursive``
        classify: Callable returning the FileClassification of a path
        recursive: Roll counts up into every ancestor directory
        no_cache: Neither read nor write ``store``
        workers: Threads used for classification

    Raises:
        ResolutionError: If ``reference`` does not name a snapshot
        ListingError: If the snapshot's files cannot be listed
    """
    identity = source.resolve(reference)
    logger.info(f"Resolved {reference} to snapshot {identity}")

    stored_payload = None if no_cache else store.get(identity)
    decision, cached = determine_validity(no_cache, stored_payload)

    if decision is CacheDecision.REUSE:
        logger.info(f"Using cached summary for snapshot {identity}")
        return DirSummaryOutcome(
            identity=identity,
            decision=decision,
            result=cached,
            payload=stored_payload.strip(),
        )

    logger.info(f"Recomputing summary for snapshot {identity}")
    files = source.list_files(identity)
    result = compute_dir_summaries(files, classify, recursive=recursive, workers=workers)
    payload = encode(result)

    cache_written = False
    if not no_cache:
        try:
            # force: an outdated or unreadable entry must be replaced
            store.put(identity, payload, force=True)
            cache_written = True
        except StoreWriteError as e:
            logger.warning(f"Summary computed but not cached: {e}")

    return DirSummaryOutcome(
        identity=identity,
        decision=decision,
        result=result,
        payload=payload,
        cache_written=cache_written,
    )
