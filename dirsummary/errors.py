"""Error types raised by the directory summary pipeline.

Resolution and listing failures are fatal for a command invocation.
Payload and version problems are cache misses and never reach the user.
A failed cache write is reported but does not discard the computed result.
"""


class DirSummaryError(Exception):
    """Base class for all directory summary errors."""


class ResolutionError(DirSummaryError, ValueError):
    """A reference could not be mapped to a snapshot identity."""

    def __init__(self, reference: str, reason: str | None = None):
        self.reference = reference
        message = f"Unable to resolve reference {reference}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class ListingError(DirSummaryError, RuntimeError):
    """The files of a resolved snapshot could not be enumerated."""

    def __init__(self, identity, reason: str | None = None):
        self.identity = identity
        message = f"Unable to list files of snapshot {identity}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MalformedPayload(DirSummaryError, ValueError):
    """A stored summary payload does not parse into a DirSummaries."""


class VersionMismatch(DirSummaryError, ValueError):
    """A decoded summary was written by a different format version."""

    def __init__(self, found: int, expected: int):
        self.found = found
        self.expected = expected
        super().__init__(
            f"summary payload is v{found}, code expects v{expected}"
        )


class StoreReadError(DirSummaryError, RuntimeError):
    """A cache store lookup failed for a reason other than a missing entry."""


class StoreWriteError(DirSummaryError, RuntimeError):
    """Writing a summary payload to a cache store failed."""
