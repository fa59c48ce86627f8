"""Directory summary models and their cache payload codec.

A payload is pretty-printed JSON tagged with ``DIR_SUMMARY_VERSION``::

    {
      "summaries": {
        "": {"text": {"count": 1, "display_name": "Text"}},
        "a": {"png": {"count": 2, "display_name": "PNG image"}}
      },
      "version": 1
    }

Bump ``DIR_SUMMARY_VERSION`` whenever the payload shape or the meaning of
its counts changes; stored payloads with another version are recomputed.
"""

import json

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dirsummary.errors import MalformedPayload, VersionMismatch

DIR_SUMMARY_VERSION = 1


class PerTypeCount(BaseModel):
    """Number of files of one type, plus the label shown for that type."""

    model_config = ConfigDict(frozen=True)

    count: int = Field(ge=0)
    display_name: str


# type label -> count for one directory
DirectoryCounts = dict[str, PerTypeCount]


class DirSummaries(BaseModel):
    """Per-directory file type counts for one snapshot.

    The root directory is keyed by the empty string. Directories without any
    classified file in scope may be missing entirely.
    """

    model_config = ConfigDict(frozen=True)

    version: int
    summaries: dict[str, DirectoryCounts]

    @field_validator("summaries")
    @classmethod
    def _type_labels_not_empty(
        cls, value: dict[str, DirectoryCounts]
    ) -> dict[str, DirectoryCounts]:
        for directory, counts in value.items():
            if "" in counts:
                raise ValueError(f"empty type label in directory '{directory}'")
        return value

    def counts_for(self, directory: str) -> DirectoryCounts:
        return self.summaries.get(directory, {})

    def count(self, directory: str, type_label: str) -> int:
        entry = self.counts_for(directory).get(type_label)
        return entry.count if entry else 0

    def total(self, directory: str = "") -> int:
        return sum(entry.count for entry in self.counts_for(directory).values())


def encode(result: DirSummaries) -> str:
    """Serialize a summary to its payload text.

    Keys are sorted so equal summaries always encode to the same text.
    """
    return json.dumps(result.model_dump(mode="json"), indent=2, sort_keys=True)


def decode(payload: str | bytes) -> DirSummaries:
    """Parse payload text back into a summary.

    Raises:
        MalformedPayload: If the payload is not JSON or has the wrong shape
    """
    try:
        return DirSummaries.model_validate_json(payload)
    except ValidationError as e:
        raise MalformedPayload(
            f"summary payload failed validation ({e.error_count()} errors)"
        ) from e


def try_decode(payload: str | bytes) -> DirSummaries | MalformedPayload:
    """Decode, returning the error instead of raising it."""
    try:
        return decode(payload)
    except MalformedPayload as e:
        return e


def check_version(decoded: DirSummaries, expected_version: int) -> DirSummaries:
    if decoded.version != expected_version:
        raise VersionMismatch(decoded.version, expected_version)
    return decoded


def is_reusable(
    decoded_or_error: DirSummaries | Exception | None, expected_version: int
) -> bool:
    """Whether a decode result can be served instead of recomputing.

    False for any decode failure and for any version other than
    ``expected_version``.
    """
    if not isinstance(decoded_or_error, DirSummaries):
        return False
    try:
        check_version(decoded_or_error, expected_version)
    except VersionMismatch:
        return False
    return True
