import logging

import pytest

from dirsummary.conftest import SCENARIO_A_FILES, extension_classifier
from dirsummary.data_models.summary import (
    DIR_SUMMARY_VERSION,
    DirSummaries,
    PerTypeCount,
    decode,
    encode,
)
from dirsummary.errors import ListingError, ResolutionError, StoreWriteError
from dirsummary.stages.dir_summary import (
    CacheDecision,
    determine_validity,
    dir_summary,
)


class FakeSource:
    def __init__(self, files, identity="snap-1"):
        self.files = files
        self.identity = identity
        self.list_calls = 0

    def resolve(self, reference):
        if reference != "HEAD":
            raise ResolutionError(reference)
        return self.identity

    def list_files(self, identity):
        self.list_calls += 1
        return list(self.files)


class FakeStore:
    def __init__(self, entries=None, fail_writes=False):
        self.entries = dict(entries or {})
        self.fail_writes = fail_writes
        self.gets = []
        self.puts = []

    def get(self, identity):
        self.gets.append(identity)
        return self.entries.get(identity)

    def put(self, identity, payload, force=False):
        self.puts.append((identity, payload, force))
        if self.fail_writes:
            raise StoreWriteError("disk full")
        if identity in self.entries and not force:
            raise StoreWriteError("exists")
        self.entries[identity] = payload


def _run(source, store, **kwargs):
    return dir_summary(
        "HEAD", source=source, store=store, classify=extension_classifier, **kwargs
    )


def _stored(version=DIR_SUMMARY_VERSION):
    return encode(
        DirSummaries(
            version=version,
            summaries={"": {"text": PerTypeCount(count=99, display_name="Text")}},
        )
    )


class TestDetermineValidity:
    def test_no_cache_always_recomputes(self):
        assert determine_validity(True, _stored()) == (CacheDecision.RECOMPUTE, None)

    def test_missing_payload_recomputes(self):
        assert determine_validity(False, None) == (CacheDecision.RECOMPUTE, None)

    def test_current_payload_is_reused(self):
        decision, decoded = determine_validity(False, _stored())
        assert decision is CacheDecision.REUSE
        assert decoded == decode(_stored())

    def test_stale_payload_recomputes(self):
        decision, decoded = determine_validity(False, _stored(DIR_SUMMARY_VERSION - 1))
        assert decision is CacheDecision.RECOMPUTE
        assert decoded is None

    def test_malformed_payload_recomputes(self):
        assert determine_validity(False, "{broken") == (CacheDecision.RECOMPUTE, None)


class TestDirSummary:
    def test_fresh_build_writes_cache(self):
        source = FakeSource(SCENARIO_A_FILES)
        store = FakeStore()

        outcome = _run(source, store)

        assert outcome.decision is CacheDecision.RECOMPUTE
        assert outcome.cache_written
        assert store.puts == [("snap-1", outcome.payload, True)]
        assert decode(outcome.payload) == outcome.result
        assert outcome.result.count("", "text") == 1
        assert outcome.result.count("a", "png") == 2

    def test_recursive_build(self):
        outcome = _run(FakeSource(SCENARIO_A_FILES), FakeStore(), recursive=True)

        assert outcome.result.count("a", "png") == 3
        assert outcome.result.count("", "png") == 3

    def test_cache_hit_skips_listing(self):
        source = FakeSource(SCENARIO_A_FILES)
        store = FakeStore({"snap-1": _stored() + "\n"})

        outcome = _run(source, store)

        assert outcome.decision is CacheDecision.REUSE
        assert outcome.payload == _stored()
        assert outcome.result.count("", "text") == 99
        assert source.list_calls == 0
        assert store.puts == []

    def test_no_cache_never_touches_store(self):
        source = FakeSource(SCENARIO_A_FILES)
        store = FakeStore({"snap-1": _stored()})

        outcome = _run(source, store, no_cache=True)

        assert outcome.decision is CacheDecision.RECOMPUTE
        assert store.gets == []
        assert store.puts == []
        assert source.list_calls == 1
        assert outcome.result.count("", "text") == 1

    def test_stale_version_is_overwritten_with_force(self):
        source = FakeSource(SCENARIO_A_FILES)
        store = FakeStore({"snap-1": _stored(DIR_SUMMARY_VERSION - 1)})

        outcome = _run(source, store)

        assert outcome.decision is CacheDecision.RECOMPUTE
        assert store.puts == [("snap-1", outcome.payload, True)]
        assert decode(store.entries["snap-1"]).version == DIR_SUMMARY_VERSION
        assert outcome.result.count("", "text") == 1

    def test_malformed_entry_is_overwritten(self):
        store = FakeStore({"snap-1": "garbage"})

        outcome = _run(FakeSource(SCENARIO_A_FILES), store)

        assert outcome.decision is CacheDecision.RECOMPUTE
        assert store.entries["snap-1"] == outcome.payload

    def test_store_write_failure_keeps_result(self, caplog):
        store = FakeStore(fail_writes=True)

        with caplog.at_level(logging.WARNING):
            outcome = _run(FakeSource(SCENARIO_A_FILES), store)

        assert not outcome.cache_written
        assert outcome.result.count("a/b", "png") == 1
        assert "not cached" in caplog.text

    def test_resolution_error_is_fatal(self):
        store = FakeStore()
        with pytest.raises(ResolutionError, match="nope"):
            dir_summary(
                "nope",
                source=FakeSource([]),
                store=store,
                classify=extension_classifier,
            )
        assert store.gets == []

    def test_listing_error_is_fatal(self):
        class BrokenSource(FakeSource):
            def list_files(self, identity):
                raise ListingError(identity, "gone")

        store = FakeStore()
        with pytest.raises(ListingError):
            _run(BrokenSource([]), store)
        assert store.puts == []
