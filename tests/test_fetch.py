"""Tests for DiffFetcher: cache writes, batch fan-in and in-flight races."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List

import pytest

from hunkstage.core.fetch import BatchResult, DiffFetcher
from hunkstage.core.models import DiffData, FileEntry, SubmoduleDiff, SubmoduleEntry
from hunkstage.core.source import StaticDiffSource


class GatedSource(StaticDiffSource):
    """Static source whose fetches block until the test releases them, one gate per call."""

    def __init__(self, **kwargs: Any):
        super().__init__(**kwargs)
        self.gates: Dict[str, List[asyncio.Event]] = {}
        self.replies: Dict[str, List[str]] = {}

    async def fetch_diff(self, path: str, staged: bool, options: Dict[str, Any]):
        self.calls.append(("fetch_diff", path))
        reply = self.replies[path].pop(0)
        gate = asyncio.Event()
        self.gates.setdefault(path, []).append(gate)
        await gate.wait()
        return reply, None

    def release(self, path: str, call: int = 0) -> None:
        self.gates[path][call].set()


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


class RaisingSource(StaticDiffSource):
    async def fetch_diff(self, path: str, staged: bool, options: Dict[str, Any]):
        raise RuntimeError("boom")


def _entries(*names: str) -> List[FileEntry]:
    return [FileEntry(path=n, section="unstaged") for n in names]


class TestFetch:
    @pytest.mark.anyio
    async def test_tracked_fetch_parses_and_caches(self, source: StaticDiffSource) -> None:
        cache: Dict[str, Any] = {}
        data, err = await DiffFetcher(source, cache).fetch(FileEntry("hello.txt", "unstaged"))
        assert err is None
        assert isinstance(data, DiffData) and data.total_hunks() == 2
        assert cache["unstaged:hello.txt"] is data

    @pytest.mark.anyio
    async def test_staged_and_untracked_dispatch(self, source: StaticDiffSource) -> None:
        fetcher = DiffFetcher(source, {})
        await fetcher.fetch(FileEntry("hello.txt", "staged"))
        await fetcher.fetch(FileEntry("new.txt", "untracked"))
        assert source.calls == [("fetch_diff", "hello.txt"), ("fetch_diff_untracked", "new.txt")]
        assert fetcher.cache["staged:hello.txt"].total_hunks() == 1

    @pytest.mark.anyio
    async def test_submodule_fetch(self, source: StaticDiffSource) -> None:
        cache: Dict[str, Any] = {}
        data, err = await DiffFetcher(source, cache).fetch(SubmoduleEntry("vendor/lib", "b" * 40))
        assert err is None
        assert data == SubmoduleDiff(old_sha="a" * 40, new_sha="b" * 40)
        assert cache["submodule:vendor/lib"] == data

    @pytest.mark.anyio
    async def test_new_submodule_has_null_old_sha(self) -> None:
        data, _ = await DiffFetcher(StaticDiffSource(), {}).fetch(SubmoduleEntry("fresh", "c" * 40))
        assert data.old_sha == "0" * 40

    @pytest.mark.anyio
    async def test_error_leaves_cache_untouched(self) -> None:
        cache: Dict[str, Any] = {}
        source = StaticDiffSource(errors={"hello.txt": "fatal: bad object"})
        data, err = await DiffFetcher(source, cache).fetch(FileEntry("hello.txt", "unstaged"))
        assert data is None
        assert err == "fatal: bad object"
        assert cache == {}

    @pytest.mark.anyio
    async def test_raising_source_reported_as_error(self) -> None:
        cache: Dict[str, Any] = {}
        data, err = await DiffFetcher(RaisingSource(), cache).fetch(FileEntry("x", "unstaged"))
        assert data is None
        assert err == "RuntimeError: boom"
        assert cache == {}

    @pytest.mark.anyio
    async def test_options_passed_through(self) -> None:
        seen: List[Dict[str, Any]] = []

        class Recording(StaticDiffSource):
            async def fetch_diff(self, path, staged, options):
                seen.append(options)
                return [], None

        fetcher = DiffFetcher(Recording(), {}, options={"cwd": "/repo"})
        await fetcher.fetch(FileEntry("new.txt", "staged", orig_path="old.txt"))
        assert seen == [{"cwd": "/repo", "orig_path": "old.txt"}]

    @pytest.mark.anyio
    async def test_closed_fetcher_drops_late_result(self, source: StaticDiffSource) -> None:
        cache: Dict[str, Any] = {}
        fetcher = DiffFetcher(source, cache)
        fetcher.closed = True
        data, err = await fetcher.fetch(FileEntry("hello.txt", "unstaged"))
        assert err is None and data is not None
        assert cache == {}


class TestBatch:
    @pytest.mark.anyio
    async def test_fan_in_skips_cached_and_completes_once(self) -> None:
        names = ["a", "b", "c", "d", "e"]
        source = GatedSource()
        for n in names:
            source.replies[n] = ["@@ -1 +1 @@\n-x\n+" + n + "\n"]
        cache: Dict[str, Any] = {}
        fetcher = DiffFetcher(source, cache)
        entries = _entries(*names)
        cache[entries[0].key] = DiffData()
        cache[entries[3].key] = DiffData()

        completions: List[BatchResult] = []
        task = asyncio.create_task(fetcher.fetch_batch(entries, on_complete=completions.append))
        await _settle()
        assert source.fetch_count() == 3

        # resolve in reverse order; completion must wait for the last one
        for n in ["e", "c"]:
            source.release(n)
            await _settle()
            assert completions == []
        source.release("b")
        result = await task

        assert len(completions) == 1
        assert completions[0] is result
        assert sorted(result.fetched) == ["unstaged:b", "unstaged:c", "unstaged:e"]
        assert result.keys == [e.key for e in entries]
        assert result.succeeded() == result.keys
        assert source.fetch_count() == 3

    @pytest.mark.anyio
    async def test_partial_failure(self) -> None:
        source = StaticDiffSource(
            diffs={("a", False): "@@ -1 +1 @@\n-x\n+y\n"},
            errors={"b": "fatal: pathspec"},
        )
        cache: Dict[str, Any] = {}
        result = await DiffFetcher(source, cache).fetch_batch(_entries("a", "b"))
        assert result.failed == {"unstaged:b": "fatal: pathspec"}
        assert result.succeeded() == ["unstaged:a"]
        assert list(cache) == ["unstaged:a"]

    @pytest.mark.anyio
    async def test_duplicate_entries_fetched_once(self, source: StaticDiffSource) -> None:
        result = await DiffFetcher(source, {}).fetch_batch(_entries("hello.txt", "hello.txt"))
        assert result.keys == ["unstaged:hello.txt"]
        assert source.fetch_count() == 1

    @pytest.mark.anyio
    async def test_empty_batch_still_completes(self, source: StaticDiffSource) -> None:
        completions: List[BatchResult] = []
        result = await DiffFetcher(source, {}).fetch_batch([], on_complete=completions.append)
        assert completions == [result]
        assert result.keys == [] and source.fetch_count() == 0


class TestInFlightRace:
    @pytest.mark.anyio
    async def test_last_write_wins(self) -> None:
        source = GatedSource()
        source.replies["a"] = ["@@ -1 +1 @@\n-x\n+first\n", "@@ -1 +1 @@\n-x\n+second\n"]
        cache: Dict[str, Any] = {}
        fetcher = DiffFetcher(source, cache)
        entry = FileEntry("a", "unstaged")

        first = asyncio.create_task(fetcher.fetch(entry))
        await _settle()
        second = asyncio.create_task(fetcher.fetch(entry))
        await _settle()
        assert source.fetch_count() == 2

        # the newer request resolves first; the stale one lands afterwards and owns the cache
        source.release("a", call=1)
        await second
        assert cache[entry.key].hunks[0].lines == ["-x", "+second"]
        source.release("a", call=0)
        await first
        assert cache[entry.key].hunks[0].lines == ["-x", "+first"]
