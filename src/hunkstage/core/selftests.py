"""Hunk Stage core: in-process self tests."""

from __future__ import annotations

import asyncio
from typing import Tuple

from .expansion import COLLAPSED, ExpansionStateStore, PartialHunks
from .fetch import BatchResult, DiffFetcher
from .models import FileEntry, HunkIndexOutOfRange
from .normalizer import DiffTextNormalizer
from .parser import UnifiedDiffParser
from .patches import NO_PATCH, HunkPatchBuilder, PartialPatchBuilder
from .source import StaticDiffSource
from .visibility import next_level

SAMPLE_DIFF = (
    "diff --git a/hello.txt b/hello.txt\n"
    "index 123..456 100644\n"
    "--- a/hello.txt\n"
    "+++ b/hello.txt\n"
    "@@ -10,3 +10,3 @@\n"
    " context1\n"
    "-removedA\n"
    "+addedB\n"
    "+addedC\n"
    " context2\n"
    "@@ -40,2 +40,3 @@ def tail():\n"
    " last\n"
    "+appended\n"
    " end\n"
)


class HunkStageSelfTests:
    """
    In-process self tests using embedded diff strings and the in-memory diff source.
    """

    @staticmethod
    def run() -> Tuple[bool, str]:
        normalizer = DiffTextNormalizer()
        parser = UnifiedDiffParser()
        hunk_builder = HunkPatchBuilder()
        partial_builder = PartialPatchBuilder(parser)

        report_lines = []
        ok = True

        def fail(msg: str) -> None:
            nonlocal ok
            ok = False
            report_lines.append("FAIL: " + msg)

        def pass_(msg: str) -> None:
            report_lines.append("OK: " + msg)

        # 1) Parse + round-trip
        lines = normalizer.to_lines(SAMPLE_DIFF)
        data = parser.parse(lines)
        if data.total_hunks() != 2 or len(data.header) != 4:
            fail("Hunk/header split incorrect.")
        else:
            pass_("Hunk/header split.")
        if data.flatten() != lines or normalizer.to_text(data.flatten()) != SAMPLE_DIFF:
            fail("Round-trip reconstruction mismatch.")
        else:
            pass_("Round-trip reconstruction.")

        # 2) Single hunk extraction
        patch = hunk_builder.build(data, 2)
        if patch != data.header + [data.hunks[1].header] + data.hunks[1].lines:
            fail("Single hunk patch not verbatim.")
        else:
            pass_("Single hunk patch.")
        try:
            hunk_builder.build(data, 3)
            fail("Out-of-range hunk index accepted.")
        except HunkIndexOutOfRange:
            pass_("Out-of-range hunk index rejected.")

        # 3) Line-level staging and unstaging (display positions: header=1, removedA=3, addedB=4)
        staged = partial_builder.build(data, 1, {4}, reverse=False)
        if not staged or staged[len(data.header):] != [
            "@@ -10,3 +10,4 @@", " context1", " removedA", "+addedB", " context2",
        ]:
            fail("Partial staging patch incorrect.")
        else:
            pass_("Partial staging patch.")

        unstaged = partial_builder.build(data, 1, {3}, reverse=True)
        if not unstaged or unstaged[len(data.header):] != [
            "@@ -10,5 +10,4 @@", " context1", "-removedA", " addedB", " addedC", " context2",
        ]:
            fail("Partial unstaging patch incorrect.")
        else:
            pass_("Partial unstaging patch.")

        if partial_builder.build(data, 1, set(), reverse=False) is not NO_PATCH:
            fail("Empty selection produced a patch.")
        else:
            pass_("Empty selection yields no patch.")

        # 4) Expansion memory + level cycling
        store = ExpansionStateStore()
        store.set("unstaged:hello.txt", PartialHunks({2: True}))
        store.collapse("unstaged:hello.txt")
        if store.get("unstaged:hello.txt") != COLLAPSED:
            fail("Collapse did not clear the entry.")
        restored = store.expand("unstaged:hello.txt")
        if restored != PartialHunks({2: True}):
            fail("Remembered hunk layout not restored.")
        else:
            pass_("Remembered hunk layout restored.")

        if next_level(2) != 3 or next_level(4) != 1:
            fail("Visibility level cycling incorrect.")
        else:
            pass_("Visibility level cycling.")

        # 5) Batch fetch fan-in
        names = ["a.txt", "b.txt", "c.txt", "d.txt", "e.txt"]
        source = StaticDiffSource(diffs={(n, False): SAMPLE_DIFF for n in names})
        cache = {}
        fetcher = DiffFetcher(source, cache)
        entries = [FileEntry(path=n, section="unstaged") for n in names]
        for e in entries[:2]:
            cache[e.key] = data
        completions = []

        async def _batch() -> BatchResult:
            return await fetcher.fetch_batch(entries, on_complete=completions.append)

        result = asyncio.run(_batch())
        if source.fetch_count() != 3 or len(completions) != 1 or len(result.fetched) != 3:
            fail("Batch fetch issued %d fetches, %d completions." % (source.fetch_count(), len(completions)))
        elif len(cache) != 5 or result.failed:
            fail("Batch fetch left the cache incomplete.")
        else:
            pass_("Batch fetch fan-in.")

        return ok, "\n".join(report_lines)
