"""Hunk Stage core: diff fetching and batched fan-out/fan-in."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .models import NULL_SHA, CachedDiff, Entry, SubmoduleDiff, SubmoduleEntry
from .normalizer import DiffTextNormalizer
from .parser import UnifiedDiffParser
from .source import DiffSource


@dataclass
class BatchResult:
    keys: List[str] = field(default_factory=list)  # every key in the batch, cached or not
    fetched: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)  # key -> error

    def succeeded(self) -> List[str]:
        return [k for k in self.keys if k not in self.failed]


class DiffFetcher:
    """
    Requests diffs from a DiffSource and writes parsed results into the
    shared cache.

    The cache is written only on success. There is no de-duplication: two
    fetches for the same key may be in flight at once and whichever finishes
    last owns the cache entry.
    """

    def __init__(
        self,
        source: DiffSource,
        cache: Dict[str, CachedDiff],
        options: Optional[Dict[str, Any]] = None,
        parser: Optional[UnifiedDiffParser] = None,
        normalizer: Optional[DiffTextNormalizer] = None,
    ):
        self.source = source
        self.cache = cache
        self.options: Dict[str, Any] = dict(options or {})
        self.parser = parser or UnifiedDiffParser()
        self.normalizer = normalizer or DiffTextNormalizer()
        self.closed = False

    def _options_for(self, entry: Entry) -> Dict[str, Any]:
        opts = dict(self.options)
        orig_path = getattr(entry, "orig_path", None)
        if orig_path:
            opts["orig_path"] = orig_path
        return opts

    async def fetch(self, entry: Entry) -> Tuple[Optional[CachedDiff], Optional[str]]:
        opts = self._options_for(entry)
        data: CachedDiff
        try:
            if isinstance(entry, SubmoduleEntry):
                sha, err = await self.source.fetch_submodule_recorded_sha(entry.path, opts)
                if err is not None:
                    return None, err
                data = SubmoduleDiff(old_sha=sha or NULL_SHA, new_sha=entry.sha)
            else:
                if entry.untracked:
                    lines, err = await self.source.fetch_diff_untracked(entry.path, opts)
                else:
                    lines, err = await self.source.fetch_diff(entry.path, entry.staged, opts)
                if err is not None:
                    return None, err
                data = self.parser.parse(self.normalizer.to_lines(lines or []))
        except Exception as e:
            return None, f"{type(e).__name__}: {e}"

        if not self.closed:
            self.cache[entry.key] = data
        return data, None

    async def fetch_batch(
        self,
        entries: Sequence[Entry],
        on_complete: Optional[Callable[[BatchResult], None]] = None,
    ) -> BatchResult:
        """
        Fetch every entry not already cached, concurrently, and resolve once
        all of them have completed. on_complete fires exactly once, after the
        last fetch, whatever order they finish in.
        """
        keys: List[str] = []
        pending: List[Entry] = []
        for e in entries:
            if e.key in keys:
                continue
            keys.append(e.key)
            if e.key not in self.cache:
                pending.append(e)

        outcomes = await asyncio.gather(*(self.fetch(e) for e in pending))

        result = BatchResult(keys=keys)
        for e, (_data, err) in zip(pending, outcomes):
            if err is None:
                result.fetched.append(e.key)
            else:
                result.failed[e.key] = err

        if on_complete is not None and not self.closed:
            on_complete(result)
        return result
