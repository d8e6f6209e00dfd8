"""Hunk Stage core: one open status view and everything it owns."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple, Union

from .expansion import (
    FULLY_EXPANDED,
    HEADERS_ONLY,
    ExpansionState,
    ExpansionStateStore,
    FullyExpanded,
    HeadersOnly,
    PartialHunks,
    is_expanded,
)
from .fetch import BatchResult, DiffFetcher
from .layout import KIND_DIFF_LINE, KIND_HUNK_HEADER, ViewRow, materialize
from .models import (
    CachedDiff,
    DiffData,
    StatusSnapshot,
    SubmoduleEntry,
    section_of_key,
    submodule_key,
)
from .normalizer import DiffTextNormalizer
from .parser import UnifiedDiffParser
from .patches import NO_PATCH, HunkPatchBuilder, NoPatch, PartialPatchBuilder
from .source import DiffSource
from .visibility import (
    DEFAULT_LEVEL,
    MAX_LEVEL,
    VisibilityLevelController,
    next_level,
    resolve_scope,
)

DEFAULT_SESSION_OPTIONS: Dict[str, Any] = {
    "initial_visibility_level": DEFAULT_LEVEL,
    "default_file_expansion": "full",  # "full" or "headers"
    "remember_hunk_state": True,
    "fetch_options": {},
}

STAGE_HUNK_SECTIONS = ("unstaged", "untracked", "conflicted")
STAGE_LINE_SECTIONS = ("unstaged", "untracked")
UNSTAGE_SECTIONS = ("staged",)
DISCARD_SECTIONS = ("unstaged",)


class StagingError(Exception):
    """A stage/unstage/discard request that cannot be turned into a patch."""


@dataclass
class PatchRequest:
    """Patch text plus the apply options the diff source needs (reverse, cached, intent_to_add)."""

    patch_text: str
    options: Dict[str, Any] = field(default_factory=dict)
    key: str = ""
    hunk_index: int = 0


StagingResult = Union[PatchRequest, NoPatch]


class ViewSession:
    """
    Owns the diff cache, expansion state, remembered layouts, visibility
    levels and log of one status view, for as long as the view is open.

    All mutation happens on one asyncio loop: either synchronously inside a
    user-intent method or after an awaited fetch resolves. Fetch failures
    leave state untouched and are returned to the caller.
    """

    def __init__(
        self,
        source: DiffSource,
        snapshot: Optional[StatusSnapshot] = None,
        options: Optional[Dict[str, Any]] = None,
        log_sink: Optional[Callable[[Dict[str, Any]], None]] = None,
    ):
        opts = dict(DEFAULT_SESSION_OPTIONS)
        opts.update(options or {})
        self.options = opts

        self.snapshot = snapshot or StatusSnapshot()
        self.diff_cache: Dict[str, CachedDiff] = {}
        self.store = ExpansionStateStore(remember_hunk_state=bool(opts.get("remember_hunk_state", True)))

        self.parser = UnifiedDiffParser()
        self.normalizer = DiffTextNormalizer()
        self.hunk_builder = HunkPatchBuilder()
        self.partial_builder = PartialPatchBuilder(self.parser)

        self.fetcher = DiffFetcher(
            source,
            self.diff_cache,
            options=opts.get("fetch_options") or {},
            parser=self.parser,
            normalizer=self.normalizer,
        )
        self.visibility = VisibilityLevelController(
            self.store,
            self.diff_cache,
            self.fetcher,
            lambda: self.snapshot,
            initial_level=int(opts.get("initial_visibility_level", DEFAULT_LEVEL)),
            on_change=self._notify,
            log=self._log,
        )

        self.logs: List[Dict[str, Any]] = []
        self.log_sink = log_sink
        self._listeners: List[Callable[[], None]] = []
        self.closed = False

    # ---------------- Utilities ----------------

    def _log(self, level: str, message: str, **fields: Any) -> None:
        entry = {"ts": time.time(), "level": level, "message": message}
        entry.update(fields)
        self.logs.append(entry)
        if self.log_sink is not None:
            self.log_sink(entry)

    def _log_info(self, message: str, **fields: Any) -> None:
        self._log("INFO", message, **fields)

    def _log_warn(self, message: str, **fields: Any) -> None:
        self._log("WARN", message, **fields)

    def _log_error(self, message: str, **fields: Any) -> None:
        self._log("ERROR", message, **fields)

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Register a re-render callback, invoked after every state change."""
        self._listeners.append(callback)

    def _notify(self) -> None:
        for cb in list(self._listeners):
            cb()

    def _default_expansion(self) -> ExpansionState:
        if self.options.get("default_file_expansion") == "headers":
            return HEADERS_ONLY
        return FULLY_EXPANDED

    def rows(self) -> List[ViewRow]:
        return materialize(self.snapshot, self.store, self.diff_cache)

    def update_snapshot(self, snapshot: StatusSnapshot) -> None:
        """Install a fresh listing and drop state for entries that disappeared."""
        self.snapshot = snapshot
        valid = snapshot.valid_keys()
        stale = self.store.prune(valid, snapshot.valid_hashes())
        for k in [k for k in self.diff_cache if k not in valid]:
            del self.diff_cache[k]
        if stale:
            self._log_info("Dropped expansion state for entries no longer listed.", keys=stale)
        self._notify()

    def close(self) -> None:
        self.closed = True
        self.fetcher.closed = True
        self.diff_cache.clear()
        self.store.reset()
        self._listeners.clear()
        self._log_info("Session closed.")

    # ---------------- Expansion ----------------

    async def toggle_file(self, key: str) -> Optional[str]:
        """
        Collapse an expanded entry, or fetch and expand a collapsed one.
        Returns the fetch error, if any; on error nothing changes.
        """
        if is_expanded(self.store.get(key)):
            self.store.collapse(key)
            self.diff_cache.pop(key, None)
            self._notify()
            return None

        entry = self.snapshot.entry_for(key)
        if entry is None:
            raise KeyError(f"{key} is not listed in this view")

        _data, err = await self.fetcher.fetch(entry)
        if self.closed:
            return err
        if err is not None:
            self._log_error("Diff fetch failed.", key=key, error=err)
            return err

        default = FULLY_EXPANDED if isinstance(entry, SubmoduleEntry) else self._default_expansion()
        state = self.store.expand(key, default)
        self._log_info("Expanded entry.", key=key, state=type(state).__name__)
        self._notify()
        return None

    async def toggle_submodule(self, path: str) -> Optional[str]:
        return await self.toggle_file(submodule_key(path))

    def toggle_hunk(self, key: str, hunk_index: int) -> bool:
        """Show or hide one hunk body. Returns False when the entry is collapsed."""
        state = self.store.get(key)
        if not is_expanded(state):
            return False

        data = self.diff_cache.get(key)
        if isinstance(data, DiffData):
            data.hunk(hunk_index)  # stale index fails loudly

        if isinstance(state, HeadersOnly):
            self.store.set(key, PartialHunks({hunk_index: True}))
        elif isinstance(state, PartialHunks):
            self.store.toggle_hunk(key, hunk_index)
        elif isinstance(state, FullyExpanded):
            total = data.total_hunks() if isinstance(data, DiffData) else hunk_index
            self.store.collapse_hunk(key, hunk_index, total)
        self._notify()
        return True

    async def toggle_section(self, section: str) -> BatchResult:
        if not self.store.is_section_collapsed(section):
            self.store.remember_section(section)
            keys = self.store.keys_in_section(section)
            self.store.clear_files(keys)
            for k in [k for k in self.diff_cache if section_of_key(k) == section]:
                del self.diff_cache[k]
            self.store.set_section_collapsed(section, True)
            self._notify()
            return BatchResult()

        remembered = self.store.recall_section(section) or {}
        entries = [e for e in (self.snapshot.entry_for(k) for k in remembered) if e is not None]
        batch = await self.fetcher.fetch_batch(entries)
        if self.closed:
            return batch

        self.store.set_section_collapsed(section, False)
        self.store.forget_section(section)
        for k in batch.succeeded():
            self.store.set(k, remembered[k])
        for k, err in batch.failed.items():
            self._log_error("Diff fetch failed.", key=k, error=err)
        self._notify()
        return batch

    async def toggle_all_sections(self) -> BatchResult:
        """Expand every listed section if all are collapsed, otherwise collapse them all."""
        sections = self.snapshot.sections()
        all_collapsed = bool(sections) and all(self.store.is_section_collapsed(s) for s in sections)
        combined = BatchResult()
        for section in sections:
            if self.store.is_section_collapsed(section) != all_collapsed:
                continue
            batch = await self.toggle_section(section)
            combined.keys.extend(batch.keys)
            combined.fetched.extend(batch.fetched)
            combined.failed.update(batch.failed)
        return combined

    # ---------------- Visibility ----------------

    async def set_visibility(self, level: int, focus: Optional[ViewRow] = None) -> BatchResult:
        scope = resolve_scope(focus, level)
        return await self.visibility.apply(level, scope)

    async def cycle_visibility(self, focus: Optional[ViewRow] = None) -> BatchResult:
        level = next_level(self.visibility.level_for(resolve_scope(focus, MAX_LEVEL)))
        return await self.set_visibility(level, focus)

    # ---------------- Staging ----------------

    def _diff_for(self, key: str) -> DiffData:
        data = self.diff_cache.get(key)
        if not isinstance(data, DiffData):
            raise StagingError(f"diff for {key} is not loaded")
        return data

    def _check_section(self, key: str, allowed: Tuple[str, ...], action: str) -> str:
        section = section_of_key(key)
        if section not in allowed:
            raise StagingError(f"cannot {action} changes from the {section} section")
        return section

    def _request(self, key: str, hunk_index: int, lines: Sequence[str], reverse: bool, cached: bool) -> PatchRequest:
        opts = dict(self.fetcher.options)
        opts["reverse"] = reverse
        opts["cached"] = cached
        if cached and not reverse and section_of_key(key) == "untracked":
            # the path must be in the index before a partial patch can apply to it
            opts["intent_to_add"] = True
        return PatchRequest(self.normalizer.to_text(lines), opts, key, hunk_index)

    def _selection(self, rows: Sequence[ViewRow]) -> Tuple[str, int, Set[int]]:
        diff_rows = [r for r in rows if r.kind in (KIND_HUNK_HEADER, KIND_DIFF_LINE) and r.hunk_index]
        if not diff_rows:
            raise StagingError("selection contains no diff lines")
        first = diff_rows[0]
        selected = {
            r.display_index
            for r in diff_rows
            if r.kind == KIND_DIFF_LINE
            and r.key == first.key
            and r.hunk_index == first.hunk_index
            and r.display_index is not None
        }
        return first.key or "", first.hunk_index or 0, selected

    def _hunk_request(self, key: str, hunk_index: int, reverse: bool, cached: bool) -> PatchRequest:
        lines = self.hunk_builder.build(self._diff_for(key), hunk_index)
        return self._request(key, hunk_index, lines, reverse, cached)

    def _lines_request(self, rows: Sequence[ViewRow], allowed: Tuple[str, ...], action: str,
                       reverse: bool, cached: bool) -> StagingResult:
        key, hunk_index, selected = self._selection(rows)
        self._check_section(key, allowed, action)
        result = self.partial_builder.build(self._diff_for(key), hunk_index, selected, reverse)
        if result is NO_PATCH:
            self._log_info("Selection has no changes; nothing to apply.", key=key, hunk=hunk_index)
            return NO_PATCH
        return self._request(key, hunk_index, result, reverse, cached)

    def stage_hunk(self, key: str, hunk_index: int) -> PatchRequest:
        self._check_section(key, STAGE_HUNK_SECTIONS, "stage")
        return self._hunk_request(key, hunk_index, reverse=False, cached=True)

    def unstage_hunk(self, key: str, hunk_index: int) -> PatchRequest:
        self._check_section(key, UNSTAGE_SECTIONS, "unstage")
        return self._hunk_request(key, hunk_index, reverse=True, cached=True)

    def discard_hunk(self, key: str, hunk_index: int) -> PatchRequest:
        self._check_section(key, DISCARD_SECTIONS, "discard")
        return self._hunk_request(key, hunk_index, reverse=True, cached=False)

    def stage_lines(self, rows: Sequence[ViewRow]) -> StagingResult:
        return self._lines_request(rows, STAGE_LINE_SECTIONS, "stage", reverse=False, cached=True)

    def unstage_lines(self, rows: Sequence[ViewRow]) -> StagingResult:
        return self._lines_request(rows, UNSTAGE_SECTIONS, "unstage", reverse=True, cached=True)

    def discard_lines(self, rows: Sequence[ViewRow]) -> StagingResult:
        return self._lines_request(rows, DISCARD_SECTIONS, "discard", reverse=True, cached=False)
