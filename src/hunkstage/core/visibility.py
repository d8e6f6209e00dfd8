"""Hunk Stage core: four-level visibility control, global or scoped."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from .expansion import FULLY_EXPANDED, HEADERS_ONLY, ExpansionStateStore
from .fetch import BatchResult, DiffFetcher
from .layout import FILE_ROW_KINDS, KIND_SECTION, ViewRow
from .models import COLLAPSIBLE_SECTIONS, CachedDiff, FileEntry, StatusSnapshot, section_of_key

MIN_LEVEL = 1
MAX_LEVEL = 4
DEFAULT_LEVEL = 2

SCOPE_GLOBAL = "global"
SCOPE_SECTION = "section"
SCOPE_FILE = "file"


def next_level(current: int) -> int:
    return (current % MAX_LEVEL) + 1


def clamp_level(level: int) -> int:
    return max(MIN_LEVEL, min(MAX_LEVEL, int(level)))


@dataclass(frozen=True)
class Scope:
    kind: str = SCOPE_GLOBAL
    section: Optional[str] = None
    key: Optional[str] = None

    @classmethod
    def global_scope(cls) -> "Scope":
        return cls()

    @classmethod
    def for_section(cls, section: str) -> "Scope":
        return cls(kind=SCOPE_SECTION, section=section)

    @classmethod
    def for_file(cls, section: str, key: str) -> "Scope":
        return cls(kind=SCOPE_FILE, section=section, key=key)

    def enclosing_section(self) -> "Scope":
        if self.section is None:
            return Scope.global_scope()
        return Scope.for_section(self.section)


def resolve_scope(focus: Optional[ViewRow], level: int) -> Scope:
    """
    Pick the narrowest scope whose change at `level` affects the focused row.
    Level 1 on a file would leave the file listed under its still-expanded
    section, so it acts on the section instead.
    """
    if focus is None:
        return Scope.global_scope()
    if focus.kind == KIND_SECTION and focus.section:
        return Scope.for_section(focus.section)
    if focus.kind in FILE_ROW_KINDS and focus.section and focus.key:
        if clamp_level(level) == MIN_LEVEL:
            return Scope.for_section(focus.section)
        return Scope.for_file(focus.section, focus.key)
    return Scope.global_scope()


class VisibilityLevelController:
    """
    Applies visibility levels on top of an ExpansionStateStore:

      1  target and everything under it collapsed, cached diffs released
      2  target open one layer, nested diffs and commit bodies collapsed
      3  nested diffs fetched and shown as hunk headers only
      4  nested diffs fetched and fully expanded, commit bodies expanded

    Levels 3 and 4 fetch every uncached diff in scope as one batch and touch
    expansion state only once the whole batch has resolved.
    """

    def __init__(
        self,
        store: ExpansionStateStore,
        cache: Dict[str, CachedDiff],
        fetcher: DiffFetcher,
        snapshot: Callable[[], StatusSnapshot],
        initial_level: int = DEFAULT_LEVEL,
        on_change: Optional[Callable[[], None]] = None,
        log: Optional[Callable[..., None]] = None,
    ):
        self.store = store
        self.cache = cache
        self.fetcher = fetcher
        self.snapshot = snapshot
        self.level = clamp_level(initial_level)
        self.scoped_levels: Dict[Scope, int] = {}
        self.on_change = on_change
        self.log = log

    def level_for(self, scope: Optional[Scope] = None) -> int:
        scope = scope or Scope.global_scope()
        if scope.kind == SCOPE_GLOBAL:
            return self.level
        if scope in self.scoped_levels:
            return self.scoped_levels[scope]
        if scope.kind == SCOPE_FILE:
            return self.level_for(scope.enclosing_section())
        return self.level

    async def cycle(self, scope: Optional[Scope] = None) -> BatchResult:
        return await self.apply(next_level(self.level_for(scope)), scope)

    async def apply(self, level: int, scope: Optional[Scope] = None) -> BatchResult:
        level = clamp_level(level)
        scope = scope or Scope.global_scope()
        if scope.kind == SCOPE_FILE and level == MIN_LEVEL:
            scope = scope.enclosing_section()

        self._record(level, scope)
        self._emit("INFO", "Applying visibility level.", target_level=level, scope=scope.kind,
                   section=scope.section, key=scope.key)

        if scope.kind == SCOPE_GLOBAL:
            return await self._apply_global(level)
        if scope.kind == SCOPE_SECTION:
            return await self._apply_section(level, scope.section or "")
        return await self._apply_file(level, scope)

    # ---------------- Scopes ----------------

    async def _apply_global(self, level: int) -> BatchResult:
        snap = self.snapshot()
        if level == 1:
            for section in COLLAPSIBLE_SECTIONS:
                self.store.set_section_collapsed(section, True)
                self.store.forget_section(section)
            self._release(self.store.keys() + list(self.cache))
            self.store.clear_commits()
            self._changed()
            return BatchResult()
        if level == 2:
            self._open_sections(self.store.collapsed_sections())
            self._release(self.store.keys() + list(self.cache))
            self.store.clear_commits()
            self._changed()
            return BatchResult()

        batch = await self.fetcher.fetch_batch(snap.files)
        if self.fetcher.closed:
            return batch
        self._open_sections(self.store.collapsed_sections())
        self._show_diffs(level, batch)
        if level == MAX_LEVEL:
            for commit in snap.all_commits():
                self.store.set_commit_expanded(commit, True)
        else:
            self.store.clear_commits()
        self._changed()
        return batch

    async def _apply_section(self, level: int, section: str) -> BatchResult:
        snap = self.snapshot()
        self.store.forget_section(section)
        if level in (1, 2):
            self.store.set_section_collapsed(section, level == 1)
            self._release(self.store.keys_in_section(section)
                          + [k for k in self.cache if section_of_key(k) == section])
            self.store.clear_commits(snap.commits_in(section))
            self._changed()
            return BatchResult()

        batch = await self.fetcher.fetch_batch(snap.files_in(section))
        if self.fetcher.closed:
            return batch
        self.store.set_section_collapsed(section, False)
        self._show_diffs(level, batch)
        for commit in snap.commits_in(section):
            self.store.set_commit_expanded(commit, level == MAX_LEVEL)
        self._changed()
        return batch

    async def _apply_file(self, level: int, scope: Scope) -> BatchResult:
        key = scope.key or ""
        if level == 2:
            self._release([key])
            self._changed()
            return BatchResult()

        entry = self.snapshot().entry_for(key)
        if not isinstance(entry, FileEntry):
            self._emit("WARN", "Visibility target is not listed.", key=key)
            return BatchResult()
        batch = await self.fetcher.fetch_batch([entry])
        if self.fetcher.closed:
            return batch
        self._show_diffs(level, batch)
        self._changed()
        return batch

    # ---------------- Helpers ----------------

    def _record(self, level: int, scope: Scope) -> None:
        if scope.kind == SCOPE_GLOBAL:
            self.level = level
            self.scoped_levels.clear()
            return
        if scope.kind == SCOPE_SECTION:
            for s in [s for s in self.scoped_levels if s.kind == SCOPE_FILE and s.section == scope.section]:
                del self.scoped_levels[s]
        self.scoped_levels[scope] = level

    def _open_sections(self, sections: Iterable[str]) -> None:
        for section in list(sections):
            self.store.set_section_collapsed(section, False)
            self.store.forget_section(section)

    def _release(self, keys: Iterable[str]) -> List[str]:
        keys = list(keys)
        released = self.store.clear_files(keys)
        for k in keys:
            self.cache.pop(k, None)
        return released

    def _show_diffs(self, level: int, batch: BatchResult) -> None:
        state = FULLY_EXPANDED if level == MAX_LEVEL else HEADERS_ONLY
        for key in batch.succeeded():
            self.store.set(key, state)
        for key, err in batch.failed.items():
            self._emit("ERROR", "Diff fetch failed.", key=key, error=err)

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    def _emit(self, level: str, message: str, **fields: Any) -> None:
        if self.log is not None:
            self.log(level, message, **fields)
