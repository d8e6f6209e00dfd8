"""Hunk Stage core: per-entity expansion state and remembered layouts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Union

from .models import section_of_key


@dataclass(frozen=True)
class Collapsed:
    pass


@dataclass(frozen=True)
class HeadersOnly:
    pass


@dataclass(frozen=True)
class PartialHunks:
    hunks: Dict[int, bool] = field(default_factory=dict)  # hunk_index -> expanded


@dataclass(frozen=True)
class FullyExpanded:
    pass


ExpansionState = Union[Collapsed, HeadersOnly, PartialHunks, FullyExpanded]

COLLAPSED = Collapsed()
HEADERS_ONLY = HeadersOnly()
FULLY_EXPANDED = FullyExpanded()


def is_expanded(state: ExpansionState) -> bool:
    return not isinstance(state, Collapsed)


def hunk_visible(state: ExpansionState, hunk_index: int) -> bool:
    """Whether the body of a hunk is shown (its header is shown whenever the file is expanded)."""
    if isinstance(state, FullyExpanded):
        return True
    if isinstance(state, PartialHunks):
        return bool(state.hunks.get(hunk_index, False))
    return False


def _copy(state: ExpansionState) -> ExpansionState:
    if isinstance(state, PartialHunks):
        return PartialHunks(dict(state.hunks))
    return state


class ExpansionStateStore:
    """
    Expansion state keyed by cache key ("section:path"), plus section
    collapse flags, commit detail flags and the remembered snapshots used to
    restore a previous layout when something is re-expanded.

    Absent keys are Collapsed; stored snapshots are always copies.
    """

    def __init__(self, remember_hunk_state: bool = True):
        self.remember_hunk_state = remember_hunk_state
        self._files: Dict[str, ExpansionState] = {}
        self._remembered: Dict[str, ExpansionState] = {}
        self._collapsed_sections: Dict[str, bool] = {}
        self._remembered_sections: Dict[str, Dict[str, ExpansionState]] = {}
        self._commits: Dict[str, bool] = {}

    # ---------------- File states ----------------

    def get(self, key: str) -> ExpansionState:
        return _copy(self._files.get(key, COLLAPSED))

    def set(self, key: str, state: ExpansionState) -> None:
        if isinstance(state, Collapsed):
            self._files.pop(key, None)
        else:
            self._files[key] = _copy(state)

    def keys(self) -> List[str]:
        return list(self._files)

    def keys_in_section(self, section: str) -> List[str]:
        return [k for k in self._files if section_of_key(k) == section]

    def remember(self, key: str, state: ExpansionState) -> None:
        self._remembered[key] = _copy(state)

    def recall(self, key: str) -> Optional[ExpansionState]:
        state = self._remembered.get(key)
        return _copy(state) if state is not None else None

    def forget(self, key: str) -> None:
        self._remembered.pop(key, None)

    def collapse(self, key: str) -> ExpansionState:
        """Transition into Collapsed, remembering a hunk-granular layout. Returns the previous state."""
        previous = self.get(key)
        if isinstance(previous, Collapsed):
            return previous
        if isinstance(previous, (PartialHunks, HeadersOnly)) and self.remember_hunk_state:
            self.remember(key, previous)
        elif isinstance(previous, FullyExpanded):
            # a stale snapshot must not override a later full expansion
            self.forget(key)
        self.set(key, COLLAPSED)
        return previous

    def expand(self, key: str, default: ExpansionState = FULLY_EXPANDED) -> ExpansionState:
        """Transition out of Collapsed, restoring the remembered layout if there is one."""
        current = self.get(key)
        if is_expanded(current):
            return current
        remembered = self.recall(key) if self.remember_hunk_state else None
        state = remembered if remembered is not None else default
        self.set(key, state)
        return self.get(key)

    def toggle_hunk(self, key: str, hunk_index: int) -> bool:
        """Flip one hunk of a PartialHunks layout; any other state is left untouched."""
        current = self._files.get(key)
        if not isinstance(current, PartialHunks):
            return False
        hunks = dict(current.hunks)
        hunks[hunk_index] = not hunks.get(hunk_index, False)
        self._files[key] = PartialHunks(hunks)
        return True

    def collapse_hunk(self, key: str, hunk_index: int, total_hunks: int) -> bool:
        """Collapse one hunk out of FullyExpanded by switching to an explicit PartialHunks map."""
        current = self._files.get(key)
        if not isinstance(current, FullyExpanded):
            return False
        hunks = {i: i != hunk_index for i in range(1, total_hunks + 1)}
        self._files[key] = PartialHunks(hunks)
        return True

    def clear_files(self, keys: Optional[Iterable[str]] = None) -> List[str]:
        """Collapse the given keys (all when None) without touching memory. Returns the cleared keys."""
        targets = list(self._files) if keys is None else [k for k in dict.fromkeys(keys) if k in self._files]
        for k in targets:
            del self._files[k]
        return targets

    # ---------------- Sections ----------------

    def is_section_collapsed(self, section: str) -> bool:
        return self._collapsed_sections.get(section, False)

    def set_section_collapsed(self, section: str, collapsed: bool) -> None:
        if collapsed:
            self._collapsed_sections[section] = True
        else:
            self._collapsed_sections.pop(section, None)

    def collapsed_sections(self) -> List[str]:
        return list(self._collapsed_sections)

    def remember_section(self, section: str) -> Dict[str, ExpansionState]:
        snapshot = {k: _copy(self._files[k]) for k in self.keys_in_section(section)}
        self._remembered_sections[section] = snapshot
        return {k: _copy(v) for k, v in snapshot.items()}

    def recall_section(self, section: str) -> Optional[Dict[str, ExpansionState]]:
        snapshot = self._remembered_sections.get(section)
        if snapshot is None:
            return None
        return {k: _copy(v) for k, v in snapshot.items()}

    def forget_section(self, section: str) -> None:
        self._remembered_sections.pop(section, None)

    # ---------------- Commits ----------------

    def is_commit_expanded(self, commit: str) -> bool:
        return self._commits.get(commit, False)

    def set_commit_expanded(self, commit: str, expanded: bool) -> None:
        if expanded:
            self._commits[commit] = True
        else:
            self._commits.pop(commit, None)

    def clear_commits(self, hashes: Optional[Iterable[str]] = None) -> None:
        if hashes is None:
            self._commits.clear()
            return
        for h in hashes:
            self._commits.pop(h, None)

    # ---------------- Housekeeping ----------------

    def prune(self, valid_keys: Set[str], valid_hashes: Set[str]) -> List[str]:
        """Drop state for targets that are no longer listed. Returns the dropped file keys."""
        stale = [k for k in self._files if k not in valid_keys]
        for k in stale:
            del self._files[k]
        for k in [k for k in self._remembered if k not in valid_keys]:
            del self._remembered[k]
        for snapshot in self._remembered_sections.values():
            for k in [k for k in snapshot if k not in valid_keys]:
                del snapshot[k]
        for h in [h for h in self._commits if h not in valid_hashes]:
            del self._commits[h]
        return stale

    def reset(self) -> None:
        self._files.clear()
        self._remembered.clear()
        self._collapsed_sections.clear()
        self._remembered_sections.clear()
        self._commits.clear()
