"""Hunk Stage core: shared data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Union

FILE_SECTIONS = ("untracked", "unstaged", "staged", "conflicted")
COMMIT_SECTIONS = (
    "unpulled_upstream",
    "unpushed_upstream",
    "unpulled_push",
    "unpushed_push",
    "recent",
)
SUBMODULE_SECTION = "submodules"
COLLAPSIBLE_SECTIONS = FILE_SECTIONS + COMMIT_SECTIONS + ("stashes", SUBMODULE_SECTION, "worktrees")

SUBMODULE_KEY_PREFIX = "submodule"
NULL_SHA = "0" * 40


def cache_key(section: str, path: str) -> str:
    return section + ":" + path


def submodule_key(path: str) -> str:
    return SUBMODULE_KEY_PREFIX + ":" + path


def section_of_key(key: str) -> str:
    prefix = key.split(":", 1)[0]
    return SUBMODULE_SECTION if prefix == SUBMODULE_KEY_PREFIX else prefix


class HunkIndexOutOfRange(IndexError):
    """Raised when a caller references a hunk that the diff does not have."""

    def __init__(self, hunk_index: int, total: int):
        super().__init__(f"hunk {hunk_index} out of range (diff has {total} hunks)")
        self.hunk_index = hunk_index
        self.total = total


@dataclass
class Hunk:
    header: str
    lines: List[str] = field(default_factory=list)  # prefixed body lines


@dataclass
class DiffData:
    header: List[str] = field(default_factory=list)
    hunks: List[Hunk] = field(default_factory=list)
    display_lines: List[str] = field(default_factory=list)

    def total_hunks(self) -> int:
        return len(self.hunks)

    def hunk(self, hunk_index: int) -> Hunk:
        # 1-based, matching display positions
        if hunk_index < 1 or hunk_index > len(self.hunks):
            raise HunkIndexOutOfRange(hunk_index, len(self.hunks))
        return self.hunks[hunk_index - 1]

    def flatten(self) -> List[str]:
        out = list(self.header)
        for h in self.hunks:
            out.append(h.header)
            out.extend(h.lines)
        return out


@dataclass
class SubmoduleDiff:
    old_sha: str
    new_sha: str

    @property
    def hunks(self) -> List[Hunk]:
        return []

    def total_hunks(self) -> int:
        return 0


CachedDiff = Union[DiffData, SubmoduleDiff]


@dataclass
class FileEntry:
    path: str
    section: str
    orig_path: Optional[str] = None  # rename source

    @property
    def key(self) -> str:
        return cache_key(self.section, self.path)

    @property
    def staged(self) -> bool:
        return self.section == "staged"

    @property
    def untracked(self) -> bool:
        return self.section == "untracked"


@dataclass
class SubmoduleEntry:
    path: str
    sha: str

    @property
    def key(self) -> str:
        return submodule_key(self.path)

    @property
    def section(self) -> str:
        return SUBMODULE_SECTION


Entry = Union[FileEntry, SubmoduleEntry]


@dataclass
class StatusSnapshot:
    """What the status view currently lists, grouped by section."""

    files: List[FileEntry] = field(default_factory=list)
    commits: Dict[str, List[str]] = field(default_factory=dict)  # section -> hashes
    submodules: List[SubmoduleEntry] = field(default_factory=list)

    def files_in(self, section: str) -> List[FileEntry]:
        return [f for f in self.files if f.section == section]

    def commits_in(self, section: str) -> List[str]:
        return list(self.commits.get(section, []))

    def all_commits(self) -> List[str]:
        out: List[str] = []
        for section in COMMIT_SECTIONS:
            out.extend(self.commits.get(section, []))
        return out

    def sections(self) -> List[str]:
        """Sections that have at least one entry, in display order."""
        present = []
        for section in COLLAPSIBLE_SECTIONS:
            if section in FILE_SECTIONS:
                if self.files_in(section):
                    present.append(section)
            elif section in COMMIT_SECTIONS:
                if self.commits.get(section):
                    present.append(section)
            elif section == SUBMODULE_SECTION:
                if self.submodules:
                    present.append(section)
        return present

    def entry_for(self, key: str) -> Optional[Entry]:
        for f in self.files:
            if f.key == key:
                return f
        for s in self.submodules:
            if s.key == key:
                return s
        return None

    def valid_keys(self) -> Set[str]:
        keys = {f.key for f in self.files}
        keys.update(s.key for s in self.submodules)
        return keys

    def valid_hashes(self) -> Set[str]:
        return set(self.all_commits())
