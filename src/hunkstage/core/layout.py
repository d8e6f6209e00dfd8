"""Hunk Stage core: materialize the visible rows of a status view."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from .expansion import ExpansionStateStore, hunk_visible, is_expanded
from .models import (
    COMMIT_SECTIONS,
    FILE_SECTIONS,
    SUBMODULE_SECTION,
    CachedDiff,
    DiffData,
    StatusSnapshot,
    SubmoduleDiff,
)

KIND_SECTION = "section"
KIND_FILE = "file"
KIND_SUBMODULE = "submodule"
KIND_COMMIT = "commit"
KIND_HUNK_HEADER = "hunk_header"
KIND_DIFF_LINE = "diff_line"

FILE_ROW_KINDS = (KIND_FILE, KIND_HUNK_HEADER, KIND_DIFF_LINE)


@dataclass
class ViewRow:
    kind: str
    text: str
    section: Optional[str] = None
    path: Optional[str] = None
    key: Optional[str] = None
    hunk_index: Optional[int] = None
    display_index: Optional[int] = None  # 1-based position in DiffData.display_lines
    commit: Optional[str] = None
    expanded: bool = False


def _diff_rows(row_base: ViewRow, data: DiffData, store: ExpansionStateStore) -> List[ViewRow]:
    state = store.get(row_base.key or "")
    rows: List[ViewRow] = []
    pos = 0
    for hunk_index, hunk in enumerate(data.hunks, start=1):
        pos += 1
        shown = hunk_visible(state, hunk_index)
        rows.append(ViewRow(
            kind=KIND_HUNK_HEADER,
            text=hunk.header,
            section=row_base.section,
            path=row_base.path,
            key=row_base.key,
            hunk_index=hunk_index,
            display_index=pos,
            expanded=shown,
        ))
        if shown:
            for i, ln in enumerate(hunk.lines, start=1):
                rows.append(ViewRow(
                    kind=KIND_DIFF_LINE,
                    text=ln,
                    section=row_base.section,
                    path=row_base.path,
                    key=row_base.key,
                    hunk_index=hunk_index,
                    display_index=pos + i,
                ))
        pos += len(hunk.lines)
    return rows


def _submodule_rows(row_base: ViewRow, data: SubmoduleDiff) -> List[ViewRow]:
    return [
        ViewRow(kind=KIND_DIFF_LINE, text="-Subproject commit " + data.old_sha,
                section=row_base.section, path=row_base.path, key=row_base.key),
        ViewRow(kind=KIND_DIFF_LINE, text="+Subproject commit " + data.new_sha,
                section=row_base.section, path=row_base.path, key=row_base.key),
    ]


def materialize(
    snapshot: StatusSnapshot,
    store: ExpansionStateStore,
    cache: Dict[str, CachedDiff],
) -> List[ViewRow]:
    """
    Rows in display order. A file whose state is expanded but whose diff is
    not cached (fetch still in flight) shows only its file row.
    """
    rows: List[ViewRow] = []
    for section in snapshot.sections():
        collapsed = store.is_section_collapsed(section)
        rows.append(ViewRow(kind=KIND_SECTION, text=section, section=section, expanded=not collapsed))
        if collapsed:
            continue

        if section in FILE_SECTIONS:
            for entry in snapshot.files_in(section):
                key = entry.key
                expanded = is_expanded(store.get(key))
                file_row = ViewRow(kind=KIND_FILE, text=entry.path, section=section,
                                   path=entry.path, key=key, expanded=expanded)
                rows.append(file_row)
                data = cache.get(key)
                if expanded and isinstance(data, DiffData):
                    rows.extend(_diff_rows(file_row, data, store))

        elif section in COMMIT_SECTIONS:
            for commit in snapshot.commits_in(section):
                rows.append(ViewRow(kind=KIND_COMMIT, text=commit, section=section,
                                    commit=commit, expanded=store.is_commit_expanded(commit)))

        elif section == SUBMODULE_SECTION:
            for sub in snapshot.submodules:
                key = sub.key
                expanded = is_expanded(store.get(key))
                sub_row = ViewRow(kind=KIND_SUBMODULE, text=sub.path, section=section,
                                  path=sub.path, key=key, expanded=expanded)
                rows.append(sub_row)
                data = cache.get(key)
                if expanded and isinstance(data, SubmoduleDiff):
                    rows.extend(_submodule_rows(sub_row, data))
    return rows
