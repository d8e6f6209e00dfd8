"""Hunk Stage core: single-hunk and line-level patch synthesis."""

from __future__ import annotations

from typing import Collection, List, Optional, Union

from .models import DiffData
from .parser import UnifiedDiffParser

NO_NEWLINE_MARKER = "\\"


class NoPatch:
    """Outcome of a selection that leaves no net change. Falsy; not an error."""

    _instance: Optional["NoPatch"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NO_PATCH"


NO_PATCH = NoPatch()

PatchLines = List[str]


class HunkPatchBuilder:
    """Extract one hunk, verbatim, behind the file's diff header."""

    def build(self, data: DiffData, hunk_index: int) -> PatchLines:
        hunk = data.hunk(hunk_index)
        return list(data.header) + [hunk.header] + list(hunk.lines)


class PartialPatchBuilder:
    """
    Synthesize a hunk containing only the selected changes of one hunk.

    Staging (reverse=False) turns unselected deletions into context and drops
    unselected additions. Unstaging (reverse=True, patch applied with -R) is
    the mirror image: unselected additions become context and unselected
    deletions are dropped. Line counts are recomputed; the start positions
    of the original header are kept.
    """

    def __init__(self, parser: Optional[UnifiedDiffParser] = None):
        self.parser = parser or UnifiedDiffParser()

    def build(
        self,
        data: DiffData,
        hunk_index: int,
        selected: Collection[int],
        reverse: bool,
    ) -> Union[PatchLines, NoPatch]:
        hunk = data.hunk(hunk_index)
        header_offset = self.parser.hunk_header_offset(data, hunk_index)
        old_start, _old_count, new_start, _new_count = self.parser.parse_hunk_header(hunk.header)

        new_lines: List[str] = []
        old_count = 0
        new_count = 0
        has_changes = False
        prev_emitted = False

        for i, ln in enumerate(hunk.lines, start=1):
            is_selected = (header_offset + i) in selected
            tag = ln[:1]

            if tag == "+":
                if is_selected:
                    new_lines.append(ln)
                    new_count += 1
                    has_changes = True
                    prev_emitted = True
                elif reverse:
                    new_lines.append(" " + ln[1:])
                    old_count += 1
                    new_count += 1
                    prev_emitted = True
                else:
                    prev_emitted = False
            elif tag == "-":
                if is_selected:
                    new_lines.append(ln)
                    old_count += 1
                    has_changes = True
                    prev_emitted = True
                elif not reverse:
                    new_lines.append(" " + ln[1:])
                    old_count += 1
                    new_count += 1
                    prev_emitted = True
                else:
                    prev_emitted = False
            elif tag == NO_NEWLINE_MARKER:
                # annotates the previous line; follows its fate, never counted
                if prev_emitted:
                    new_lines.append(ln)
            else:
                new_lines.append(ln)
                old_count += 1
                new_count += 1
                prev_emitted = True

        if not has_changes:
            return NO_PATCH

        new_header = "@@ -%d,%d +%d,%d @@" % (old_start, old_count, new_start, new_count)
        return list(data.header) + [new_header] + self._settle_markers(new_lines)

    @staticmethod
    def _settle_markers(lines: List[str]) -> List[str]:
        """
        A line flagged by the no-newline marker must be the last line on its
        side of the hunk. Where the rebuilt hunk goes on past it on that side,
        the line gets its newline back: a removal or addition just loses the
        marker, and a context line is split into a removal and an addition so
        that only the side which still ends there keeps it. Counts are
        unaffected.
        """
        out: List[str] = []
        for pos, ln in enumerate(lines):
            tag = ln[:1]
            if tag == NO_NEWLINE_MARKER:
                continue
            if pos + 1 >= len(lines) or lines[pos + 1][:1] != NO_NEWLINE_MARKER:
                out.append(ln)
                continue

            marker = lines[pos + 1]
            rest = [r[:1] for r in lines[pos + 2:] if r[:1] != NO_NEWLINE_MARKER]
            old_goes_on = any(t != "+" for t in rest)
            new_goes_on = any(t != "-" for t in rest)

            if tag == "-":
                out.extend([ln] if old_goes_on else [ln, marker])
            elif tag == "+":
                out.extend([ln] if new_goes_on else [ln, marker])
            elif old_goes_on and new_goes_on:
                out.append(ln)
            elif old_goes_on:
                out.extend(["-" + ln[1:], "+" + ln[1:], marker])
            elif new_goes_on:
                out.extend(["-" + ln[1:], marker, "+" + ln[1:]])
            else:
                out.extend([ln, marker])
        return out
