"""Hunk Stage core: unified diff parsing into addressable hunks."""

from __future__ import annotations

import re
from typing import Iterable, Optional, Tuple

from .models import DiffData, Hunk

HUNK_PREFIX = "@@"


class UnifiedDiffParser:
    """
    Splits one file's diff output into header, hunks and display lines.

    Parsing is permissive: a diff without any hunk header (pure rename,
    mode-only change) yields empty hunks, and body line prefixes are not
    validated here.
    """

    RE_HUNK = re.compile(r"^@@\s+\-(\d+)(?:,(\d+))?\s+\+(\d+)(?:,(\d+))?\s+@@(.*)$")

    def is_hunk_header(self, line: str) -> bool:
        return line.startswith(HUNK_PREFIX)

    def parse(self, lines: Iterable[str]) -> DiffData:
        data = DiffData()
        current: Optional[Hunk] = None

        for ln in lines:
            if self.is_hunk_header(ln):
                if current is not None:
                    data.hunks.append(current)
                current = Hunk(header=ln, lines=[])
                data.display_lines.append(ln)
            elif current is not None:
                current.lines.append(ln)
                data.display_lines.append(ln)
            else:
                data.header.append(ln)

        if current is not None:
            data.hunks.append(current)
        return data

    def parse_hunk_header(self, header: str) -> Tuple[int, int, int, int]:
        """Return (old_start, old_count, new_start, new_count); an omitted count is 1."""
        m = self.RE_HUNK.match(header)
        if not m:
            return 1, 1, 1, 1
        old_start = int(m.group(1))
        old_count = int(m.group(2)) if m.group(2) is not None else 1
        new_start = int(m.group(3))
        new_count = int(m.group(4)) if m.group(4) is not None else 1
        return old_start, old_count, new_start, new_count

    def hunk_header_offset(self, data: DiffData, hunk_index: int) -> int:
        """1-based display position of the hunk_index-th hunk header, 0 if absent."""
        seen = 0
        for pos, ln in enumerate(data.display_lines, start=1):
            if self.is_hunk_header(ln):
                seen += 1
                if seen == hunk_index:
                    return pos
        return 0

    def locate(self, data: DiffData, display_index: int) -> Optional[Tuple[int, int]]:
        """
        Map a 1-based display position to (hunk_index, line_index).
        line_index 0 is the hunk header itself.
        """
        if display_index < 1 or display_index > len(data.display_lines):
            return None
        hunk_index = 0
        header_pos = 0
        for pos, ln in enumerate(data.display_lines[:display_index], start=1):
            if self.is_hunk_header(ln):
                hunk_index += 1
                header_pos = pos
        if hunk_index == 0:
            return None
        return hunk_index, display_index - header_pos
