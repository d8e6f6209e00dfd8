"""Hunk Stage core: diff text normalization."""

from __future__ import annotations

from typing import List, Sequence, Union


class DiffTextNormalizer:
    """
    Responsibilities:
      - Strip UTF-8 BOM if present.
      - Normalize line endings to \n internally.
      - Convert between raw diff text and the line sequences the parser consumes.
    """

    def to_lines(self, raw: Union[str, Sequence[str]]) -> List[str]:
        if not isinstance(raw, str):
            # Already split by the diff source; only strip stray carriage returns.
            return [ln[:-1] if ln.endswith("\r") else ln for ln in raw]

        if raw.startswith("\ufeff"):
            raw = raw.lstrip("\ufeff")
        raw = raw.replace("\r\n", "\n").replace("\r", "\n")
        if raw == "":
            return []

        lines = raw.split("\n")
        # A final newline terminates the last line, it does not open an empty one.
        if lines and lines[-1] == "":
            lines.pop()
        return lines

    def to_text(self, lines: Sequence[str]) -> str:
        if not lines:
            return ""
        # git apply rejects a patch whose last line is unterminated
        return "\n".join(lines) + "\n"
