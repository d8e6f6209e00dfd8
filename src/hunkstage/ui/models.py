"""Hunk Stage UI: Qt models for the status rows and the session log."""

from __future__ import annotations

import json
import time
from typing import Any, Dict, List, Optional, Tuple

from PyQt6.QtCore import Qt, QAbstractTableModel, QModelIndex
from PyQt6.QtGui import QBrush, QColor

from ..core.layout import (
    KIND_COMMIT,
    KIND_DIFF_LINE,
    KIND_FILE,
    KIND_HUNK_HEADER,
    KIND_SECTION,
    KIND_SUBMODULE,
    ViewRow,
)
from ..core.session import ViewSession


class StatusRowsModel(QAbstractTableModel):
    """
    Materialized status rows, 2 columns:
      0 row text (indented by nesting depth)
      1 expansion marker for rows that can be toggled
    """

    COL_TEXT = 0
    COL_STATE = 1

    INDENT = {
        KIND_SECTION: 0,
        KIND_FILE: 1,
        KIND_SUBMODULE: 1,
        KIND_COMMIT: 1,
        KIND_HUNK_HEADER: 2,
        KIND_DIFF_LINE: 2,
    }

    def __init__(self):
        super().__init__()
        self._rows: List[ViewRow] = []
        self._header = ["Status", ""]

        self._bg_default = QBrush(QColor(255, 255, 255))
        self._bg_section = QBrush(QColor(242, 242, 242))
        self._bg_hunk = QBrush(QColor(248, 248, 248))
        self._bg_add = QBrush(QColor(228, 246, 228))
        self._bg_del = QBrush(QColor(246, 228, 228))

    def rowCount(self, parent=QModelIndex()) -> int:
        return 0 if parent.isValid() else len(self._rows)

    def columnCount(self, parent=QModelIndex()) -> int:
        return 0 if parent.isValid() else 2

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.ItemDataRole.DisplayRole):
        if role != Qt.ItemDataRole.DisplayRole:
            return None
        if orientation == Qt.Orientation.Horizontal:
            return self._header[section] if 0 <= section < len(self._header) else ""
        return str(section + 1)

    def data(self, index: QModelIndex, role: int = Qt.ItemDataRole.DisplayRole):
        if not index.isValid():
            return None
        row = self._rows[index.row()]
        c = index.column()

        if role == Qt.ItemDataRole.DisplayRole:
            if c == self.COL_TEXT:
                return "  " * self.INDENT.get(row.kind, 0) + row.text
            if c == self.COL_STATE:
                if row.kind == KIND_DIFF_LINE:
                    return ""
                return "v" if row.expanded else ">"
            return ""

        if role == Qt.ItemDataRole.BackgroundRole:
            if row.kind == KIND_SECTION:
                return self._bg_section
            if row.kind == KIND_HUNK_HEADER:
                return self._bg_hunk
            if row.kind == KIND_DIFF_LINE:
                if row.text.startswith("+"):
                    return self._bg_add
                if row.text.startswith("-"):
                    return self._bg_del
            return self._bg_default

        if role == Qt.ItemDataRole.ToolTipRole:
            if row.key:
                return row.key
            return row.commit

        if role == Qt.ItemDataRole.UserRole:
            # focus/selection target for visibility and line staging
            return row

        return None

    def set_rows(self, rows: List[ViewRow]) -> None:
        self.beginResetModel()
        self._rows = list(rows)
        self.endResetModel()

    def row_at(self, r: int) -> Optional[ViewRow]:
        if 0 <= r < len(self._rows):
            return self._rows[r]
        return None

    def rows_at(self, indexes: List[int]) -> List[ViewRow]:
        """Rows for a set of selected row numbers, in display order."""
        return [self._rows[r] for r in sorted(set(indexes)) if 0 <= r < len(self._rows)]


    def attach(self, session: ViewSession) -> None:
        """Show the session's rows now and re-materialize after every state change."""
        self.set_rows(session.rows())
        session.add_listener(lambda: self.set_rows(session.rows()))


class LogTableModel(QAbstractTableModel):
    """
    Session log, 4 columns: time, level, message and the target the entry is
    about (a cache key, a list of keys or a section). Remaining fields go to
    the tooltip as JSON.
    """

    COL_TIME = 0
    COL_LEVEL = 1
    COL_MESSAGE = 2
    COL_TARGET = 3

    BASE_FIELDS = ("ts", "level", "message")

    def __init__(self):
        super().__init__()
        self._rows: List[Dict[str, Any]] = []
        self._header = ["Time", "Level", "Message", "Target"]

        self._fg_warn = QBrush(QColor(166, 105, 0))
        self._fg_error = QBrush(QColor(176, 0, 32))

    def rowCount(self, parent=QModelIndex()) -> int:
        return 0 if parent.isValid() else len(self._rows)

    def columnCount(self, parent=QModelIndex()) -> int:
        return 0 if parent.isValid() else 4

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.ItemDataRole.DisplayRole):
        if role != Qt.ItemDataRole.DisplayRole:
            return None
        if orientation == Qt.Orientation.Horizontal:
            return self._header[section]
        return str(section + 1)

    @staticmethod
    def target_of(entry: Dict[str, Any]) -> str:
        if entry.get("key"):
            return str(entry["key"])
        keys = entry.get("keys")
        if keys:
            return ", ".join(str(k) for k in keys)
        return str(entry.get("section") or "")

    def data(self, index: QModelIndex, role: int = Qt.ItemDataRole.DisplayRole):
        if not index.isValid():
            return None
        row = self._rows[index.row()]
        c = index.column()

        if role == Qt.ItemDataRole.DisplayRole:
            if c == self.COL_TIME:
                return time.strftime("%H:%M:%S", time.localtime(row.get("ts", 0.0)))
            if c == self.COL_LEVEL:
                return row.get("level", "")
            if c == self.COL_MESSAGE:
                return row.get("message", "")
            if c == self.COL_TARGET:
                return self.target_of(row)
            return ""

        if role == Qt.ItemDataRole.ForegroundRole:
            level = row.get("level")
            if level == "ERROR":
                return self._fg_error
            if level == "WARN":
                return self._fg_warn
            return None

        if role == Qt.ItemDataRole.ToolTipRole:
            det = {k: v for k, v in row.items() if k not in self.BASE_FIELDS}
            if det:
                # keys are lists, errors are strings; anything else falls back to str
                return json.dumps(det, indent=2, default=str)
        return None

    def append(self, entry: Dict[str, Any]) -> None:
        self.beginInsertRows(QModelIndex(), len(self._rows), len(self._rows))
        self._rows.append(entry)
        self.endInsertRows()

    def extend(self, entries: List[Dict[str, Any]]) -> None:
        if not entries:
            return
        self.beginInsertRows(QModelIndex(), len(self._rows), len(self._rows) + len(entries) - 1)
        self._rows.extend(entries)
        self.endInsertRows()

    def clear(self) -> None:
        self.beginResetModel()
        self._rows = []
        self.endResetModel()

    def attach(self, session: ViewSession) -> None:
        """Load what the session has logged so far and become its log sink."""
        self.extend(list(session.logs))
        session.log_sink = self.append

    def problems(self) -> List[Dict[str, Any]]:
        return [r for r in self._rows if r.get("level") in ("WARN", "ERROR")]


def bind_session(session: ViewSession) -> Tuple[StatusRowsModel, LogTableModel]:
    """Models for one status view, kept in step with `session`."""
    rows = StatusRowsModel()
    rows.attach(session)
    log = LogTableModel()
    log.attach(session)
    return rows, log
