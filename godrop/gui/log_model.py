# godrop/gui/log_model.py

import datetime
from typing import List

from PySide6.QtCore import QAbstractListModel, QModelIndex, Qt

LOG_PREFIX = "> "


class SessionLogModel(QAbstractListModel):
    """
    The session log (LogEntries) as a Qt list model: an append-only sequence of
    human-readable lines, reset each time a session starts. Views attach to it
    directly; the controller is its only writer.
    """

    def __init__(self, parent=None):
        super().__init__(parent)
        # Each entry: {"message": "> RECEIVED: a.txt", "time": "12:01:33"}
        self._log_data = []

    # --- Required Methods for QAbstractListModel ---

    def rowCount(self, parent=QModelIndex()):
        if parent.isValid():
            return 0
        return len(self._log_data)

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole):
        if not index.isValid() or index.row() >= len(self._log_data):
            return None
        row_data = self._log_data[index.row()]
        if role == Qt.DisplayRole:
            return row_data["message"]
        if role == Qt.ToolTipRole:
            return f"Logged at {row_data['time']}"
        return None

    # --- Custom Public Methods ---

    def add_entry(self, message: str):
        """Appends a prefixed line to the end of the log."""
        self._append(f"{LOG_PREFIX}{message}")

    def reset(self, first_line: str):
        """Starts a fresh log whose only line is `first_line` (unprefixed)."""
        self.beginResetModel()
        self._log_data = [self._make_entry(first_line)]
        self.endResetModel()

    def clear(self):
        self.beginResetModel()
        self._log_data = []
        self.endResetModel()

    def lines(self) -> List[str]:
        return [entry["message"] for entry in self._log_data]

    def _append(self, line: str):
        row = self.rowCount()
        self.beginInsertRows(QModelIndex(), row, row)
        self._log_data.append(self._make_entry(line))
        self.endInsertRows()

    @staticmethod
    def _make_entry(line: str) -> dict:
        return {"message": line, "time": datetime.datetime.now().strftime("%H:%M:%S")}
