from PySide6.QtCore import QAbstractTableModel, Qt, QModelIndex, QSortFilterProxyModel
from PySide6.QtGui import QColor
from PySide6.QtWidgets import QWidget
import pandas as pd
from typing import Any, Optional


class PickListTableModel(QAbstractTableModel):
    """
    A Qt Table Model to display pick list summaries from a pandas DataFrame.

    The frame is produced by PickListBrowser.to_dataframe(). Completed pick
    lists are shaded green and pick lists without a packer are shaded yellow.

    Attributes:
        _data (pd.DataFrame): The underlying DataFrame holding the rows.
    """
    def __init__(self, data: Optional[pd.DataFrame] = None, parent: QWidget = None):
        """
        Initializes the PickListTableModel.

        Args:
            data (pd.DataFrame, optional): The frame to display. Defaults to empty.
            parent (QWidget, optional): The parent widget. Defaults to None.
        """
        super().__init__(parent)
        self._data = data if data is not None else pd.DataFrame()

    def set_dataframe(self, data: pd.DataFrame):
        """Replace the whole frame and notify attached views."""
        self.beginResetModel()
        self._data = data
        self.endResetModel()

    def rowCount(self, parent: QModelIndex = QModelIndex()) -> int:
        if parent.isValid():
            return 0
        return self._data.shape[0]

    def columnCount(self, parent: QModelIndex = QModelIndex()) -> int:
        if parent.isValid():
            return 0
        return self._data.shape[1]

    def data(self, index: QModelIndex, role: int = Qt.DisplayRole) -> Any:
        """
        Returns the data for a given index and role.

        Args:
            index (QModelIndex): The index of the data to retrieve.
            role (int): The role for which data is requested.

        Returns:
            Any: Display text, or a background colour for the row's state.
        """
        if not index.isValid():
            return None

        row = index.row()
        col = index.column()

        if role == Qt.DisplayRole:
            return str(self._data.iloc[row, col])

        if role == Qt.BackgroundRole:
            status_col = self.get_column_index('Status')
            packer_col = self.get_column_index('Packer')
            if status_col != -1 and self._data.iloc[row, status_col] == 'Completed':
                return QColor('lightgreen')
            if packer_col != -1 and not self._data.iloc[row, packer_col]:
                return QColor('lightyellow')

        return None

    def headerData(self, section: int, orientation: Qt.Orientation, role: int = Qt.DisplayRole) -> str | None:
        if role == Qt.DisplayRole and orientation == Qt.Horizontal:
            return str(self._data.columns[section])
        return None

    def get_column_index(self, column_name: str) -> int:
        """
        Retrieves the numerical index for a given column name.

        Returns:
            int: The index of the column, or -1 if not found.
        """
        try:
            return self._data.columns.get_loc(column_name)
        except KeyError:
            return -1

    def pick_list_id_at(self, row: int) -> Optional[int]:
        """Pick list ID for a source row, or None if out of range."""
        col = self.get_column_index('Pick List')
        if col == -1 or not 0 <= row < self.rowCount():
            return None
        return int(self._data.iloc[row, col])


class PickListSortProxyModel(QSortFilterProxyModel):
    """
    Sort proxy that orders the 'Pick List' column numerically.

    Other columns sort by their display text.
    """
    def lessThan(self, left: QModelIndex, right: QModelIndex) -> bool:
        source_model = self.sourceModel()
        if left.column() == source_model.get_column_index('Pick List'):
            left_value = source_model.pick_list_id_at(left.row())
            right_value = source_model.pick_list_id_at(right.row())
            if left_value is not None and right_value is not None:
                return left_value < right_value
        return super().lessThan(left, right)
