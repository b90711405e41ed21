from typing import Dict, Optional

import pandas as pd
from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QFont
from PySide6.QtWidgets import (
    QWidget, QHBoxLayout, QVBoxLayout, QTableView, QLabel, QLineEdit,
    QPushButton, QComboBox, QCheckBox, QHeaderView, QAbstractItemView
)

from app_config import PICK_LIST_STATUSES
from pick_list_table_model import PickListTableModel, PickListSortProxyModel


class PickListsWidget(QWidget):
    """
    The browse screen: pick lists for the selected status with counters.

    This widget only displays data and reports user intent through signals;
    MainWindow owns the PickListBrowser and decides what to fetch.

    Attributes:
        status_changed (Signal): Emitted with the new status filter value.
        filter_changed (Signal): Emitted when the search text or the
                                 "only mine" toggle changes.
        refresh_requested (Signal): Emitted when the user clicks Refresh.
        open_requested (Signal): Emitted with a pick list ID to open.
        assign_requested (Signal): Emitted with a pick list ID to claim.
        model (PickListTableModel): Source model for the table.
        proxy_model (PickListSortProxyModel): Sorting proxy between model and view.
    """
    status_changed = Signal(str)
    filter_changed = Signal()
    refresh_requested = Signal()
    open_requested = Signal(int)
    assign_requested = Signal(int)

    def __init__(self, parent: QWidget = None):
        super().__init__(parent)

        main_layout = QVBoxLayout(self)

        # Counters
        stats_layout = QHBoxLayout()
        stats_font = QFont(); stats_font.setPointSize(14); stats_font.setBold(True)
        self.pending_label = QLabel("Pending: 0")
        self.completed_label = QLabel("Completed: 0")
        self.total_label = QLabel("Total: 0")
        for label in (self.pending_label, self.completed_label, self.total_label):
            label.setFont(stats_font)
            stats_layout.addWidget(label)
        stats_layout.addStretch()
        main_layout.addLayout(stats_layout)

        # Filters
        filter_layout = QHBoxLayout()
        self.status_combo = QComboBox()
        for status in PICK_LIST_STATUSES:
            self.status_combo.addItem(status.capitalize(), status)
        self.status_combo.currentIndexChanged.connect(self._on_status_changed)

        self.mine_only_checkbox = QCheckBox("Only my pick lists")
        self.mine_only_checkbox.toggled.connect(lambda _checked: self.filter_changed.emit())

        self.search_input = QLineEdit()
        self.search_input.setPlaceholderText("Search by pick list, order #, assignee, packer or remarks...")
        self.search_input.setClearButtonEnabled(True)
        self.search_input.textChanged.connect(lambda _text: self.filter_changed.emit())

        self.refresh_button = QPushButton("Refresh")
        self.refresh_button.clicked.connect(self.refresh_requested.emit)

        filter_layout.addWidget(QLabel("Status:"))
        filter_layout.addWidget(self.status_combo)
        filter_layout.addWidget(self.mine_only_checkbox)
        filter_layout.addWidget(self.search_input, stretch=1)
        filter_layout.addWidget(self.refresh_button)
        main_layout.addLayout(filter_layout)

        # Table
        self.model = PickListTableModel(parent=self)
        self.proxy_model = PickListSortProxyModel(self)
        self.proxy_model.setSourceModel(self.model)

        self.table = QTableView()
        self.table.setModel(self.proxy_model)
        # Keep the browser's newest-first order until a header is clicked
        self.table.horizontalHeader().setSortIndicator(-1, Qt.AscendingOrder)
        self.table.setSortingEnabled(True)
        self.table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.table.setSelectionMode(QAbstractItemView.SingleSelection)
        self.table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeToContents)
        self.table.horizontalHeader().setStretchLastSection(True)
        self.table.doubleClicked.connect(self._on_double_clicked)
        main_layout.addWidget(self.table, stretch=1)

        # Actions
        action_layout = QHBoxLayout()
        self.message_label = QLabel("")
        self.message_label.setWordWrap(True)
        self.assign_button = QPushButton("Assign to Me")
        self.assign_button.clicked.connect(self._on_assign_clicked)
        self.open_button = QPushButton("Open Pick List")
        self.open_button.clicked.connect(self._on_open_clicked)
        action_layout.addWidget(self.message_label, stretch=1)
        action_layout.addWidget(self.assign_button)
        action_layout.addWidget(self.open_button)
        main_layout.addLayout(action_layout)

    def _on_status_changed(self, index: int):
        self.status_changed.emit(self.status_combo.itemData(index))

    def _on_double_clicked(self, proxy_index):
        pick_list_id = self._pick_list_id_for(proxy_index)
        if pick_list_id is not None:
            self.open_requested.emit(pick_list_id)

    def _on_open_clicked(self):
        pick_list_id = self.selected_pick_list_id()
        if pick_list_id is None:
            self.show_message("Select a pick list first", "orange")
            return
        self.open_requested.emit(pick_list_id)

    def _on_assign_clicked(self):
        pick_list_id = self.selected_pick_list_id()
        if pick_list_id is None:
            self.show_message("Select a pick list first", "orange")
            return
        self.assign_requested.emit(pick_list_id)

    def _pick_list_id_for(self, proxy_index) -> Optional[int]:
        if not proxy_index.isValid():
            return None
        source_index = self.proxy_model.mapToSource(proxy_index)
        return self.model.pick_list_id_at(source_index.row())

    def selected_pick_list_id(self) -> Optional[int]:
        """ID of the selected row, or None when nothing is selected."""
        rows = self.table.selectionModel().selectedRows()
        if not rows:
            return None
        return self._pick_list_id_for(rows[0])

    def current_status(self) -> str:
        return self.status_combo.currentData()

    def search_text(self) -> str:
        return self.search_input.text()

    def mine_only(self) -> bool:
        return self.mine_only_checkbox.isChecked()

    def display_pick_lists(self, df: pd.DataFrame):
        """Show a frame from PickListBrowser.to_dataframe()."""
        self.model.set_dataframe(df)
        if df.empty:
            self.show_message("No pick lists found", "gray")
        else:
            self.show_message(f"{len(df)} pick lists", "gray")

    def update_stats(self, stats: Dict[str, int]):
        self.pending_label.setText(f"Pending: {stats.get('pending', 0)}")
        self.completed_label.setText(f"Completed: {stats.get('completed', 0)}")
        self.total_label.setText(f"Total: {stats.get('total', 0)}")

    def set_loading(self, loading: bool):
        self.refresh_button.setEnabled(not loading)
        self.status_combo.setEnabled(not loading)
        if loading:
            self.show_message("Loading pick lists...", "gray")

    def show_message(self, text: str, color_name: str):
        self.message_label.setText(text)
        self.message_label.setStyleSheet(f"color: {color_name};")
