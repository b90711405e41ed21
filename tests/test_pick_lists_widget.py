"""
Unit tests for src/pick_lists_widget.py and src/pick_list_table_model.py.

Requires: pytest-qt (qtbot fixture).
"""

import pandas as pd
import pytest
from PySide6.QtCore import Qt
from PySide6.QtGui import QColor

from pick_list_browser import TABLE_COLUMNS
from pick_list_table_model import PickListTableModel
from pick_lists_widget import PickListsWidget


def make_frame(rows):
    return pd.DataFrame(rows, columns=TABLE_COLUMNS)


SAMPLE_FRAME = [
    {"Pick List": 9, "Order #": "ORD-9", "Order Date": "2025-03-01", "Assignee": "Jane",
     "Packer": "", "Progress": "0 / 2", "Status": "Pending", "Remarks": ""},
    {"Pick List": 10, "Order #": "ORD-10", "Order Date": "2025-02-01", "Assignee": "Sam",
     "Packer": "Sam", "Progress": "2 / 2", "Status": "Completed", "Remarks": "Rush"},
]


@pytest.fixture
def widget(qtbot):
    widget = PickListsWidget()
    qtbot.addWidget(widget)
    return widget


class TestPickListTableModel:

    def test_dimensions_and_headers(self):
        model = PickListTableModel(make_frame(SAMPLE_FRAME))

        assert model.rowCount() == 2
        assert model.columnCount() == len(TABLE_COLUMNS)
        assert model.headerData(1, Qt.Horizontal) == "Order #"

    def test_display_text(self):
        model = PickListTableModel(make_frame(SAMPLE_FRAME))

        assert model.data(model.index(0, 0)) == "9"
        assert model.data(model.index(1, 1)) == "ORD-10"

    def test_row_colours(self):
        model = PickListTableModel(make_frame(SAMPLE_FRAME))

        assert model.data(model.index(0, 0), Qt.BackgroundRole) == QColor("lightyellow")
        assert model.data(model.index(1, 0), Qt.BackgroundRole) == QColor("lightgreen")

    def test_pick_list_id_at(self):
        model = PickListTableModel(make_frame(SAMPLE_FRAME))

        assert model.pick_list_id_at(1) == 10
        assert model.pick_list_id_at(5) is None

    def test_empty_model(self):
        model = PickListTableModel()

        assert model.rowCount() == 0
        assert model.get_column_index("Status") == -1


class TestPickListsWidget:

    def test_status_combo_values(self, widget):
        values = [widget.status_combo.itemData(i) for i in range(widget.status_combo.count())]

        assert values == ["pending", "completed", "all"]
        assert widget.current_status() == "pending"

    def test_status_change_emits(self, widget):
        received = []
        widget.status_changed.connect(received.append)

        widget.status_combo.setCurrentIndex(2)

        assert received == ["all"]

    def test_search_and_toggle_emit_filter_changed(self, widget):
        received = []
        widget.filter_changed.connect(lambda: received.append(True))

        widget.search_input.setText("ORD")
        widget.mine_only_checkbox.setChecked(True)

        assert len(received) == 2
        assert widget.search_text() == "ORD"
        assert widget.mine_only() is True

    def test_display_pick_lists(self, widget):
        widget.display_pick_lists(make_frame(SAMPLE_FRAME))

        assert widget.proxy_model.rowCount() == 2
        assert widget.message_label.text() == "2 pick lists"

    def test_display_empty(self, widget):
        widget.display_pick_lists(make_frame([]))

        assert widget.message_label.text() == "No pick lists found"

    def test_open_selected_row(self, widget):
        widget.display_pick_lists(make_frame(SAMPLE_FRAME))
        received = []
        widget.open_requested.connect(received.append)

        widget.table.selectRow(1)
        widget.open_button.click()

        assert received == [10]

    def test_assign_selected_row(self, widget):
        widget.display_pick_lists(make_frame(SAMPLE_FRAME))
        received = []
        widget.assign_requested.connect(received.append)

        widget.table.selectRow(0)
        widget.assign_button.click()

        assert received == [9]

    def test_open_without_selection_shows_message(self, widget):
        widget.display_pick_lists(make_frame(SAMPLE_FRAME))
        received = []
        widget.open_requested.connect(received.append)

        widget.open_button.click()

        assert received == []
        assert widget.message_label.text() == "Select a pick list first"

    def test_sorting_by_id_is_numeric(self, widget):
        rows = [dict(SAMPLE_FRAME[0], **{"Pick List": pid}) for pid in (100, 9, 20)]
        widget.display_pick_lists(make_frame(rows))

        widget.table.sortByColumn(0, Qt.AscendingOrder)

        ids = [widget.proxy_model.data(widget.proxy_model.index(row, 0)) for row in range(3)]
        assert ids == ["9", "20", "100"]

    def test_update_stats(self, widget):
        widget.update_stats({"pending": 4, "completed": 2, "total": 6})

        assert widget.pending_label.text() == "Pending: 4"
        assert widget.completed_label.text() == "Completed: 2"
        assert widget.total_label.text() == "Total: 6"

    def test_set_loading(self, widget):
        widget.set_loading(True)
        assert not widget.refresh_button.isEnabled()

        widget.set_loading(False)
        assert widget.refresh_button.isEnabled()
