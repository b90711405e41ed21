from functools import partial
from typing import List

from PySide6.QtWidgets import (
    QWidget, QHBoxLayout, QVBoxLayout, QTableWidget, QTableWidgetItem,
    QLabel, QLineEdit, QHeaderView, QPushButton, QAbstractItemView, QFrame
)
from PySide6.QtGui import QFont, QColor
from PySide6.QtCore import Qt, Signal

from models import is_line_complete

NOTIFICATION_COLORS = {
    'success': 'green',
    'info': 'blue',
    'warning': 'orange',
    'error': 'red',
}

COLUMNS = ["Shipment #", "Shipment ID", "UPC", "SKU", "Product Name",
           "Shipped / Ordered", "Status", "Label"]
PRINT_COLUMN = COLUMNS.index("Label")


class ScannerInput(QLineEdit):
    """Line edit fed by the barcode scanner; Escape clears the scan buffer."""
    escape_pressed = Signal()

    def keyPressEvent(self, event):
        if event.key() == Qt.Key_Escape:
            self.escape_pressed.emit()
            return
        super().keyPressEvent(event)


class PickListLinesWidget(QWidget):
    """
    The scanning screen for one pick list.

    Shows the lines grouped by shipment, with one print button per shipment,
    and captures scanner input. It renders a ScanSession but never changes
    it; every user action leaves through a signal that MainWindow handles.

    Attributes:
        scan_submitted (Signal): Emitted with the scanned text on Enter.
        search_changed (Signal): Emitted with the input text as it is typed,
                                 to filter the table by partial UPC.
        clear_requested (Signal): Emitted when the user presses Escape or
                                  clicks Clear.
        print_requested (Signal): Emitted with (shipment_id, line_ids,
                                  label_already_generated) for a group print.
        refresh_requested (Signal): Emitted when the user reloads the lines.
        back_requested (Signal): Emitted when the user leaves the pick list.
        table (QTableWidget): Lines, one row each, grouped by shipment.
        scanner_input (ScannerInput): Scanner/keyboard input field.
        notification_label (QLabel): Large label for scan outcomes.
    """
    scan_submitted = Signal(str)
    search_changed = Signal(str)
    clear_requested = Signal()
    print_requested = Signal(str, list, bool)
    refresh_requested = Signal()
    back_requested = Signal()

    def __init__(self, parent: QWidget = None):
        super().__init__(parent)

        main_layout = QVBoxLayout(self)

        # Header
        header_layout = QHBoxLayout()
        self.back_button = QPushButton("<< Back to Pick Lists")
        self.back_button.clicked.connect(self.back_requested.emit)
        self.title_label = QLabel("")
        title_font = QFont(); title_font.setPointSize(16); title_font.setBold(True)
        self.title_label.setFont(title_font)
        self.packer_label = QLabel("")
        self.status_label = QLabel("")
        self.refresh_button = QPushButton("Reload Lines")
        self.refresh_button.clicked.connect(self.refresh_requested.emit)
        header_layout.addWidget(self.back_button)
        header_layout.addWidget(self.title_label, stretch=1)
        header_layout.addWidget(self.packer_label)
        header_layout.addWidget(self.status_label)
        header_layout.addWidget(self.refresh_button)
        main_layout.addLayout(header_layout)

        # Scanner
        scan_layout = QHBoxLayout()
        self.scanner_input = ScannerInput()
        self.scanner_input.setPlaceholderText("Scan or type a UPC and press Enter")
        scan_font = QFont(); scan_font.setPointSize(14)
        self.scanner_input.setFont(scan_font)
        self.scanner_input.returnPressed.connect(self._on_scan)
        self.scanner_input.textChanged.connect(self.search_changed.emit)
        self.scanner_input.escape_pressed.connect(self._on_clear)
        self.clear_button = QPushButton("Clear")
        self.clear_button.clicked.connect(self._on_clear)
        self.busy_label = QLabel("")
        scan_layout.addWidget(QLabel("UPC:"))
        scan_layout.addWidget(self.scanner_input, stretch=1)
        scan_layout.addWidget(self.clear_button)
        scan_layout.addWidget(self.busy_label)
        main_layout.addLayout(scan_layout)

        self.notification_label = QLabel("")
        notif_font = QFont(); notif_font.setPointSize(20); notif_font.setBold(True)
        self.notification_label.setFont(notif_font)
        self.notification_label.setAlignment(Qt.AlignCenter)
        self.notification_label.setWordWrap(True)
        main_layout.addWidget(self.notification_label)

        # Lines
        self.table_frame = QFrame()
        self.table_frame.setObjectName("TableFrame")
        frame_layout = QVBoxLayout(self.table_frame)
        frame_layout.setContentsMargins(0, 0, 0, 0)

        self.table = QTableWidget()
        self.table.setColumnCount(len(COLUMNS))
        self.table.setHorizontalHeaderLabels(COLUMNS)
        self.table.horizontalHeader().setSectionResizeMode(QHeaderView.ResizeToContents)
        self.table.horizontalHeader().setStretchLastSection(True)
        self.table.setEditTriggers(QTableWidget.NoEditTriggers)
        self.table.setSelectionMode(QAbstractItemView.NoSelection)
        self.table.setFocusPolicy(Qt.NoFocus)
        frame_layout.addWidget(self.table)
        main_layout.addWidget(self.table_frame, stretch=1)

        self.summary_label = QLabel("")
        main_layout.addWidget(self.summary_label)

    def _on_scan(self):
        """Emit the scanned text, then clear the field for the next scan."""
        text = self.scanner_input.text().strip()
        if text:
            self.scan_submitted.emit(text)
        self.scanner_input.clear()

    def _on_clear(self):
        self.scanner_input.clear()
        self.clear_requested.emit()
        self.set_focus_to_scanner()

    def _on_print_clicked(self, shipment_id: str, line_ids: List[int], label_already_generated: bool):
        self.print_requested.emit(shipment_id, line_ids, label_already_generated)
        self.set_focus_to_scanner()

    def display_session(self, session):
        """
        Render the session's lines, checked marks and print buttons.

        Args:
            session (ScanSession): The session to render
        """
        pick_list = session.pick_list
        if pick_list is not None and pick_list.order_number:
            self.title_label.setText(f"Pick List {session.pick_list_id} - Order {pick_list.order_number}")
        else:
            self.title_label.setText(f"Pick List {session.pick_list_id}")
        packer_name = pick_list.packer_name if pick_list is not None else None
        self.packer_label.setText(f"Packer: {packer_name or 'Unassigned'}")
        self.status_label.setText(f"Status: {session.pick_list_status().capitalize()}")

        if session.lines_error:
            self.table.setRowCount(0)
            self.summary_label.setText(f"Could not load lines: {session.lines_error}")
            return

        duplicates = session.duplicate_shipment_numbers()
        current = session.current_checked_item()
        groups = session.shipment_groups()

        self.table.clearSpans()
        self.table.setRowCount(sum(len(group) for group in groups.values()))

        row = 0
        for shipment_id, group in groups.items():
            first_row = row
            for line in group:
                self._fill_row(row, line, session.is_checked(line.line_id),
                               line.shipment_number in duplicates,
                               current is not None and current.line_id == line.line_id)
                row += 1

            printed = session.is_printed(shipment_id)
            button = QPushButton("Reprint Label" if printed else "Print Label")
            button.setEnabled(not session.is_printing(shipment_id))
            button.clicked.connect(partial(self._on_print_clicked, shipment_id,
                                           [line.line_id for line in group], printed))
            self.table.setCellWidget(first_row, PRINT_COLUMN, button)
            if len(group) > 1:
                self.table.setSpan(first_row, PRINT_COLUMN, len(group), 1)

        total = len(session.filtered_lines())
        summary = (f"Checked: {session.checked_count()} / {total}    "
                   f"Completed: {session.completed_count()} / {total}")
        if duplicates:
            summary += f"    Duplicate shipment numbers: {', '.join(sorted(duplicates))}"
        if session.all_items_completed():
            summary += "    ALL ITEMS COMPLETED"
        self.summary_label.setText(summary)

        self.set_checking(session.is_checking)

    def _fill_row(self, row: int, line, checked: bool, duplicate: bool, current: bool):
        values = [
            line.shipment_number,
            line.shipment_id,
            line.upc or "",
            line.sku or "",
            line.product_name or "",
            f"{line.shipped_qty if line.shipped_qty is not None else 0} / {line.quantity if line.quantity is not None else '?'}",
        ]
        for col, value in enumerate(values):
            item = QTableWidgetItem(str(value))
            if current:
                font = item.font(); font.setBold(True)
                item.setFont(font)
            self.table.setItem(row, col, item)

        if duplicate:
            number_item = self.table.item(row, 0)
            number_item.setBackground(QColor("orange"))
            number_item.setToolTip("Shipment number shared by several lines: scanning is blocked, use the Print button")

        if line.hold_qty:
            status_item = QTableWidgetItem(f"On Hold ({line.hold_qty})"); status_item.setBackground(QColor("orange"))
        elif is_line_complete(line):
            status_item = QTableWidgetItem("Shipped"); status_item.setBackground(QColor("lightgreen"))
        elif checked:
            status_item = QTableWidgetItem("Checked"); status_item.setBackground(QColor("lightblue"))
        else:
            status_item = QTableWidgetItem("Pending"); status_item.setBackground(QColor("yellow"))
        self.table.setItem(row, COLUMNS.index("Status"), status_item)

    def set_checking(self, checking: bool):
        """Disable the scanner while a scan is being resolved."""
        self.scanner_input.setEnabled(not checking)
        self.busy_label.setText("Processing..." if checking else "")
        if not checking:
            self.set_focus_to_scanner()

    def set_printing(self, session):
        """Refresh only the print buttons' enabled state."""
        row = 0
        for shipment_id, group in session.shipment_groups().items():
            button = self.table.cellWidget(row, PRINT_COLUMN)
            if button is not None:
                button.setEnabled(not session.is_printing(shipment_id))
            row += len(group)

    def show_notification(self, level: str, text: str):
        """
        Displays a large, colored notification message.

        Args:
            level (str): "success", "info", "warning" or "error".
            text (str): The message to display.
        """
        self.notification_label.setText(text)
        self.notification_label.setStyleSheet(f"color: {NOTIFICATION_COLORS.get(level, 'black')};")

    def clear_screen(self):
        """Resets the widget before another pick list is shown."""
        self.table.clearSpans()
        self.table.clearContents()
        self.table.setRowCount(0)
        self.title_label.setText("")
        self.packer_label.setText("")
        self.status_label.setText("")
        self.summary_label.setText("")
        self.notification_label.setText("")
        self.scanner_input.blockSignals(True)
        self.scanner_input.clear()
        self.scanner_input.blockSignals(False)
        self.set_checking(False)

    def set_focus_to_scanner(self):
        """Keep keyboard focus on the scanner input so scans are captured."""
        self.scanner_input.setFocus()
