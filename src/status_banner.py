"""
Header banner with the last database sync time and the default printer.
"""

import asyncio
from datetime import datetime
from typing import Dict, Optional

from PySide6.QtWidgets import QWidget, QHBoxLayout, QLabel

from exceptions import DispatchError
from fulfillment_gateway import FulfillmentGateway
from logger import get_logger
from print_gateway import PrintGateway

logger = get_logger(__name__)

SYNC_TIME_FORMAT = "%b %d, %Y %I:%M %p"


def format_sync_time(value: Optional[datetime]) -> str:
    """Format a sync timestamp in local time, e.g. "Mar 05, 2025 02:30 PM"."""
    if value is None:
        return "Never"
    if value.tzinfo is not None:
        value = value.astimezone()
    return value.strftime(SYNC_TIME_FORMAT)


async def load_banner_info(fulfillment: FulfillmentGateway, printer: PrintGateway) -> Dict[str, str]:
    """
    Fetch sync time and default printer in parallel.

    Each call fails independently: a dead print service does not hide the
    sync time and vice versa.

    Returns:
        {"sync": text, "printer": text}
    """
    sync_result, printer_result = await asyncio.gather(
        fulfillment.fetch_sync_info(),
        printer.fetch_default_printer(),
        return_exceptions=True,
    )

    info = {}

    if isinstance(sync_result, DispatchError):
        logger.warning(f"Could not load sync info: {sync_result}")
        info['sync'] = "Sync error"
    elif isinstance(sync_result, BaseException):
        raise sync_result
    else:
        info['sync'] = format_sync_time(sync_result)

    if isinstance(printer_result, DispatchError):
        logger.warning(f"Could not load default printer: {printer_result}")
        info['printer'] = "No printer"
    elif isinstance(printer_result, BaseException):
        raise printer_result
    else:
        info['printer'] = printer_result or "No printer"

    return info


class StatusBanner(QWidget):
    """A one-line banner: worker, last sync and default printer."""

    def __init__(self, parent: QWidget = None):
        super().__init__(parent)
        layout = QHBoxLayout(self)
        layout.setContentsMargins(4, 2, 4, 2)

        self.worker_label = QLabel("")
        self.sync_label = QLabel("Last sync: ...")
        self.printer_label = QLabel("Printer: ...")

        layout.addWidget(self.worker_label)
        layout.addStretch()
        layout.addWidget(self.sync_label)
        layout.addWidget(self.printer_label)

    def set_worker(self, name: str):
        self.worker_label.setText(f"Worker: {name}" if name else "Worker: not configured")

    def set_info(self, info: Dict[str, str]):
        self.sync_label.setText(f"Last sync: {info.get('sync', '-')}")
        self.printer_label.setText(f"Printer: {info.get('printer', '-')}")

    async def refresh(self, fulfillment: FulfillmentGateway, printer: PrintGateway):
        self.set_info(await load_banner_info(fulfillment, printer))
