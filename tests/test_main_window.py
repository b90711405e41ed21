"""
Integration tests for src/main.py: MainWindow wiring.

The window runs against fake gateways; background tasks scheduled by the
window are awaited explicitly instead of spinning the Qt event loop.
"""

import asyncio

import pytest

from app_config import DashboardConfig
from conftest import line_record, pick_list_record
from main import MainWindow


async def drain(window):
    """Wait until every task the window scheduled has finished."""
    while window._tasks:
        await asyncio.gather(*list(window._tasks))


@pytest.fixture
def window(qapp, fake_fulfillment, fulfillment, printer):
    fake_fulfillment.route("GET", "/api/get-picklists", json=[pick_list_record(1042, packer_name=None)])
    fake_fulfillment.route("GET", "/api/get-picklist-lines", json=[
        line_record(1, "S1", "111"),
        line_record(2, "S2", "222", shipped_qty=1),
    ])
    fake_fulfillment.route("GET", "/api/get-sync-info", json=[{"DATE_CHECK": "2025-03-05T09:15:00"}])
    config = DashboardConfig(entity_id="17", entity_name="Jane")
    return MainWindow(config, fulfillment=fulfillment, printer=printer)


@pytest.mark.asyncio
async def test_refresh_fills_browser_and_banner(window):
    await window.refresh_pick_lists()
    await window.refresh_banner()

    assert window.pick_lists_widget.proxy_model.rowCount() == 1
    assert window.pick_lists_widget.total_label.text() == "Total: 1"
    assert window.banner.printer_label.text() == "Printer: Zebra ZP450"


@pytest.mark.asyncio
async def test_open_scan_and_go_back(window, fake_fulfillment, fake_printer):
    await window.refresh_pick_lists()

    window.open_pick_list(1042)
    session = window.session

    assert window.stack.currentWidget() is window.lines_widget
    await drain(window)
    assert window.lines_widget.table.rowCount() == 2
    assert session.checked_items == {2}

    window.lines_widget.scanner_input.setText("111")
    window.lines_widget.scanner_input.returnPressed.emit()
    await drain(window)

    assert session.checked_items == {1, 2}
    assert len(fake_printer.calls("POST", "/print")) == 1
    assert "shipped" in window.lines_widget.notification_label.text()

    window.lines_widget.back_button.click()
    await drain(window)

    assert window.session is None
    assert session.lines == []
    assert window.stack.currentWidget() is window.pick_lists_widget


@pytest.mark.asyncio
async def test_opening_another_pick_list_replaces_session(window):
    window.open_pick_list(1042)
    first = window.session
    await drain(window)

    window.open_pick_list(1043)
    await drain(window)

    assert window.session is not first
    assert window.session.pick_list_id == 1043
    assert first.checked_items == set()


@pytest.mark.asyncio
async def test_assign_uses_configured_worker(window, fake_fulfillment):
    await window.refresh_pick_lists()

    window.on_assign_requested(1042)
    await drain(window)

    assert len(fake_fulfillment.calls("PUT", "/api/assign-picklist")) == 1
    assert window.browser.get_pick_list(1042).packer_name == "Jane"


@pytest.mark.asyncio
async def test_assign_without_worker_is_refused(qapp, fake_fulfillment, fulfillment, printer):
    window = MainWindow(DashboardConfig(), fulfillment=fulfillment, printer=printer)

    window.on_assign_requested(1042)

    assert window._tasks == set()
    assert "EntityId" in window.pick_lists_widget.message_label.text()
    assert fake_fulfillment.calls("PUT", "/api/assign-picklist") == []
