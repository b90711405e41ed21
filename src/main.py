import sys
import asyncio
from typing import Optional, Set

from PySide6 import QtAsyncio
from PySide6.QtWidgets import QApplication, QMainWindow, QVBoxLayout, QWidget, QStackedWidget, QMessageBox
from PySide6.QtCore import QTimer

from logger import get_logger, set_pick_list_context, set_session_context, set_worker_context
from exceptions import ConfigError
from app_config import DashboardConfig, load_config
from fulfillment_gateway import FulfillmentGateway
from print_gateway import PrintGateway
from gateway_worker import GatewayWorker
from pick_list_browser import PickListBrowser
from scan_session import ScanSession
from pick_lists_widget import PickListsWidget
from pick_list_lines_widget import PickListLinesWidget
from status_banner import StatusBanner

logger = get_logger(__name__)

BANNER_REFRESH_MS = 60_000

MESSAGE_COLORS = {'success': 'green', 'info': 'blue', 'warning': 'orange', 'error': 'red'}


class MainWindow(QMainWindow):
    """
    The main application window, acting as the central orchestrator.

    MainWindow owns the gateways, the PickListBrowser and at most one
    ScanSession, and connects the views' signals to them. Remote work runs as
    asyncio tasks on the QtAsyncio event loop, with the HTTP I/O itself done
    on the GatewayWorker thread; views are re-rendered from the session and
    browser signals.

    Attributes:
        config (DashboardConfig): Resolved configuration.
        fulfillment (FulfillmentGateway): Pick list gateway client.
        printer (PrintGateway): Print service client.
        browser (PickListBrowser): Pick list collection and counters.
        session (ScanSession | None): Session for the open pick list.
    """

    def __init__(self, config: DashboardConfig, fulfillment: Optional[FulfillmentGateway] = None,
                 printer: Optional[PrintGateway] = None, worker: Optional[GatewayWorker] = None):
        """
        Initialize the MainWindow and wire the views to the logic.

        Gateways not passed in are created on `worker`, which must already
        be running when the window is used under QtAsyncio.
        """
        super().__init__()
        self.setWindowTitle("Dispatch Dashboard")
        self.resize(1280, 800)

        logger.info("Initializing MainWindow")

        self.config = config
        self.fulfillment = fulfillment or FulfillmentGateway(
            config.fulfillment_base_url, config.request_timeout, worker=worker)
        self.printer = printer or PrintGateway(
            config.printer_base_url, config.request_timeout, worker=worker)
        self.browser = PickListBrowser(self.fulfillment, patch_ttl=config.assignment_patch_ttl)
        self.session: Optional[ScanSession] = None
        self._tasks: Set[asyncio.Future] = set()

        set_worker_context(config.entity_id)

        self._init_ui()

        self.browser.pick_lists_changed.connect(self._show_pick_lists)
        self.browser.stats_changed.connect(self.pick_lists_widget.update_stats)
        self.browser.notification.connect(
            lambda level, message: self.pick_lists_widget.show_message(message, MESSAGE_COLORS.get(level, 'black'))
        )

        self.banner_timer = QTimer(self)
        self.banner_timer.setInterval(BANNER_REFRESH_MS)
        self.banner_timer.timeout.connect(lambda: self._schedule(self.refresh_banner()))

        logger.info("MainWindow initialized successfully")

    def _init_ui(self):
        """Initialize all user interface components and layouts."""
        central = QWidget()
        layout = QVBoxLayout(central)

        self.banner = StatusBanner()
        self.banner.set_worker(self.config.entity_name or self.config.entity_id or "")
        layout.addWidget(self.banner)

        self.stack = QStackedWidget()

        self.pick_lists_widget = PickListsWidget()
        status_index = self.pick_lists_widget.status_combo.findData(self.config.default_status)
        self.pick_lists_widget.status_combo.blockSignals(True)
        self.pick_lists_widget.status_combo.setCurrentIndex(max(status_index, 0))
        self.pick_lists_widget.status_combo.blockSignals(False)
        self.pick_lists_widget.status_changed.connect(lambda _status: self._schedule(self.refresh_pick_lists()))
        self.pick_lists_widget.refresh_requested.connect(lambda: self._schedule(self.refresh_pick_lists()))
        self.pick_lists_widget.filter_changed.connect(self._show_pick_lists)
        self.pick_lists_widget.open_requested.connect(self.open_pick_list)
        self.pick_lists_widget.assign_requested.connect(self.on_assign_requested)

        self.lines_widget = PickListLinesWidget()
        self.lines_widget.scan_submitted.connect(self.on_scanner_input)
        self.lines_widget.search_changed.connect(self.on_search_changed)
        self.lines_widget.clear_requested.connect(self.on_clear_search)
        self.lines_widget.print_requested.connect(self.on_print_requested)
        self.lines_widget.refresh_requested.connect(self.on_reload_lines)
        self.lines_widget.back_requested.connect(self.close_pick_list)

        self.stack.addWidget(self.pick_lists_widget)
        self.stack.addWidget(self.lines_widget)
        layout.addWidget(self.stack, stretch=1)

        self.setCentralWidget(central)

    # ------------------------------------------------------------------
    # Task scheduling
    # ------------------------------------------------------------------

    def _schedule(self, coro) -> asyncio.Future:
        """Run a coroutine on the event loop, keeping a reference until it ends."""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Future):
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background task failed: {error}", exc_info=error)

    async def start(self):
        """Initial load: pick lists, counters and banner."""
        self.banner_timer.start()
        await asyncio.gather(self.refresh_pick_lists(), self.refresh_banner())

    async def close_gateways(self):
        await self.fulfillment.aclose()
        await self.printer.aclose()
        logger.info("Gateways closed")

    # ------------------------------------------------------------------
    # Pick lists
    # ------------------------------------------------------------------

    async def refresh_pick_lists(self):
        self.pick_lists_widget.set_loading(True)
        try:
            await asyncio.gather(
                self.browser.fetch_pick_lists(self.pick_lists_widget.current_status()),
                self.browser.fetch_stats(),
            )
        finally:
            self.pick_lists_widget.set_loading(False)
        self._show_pick_lists()

    async def refresh_banner(self):
        await self.banner.refresh(self.fulfillment, self.printer)

    def _show_pick_lists(self):
        visible = self.browser.filter(
            self.pick_lists_widget.search_text(),
            self.pick_lists_widget.mine_only(),
            self.config.entity_id,
        )
        self.pick_lists_widget.display_pick_lists(self.browser.to_dataframe(visible))
        if self.browser.error:
            self.pick_lists_widget.show_message(f"Error: {self.browser.error}", "red")

    def on_assign_requested(self, pick_list_id: int):
        if not self.config.entity_id:
            self.pick_lists_widget.show_message("Set [Worker] EntityId in config.ini to assign pick lists", "red")
            return
        self._schedule(self.browser.assign_packer(
            pick_list_id, self.config.entity_id, self.config.entity_name or self.config.entity_id,
            session=self.session,
        ))

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def open_pick_list(self, pick_list_id: int):
        """Create a fresh ScanSession for a pick list and switch to the lines view."""
        self._teardown_session()

        session = ScanSession(
            pick_list_id, self.fulfillment, self.printer,
            pick_list=self.browser.get_pick_list(pick_list_id),
            generate_label_on_scan=self.config.generate_label_on_scan,
        )
        session.state_changed.connect(lambda _state: self._on_session_state(session))
        session.checked_changed.connect(lambda: self._render_session(session))
        session.lines_changed.connect(lambda: self._render_session(session))
        session.printing_changed.connect(lambda: self._on_session_printing(session))
        session.notification.connect(self.lines_widget.show_notification)
        self.session = session

        set_pick_list_context(pick_list_id)
        set_session_context(session.session_id)

        self.lines_widget.clear_screen()
        self.lines_widget.display_session(session)
        self.stack.setCurrentWidget(self.lines_widget)
        self.lines_widget.set_focus_to_scanner()

        self._schedule(session.load_lines())

    def close_pick_list(self):
        """Discard the session and return to the pick list browser."""
        self._teardown_session()
        self.lines_widget.clear_screen()
        self.stack.setCurrentWidget(self.pick_lists_widget)
        self._schedule(self.refresh_pick_lists())

    def _teardown_session(self):
        if self.session is None:
            return
        session = self.session
        self.session = None
        for signal in (session.state_changed, session.checked_changed, session.lines_changed,
                       session.printing_changed, session.notification):
            signal.disconnect()
        session.reset()
        set_pick_list_context(None)
        set_session_context(None)

    def _render_session(self, session: ScanSession):
        if session is self.session:
            self.lines_widget.display_session(session)

    def _on_session_state(self, session: ScanSession):
        if session is self.session:
            self.lines_widget.set_checking(session.is_checking)

    def _on_session_printing(self, session: ScanSession):
        if session is self.session:
            self.lines_widget.set_printing(session)

    def on_scanner_input(self, text: str):
        if self.session is None:
            return
        self._schedule(self._resolve_scan(self.session, text))

    async def _resolve_scan(self, session: ScanSession, text: str):
        line, status = await session.resolve_scan(text)
        logger.info(f"Scan '{text}' resolved: {status}" + (f" (line {line.line_id})" if line else ""))
        self._render_session(session)

    def on_search_changed(self, text: str):
        if self.session is None:
            return
        self.session.set_search_term(text)
        self._render_session(self.session)

    def on_clear_search(self):
        if self.session is None:
            return
        self.session.clear_search()
        self._render_session(self.session)

    def on_print_requested(self, shipment_id: str, line_ids: list, label_already_generated: bool):
        if self.session is None:
            return
        self._schedule(self.session.group_print(shipment_id, line_ids, label_already_generated))

    def on_reload_lines(self):
        if self.session is None:
            return
        self._schedule(self.session.load_lines())

    def closeEvent(self, event):
        logger.info("Dispatch Dashboard closing")
        self.banner_timer.stop()
        self._teardown_session()
        super().closeEvent(event)


def main():
    app = QApplication(sys.argv)

    try:
        config = load_config("config.ini")
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        QMessageBox.critical(None, "Configuration Error", f"Cannot start Dispatch Dashboard:\n\n{e}")
        sys.exit(1)

    # QtAsyncio cannot open sockets; HTTP runs on the worker's own loop
    worker = GatewayWorker()
    if not worker.start_loop():
        logger.error("Gateway worker did not start")
        QMessageBox.critical(None, "Startup Error", "Cannot start the network worker thread.")
        sys.exit(1)

    window = MainWindow(config, worker=worker)
    window.show()

    try:
        QtAsyncio.run(window.start(), keep_running=True, quit_qapp=True)
    finally:
        worker.run_sync(window.close_gateways())
        worker.stop()


if __name__ == "__main__":
    main()
