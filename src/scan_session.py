# Standard library imports
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

# Qt framework for signals/slots pattern
from PySide6.QtCore import QObject, Signal

# Local imports
from exceptions import DispatchError
from fulfillment_gateway import FulfillmentGateway
from logger import get_logger
from models import (
    PickList, PickListLine, derive_pick_list_status, group_by_shipment,
    is_line_complete, shipment_number_counts,
)
from print_gateway import PrintGateway

# Initialize module-level logger
logger = get_logger(__name__)


class ScanState(Enum):
    """Stages of one scan resolution."""
    IDLE = 'idle'
    RESOLVING = 'resolving'
    BLOCKED = 'blocked'
    UPDATING = 'updating'
    PRINTING = 'printing'
    SETTLED = 'settled'
    ERROR = 'error'


class ScanSession(QObject):
    """
    Scan-to-print reconciliation for one open pick list.

    This class owns everything the lines screen needs while a worker is
    scanning: the loaded lines, which lines are checked, which shipments have
    had a label printed, the scan buffer and the busy flags. A new session is
    created each time a pick list is opened and thrown away when the worker
    navigates back, so nothing leaks from one pick list to the next.

    The central rule is that local state only changes after the gateway has
    confirmed the matching remote effect:
    1. The "mark shipped" update completes before any print call is issued
    2. Lines are marked checked after the update succeeds and before printing
    3. A shipment is printed at most once per session; a failed print is
       forgotten so the next scan retries it
    4. Gateway failures are caught here, reported through `notification`,
       and never leave the checked/printed sets half-updated

    The session operates independently of the UI, communicating changes via
    Qt signals. Views read its state; only the session mutates it.

    Attributes:
        state_changed (Signal): Emitted with the new ScanState value.
        checked_changed (Signal): Emitted when the checked-set changes.
        printing_changed (Signal): Emitted when a group print starts or ends.
        lines_changed (Signal): Emitted when lines are (re)loaded or patched.
        notification (Signal): Emitted with (level, message) for the user.
                               Levels: "success", "info", "warning", "error".
        pick_list_id (int): The pick list this session works on.
        pick_list (PickList | None): Summary row from the browser, if known.
        lines (List[PickListLine]): Lines as fetched, in gateway order.
        checked_items (Set[int]): Line IDs confirmed shipped in this session.
        printed_shipments (Set[str]): Shipment IDs whose label print succeeded
                                      (or is being attempted by a scan).
        in_flight_shipment_id (str | None): Shipment with an update call in flight.
        matched_upc (str | None): UPC of the last resolved scan, for UI feedback.
    """
    state_changed = Signal(str)
    checked_changed = Signal()
    printing_changed = Signal()
    lines_changed = Signal()
    notification = Signal(str, str)  # level, message

    def __init__(self, pick_list_id: int, fulfillment: FulfillmentGateway,
                 printer: PrintGateway, pick_list: Optional[PickList] = None,
                 generate_label_on_scan: bool = False):
        """
        Initialize a session for one pick list. Lines are not loaded yet.

        Args:
            pick_list_id: PICK_LIST_ID to work on
            fulfillment: Gateway for lines and ship updates
            printer: Gateway for label printing
            pick_list: Summary row for the header, if the caller has it
            generate_label_on_scan: Scans print through generate-and-print
                                    instead of reprinting the existing label
        """
        super().__init__()

        self.pick_list_id = pick_list_id
        self.pick_list = pick_list
        self.fulfillment = fulfillment
        self.printer = printer
        self.generate_label_on_scan = generate_label_on_scan
        self.session_id = f"{pick_list_id}-{datetime.now():%Y%m%d%H%M%S}"

        self.lines: List[PickListLine] = []
        self.lines_loading = False
        self.lines_error: Optional[str] = None

        # Scan buffer
        self.search_term = ""
        self.last_search_term = ""
        self.matched_upc: Optional[str] = None

        self.checked_items: Set[int] = set()
        self.printed_shipments: Set[str] = set()
        self.in_flight_shipment_id: Optional[str] = None
        self.state = ScanState.IDLE
        self._printing_shipments: Set[str] = set()
        # Shipments updated by a scan whose label print then failed
        self._failed_prints: Set[str] = set()

        logger.info(f"ScanSession {self.session_id} created for pick list {pick_list_id}")

    # ------------------------------------------------------------------
    # Busy flags
    # ------------------------------------------------------------------

    @property
    def is_checking(self) -> bool:
        """True while a scan is being resolved; the scanner input must be disabled."""
        return self.state is not ScanState.IDLE

    @property
    def loading_shipment_id(self) -> Optional[str]:
        """A shipment whose group print is in progress, or None."""
        return next(iter(self._printing_shipments), None)

    def is_printing(self, shipment_id: str) -> bool:
        return shipment_id in self._printing_shipments

    def is_checked(self, line_id: int) -> bool:
        return line_id in self.checked_items

    def is_printed(self, shipment_id: str) -> bool:
        return shipment_id in self.printed_shipments

    def _set_state(self, state: ScanState):
        if state is self.state:
            return
        logger.debug(f"Scan state {self.state.value} -> {state.value}")
        self.state = state
        self.state_changed.emit(state.value)

    def _notify(self, level: str, message: str):
        self.notification.emit(level, message)

    # ------------------------------------------------------------------
    # Loading and buffer management
    # ------------------------------------------------------------------

    async def load_lines(self) -> bool:
        """
        Fetch the pick list's lines and rebuild the checked-set.

        Lines the server already reports as complete (shipped == ordered) are
        auto-checked. On failure the session is left empty with `lines_error`
        set.

        Returns:
            True if the lines were loaded
        """
        if self.is_checking:
            logger.warning("Cannot reload lines while a scan is in progress")
            return False

        self.lines_loading = True
        self.lines_error = None

        try:
            lines = await self.fulfillment.fetch_pick_list_lines(self.pick_list_id)
        except DispatchError as e:
            logger.error(f"Failed to load lines for pick list {self.pick_list_id}: {e}")
            self.lines = []
            self.checked_items = set()
            self.lines_error = e.get_display_message()
            self._notify('error', f"Failed to load pick list lines: {self.lines_error}")
            return False
        finally:
            self.lines_loading = False

        self.lines = lines
        self.checked_items = {line.line_id for line in lines if is_line_complete(line)}
        # Reloaded lines may carry new shipment numbers; retries go through group print
        self._failed_prints = set()

        logger.info(f"Pick list lines loaded: {len(lines)} total, {len(self.checked_items)} auto-checked")
        self.lines_changed.emit()
        self.checked_changed.emit()
        return True

    def set_search_term(self, term: str):
        """Update the scan buffer; only filters the table, does not resolve."""
        self.search_term = (term or "").strip()

    def set_matched_upc(self, upc: Optional[str]):
        self.matched_upc = upc

    def clear_search(self):
        """Clear the scan buffer. Checked lines and print history are kept."""
        self.search_term = ""
        self.last_search_term = ""
        self.matched_upc = None

    def reset(self):
        """Discard all session state (navigation away or logout)."""
        logger.info(f"ScanSession {self.session_id} reset")
        self.lines = []
        self.lines_error = None
        self.clear_search()
        self.checked_items = set()
        self.printed_shipments = set()
        self.in_flight_shipment_id = None
        self._printing_shipments = set()
        self._failed_prints = set()
        self.state = ScanState.IDLE
        self.lines_changed.emit()
        self.checked_changed.emit()

    def apply_packer_patch(self, packer_id: Optional[str], packer_name: Optional[str]):
        """Reflect a confirmed packer assignment on the header and every line."""
        if self.pick_list is not None:
            self.pick_list.packer_id = packer_id
            self.pick_list.packer_name = packer_name
        for line in self.lines:
            line.packer_id = packer_id
            line.packer_name = packer_name
        self.lines_changed.emit()

    # ------------------------------------------------------------------
    # Scan resolution
    # ------------------------------------------------------------------

    async def resolve_scan(self, raw_input: str) -> Tuple[Optional[PickListLine], str]:
        """
        Resolve one scanned UPC: update the shipment, then print its label.

        Args:
            raw_input (str): Text from the scanner (or typed and Enter pressed).

        Returns:
            Tuple[PickListLine | None, str]: The line the scan resolved to (if
            any) and a status string:
              * "BUSY" - another scan is still being resolved; dropped
              * "EMPTY" - blank input
              * "NO_MATCH" - no line has this UPC
              * "DUPLICATE_SHIPMENT" - shipment number shared by several lines;
                                       scanning blocked, printing still allowed
              * "ALREADY_COMPLETE" - nothing left to ship for this UPC
              * "DUPLICATE_IN_FLIGHT" - an update for this shipment is running
              * "UPDATE_FAILED" - the gateway did not confirm the update
              * "SHIPPED" - updated and label printed
              * "SHIPPED_ALREADY_PRINTED" - updated; label printed earlier
              * "PRINT_FAILED" - updated, but the label did not print
        """
        # Scanners can double-fire; extra scans while busy are dropped, not queued
        if self.is_checking:
            logger.info(f"Scan '{raw_input}' ignored: resolution already in progress")
            return None, "BUSY"

        upc = (raw_input or "").strip()
        if not upc:
            self.matched_upc = None
            return None, "EMPTY"

        self.last_search_term = upc
        self._set_state(ScanState.RESOLVING)
        logger.info(f"Resolving scan: {upc}")

        try:
            return await self._resolve(upc)
        finally:
            self._set_state(ScanState.IDLE)

    async def _resolve(self, upc: str) -> Tuple[Optional[PickListLine], str]:
        # === STEP 1: Exact, case-insensitive UPC match ===
        needle = upc.lower()
        matches = [line for line in self.lines if line.upc and line.upc.lower() == needle]

        if not matches:
            self.matched_upc = None
            self._notify('warning', f"No item with UPC {upc} in this pick list")
            return None, "NO_MATCH"

        # === STEP 2: Next unchecked line, in table order ===
        label_already_generated = not self.generate_label_on_scan
        selected = next((line for line in matches if line.line_id not in self.checked_items), None)

        if selected is None:
            # A confirmed update whose label never printed is retried first
            retry = next((line for line in matches if line.shipment_id in self._failed_prints), None)
            if retry is not None:
                blocked = self._block_duplicate_shipment_number(retry)
                if blocked is not None:
                    return blocked
                logger.info(f"Retrying label print for shipment {retry.shipment_id}")
                self.matched_upc = retry.upc
                return await self._print_shipment(retry, label_already_generated)

            # Every match is checked. Only reachable if the checked-set
            # drifted from the lines' quantities.
            selected = matches[0]
            if is_line_complete(selected):
                self.matched_upc = upc
                self._notify('error', f"All items with UPC {upc} are already completed!")
                return selected, "ALREADY_COMPLETE"

            logger.warning(
                f"All lines with UPC {upc} are checked but line {selected.line_id} "
                f"is not complete; re-triggering shipment {selected.shipment_id}"
            )
            label_already_generated = True

        # === STEP 3: Duplicate shipment number guard ===
        blocked = self._block_duplicate_shipment_number(selected)
        if blocked is not None:
            return blocked

        # === STEP 4: Already complete guard ===
        if is_line_complete(selected) and selected.line_id in self.checked_items:
            logger.info(f"Line {selected.line_id} already completed and checked")
            self.matched_upc = selected.upc
            self._notify('info', f"Item {selected.upc} is already completed")
            return selected, "ALREADY_COMPLETE"

        # === STEP 5: Single-flight guard ===
        shipment_id = selected.shipment_id
        if self.in_flight_shipment_id == shipment_id:
            logger.info(f"Duplicate update prevented for shipment {shipment_id}")
            return selected, "DUPLICATE_IN_FLIGHT"

        # === STEP 6: Mark the shipment shipped ===
        self.in_flight_shipment_id = shipment_id
        self._set_state(ScanState.UPDATING)

        try:
            await self.fulfillment.mark_shipment_shipped(shipment_id)
        except DispatchError as e:
            logger.error(f"Failed to update shipment {shipment_id}: {e}")
            self._set_state(ScanState.ERROR)
            self._notify('error', f"Failed to update shipment {shipment_id}: {e.get_display_message()}")
            return selected, "UPDATE_FAILED"
        finally:
            self.in_flight_shipment_id = None

        # === STEP 7: Confirmed; check the shipment's lines locally ===
        self._mark_shipment_checked(shipment_id, [selected.line_id])
        self.matched_upc = selected.upc

        return await self._print_shipment(selected, label_already_generated)

    def _block_duplicate_shipment_number(self, selected: PickListLine) -> Optional[Tuple[PickListLine, str]]:
        """Return the DUPLICATE_SHIPMENT result if the line's shipment number is not unique."""
        counts = shipment_number_counts(self.lines)
        if counts.get(selected.shipment_number, 0) <= 1:
            return None

        logger.warning(f"Scan blocked: duplicate shipment number {selected.shipment_number}")
        self.matched_upc = selected.upc
        self._set_state(ScanState.BLOCKED)
        self._notify(
            'warning',
            f"Cannot scan/update: multiple items found with shipment number "
            f"{selected.shipment_number}. Printing is still allowed."
        )
        return selected, "DUPLICATE_SHIPMENT"

    async def _print_shipment(self, selected: PickListLine,
                              label_already_generated: bool) -> Tuple[PickListLine, str]:
        shipment_id = selected.shipment_id

        # === STEP 8: At most one print per shipment per session ===
        if shipment_id in self.printed_shipments:
            logger.info(f"Shipment {shipment_id} already printed, skipping print")
            self._set_state(ScanState.SETTLED)
            self._notify('success', f"Shipment {selected.shipment_number} updated (label already printed)")
            return selected, "SHIPPED_ALREADY_PRINTED"

        self.printed_shipments.add(shipment_id)
        self._set_state(ScanState.PRINTING)

        printed = False
        try:
            printed = await self.group_print(shipment_id, [selected.line_id],
                                             label_already_generated, notify=False)
        finally:
            if not printed:
                self.printed_shipments.discard(shipment_id)

        if not printed:
            # Update stays durable; only the print is forgotten so it can be retried
            self._failed_prints.add(shipment_id)
            self._set_state(ScanState.ERROR)
            self._notify('error', f"Shipment {selected.shipment_number} updated but label printing failed")
            return selected, "PRINT_FAILED"

        self._set_state(ScanState.SETTLED)
        self._notify('success', f"Shipment {selected.shipment_number} shipped and label sent to printer")
        return selected, "SHIPPED"

    def _mark_shipment_checked(self, shipment_id: str, line_ids: Iterable[int]):
        """
        Record a confirmed shipment-level update.

        The gateway sets SHIPPED_QTY = QUANTITY for every line of the
        shipment, so every loaded line of that shipment is checked and
        patched, not only the one that was scanned.
        """
        self.checked_items.update(line_ids)
        for line in self.lines:
            if line.shipment_id == shipment_id:
                self.checked_items.add(line.line_id)
                line.shipped_qty = line.quantity
        self.checked_changed.emit()
        self.lines_changed.emit()

    # ------------------------------------------------------------------
    # Printing
    # ------------------------------------------------------------------

    async def group_print(self, shipment_id: str, line_ids: List[int],
                          label_already_generated: bool, notify: bool = True) -> bool:
        """
        Print one label for a whole shipment, updating it first if needed.

        If any of `line_ids` is not checked yet, the shipment is marked
        shipped first and all of them are checked on success. Then exactly
        one print call is made, however many lines the shipment has.

        Args:
            shipment_id: Shipment to print
            line_ids: Lines of that shipment shown to the user
            label_already_generated: Reprint the existing label (/print)
                                     instead of generating a new one
            notify: Emit a notification with the outcome

        Returns:
            True only if the update (when needed) and the print both succeeded
        """
        if shipment_id in self._printing_shipments:
            logger.info(f"Print already in progress for shipment {shipment_id}")
            return False

        self._printing_shipments.add(shipment_id)
        self.printing_changed.emit()
        owns_in_flight = False

        try:
            if not all(line_id in self.checked_items for line_id in line_ids):
                if self.in_flight_shipment_id == shipment_id:
                    logger.info(f"Update already in flight for shipment {shipment_id}; print skipped")
                    return False

                logger.info(f"Group print: updating all lines for shipment {shipment_id}")
                self.in_flight_shipment_id = shipment_id
                owns_in_flight = True
                await self.fulfillment.mark_shipment_shipped(shipment_id)
                self._mark_shipment_checked(shipment_id, line_ids)
            else:
                logger.debug(f"Group print: all lines of {shipment_id} already checked, only printing")

            await self.printer.print_label(shipment_id, label_already_generated)
            self.printed_shipments.add(shipment_id)
            self._failed_prints.discard(shipment_id)

            logger.info(f"Group print succeeded for shipment {shipment_id} ({len(line_ids)} lines)")
            if notify:
                self._notify('success', f"Label printed for shipment {shipment_id} ({len(line_ids)} items)")
            return True

        except DispatchError as e:
            logger.error(f"Group print failed for shipment {shipment_id}: {e}")
            if notify:
                self._notify('error', f"Failed to print shipment {shipment_id}: {e.get_display_message()}")
            return False

        finally:
            if owns_in_flight:
                self.in_flight_shipment_id = None
            self._printing_shipments.discard(shipment_id)
            self.printing_changed.emit()

    # ------------------------------------------------------------------
    # Derived queries (no side effects)
    # ------------------------------------------------------------------

    def filtered_lines(self) -> List[PickListLine]:
        """Lines whose UPC contains the scan buffer (partial, case-insensitive)."""
        if not self.search_term:
            return list(self.lines)
        needle = self.search_term.lower()
        return [line for line in self.lines if line.upc and needle in line.upc.lower()]

    def all_items_completed(self) -> bool:
        """True when every loaded line has shipped == ordered. False for an empty list."""
        if not self.lines:
            return False
        return all(is_line_complete(line) for line in self.lines)

    def current_checked_item(self) -> Optional[PickListLine]:
        """The checked line matching the last resolved UPC, if any."""
        if not self.matched_upc:
            return None
        needle = self.matched_upc.lower()
        for line in self.lines:
            if line.upc and line.upc.lower() == needle and line.line_id in self.checked_items:
                return line
        return None

    def pick_list_status(self) -> str:
        return derive_pick_list_status(self.lines)

    def duplicate_shipment_numbers(self) -> Set[str]:
        return {number for number, count in shipment_number_counts(self.lines).items() if count > 1}

    def shipment_groups(self) -> Dict[str, List[PickListLine]]:
        """Filtered lines grouped by shipment ID, for the table and print buttons."""
        return group_by_shipment(self.filtered_lines())

    def checked_count(self) -> int:
        return sum(1 for line in self.filtered_lines() if line.line_id in self.checked_items)

    def completed_count(self) -> int:
        return sum(1 for line in self.filtered_lines() if is_line_complete(line))
