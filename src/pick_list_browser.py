import asyncio
import time
from typing import Callable, Dict, List, Optional

import pandas as pd
from PySide6.QtCore import QObject, Signal

from exceptions import DispatchError
from fulfillment_gateway import FulfillmentGateway
from logger import get_logger
from models import PickList

logger = get_logger(__name__)

TABLE_COLUMNS = ['Pick List', 'Order #', 'Order Date', 'Assignee', 'Packer',
                 'Progress', 'Status', 'Remarks']


class PickListBrowser(QObject):
    """
    Holds the pick list collection shown on the browse screen.

    The browser fetches pick lists by status, keeps the dashboard counters and
    performs packer assignment. A successful assignment patches the local row
    straight away and is remembered for a while, so a refresh that races the
    gateway's own write does not flip the packer back.

    Attributes:
        pick_lists_changed (Signal): Emitted after the collection changes.
        stats_changed (Signal): Emitted with the new stats dictionary.
        notification (Signal): Emitted with (level, message) for the user.
        pick_lists (List[PickList]): Last fetched collection, gateway order.
        stats (Dict[str, int]): Counters: pending, completed, total.
        error (str | None): Message of the last failed fetch.
    """
    pick_lists_changed = Signal()
    stats_changed = Signal(dict)
    notification = Signal(str, str)

    def __init__(self, fulfillment: FulfillmentGateway, patch_ttl: float = 300.0,
                 clock: Callable[[], float] = time.time):
        """
        Args:
            fulfillment: Gateway used for all calls
            patch_ttl: Seconds a confirmed assignment overrides refetched data
            clock: Time source for patch ageing
        """
        super().__init__()
        self.fulfillment = fulfillment
        self.patch_ttl = patch_ttl
        self._clock = clock

        self.pick_lists: List[PickList] = []
        self.stats: Dict[str, int] = {'pending': 0, 'completed': 0, 'total': 0}
        self.error: Optional[str] = None
        self.loading = False
        self.status = 'pending'

        # pick_list_id -> confirmed assignment not yet seen from the gateway
        self._patches: Dict[int, dict] = {}

    async def fetch_pick_lists(self, status: str = 'pending',
                               entity_id: Optional[str] = None) -> bool:
        """
        Replace the collection with the gateway's pick lists for a status.

        On failure the collection is cleared and `error` is set.

        Returns:
            True if the fetch succeeded
        """
        self.loading = True
        self.error = None
        self.status = status

        try:
            pick_lists = await self.fulfillment.fetch_pick_lists(status, entity_id)
        except DispatchError as e:
            logger.error(f"Failed to fetch pick lists: {e}")
            self.pick_lists = []
            self.error = e.get_display_message()
            self.notification.emit('error', f"Failed to load pick lists: {self.error}")
            self.pick_lists_changed.emit()
            return False
        finally:
            self.loading = False

        self._reapply_patches(pick_lists)
        self.pick_lists = pick_lists
        self.pick_lists_changed.emit()
        return True

    def _reapply_patches(self, pick_lists: List[PickList]):
        now = self._clock()
        for pick_list in pick_lists:
            patch = self._patches.get(pick_list.pick_list_id)
            if patch is None:
                continue

            if now - patch['patched_at'] > self.patch_ttl:
                logger.debug(f"Assignment patch for pick list {pick_list.pick_list_id} expired")
                del self._patches[pick_list.pick_list_id]
            elif pick_list.packer_id == patch['packer_id']:
                # Gateway caught up
                del self._patches[pick_list.pick_list_id]
            else:
                logger.info(
                    f"Keeping local assignment of pick list {pick_list.pick_list_id} "
                    f"to {patch['packer_id']} over stale gateway data"
                )
                pick_list.packer_id = patch['packer_id']
                pick_list.packer_name = patch['packer_name']
                pick_list.local_version = patch['version']
                pick_list.patched_at = patch['patched_at']

    async def fetch_stats(self, entity_id: Optional[str] = None) -> Dict[str, int]:
        """
        Refresh the pending/completed/total counters.

        The three collections are fetched in parallel. If any call fails the
        previous counters are kept.
        """
        results = await asyncio.gather(
            self.fulfillment.fetch_pick_lists('pending', entity_id),
            self.fulfillment.fetch_pick_lists('completed', entity_id),
            self.fulfillment.fetch_pick_lists('all', entity_id),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, DispatchError):
                logger.error(f"Failed to fetch stats: {result}")
                return self.stats
            if isinstance(result, BaseException):
                raise result

        pending, completed, everything = results
        self.stats = {
            'pending': len(pending),
            'completed': len(completed),
            'total': len(everything),
        }
        logger.info(f"Stats: {self.stats}")
        self.stats_changed.emit(dict(self.stats))
        return self.stats

    async def assign_packer(self, pick_list_id: int, entity_id: str, entity_name: str,
                            session=None) -> bool:
        """
        Assign a packer to a pick list.

        Args:
            pick_list_id: Pick list to assign
            entity_id: Worker's entity ID
            entity_name: Worker's display name, shown until the next refresh
            session: Open ScanSession; patched as well if it holds this pick list

        Returns:
            True if the gateway confirmed the assignment
        """
        try:
            await self.fulfillment.assign_packer(pick_list_id, entity_id)
        except DispatchError as e:
            logger.error(f"Failed to assign pick list {pick_list_id}: {e}")
            self.notification.emit('error', f"Failed to assign packing person: {e.get_display_message()}")
            return False

        patched_at = self._clock()
        pick_list = self.get_pick_list(pick_list_id)
        version = (pick_list.local_version if pick_list else 0) + 1

        if pick_list is not None:
            pick_list.packer_id = entity_id
            pick_list.packer_name = entity_name
            pick_list.local_version = version
            pick_list.patched_at = patched_at

        self._patches[pick_list_id] = {
            'packer_id': entity_id,
            'packer_name': entity_name,
            'version': version,
            'patched_at': patched_at,
        }

        if session is not None and session.pick_list_id == pick_list_id:
            session.apply_packer_patch(entity_id, entity_name)

        self.notification.emit('success', f"Pick list {pick_list_id} assigned to {entity_name}")
        self.pick_lists_changed.emit()
        return True

    def get_pick_list(self, pick_list_id: int) -> Optional[PickList]:
        for pick_list in self.pick_lists:
            if pick_list.pick_list_id == pick_list_id:
                return pick_list
        return None

    def filter(self, search: str = "", mine_only: bool = False,
               entity_id: Optional[str] = None) -> List[PickList]:
        """
        Filter the collection for display.

        Args:
            search: Case-insensitive text matched against the ID, order
                    number, assignee, packer and remarks
            mine_only: Keep only pick lists assigned to or packed by entity_id
            entity_id: The current worker

        Returns:
            Matching pick lists in collection order
        """
        needle = (search or "").strip().lower()
        result = []
        for pick_list in self.pick_lists:
            if mine_only and entity_id not in (pick_list.assignee_id, pick_list.packer_id):
                continue
            if needle:
                haystack = [
                    str(pick_list.pick_list_id), pick_list.order_number,
                    pick_list.assignee_name, pick_list.packer_name, pick_list.remarks,
                ]
                if not any(needle in value.lower() for value in haystack if value):
                    continue
            result.append(pick_list)
        return result

    def to_dataframe(self, pick_lists: Optional[List[PickList]] = None) -> pd.DataFrame:
        """
        Build the table frame for the pick lists view.

        Rows are sorted by order date, newest first; rows without a
        parseable date go last.
        """
        if pick_lists is None:
            pick_lists = self.pick_lists

        rows = []
        for pick_list in pick_lists:
            if pick_list.total_orders:
                progress = f"{pick_list.shipped_orders or 0} / {pick_list.total_orders}"
            else:
                progress = ""
            rows.append({
                'Pick List': pick_list.pick_list_id,
                'Order #': pick_list.order_number,
                'Order Date': pick_list.order_date or "",
                'Assignee': pick_list.assignee_name or "",
                'Packer': pick_list.packer_name or "",
                'Progress': progress,
                'Status': pick_list.status.capitalize(),
                'Remarks': pick_list.remarks or "",
            })

        df = pd.DataFrame(rows, columns=TABLE_COLUMNS)
        if df.empty:
            return df

        sort_key = pd.to_datetime(df['Order Date'], errors='coerce', utc=True, format='ISO8601')
        df = df.assign(_sort=sort_key).sort_values('_sort', ascending=False, na_position='last', kind='stable')
        return df.drop(columns='_sort').reset_index(drop=True)
