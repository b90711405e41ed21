"""
Client for the fulfillment gateway: pick lists, lines, ship updates and
packer assignment.
"""

from datetime import datetime
from typing import List, Optional

from exceptions import GatewayError
from gateway_client import BaseGateway
from logger import get_logger
from models import PickList, PickListLine

logger = get_logger(__name__)


class FulfillmentGateway(BaseGateway):
    """
    Typed wrapper around the fulfillment gateway endpoints.

    Every method raises a DispatchError subclass on failure; none of them
    touch local state.
    """

    async def fetch_pick_lists(self, status: str = 'pending',
                               entity_id: Optional[str] = None) -> List[PickList]:
        """
        GET /api/get-picklists

        Args:
            status: "pending", "completed" or "all"
            entity_id: Restrict to pick lists for this assignee/packer

        Returns:
            Pick lists in gateway order (newest order date first)
        """
        body = await self._request('GET', '/api/get-picklists',
                                   params={'status': status, 'entityId': entity_id})
        records = self._expect_list(body, '/api/get-picklists')

        pick_lists = []
        for record in records:
            try:
                pick_lists.append(PickList.from_record(record))
            except ValueError as e:
                logger.warning(f"Skipping malformed pick list record: {e}")

        logger.info(f"Fetched {len(pick_lists)} pick lists (status={status}, entity={entity_id})")
        return pick_lists

    async def fetch_pick_list_lines(self, pick_list_id: int) -> List[PickListLine]:
        """GET /api/get-picklist-lines for one pick list."""
        body = await self._request('GET', '/api/get-picklist-lines',
                                   params={'PICK_LIST_ID': pick_list_id})
        records = self._expect_list(body, '/api/get-picklist-lines')

        lines = []
        for record in records:
            try:
                lines.append(PickListLine.from_record(record))
            except ValueError as e:
                logger.warning(f"Skipping malformed pick list line: {e}")

        logger.info(f"Fetched {len(lines)} lines for pick list {pick_list_id}")
        return lines

    async def mark_shipment_shipped(self, shipment_id: str) -> dict:
        """
        GET /api/update-picklist-lines

        Sets SHIPPED_QTY = QUANTITY for every line with this shipment ID on
        the server. The gateway answers 404 when no line has the ID.

        Returns:
            The gateway's success payload (recordsFound, updatedAt, ...)
        """
        body = await self._request('GET', '/api/update-picklist-lines',
                                   params={'SHIPMENT_ID': shipment_id})
        logger.info(f"Shipment {shipment_id} marked shipped on gateway")
        return body if isinstance(body, dict) else {}

    async def assign_packer(self, pick_list_id: int, entity_id: str) -> None:
        """PUT /api/assign-picklist. Idempotent on the server."""
        await self._request('PUT', '/api/assign-picklist',
                            json={'ENTITY_ID': entity_id, 'PICK_LIST_ID': pick_list_id})
        logger.info(f"Pick list {pick_list_id} assigned to entity {entity_id}")

    async def fetch_sync_info(self) -> Optional[datetime]:
        """
        GET /api/get-sync-info

        Returns:
            Time of the last successful incremental sync, or None when the
            gateway has no sync record or an unparseable date
        """
        body = await self._request('GET', '/api/get-sync-info')
        if not isinstance(body, list) or not body:
            return None

        raw = body[0].get('DATE_CHECK') if isinstance(body[0], dict) else None
        if not raw:
            return None

        try:
            return datetime.fromisoformat(str(raw).replace('Z', '+00:00'))
        except ValueError:
            logger.warning(f"Unparseable sync timestamp: {raw}")
            return None

    @staticmethod
    def _expect_list(body, endpoint: str) -> list:
        if body is None:
            return []
        if not isinstance(body, list):
            raise GatewayError(f"Expected a list from {endpoint}, got {type(body).__name__}",
                               endpoint=endpoint)
        return body
