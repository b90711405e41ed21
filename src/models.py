"""
Pick list data structures and status derivation.

Records come from the fulfillment gateway as JSON objects keyed by the
database column names (PICK_LIST_ID, SHIPMENT_ID, SHIPPED_QTY, ...). The
from_record() constructors map them onto dataclasses and tolerate missing
optional columns and numbers delivered as strings.

Line completion and pick-list status are defined here once and reused by
the scan session, the browser and the views.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional

STATUS_PENDING = 'pending'
STATUS_COMPLETED = 'completed'


def _to_int(value: Any) -> Optional[int]:
    """Convert a gateway value to int, keeping None/blank as None."""
    if value is None or value == '':
        return None
    try:
        return int(float(value))
    except (ValueError, TypeError):
        return None


def _to_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


@dataclass
class PickList:
    """Pick list summary row as returned by GET /api/get-picklists"""
    pick_list_id: int
    order_number: str = ''
    order_date: Optional[str] = None
    assignee_id: Optional[str] = None
    assignee_name: Optional[str] = None
    packer_id: Optional[str] = None        # PACKING_PERSON
    packer_name: Optional[str] = None      # PACKING_PERSON_NAME
    remarks: Optional[str] = None
    status: str = STATUS_PENDING           # as reported by the gateway
    shipped_orders: Optional[int] = None
    total_orders: Optional[int] = None

    # Optimistic patch bookkeeping
    local_version: int = 0
    patched_at: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'PickList':
        """
        Create from a gateway record.

        Args:
            record: JSON object with upper-case column names. The status key
                    is accepted as either "status" or "STATUS".

        Returns:
            PickList instance

        Raises:
            ValueError: If PICK_LIST_ID is missing or not a number
        """
        pick_list_id = _to_int(record.get('PICK_LIST_ID'))
        if pick_list_id is None:
            raise ValueError(f"Pick list record without PICK_LIST_ID: {record}")

        status = str(record.get('status') or record.get('STATUS') or STATUS_PENDING).lower()

        return cls(
            pick_list_id=pick_list_id,
            order_number=_to_str(record.get('ORDER_NUMBER')) or '',
            order_date=_to_str(record.get('ORDER_DATE')),
            assignee_id=_to_str(record.get('ASSIGNEE_ID')),
            assignee_name=_to_str(record.get('ASSIGNEE_NAME')),
            packer_id=_to_str(record.get('PACKING_PERSON')),
            packer_name=_to_str(record.get('PACKING_PERSON_NAME')),
            remarks=_to_str(record.get('REMARKS')),
            status=status,
            shipped_orders=_to_int(record.get('shipped_order')),
            total_orders=_to_int(record.get('total_Orders')),
        )


@dataclass
class PickListLine:
    """One product line of a pick list, tied to one shipment"""
    line_id: int                           # PICK_LIST_LINES_ID
    pick_list_id: int
    shipment_id: str                       # carrier ID, e.g. "se-939039759"; unit of update and print
    shipment_number: str = ''              # human-facing, NOT unique within a pick list
    service_code: Optional[str] = None
    shipment_status: Optional[str] = None
    store_id: Optional[int] = None
    store_name: Optional[str] = None
    sku: Optional[str] = None
    upc: Optional[str] = None
    product_name: Optional[str] = None
    quantity: Optional[int] = None         # ordered
    shipped_qty: Optional[int] = None      # None until fulfilled
    hold_qty: int = 0
    packer_id: Optional[str] = None
    packer_name: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return is_line_complete(self)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'PickListLine':
        """
        Create from a GET /api/get-picklist-lines record.

        Raises:
            ValueError: If PICK_LIST_LINES_ID or SHIPMENT_ID is missing
        """
        line_id = _to_int(record.get('PICK_LIST_LINES_ID'))
        shipment_id = _to_str(record.get('SHIPMENT_ID'))
        if line_id is None or not shipment_id:
            raise ValueError(f"Pick list line record missing ID or SHIPMENT_ID: {record}")

        return cls(
            line_id=line_id,
            pick_list_id=_to_int(record.get('PICK_LIST_ID')) or 0,
            shipment_id=shipment_id,
            shipment_number=_to_str(record.get('SHIPMENT_NUMBER')) or '',
            service_code=_to_str(record.get('SERVICE_CODE')),
            shipment_status=_to_str(record.get('SHIPMENT_STATUS')),
            store_id=_to_int(record.get('STORE_ID')),
            store_name=_to_str(record.get('STORE_NAME')),
            sku=_to_str(record.get('PRODUCT_SKU')),
            upc=_to_str(record.get('UPC')),
            product_name=_to_str(record.get('PRODUCT_NAME')),
            quantity=_to_int(record.get('QUANTITY')),
            shipped_qty=_to_int(record.get('SHIPPED_QTY')),
            hold_qty=_to_int(record.get('HOLD_QTY')) or 0,
            packer_id=_to_str(record.get('PACKING_PERSON')),
            packer_name=_to_str(record.get('PACKING_PERSON_NAME')),
        )


def is_line_complete(line: PickListLine) -> bool:
    """A line is complete iff its shipped quantity is known and equals the ordered quantity."""
    return (
        line.shipped_qty is not None
        and line.quantity is not None
        and line.shipped_qty == line.quantity
    )


def derive_pick_list_status(lines: Iterable[PickListLine]) -> str:
    """
    Derive a pick list's status from its lines.

    A pick list is completed when it has at least one line, every line is
    complete and nothing is on hold. This is the same rule the gateway applies
    when it filters by status, so the two never disagree.

    Args:
        lines: All lines owned by the pick list

    Returns:
        "completed" or "pending"
    """
    lines = list(lines)
    if not lines:
        return STATUS_PENDING

    for line in lines:
        if not is_line_complete(line) or line.hold_qty:
            return STATUS_PENDING

    return STATUS_COMPLETED


def shipment_number_counts(lines: Iterable[PickListLine]) -> Dict[str, int]:
    """Count how many lines carry each shipment number."""
    counts: Dict[str, int] = {}
    for line in lines:
        counts[line.shipment_number] = counts.get(line.shipment_number, 0) + 1
    return counts


def group_by_shipment(lines: Iterable[PickListLine]) -> Dict[str, List[PickListLine]]:
    """
    Group lines by shipment ID, keeping first-seen order.

    Returns:
        Dictionary of shipment_id -> lines, in the order shipments first appear
    """
    groups: Dict[str, List[PickListLine]] = {}
    for line in lines:
        groups.setdefault(line.shipment_id, []).append(line)
    return groups
