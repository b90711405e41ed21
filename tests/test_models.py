"""
Unit tests for src/models.py: records, line completion and status derivation.
"""

import pytest

from conftest import line_record, pick_list_record
from models import (
    PickList,
    PickListLine,
    derive_pick_list_status,
    group_by_shipment,
    is_line_complete,
    shipment_number_counts,
)


def make_line(line_id=1, shipment_id="S1", shipment_number="SN-1", quantity=1, shipped_qty=None, hold_qty=0):
    return PickListLine(line_id=line_id, pick_list_id=1042, shipment_id=shipment_id,
                        shipment_number=shipment_number, quantity=quantity,
                        shipped_qty=shipped_qty, hold_qty=hold_qty)


class TestPickListFromRecord:

    def test_maps_gateway_columns(self):
        pick_list = PickList.from_record(pick_list_record(
            7, order_number="ORD-7", packer_id="17", packer_name="Jane", remarks="Fragile"))

        assert pick_list.pick_list_id == 7
        assert pick_list.order_number == "ORD-7"
        assert pick_list.packer_id == "17"
        assert pick_list.packer_name == "Jane"
        assert pick_list.remarks == "Fragile"
        assert pick_list.status == "pending"
        assert pick_list.total_orders == 2
        assert pick_list.local_version == 0

    def test_status_key_in_upper_case(self):
        pick_list = PickList.from_record({"PICK_LIST_ID": "9", "STATUS": "Completed"})

        assert pick_list.pick_list_id == 9
        assert pick_list.status == "completed"

    def test_missing_id_raises(self):
        with pytest.raises(ValueError):
            PickList.from_record({"ORDER_NUMBER": "ORD-1"})


class TestPickListLineFromRecord:

    def test_maps_gateway_columns(self):
        line = PickListLine.from_record(line_record(3, "se-1", "0123456789", quantity=2, shipped_qty=1))

        assert line.line_id == 3
        assert line.shipment_id == "se-1"
        assert line.shipment_number == "SN-se-1"
        assert line.upc == "0123456789"
        assert line.quantity == 2
        assert line.shipped_qty == 1
        assert line.store_name == "Main Store"

    def test_numeric_strings_and_nulls(self):
        record = line_record(4, "S1", "111")
        record.update({"QUANTITY": "3", "SHIPPED_QTY": None, "HOLD_QTY": None})

        line = PickListLine.from_record(record)

        assert line.quantity == 3
        assert line.shipped_qty is None
        assert line.hold_qty == 0

    def test_missing_shipment_id_raises(self):
        with pytest.raises(ValueError):
            PickListLine.from_record({"PICK_LIST_LINES_ID": 1})


class TestLineCompletion:

    @pytest.mark.parametrize("quantity, shipped_qty, expected", [
        (2, 2, True),
        (2, 1, False),
        (2, None, False),
        (None, None, False),
        (0, 0, True),
    ])
    def test_is_line_complete(self, quantity, shipped_qty, expected):
        assert is_line_complete(make_line(quantity=quantity, shipped_qty=shipped_qty)) is expected


class TestDerivePickListStatus:

    def test_empty_list_is_pending(self):
        assert derive_pick_list_status([]) == "pending"

    def test_all_complete_is_completed(self):
        lines = [make_line(1, shipped_qty=1), make_line(2, quantity=3, shipped_qty=3)]
        assert derive_pick_list_status(lines) == "completed"

    def test_one_incomplete_is_pending(self):
        lines = [make_line(1, shipped_qty=1), make_line(2, shipped_qty=None)]
        assert derive_pick_list_status(lines) == "pending"

    def test_held_quantity_keeps_pending(self):
        lines = [make_line(1, shipped_qty=1, hold_qty=1)]
        assert derive_pick_list_status(lines) == "pending"

    def test_accepts_generator(self):
        assert derive_pick_list_status(make_line(i, shipped_qty=1) for i in range(3)) == "completed"


class TestGrouping:

    def test_shipment_number_counts(self):
        lines = [make_line(1, shipment_number="SN-1"), make_line(2, shipment_number="SN-1"),
                 make_line(3, shipment_number="SN-2")]

        assert shipment_number_counts(lines) == {"SN-1": 2, "SN-2": 1}

    def test_group_by_shipment_keeps_first_seen_order(self):
        lines = [make_line(1, "S2"), make_line(2, "S1"), make_line(3, "S2")]

        groups = group_by_shipment(lines)

        assert list(groups) == ["S2", "S1"]
        assert [line.line_id for line in groups["S2"]] == [1, 3]
