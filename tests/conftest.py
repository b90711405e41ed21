"""
Pytest configuration file for Dispatch Dashboard tests.

This file sets up the Python path so tests can import the flat modules
under 'src', runs Qt offscreen, and provides fake fulfillment and print
gateways built on httpx.MockTransport.
"""

import asyncio
import inspect
import os
import sys
from pathlib import Path

import httpx
import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# Get the repository root directory (parent of tests directory)
repo_root = Path(__file__).parent.parent

# Add src directory to sys.path (for src modules)
src_dir = repo_root / 'src'
if str(src_dir) not in sys.path:
    sys.path.insert(0, str(src_dir))

from fulfillment_gateway import FulfillmentGateway  # noqa: E402
from print_gateway import PrintGateway  # noqa: E402

FULFILLMENT_URL = "http://fulfillment.test"
PRINTER_URL = "http://printer.test"


def line_record(line_id: int, shipment_id: str, upc: str, shipment_number: str = None,
                quantity: int = 1, shipped_qty: int = None, hold_qty: int = 0,
                pick_list_id: int = 1042, sku: str = None, product_name: str = None):
    """
    Create a GET /api/get-picklist-lines record as the gateway returns it.

    Args:
        line_id: PICK_LIST_LINES_ID
        shipment_id: SHIPMENT_ID
        upc: UPC
        shipment_number: SHIPMENT_NUMBER, defaults to "SN-<shipment_id>"
        quantity: Ordered quantity
        shipped_qty: Shipped quantity, None while unfulfilled
    """
    return {
        "PICK_LIST_LINES_ID": line_id,
        "PICK_LIST_ID": pick_list_id,
        "SHIPMENT_ID": shipment_id,
        "SHIPMENT_NUMBER": shipment_number or f"SN-{shipment_id}",
        "SERVICE_CODE": "usps_priority_mail",
        "SHIPMENT_STATUS": "pending",
        "STORE_ID": 3,
        "STORE_NAME": "Main Store",
        "PRODUCT_SKU": sku or f"SKU-{line_id}",
        "UPC": upc,
        "PRODUCT_NAME": product_name or f"Product {line_id}",
        "QUANTITY": quantity,
        "SHIPPED_QTY": shipped_qty,
        "HOLD_QTY": hold_qty,
        "PACKING_PERSON": None,
        "PACKING_PERSON_NAME": None,
    }


def pick_list_record(pick_list_id: int, order_number: str = None, status: str = "pending",
                     order_date: str = "2025-03-05T14:30:00.000Z", assignee_id: str = "17",
                     assignee_name: str = "Jane", packer_id: str = None, packer_name: str = None,
                     remarks: str = None):
    """Create a GET /api/get-picklists record as the gateway returns it."""
    return {
        "PICK_LIST_ID": pick_list_id,
        "ORDER_NUMBER": order_number or f"ORD-{pick_list_id}",
        "ORDER_DATE": order_date,
        "ASSIGNEE_ID": assignee_id,
        "ASSIGNEE_NAME": assignee_name,
        "PACKING_PERSON": packer_id,
        "PACKING_PERSON_NAME": packer_name,
        "REMARKS": remarks,
        "status": status,
        "shipped_order": 0,
        "total_Orders": 2,
    }


class FakeGateway:
    """
    In-memory HTTP service for httpx.MockTransport.

    Routes map (method, path) to a handler taking the httpx.Request and
    returning an httpx.Response (or an awaitable of one). Every request is
    recorded, in a journal shared with other fakes when one is given, so
    tests can assert on call order across both gateways.
    """

    def __init__(self, name: str, journal: list = None):
        self.name = name
        self.journal = journal if journal is not None else []
        self.requests = []
        self.routes = {}

    def route(self, method: str, path: str, handler=None, *, json=None, status_code: int = 200):
        if handler is None:
            def handler(request, _json=json, _status=status_code):
                return httpx.Response(_status, json=_json)
        self.routes[(method, path)] = handler

    async def handle(self, request: httpx.Request) -> httpx.Response:
        # Yield once like real network I/O so concurrent callers interleave
        await asyncio.sleep(0)
        self.requests.append(request)
        self.journal.append((self.name, request.method, request.url.path))

        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"error": f"No route for {request.url.path}"})

        response = handler(request)
        if inspect.isawaitable(response):
            response = await response
        return response

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, method: str, path: str) -> list:
        return [r for r in self.requests if r.method == method and r.url.path == path]


@pytest.fixture
def journal():
    """Shared call log across both fake gateways."""
    return []


@pytest.fixture
def fake_fulfillment(journal):
    fake = FakeGateway("fulfillment", journal)
    fake.route("GET", "/api/update-picklist-lines",
               json={"success": True, "message": "Updated", "recordsFound": 1})
    fake.route("PUT", "/api/assign-picklist", json={"success": True})
    return fake


@pytest.fixture
def fake_printer(journal):
    fake = FakeGateway("printer", journal)
    fake.route("POST", "/print", json={"success": True, "message": "Print job sent"})
    fake.route("POST", "/generate-and-print", json={"success": True, "message": "Label generated"})
    fake.route("GET", "/printers/default", json={"defaultPrinter": "Zebra ZP450"})
    return fake


@pytest.fixture
def fulfillment(fake_fulfillment):
    return FulfillmentGateway(FULFILLMENT_URL, timeout=2.0, transport=fake_fulfillment.transport())


@pytest.fixture
def printer(fake_printer):
    return PrintGateway(PRINTER_URL, timeout=2.0, transport=fake_printer.transport())
