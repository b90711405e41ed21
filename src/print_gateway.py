"""
Client for the local print service.

The print service proxies the carrier's label API and the workstation's
printer driver. It has two ways to print a shipment label:
- /print fetches the label that already exists for the shipment
- /generate-and-print asks the carrier to create a new label first

Both answer {"success": true, "message": ...} or {"success": false, "error": ...}.
"""

from typing import Optional

from gateway_client import BaseGateway
from logger import get_logger

logger = get_logger(__name__)


class PrintGateway(BaseGateway):
    """Typed wrapper around the print service endpoints."""

    async def reprint_label(self, shipment_id: str) -> dict:
        """POST /print - print the already generated label for a shipment."""
        body = await self._request('POST', '/print', json={'shipmentId': shipment_id})
        logger.info(f"Print job sent for existing label of shipment {shipment_id}")
        return body if isinstance(body, dict) else {}

    async def generate_and_print(self, shipment_id: str) -> dict:
        """POST /generate-and-print - create a new carrier label, then print it."""
        body = await self._request('POST', '/generate-and-print',
                                   params={'shipmentId': shipment_id})
        logger.info(f"New label generated and printed for shipment {shipment_id}")
        return body if isinstance(body, dict) else {}

    async def print_label(self, shipment_id: str, label_already_generated: bool) -> dict:
        """Dispatch exactly one print call, picking the endpoint by label state."""
        if label_already_generated:
            return await self.reprint_label(shipment_id)
        return await self.generate_and_print(shipment_id)

    async def fetch_default_printer(self) -> Optional[str]:
        """
        GET /printers/default

        The service has returned the printer as a plain name, as an object
        with NAME/name, and as a list of such objects; all are accepted.

        Returns:
            Printer name, or None if the service knows of none
        """
        body = await self._request('GET', '/printers/default', check_success=False)
        printer = body.get('defaultPrinter') if isinstance(body, dict) else body

        if isinstance(printer, list):
            printer = printer[0] if printer else None
        if isinstance(printer, dict):
            printer = printer.get('NAME') or printer.get('name')

        return str(printer) if printer else None
