"""
Custom exceptions for the Dispatch Dashboard application.

This module defines application-specific exceptions for remote gateway
failures and configuration problems. Using custom exceptions allows the
application to:
- Tell transport failures apart from logical (success:false) failures
- Include the endpoint and HTTP status for logging
- Give the scan screen short, worker-friendly messages
- Catch every expected failure with a single except clause at the
  session and browser boundary

Exception hierarchy:
    DispatchError (base)
    ├── GatewayError (network failure or non-2xx response)
    │   ├── GatewayTimeoutError (call exceeded its deadline)
    │   └── GatewayRejectedError (2xx response with success: false)
    └── ConfigError (invalid config.ini values)
"""

from typing import Optional


class DispatchError(Exception):
    """
    Base exception for all Dispatch Dashboard errors.

    All application-specific exceptions inherit from this class, so the
    reconciliation core can stop every expected failure at its boundary:
        try:
            await gateway.mark_shipment_shipped(shipment_id)
        except DispatchError as e:
            logger.error(f"Update failed: {e}")

    Note: This does NOT inherit from built-in errors like ValueError, IOError
    to maintain clear separation between application and system errors.
    """

    def get_display_message(self) -> str:
        """Get a short message suitable for the notification label."""
        return str(self)


class GatewayError(DispatchError):
    """
    Raised when a call to the fulfillment or print gateway fails.

    Covers connection errors, DNS failures, dropped connections and any
    response whose HTTP status is outside the 2xx range.

    Attributes:
        endpoint (str | None): Path of the gateway endpoint that failed
        status_code (int | None): HTTP status, or None for transport failures
    """

    def __init__(self, message: str, endpoint: Optional[str] = None,
                 status_code: Optional[int] = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code

    def get_display_message(self) -> str:
        """
        Get a short message for the notification label.

        Returns:
            The error text, prefixed with the HTTP status when there is one.
            Example: "HTTP 404: No record found with the given SHIPMENT_ID"
        """
        if self.status_code is not None:
            return f"HTTP {self.status_code}: {self}"
        return str(self)


class GatewayTimeoutError(GatewayError):
    """
    Raised when a gateway call does not settle within its deadline.

    Every remote call is bounded so a hung printer service or database
    cannot leave the scan screen stuck in its busy state. A timeout is
    handled exactly like any other failed call.
    """

    def __init__(self, endpoint: Optional[str] = None, timeout: Optional[float] = None):
        message = "Request timed out"
        if timeout is not None:
            message = f"Request timed out after {timeout:g}s"
        super().__init__(message, endpoint=endpoint)
        self.timeout = timeout


class GatewayRejectedError(GatewayError):
    """
    Raised when a gateway answers 2xx but reports `success: false`.

    The gateways report logical failures in the body, e.g.:
        {"success": false, "error": "No PDF URL found for this shipment"}

    Attributes:
        payload (dict): The decoded response body
    """

    def __init__(self, message: str, endpoint: Optional[str] = None,
                 status_code: Optional[int] = None, payload: Optional[dict] = None):
        super().__init__(message, endpoint=endpoint, status_code=status_code)
        self.payload = payload or {}

    def get_display_message(self) -> str:
        return str(self)


class ConfigError(DispatchError):
    """
    Raised when config.ini contains a value that cannot be used.

    Example usage:
        raise ConfigError("RequestTimeoutSeconds must be positive, got -1")
    """
    pass
